"""
Caller identity.

The engines take the caller's address explicitly on every role-gated
operation. This module normalizes addresses and provides WalletSession, a
small stand-in for the wallet handshake: it holds the connected address
and tells subscribers when the wallet connects or disconnects.
"""

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional, Protocol, runtime_checkable

from cleardeal.errors import NotEligibleError, ValidationError

logger = logging.getLogger(__name__)

ADDRESS_PATTERN = re.compile(r"^0x[0-9a-fA-F]{40}$")


class UserRole(Enum):
    CLIENT = "client"
    FREELANCER = "freelancer"


def normalize_address(address: Optional[str]) -> str:
    """Strip whitespace; hex wallet addresses compare case-insensitively so lower-case them."""
    if not address:
        return ""
    address = address.strip()
    if address[:2].lower() == "0x":
        return address.lower()
    return address


def is_wallet_address(address: Optional[str]) -> bool:
    return bool(address) and bool(ADDRESS_PATTERN.match(address.strip()))


def require_caller(address: Optional[str]) -> str:
    """Normalized caller identity, or NotEligibleError when no wallet is connected."""
    caller = normalize_address(address)
    if not caller:
        raise NotEligibleError("Wallet not connected")
    return caller


def same_identity(a: Optional[str], b: Optional[str]) -> bool:
    return bool(a) and normalize_address(a) == normalize_address(b)


@runtime_checkable
class IdentityProvider(Protocol):
    def current_address(self) -> Optional[str]:
        ...


@dataclass
class Profile:
    """Who is using a session, as entered at login."""

    address: str
    role: str
    name: Optional[str] = None
    email: Optional[str] = None


IdentityListener = Callable[[Optional[str]], None]


class WalletSession:
    """Connected wallet plus the logged-in profile, if any."""

    def __init__(self):
        self._address: Optional[str] = None
        self.profile: Optional[Profile] = None
        self._on_connect: List[IdentityListener] = []
        self._on_disconnect: List[IdentityListener] = []

    @property
    def is_connected(self) -> bool:
        return self._address is not None

    def current_address(self) -> Optional[str]:
        return self._address

    def connect(self, address: str) -> str:
        if not is_wallet_address(address):
            raise ValidationError(f"Invalid wallet address: {address}")
        address = normalize_address(address)
        if self._address and self._address != address:
            # Switching accounts drops the previous account's session
            self.disconnect()
        self._address = address
        logger.info(f"Wallet connected | address={address}")
        self._emit(self._on_connect, address)
        return address

    def disconnect(self) -> None:
        previous = self._address
        if previous is None:
            return
        self._address = None
        self.profile = None
        logger.info(f"Wallet disconnected | address={previous}")
        self._emit(self._on_disconnect, previous)

    def login(self, role, name: Optional[str] = None, email: Optional[str] = None) -> Profile:
        """Attach a profile to the connected wallet."""
        if self._address is None:
            raise NotEligibleError("Connect a wallet before logging in")
        role = role.value if isinstance(role, UserRole) else role
        if role not in {r.value for r in UserRole}:
            raise ValidationError(f"Invalid role: {role}")
        self.profile = Profile(address=self._address, role=role, name=name, email=email)
        return self.profile

    def logout(self) -> None:
        self.profile = None

    def on_connect(self, listener: IdentityListener) -> None:
        self._on_connect.append(listener)

    def on_disconnect(self, listener: IdentityListener) -> None:
        self._on_disconnect.append(listener)

    def _emit(self, listeners: List[IdentityListener], address: Optional[str]) -> None:
        for listener in list(listeners):
            listener(address)
