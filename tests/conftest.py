"""
Pytest fixtures and test configuration for ClearDeal tests.
"""

import asyncio
import logging

import pytest

from cleardeal.config import get_config
from cleardeal.jobs.applications import ApplicationService
from cleardeal.jobs.service import JobService
from cleardeal.settlement.ledger import LocalLedger
from cleardeal.settlement.service import SettlementGateway
from cleardeal.storage.memory import InMemoryEntityStore

CLIENT = "0x" + "c1" * 20
FREELANCER = "0x" + "f1" * 20
OTHER_FREELANCER = "0x" + "f2" * 20


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch, tmp_path):
    """Keep tests away from the real environment and home directory."""
    for name in (
        "CLEARDEAL_DB_PATH",
        "CLEARDEAL_SETTLEMENT_URL",
        "CLEARDEAL_SETTLEMENT_TIMEOUT_SECONDS",
        "CLEARDEAL_SETTLEMENT_POLL_INTERVAL_SECONDS",
        "CLEARDEAL_CURRENCY",
        "CLEARDEAL_LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("CLEARDEAL_DB_PATH", str(tmp_path / "default.db"))
    monkeypatch.chdir(tmp_path)
    get_config.cache_clear()
    yield
    get_config.cache_clear()


@pytest.fixture(autouse=True)
def clean_cleardeal_logger():
    """Remove all handlers from the cleardeal logger before/after each test."""
    logger = logging.getLogger("cleardeal")
    logger.handlers.clear()
    logger.setLevel(logging.NOTSET)
    yield
    logger.handlers.clear()
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def store():
    """Create in-memory storage for testing."""
    return InMemoryEntityStore()


@pytest.fixture
def ledger():
    return LocalLedger()


@pytest.fixture
def gateway(ledger):
    return SettlementGateway(ledger, timeout=2.0, poll_interval=0.01)


@pytest.fixture
def jobs(store):
    return JobService(store)


@pytest.fixture
def applications(store, jobs, gateway):
    return ApplicationService(store, jobs, gateway)


@pytest.fixture
def job(jobs):
    """A posted job with a bounty of 1.0."""
    return jobs.create_job(CLIENT, "Landing page", "Build a landing page for our launch", "1.0")


@pytest.fixture
def hire(applications):
    """Apply as ``freelancer`` and have the client select them."""

    async def _hire(job, freelancer=FREELANCER):
        await applications.apply(job.id, freelancer)
        return applications.select(job.id, freelancer, CLIENT)

    return _hire


async def wait_for_receipts(ledger: LocalLedger, count: int) -> None:
    """Yield to the event loop until the ledger holds ``count`` receipts."""
    for _ in range(500):
        if len(ledger.receipts) >= count:
            return
        await asyncio.sleep(0.001)
    raise AssertionError(f"ledger never reached {count} receipts")
