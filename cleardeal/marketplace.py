"""
Marketplace wiring.

Builds the store, settlement gateway and the two engines from a
ClearDealConfig so the CLI, the HTTP API and embedding code all get the
same object graph.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from cleardeal.config import ClearDealConfig, get_config
from cleardeal.jobs.applications import ApplicationService
from cleardeal.jobs.service import JobService
from cleardeal.settlement.http_client import HttpSettlementClient
from cleardeal.settlement.ledger import LocalLedger
from cleardeal.settlement.service import SettlementClient, SettlementGateway
from cleardeal.storage.base import EntityStore
from cleardeal.storage.memory import InMemoryEntityStore
from cleardeal.storage.sqlite import SQLiteEntityStore

logger = logging.getLogger(__name__)


@dataclass
class Marketplace:
    """The store plus the services operating on it."""

    store: EntityStore
    settlement: SettlementGateway
    jobs: JobService
    applications: ApplicationService
    config: ClearDealConfig

    def close(self) -> None:
        close = getattr(self.store, "close", None)
        if close is not None:
            close()


def build_settlement_client(config: ClearDealConfig) -> SettlementClient:
    if config.settlement_url:
        logger.info(f"Using settlement gateway at {config.settlement_url}")
        return HttpSettlementClient(config.settlement_url, timeout=config.settlement_timeout_seconds)
    logger.info("No settlement URL configured, using the local ledger")
    return LocalLedger()


def build_marketplace(
    config: Optional[ClearDealConfig] = None,
    store: Optional[EntityStore] = None,
    settlement_client: Optional[SettlementClient] = None,
    in_memory: bool = False,
) -> Marketplace:
    """Wire a Marketplace.

    Args:
        config: Settings; defaults to the cached environment config
        store: Use this store instead of the configured one
        settlement_client: Use this client instead of the configured one
        in_memory: Ignore ``config.db_path`` and keep everything in memory
    """
    config = config or get_config()

    if store is None:
        store = InMemoryEntityStore() if in_memory else SQLiteEntityStore(config.db_path)
    if settlement_client is None:
        settlement_client = build_settlement_client(config)

    gateway = SettlementGateway(
        settlement_client,
        timeout=config.settlement_timeout_seconds,
        poll_interval=config.settlement_poll_interval_seconds,
    )
    jobs = JobService(store)
    applications = ApplicationService(store, jobs, gateway)
    return Marketplace(
        store=store,
        settlement=gateway,
        jobs=jobs,
        applications=applications,
        config=config,
    )
