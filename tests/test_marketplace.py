"""Tests for wiring a marketplace from configuration."""

import pytest

from cleardeal.config import ClearDealConfig
from cleardeal.marketplace import build_marketplace
from cleardeal.settlement import HttpSettlementClient, LocalLedger
from cleardeal.storage import InMemoryEntityStore, SQLiteEntityStore

from conftest import CLIENT


class TestBuildMarketplace:
    def test_defaults_to_sqlite_and_local_ledger(self, tmp_path):
        config = ClearDealConfig(db_path=tmp_path / "market.db")
        market = build_marketplace(config)

        assert isinstance(market.store, SQLiteEntityStore)
        assert isinstance(market.settlement.client, LocalLedger)
        assert market.settlement.timeout == 30.0
        assert market.applications.jobs is market.jobs
        market.close()
        assert (tmp_path / "market.db").exists()

    def test_http_settlement_when_url_configured(self, tmp_path):
        config = ClearDealConfig(
            db_path=tmp_path / "market.db",
            settlement_url="https://settle.example",
            settlement_timeout_seconds=5,
        )
        market = build_marketplace(config, in_memory=True)

        assert isinstance(market.store, InMemoryEntityStore)
        assert isinstance(market.settlement.client, HttpSettlementClient)
        assert market.settlement.client.base_url == "https://settle.example"
        assert market.settlement.timeout == 5.0

    def test_uses_environment_config(self, monkeypatch, tmp_path):
        monkeypatch.setenv("CLEARDEAL_DB_PATH", str(tmp_path / "env.db"))
        market = build_marketplace()
        assert market.config.db_path == tmp_path / "env.db"
        market.close()

    @pytest.mark.asyncio
    async def test_engines_share_store(self, tmp_path):
        market = build_marketplace(ClearDealConfig(db_path=tmp_path / "m.db"))
        job = market.jobs.create_job(CLIENT, "Title", "Description", "1")

        await market.applications.apply(job.id, "0x" + "f1" * 20)

        reopened = build_marketplace(ClearDealConfig(db_path=tmp_path / "m.db"))
        assert len(reopened.applications.get_applications_for_job(job.id)) == 1
        market.close()
        reopened.close()
