"""HTTP API for ClearDeal."""

from cleardeal.api.app import create_app

__all__ = ["create_app"]
