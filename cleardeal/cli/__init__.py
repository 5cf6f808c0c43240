"""Command-line interface for ClearDeal."""
