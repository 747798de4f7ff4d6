"""Stock ledger and order fulfilment service."""

__version__ = "0.1.0"
