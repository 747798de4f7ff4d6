from . import catalog, ledger, orders, parties, purchasing  # noqa: F401
