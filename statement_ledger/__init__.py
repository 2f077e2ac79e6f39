"""Bank statement to universal ledger conversion."""

__version__ = "1.0.0"
