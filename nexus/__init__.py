"""Cross-chain balance, allowance, intent and swap orchestration."""

__version__ = "0.1.0"
