"""chainvault - encrypted multi-chain wallet custody and swap orchestration."""

__version__ = "0.1.0"
