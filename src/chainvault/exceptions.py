"""Exception hierarchy for chainvault.

Messages never include passwords or key material.
"""

from typing import Optional


class ChainVaultError(Exception):
    """Base exception for all chainvault errors."""

    pass


class WrongPasswordOrCorruptData(ChainVaultError):
    """Decryption failed: wrong password, tampered or unreadable secret."""

    pass


class CorruptRecord(WrongPasswordOrCorruptData):
    """A stored wallet does not match the secret it claims to hold."""

    pass


class InvalidAddressFormat(ChainVaultError):
    """A freshly generated address failed its format check.

    This points at a broken generator, not at user input.
    """

    pass


class WalletNotFound(ChainVaultError):
    """No wallet exists with the requested id."""

    def __init__(self, wallet_id: int):
        super().__init__(f"Wallet with ID {wallet_id} not found")
        self.wallet_id = wallet_id


class StoreNotConnected(ChainVaultError):
    """A store operation was attempted before connect()."""

    pass


class InvalidStatusTransition(ChainVaultError, ValueError):
    """A transaction status update would move backwards."""

    pass


class ExternalGatewayError(ChainVaultError):
    """Network, HTTP or rate-limit failure reported by the exchange provider."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class PartialSwapCreationFailure(ChainVaultError):
    """The exchange order exists but no local transaction record was written.

    Operators reconcile these by hand using ``external_id``.
    """

    def __init__(self, external_id: str, wallet_id: int, reason: str = ""):
        message = (
            f"Swap order {external_id} was created for wallet {wallet_id} "
            f"but could not be recorded locally"
        )
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.external_id = external_id
        self.wallet_id = wallet_id
