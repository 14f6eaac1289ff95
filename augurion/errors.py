"""
errors.py — exception types raised by the Augurion tools
"""


class AugurionError(Exception):
    """Base class for every error raised on purpose by this package."""


class NetworkError(AugurionError):
    """The node could not be reached or the transport failed."""


class LedgerRejection(AugurionError):
    """The ledger refused a transaction (pool error, failed assert, bad state)."""

    def __init__(self, reason: str, txid: str = ""):
        super().__init__(reason)
        self.reason = reason
        self.txid = txid


class PreconditionError(AugurionError):
    """Fatal setup problem detected before any transaction is sent."""


class EpochStateError(AugurionError):
    """An epoch transition was requested from a state that cannot reach it."""


class AppNotFunded(AugurionError):
    """The application was created on-chain but its funding payment failed."""

    def __init__(self, app_id: int, reason: str):
        super().__init__(f"app {app_id} created but not funded: {reason}")
        self.app_id = app_id
        self.reason = reason
