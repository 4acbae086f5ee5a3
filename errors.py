from typing import Optional


class LedgerError(Exception):
    """Base class for every error raised while processing a record stream."""

    reason = "ledger_error"

    def __init__(self, message: str, tx: Optional[int] = None, client: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.tx = tx
        self.client = client


class FatalLedgerError(LedgerError):
    """Aborts the run. No account table is produced."""


class RecoverableLedgerError(LedgerError):
    """The offending record is skipped and processing continues."""


class MissingAmount(FatalLedgerError):
    reason = "missing_amount"


class MalformedRecord(FatalLedgerError):
    reason = "malformed_record"


class InvalidTransactionType(FatalLedgerError):
    reason = "invalid_transaction_type"


class UnresolvedReference(RecoverableLedgerError):
    reason = "unresolved_reference"


class LockedAccount(RecoverableLedgerError):
    reason = "locked_account"


class InsufficientFunds(RecoverableLedgerError):
    reason = "insufficient_funds"


class ClientMismatch(RecoverableLedgerError):
    reason = "client_mismatch"


class InvalidDisputeTransition(RecoverableLedgerError):
    reason = "invalid_dispute_transition"
