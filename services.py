from decimal import Decimal
from typing import Callable, Dict, FrozenSet, Iterable, Optional

import structlog
from pydantic import BaseModel, Field

from config import FaultPolicy, Settings, get_settings
from errors import (
    ClientMismatch,
    InsufficientFunds,
    InvalidDisputeTransition,
    InvalidTransactionType,
    LockedAccount,
    MissingAmount,
    RecoverableLedgerError,
    UnresolvedReference,
)
from models import Account, RecordedTransaction, TransactionRecord, TransactionStatus, TransactionType
from repositories import (
    AccountRepository,
    InMemoryAccountRepository,
    InMemoryTransactionRepository,
    TransactionRepository,
)

logger = structlog.get_logger()


DISPUTABLE: FrozenSet[TransactionStatus] = frozenset({TransactionStatus.normal, TransactionStatus.resolved})
SETTLEABLE: FrozenSet[TransactionStatus] = frozenset({TransactionStatus.disputed})


class LedgerStats(BaseModel):
    records_applied: int = 0
    records_skipped: Dict[str, int] = Field(default_factory=dict)

    @property
    def skipped_total(self) -> int:
        return sum(self.records_skipped.values())

    def record_skip(self, reason: str) -> None:
        self.records_skipped[reason] = self.records_skipped.get(reason, 0) + 1


class LedgerService:
    """Applies transaction records to client accounts, one at a time, in order.

    The service owns both the accounts and the amount ledger for the
    duration of a run. Records that cannot be applied for a recoverable
    reason (unknown reference, frozen account, insufficient funds) are
    logged and skipped; fatal errors propagate to the caller.
    """

    def __init__(
        self,
        account_repo: AccountRepository,
        transaction_repo: TransactionRepository,
        settings: Settings,
    ):
        self.account_repo = account_repo
        self.transaction_repo = transaction_repo
        self.settings = settings
        self.stats = LedgerStats()
        self._handlers: Dict[TransactionType, Callable[[Account, TransactionRecord], None]] = {
            TransactionType.deposit: self._process_deposit,
            TransactionType.withdrawal: self._process_withdrawal,
            TransactionType.dispute: self._process_dispute,
            TransactionType.resolve: self._process_resolve,
            TransactionType.chargeback: self._process_chargeback,
        }

    def apply(self, record: TransactionRecord) -> None:
        """Apply a single record. Raises FatalLedgerError subclasses."""
        tx_type = self._resolve_type(record)
        account = self.account_repo.get_or_create(record.client)

        if tx_type.carries_amount and record.amount is not None:
            if not account.locked or self.settings.record_locked_amounts:
                self.transaction_repo.record(record.tx, record.client, record.amount)

        try:
            if account.locked:
                raise LockedAccount("Account is locked", tx=record.tx, client=record.client)
            self._handlers[tx_type](account, record)
        except RecoverableLedgerError as e:
            self._skip(e, tx_type)
            return
        except MissingAmount as e:
            if self.settings.missing_amount_policy == FaultPolicy.skip:
                self._skip(e, tx_type)
                return
            logger.error(
                "Record without required amount",
                tx=record.tx,
                client=record.client,
                type=tx_type.value,
            )
            raise

        self.stats.records_applied += 1

    def process(self, records: Iterable[TransactionRecord]) -> Dict[int, Account]:
        """Apply every record in order and return the final accounts."""
        for record in records:
            self.apply(record)

        logger.info(
            "Ledger run completed",
            accounts_count=self.account_repo.get_accounts_count(),
            transactions_recorded=self.transaction_repo.get_transactions_count(),
            records_applied=self.stats.records_applied,
            records_skipped=self.stats.skipped_total,
        )
        return self.snapshot()

    def snapshot(self) -> Dict[int, Account]:
        """Copies of every account, ordered by client id."""
        return {
            client_id: account.model_copy()
            for client_id, account in sorted(self.account_repo.all().items())
        }

    def _resolve_type(self, record: TransactionRecord) -> TransactionType:
        try:
            return TransactionType(record.type)
        except ValueError:
            logger.error(
                "Invalid transaction type",
                type=record.type,
                tx=record.tx,
                client=record.client,
            )
            raise InvalidTransactionType(
                f"Invalid transaction type {record.type!r}", tx=record.tx, client=record.client
            )

    def _skip(self, error: Exception, tx_type: TransactionType) -> None:
        reason = getattr(error, "reason", type(error).__name__)
        self.stats.record_skip(reason)
        logger.warning(
            "Record skipped",
            reason=reason,
            detail=str(error),
            tx=getattr(error, "tx", None),
            client=getattr(error, "client", None),
            type=tx_type.value,
        )

    def _require_amount(self, record: TransactionRecord) -> Decimal:
        if record.amount is None:
            raise MissingAmount(
                f"Amount missing in {record.type}", tx=record.tx, client=record.client
            )
        return record.amount

    def _lookup(
        self,
        record: TransactionRecord,
        allowed_from: FrozenSet[TransactionStatus],
    ) -> RecordedTransaction:
        recorded = self.transaction_repo.get(record.tx)
        if recorded is None:
            raise UnresolvedReference(
                f"Transaction {record.tx} not found", tx=record.tx, client=record.client
            )

        if self.settings.verify_dispute_client and recorded.client != record.client:
            raise ClientMismatch(
                f"Transaction {record.tx} belongs to client {recorded.client}",
                tx=record.tx,
                client=record.client,
            )

        if self.settings.enforce_dispute_states and recorded.status not in allowed_from:
            raise InvalidDisputeTransition(
                f"Cannot {record.type} a transaction that is {recorded.status.value}",
                tx=record.tx,
                client=record.client,
            )

        return recorded

    def _process_deposit(self, account: Account, record: TransactionRecord) -> None:
        amount = self._require_amount(record)
        account.available += amount

        logger.debug(
            "Deposit processed",
            client=account.client,
            tx=record.tx,
            amount=str(amount),
            available=str(account.available),
        )

    def _process_withdrawal(self, account: Account, record: TransactionRecord) -> None:
        amount = self._require_amount(record)

        if account.available < amount:
            raise InsufficientFunds(
                f"Insufficient funds: available {account.available}, requested {amount}",
                tx=record.tx,
                client=record.client,
            )

        account.available -= amount

        logger.debug(
            "Withdrawal processed",
            client=account.client,
            tx=record.tx,
            amount=str(amount),
            available=str(account.available),
        )

    def _process_dispute(self, account: Account, record: TransactionRecord) -> None:
        recorded = self._lookup(record, DISPUTABLE)
        # available may go negative here
        account.available -= recorded.amount
        account.held += recorded.amount
        self.transaction_repo.set_status(record.tx, TransactionStatus.disputed)

        logger.debug("Dispute processed", client=account.client, tx=record.tx, held=str(account.held))

    def _process_resolve(self, account: Account, record: TransactionRecord) -> None:
        recorded = self._lookup(record, SETTLEABLE)
        account.available += recorded.amount
        account.held -= recorded.amount
        self.transaction_repo.set_status(record.tx, TransactionStatus.resolved)

        logger.debug("Resolve processed", client=account.client, tx=record.tx, held=str(account.held))

    def _process_chargeback(self, account: Account, record: TransactionRecord) -> None:
        recorded = self._lookup(record, SETTLEABLE)
        account.held -= recorded.amount
        account.locked = True
        self.transaction_repo.set_status(record.tx, TransactionStatus.charged_back)

        logger.info("Account locked by chargeback", client=account.client, tx=record.tx)


# Factory function for dependency injection
def get_ledger_service(
    settings: Optional[Settings] = None,
    account_repo: Optional[AccountRepository] = None,
    transaction_repo: Optional[TransactionRepository] = None,
) -> LedgerService:
    return LedgerService(
        account_repo if account_repo is not None else InMemoryAccountRepository(),
        transaction_repo if transaction_repo is not None else InMemoryTransactionRepository(),
        settings if settings is not None else get_settings(),
    )
