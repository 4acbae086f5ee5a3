from abc import ABC, abstractmethod
from typing import Dict, Optional
from decimal import Decimal

from models import Account, RecordedTransaction, TransactionStatus


class AccountRepository(ABC):
    @abstractmethod
    def get_or_create(self, client_id: int) -> Account:
        """Get the account for a client, opening an empty one on first sight."""
        pass

    @abstractmethod
    def all(self) -> Dict[int, Account]:
        """Get every account keyed by client id."""
        pass

    @abstractmethod
    def get_accounts_count(self) -> int:
        """Get total number of accounts."""
        pass


class TransactionRepository(ABC):
    @abstractmethod
    def record(self, tx_id: int, client_id: int, amount: Decimal) -> RecordedTransaction:
        """Record the amount of a deposit or withdrawal under its tx id."""
        pass

    @abstractmethod
    def get(self, tx_id: int) -> Optional[RecordedTransaction]:
        """Get recorded transaction. Returns None for unknown ids."""
        pass

    @abstractmethod
    def set_status(self, tx_id: int, status: TransactionStatus) -> None:
        """Move a recorded transaction to a new dispute status."""
        pass

    @abstractmethod
    def get_transactions_count(self) -> int:
        """Get total number of recorded transactions."""
        pass


class InMemoryAccountRepository(AccountRepository):
    def __init__(self):
        self.accounts: Dict[int, Account] = {}

    def get_or_create(self, client_id: int) -> Account:
        account = self.accounts.get(client_id)
        if account is None:
            account = Account(client=client_id)
            self.accounts[client_id] = account
        return account

    def all(self) -> Dict[int, Account]:
        return dict(self.accounts)

    def get_accounts_count(self) -> int:
        return len(self.accounts)


class InMemoryTransactionRepository(TransactionRepository):
    # Append-only for the lifetime of a run: disputes may reference any
    # earlier transaction.
    def __init__(self):
        self.store: Dict[int, RecordedTransaction] = {}

    def record(self, tx_id: int, client_id: int, amount: Decimal) -> RecordedTransaction:
        recorded = RecordedTransaction(tx=tx_id, client=client_id, amount=amount)
        self.store[tx_id] = recorded
        return recorded

    def get(self, tx_id: int) -> Optional[RecordedTransaction]:
        return self.store.get(tx_id)

    def set_status(self, tx_id: int, status: TransactionStatus) -> None:
        if tx_id not in self.store:
            raise KeyError(f"Transaction {tx_id} was never recorded")
        self.store[tx_id].status = status

    def get_transactions_count(self) -> int:
        return len(self.store)
