"""
Ledger State Module

The single authoritative in-memory copy of balance, display name and
transaction history for one session, persisted to key-value storage under
the keys ``balance``, ``userName``, ``transactions`` and ``currentTransaction``.

Transactions are kept newest first. The list is prepend-only: records are
never re-sorted, mutated or deleted.
"""

from decimal import Decimal
from typing import Dict, List, Optional, Any, Tuple
import json

from .currency import to_amount, format_amount, ZERO
from .errors import StorageReadError
from .storage import StorageInterface
from .transactions import Transaction
from .logging_config import get_logger


BALANCE_KEY = "balance"
USER_NAME_KEY = "userName"
TRANSACTIONS_KEY = "transactions"
CURRENT_TRANSACTION_KEY = "currentTransaction"

LEDGER_KEYS = (BALANCE_KEY, USER_NAME_KEY, TRANSACTIONS_KEY, CURRENT_TRANSACTION_KEY)

DEFAULT_BALANCE = Decimal("3.20")
DEFAULT_USER_NAME = "BABATUNDE"


class Ledger:
    """
    Balance, user name and transaction history with durable persistence.

    Only the transaction simulator mutates a ledger. ``apply`` changes memory
    only; callers persist explicitly with ``save``.
    """

    def __init__(
        self,
        storage: StorageInterface,
        default_balance: Decimal = DEFAULT_BALANCE,
        default_user_name: str = DEFAULT_USER_NAME
    ):
        self.storage = storage
        self.default_balance = to_amount(default_balance)
        self.default_user_name = default_user_name
        self.logger = get_logger("mockbank.ledger")

        self._balance = self.default_balance
        self._user_name = self.default_user_name
        self._transactions: List[Transaction] = []
        self._current_transaction: Optional[Transaction] = None

    # ---------- accessors ----------

    @property
    def balance(self) -> Decimal:
        return self._balance

    @property
    def user_name(self) -> str:
        return self._user_name

    @property
    def transactions(self) -> Tuple[Transaction, ...]:
        """Newest first"""
        return tuple(self._transactions)

    @property
    def current_transaction(self) -> Optional[Transaction]:
        """Last completed transaction, kept for receipt re-display"""
        return self._current_transaction

    def snapshot(self) -> Dict[str, Any]:
        return {
            "balance": self._balance,
            "userName": self._user_name,
            "transactionCount": len(self._transactions),
        }

    # ---------- persistence ----------

    def load(self) -> 'Ledger':
        """
        Read state from storage, substituting defaults for anything absent
        or malformed. Never raises for bad persisted data.
        """
        self._balance = self._load_balance()
        self._user_name = self.storage.get_item(USER_NAME_KEY) or self.default_user_name
        self._transactions = self._load_transactions()
        self._current_transaction = self._load_current_transaction()

        self.logger.debug(
            f"Ledger loaded: balance={format_amount(self._balance)}, "
            f"transactions={len(self._transactions)}"
        )
        return self

    def save(self) -> None:
        """Persist balance, user name and transactions together"""
        with self.storage.atomic():
            self.storage.set_item(BALANCE_KEY, format_amount(self._balance))
            self.storage.set_item(USER_NAME_KEY, self._user_name)
            self.storage.set_item(
                TRANSACTIONS_KEY,
                json.dumps([t.to_dict() for t in self._transactions])
            )

    def remember_receipt(self, transaction: Transaction) -> None:
        """Persist the last completed transaction for receipt re-display"""
        self._current_transaction = transaction
        self.storage.set_item(CURRENT_TRANSACTION_KEY, json.dumps(transaction.to_dict()))

    def reset(self) -> None:
        """Clear persisted ledger keys and fall back to defaults"""
        with self.storage.atomic():
            for key in LEDGER_KEYS:
                self.storage.remove_item(key)
        self.load()
        self.logger.info("Ledger reset to defaults")

    # ---------- mutation ----------

    def apply(self, delta: Decimal, transaction: Transaction) -> None:
        """
        Adjust balance by ``delta`` and prepend ``transaction``.

        ``delta`` must be the record's own balance effect: -amount for a
        Transfer, +amount for a Credit.
        """
        delta = to_amount(delta)
        if delta != transaction.balance_delta:
            raise ValueError(
                f"Delta {delta} does not match {transaction.type.value} "
                f"of {transaction.amount}"
            )
        self._balance = to_amount(self._balance + delta)
        self._transactions.insert(0, transaction)

    def set_user_name(self, user_name: str) -> None:
        self._user_name = user_name

    # ---------- decoding ----------

    def _load_balance(self) -> Decimal:
        raw = self.storage.get_item(BALANCE_KEY)
        if raw is None:
            return self.default_balance
        try:
            return self._decode_balance(raw)
        except StorageReadError as e:
            self.logger.warning(f"Using default balance: {e}")
            return self.default_balance

    @staticmethod
    def _decode_balance(raw: str) -> Decimal:
        try:
            balance = to_amount(raw)
        except ValueError as e:
            raise StorageReadError(f"Unparseable balance {raw!r}") from e
        if balance < ZERO:
            raise StorageReadError(f"Negative balance {raw!r}")
        return balance

    def _load_transactions(self) -> List[Transaction]:
        raw = self.storage.get_item(TRANSACTIONS_KEY)
        if raw is None:
            return []
        try:
            records = self._decode_json_list(raw)
        except StorageReadError as e:
            self.logger.warning(f"Using empty transaction history: {e}")
            return []

        transactions = []
        for index, record in enumerate(records):
            try:
                transactions.append(Transaction.from_dict(record))
            except StorageReadError as e:
                self.logger.warning(f"Skipping stored transaction #{index}: {e}")
        return transactions

    @staticmethod
    def _decode_json_list(raw: str) -> List[Any]:
        try:
            records = json.loads(raw)
        except json.JSONDecodeError as e:
            raise StorageReadError(f"Malformed transactions JSON: {e.msg}") from e
        if records is None:
            return []
        if not isinstance(records, list):
            raise StorageReadError(f"Transactions must be a JSON array, got {type(records).__name__}")
        return records

    def _load_current_transaction(self) -> Optional[Transaction]:
        raw = self.storage.get_item(CURRENT_TRANSACTION_KEY)
        if raw is None:
            return None
        try:
            return Transaction.from_dict(json.loads(raw))
        except json.JSONDecodeError as e:
            self.logger.warning(f"Ignoring malformed current transaction: {e.msg}")
        except StorageReadError as e:
            self.logger.warning(f"Ignoring malformed current transaction: {e}")
        return None
