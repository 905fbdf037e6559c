"""
Transaction Simulator Module

Stands in for a payment backend: validates a transfer or top-up command
against the ledger, suspends for a fixed artificial delay, then applies the
balance change, prepends the record and persists.

Notes:
- Once validation passes the simulated transaction always succeeds. There is
  no partial-failure path; this is a simplification, not a guarantee.
- Delays cannot be cancelled. A caller that is cancelled mid-delay does not
  stop the mutation from landing.
- Only one submission may be pending at a time (single-flight guard).
"""

import asyncio
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, Optional, Set, Union

from .currency import parse_amount, format_naira, format_amount, ZERO
from .errors import ValidationError, SimulatorBusyError
from .events import EventDispatcher, SimulatorEvent
from .ledger import Ledger
from .logging_config import get_logger, log_action
from .transactions import (
    Transaction, TransactionType, generate_id, generate_reference_number,
    current_transaction_date
)


ACCOUNT_NUMBER_PATTERN = re.compile(r"^[0-9]{10}$")

REQUIRED_MESSAGE = "This field is required"
ACCOUNT_NUMBER_MESSAGE = "Account number must be exactly 10 digits"
AMOUNT_MESSAGE = "Amount must be greater than 0"
INSUFFICIENT_FUNDS_MESSAGE = "Insufficient funds"

DEFAULT_TOP_UP_NARRATION = "Wallet top-up"


@dataclass
class TransferCommand:
    """Form input for a transfer to another bank account"""
    account_name: str
    bank_name: str
    account_number: str
    amount: Union[str, Decimal]
    phone_number: str = ""
    narration: str = ""
    transaction_date: str = ""


@dataclass
class TopUpCommand:
    """Form input for crediting the ledger"""
    amount: Union[str, Decimal]
    display_name: Optional[str] = None
    narration: str = ""
    transaction_date: str = ""


def _text(value) -> str:
    return "" if value is None else str(value).strip()


class TransactionSimulator:
    """
    Validates and enacts user-initiated transfers and top-ups on one ledger.
    """

    def __init__(
        self,
        ledger: Ledger,
        events: Optional[EventDispatcher] = None,
        transfer_delay: float = 3.0,
        top_up_delay: float = 2.0,
        summary_redirect_delay: float = 1.0,
        top_up_bank_name: str = "Mock Bank",
        currency_symbol: str = "₦"
    ):
        self.ledger = ledger
        self.events = events or EventDispatcher()
        self.transfer_delay = transfer_delay
        self.top_up_delay = top_up_delay
        self.summary_redirect_delay = summary_redirect_delay
        self.top_up_bank_name = top_up_bank_name
        self.currency_symbol = currency_symbol
        self.logger = get_logger("mockbank.simulator")

        self._pending = False
        self._background: Set[asyncio.Task] = set()

    @property
    def is_pending(self) -> bool:
        return self._pending

    # ---------- validation ----------

    def check_amount(self, raw_amount: Union[str, Decimal, None]) -> Optional[str]:
        """
        Live (per-keystroke) feedback: a message if the amount exceeds the
        balance, otherwise None. Unparseable input gets no feedback here;
        submission-time validation reports it.
        """
        try:
            amount = parse_amount(raw_amount)
        except ValueError:
            return None
        if amount > self.ledger.balance:
            available = format_naira(self.ledger.balance, self.currency_symbol)
            return f"{INSUFFICIENT_FUNDS_MESSAGE}. Available balance: {available}"
        return None

    def _parse_positive_amount(self, raw_amount, errors: Dict[str, str]) -> Optional[Decimal]:
        if not isinstance(raw_amount, Decimal) and not _text(raw_amount):
            errors["amount"] = REQUIRED_MESSAGE
            return None
        try:
            amount = parse_amount(raw_amount)
        except ValueError:
            errors["amount"] = AMOUNT_MESSAGE
            return None
        if amount <= ZERO:
            errors["amount"] = AMOUNT_MESSAGE
            return None
        return amount

    def validate_transfer(self, command: TransferCommand) -> Decimal:
        """
        Check a transfer command against the form rules and current balance.

        Returns:
            The parsed amount

        Raises:
            ValidationError: With one message per offending field
        """
        errors: Dict[str, str] = {}
        for field_name in ("account_name", "bank_name", "account_number"):
            if not _text(getattr(command, field_name)):
                errors[field_name] = REQUIRED_MESSAGE

        account_number = _text(command.account_number)
        if account_number and not ACCOUNT_NUMBER_PATTERN.match(account_number):
            errors["account_number"] = ACCOUNT_NUMBER_MESSAGE

        amount = self._parse_positive_amount(command.amount, errors)
        if errors:
            raise ValidationError(errors)

        if amount > self.ledger.balance:
            raise ValidationError({"amount": INSUFFICIENT_FUNDS_MESSAGE})
        return amount

    def validate_top_up(self, command: TopUpCommand) -> Decimal:
        """
        Raises:
            ValidationError: If the amount is missing or not positive
        """
        errors: Dict[str, str] = {}
        amount = self._parse_positive_amount(command.amount, errors)
        if errors:
            raise ValidationError(errors)
        return amount

    # ---------- submission ----------

    async def submit_transfer(self, command: TransferCommand) -> Transaction:
        """
        Validate, wait ``transfer_delay`` seconds, then debit the ledger.

        Raises:
            SimulatorBusyError: If another submission is pending
            ValidationError: If the command is invalid or exceeds the balance
        """
        self._ensure_idle()
        amount = self.validate_transfer(command)
        self._pending = True
        self.events.emit(SimulatorEvent.TRANSACTION_PENDING, type=TransactionType.TRANSFER.value,
                         amount=format_amount(amount))
        return await asyncio.shield(self._finish_transfer(command, amount))

    async def submit_top_up(self, command: TopUpCommand) -> Transaction:
        """
        Validate, wait ``top_up_delay`` seconds, then credit the ledger.
        Navigation back to the summary is signalled after a further
        ``summary_redirect_delay`` seconds.

        Raises:
            SimulatorBusyError: If another submission is pending
            ValidationError: If the amount is not positive
        """
        self._ensure_idle()
        amount = self.validate_top_up(command)
        self._pending = True
        self.events.emit(SimulatorEvent.TRANSACTION_PENDING, type=TransactionType.CREDIT.value,
                         amount=format_amount(amount))
        return await asyncio.shield(self._finish_top_up(command, amount))

    async def wait_idle(self) -> None:
        """Wait for any scheduled navigation signals to fire"""
        while self._background:
            await asyncio.gather(*list(self._background))

    def _ensure_idle(self) -> None:
        if self._pending:
            self.logger.warning("Rejected submission while another is pending")
            raise SimulatorBusyError()

    async def _finish_transfer(self, command: TransferCommand, amount: Decimal) -> Transaction:
        try:
            await asyncio.sleep(self.transfer_delay)
            transaction = Transaction(
                id=generate_id(),
                account_name=_text(command.account_name),
                bank_name=_text(command.bank_name),
                account_number=_text(command.account_number),
                phone_number=_text(command.phone_number),
                amount=amount,
                narration=_text(command.narration),
                transaction_date=_text(command.transaction_date) or current_transaction_date(),
                reference_number=generate_reference_number(),
                type=TransactionType.TRANSFER,
                created_at=datetime.now(timezone.utc),
            )
            self._commit(transaction, action="submit_transfer")
            return transaction
        finally:
            self._pending = False

    async def _finish_top_up(self, command: TopUpCommand, amount: Decimal) -> Transaction:
        try:
            await asyncio.sleep(self.top_up_delay)
            display_name = _text(command.display_name)
            if display_name:
                self.ledger.set_user_name(display_name)
            transaction = Transaction(
                id=generate_id(),
                account_name=self.ledger.user_name,
                bank_name=self.top_up_bank_name,
                account_number="",
                phone_number="",
                amount=amount,
                narration=_text(command.narration) or DEFAULT_TOP_UP_NARRATION,
                transaction_date=_text(command.transaction_date) or current_transaction_date(),
                reference_number=generate_reference_number(),
                type=TransactionType.CREDIT,
                created_at=datetime.now(timezone.utc),
            )
            self._commit(transaction, action="submit_top_up")
        finally:
            self._pending = False

        task = asyncio.get_running_loop().create_task(self._signal_summary(transaction))
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return transaction

    def _commit(self, transaction: Transaction, action: str) -> None:
        self.ledger.apply(transaction.balance_delta, transaction)
        self.ledger.save()
        self.ledger.remember_receipt(transaction)

        log_action(
            self.logger, "info", f"{transaction.type.value} completed",
            action=action, resource=f"transaction:{transaction.id}",
            extra={
                "reference_number": transaction.reference_number,
                "amount": format_amount(transaction.amount),
                "balance": format_amount(self.ledger.balance),
            }
        )
        self.events.emit(SimulatorEvent.TRANSACTION_COMPLETED, transaction=transaction.to_dict())

    async def _signal_summary(self, transaction: Transaction) -> None:
        await asyncio.sleep(self.summary_redirect_delay)
        self.events.emit(SimulatorEvent.NAVIGATE_SUMMARY, transaction_id=transaction.id)
