"""
Derived Views Module

Pure projections over the transaction history: the current month's credit
and transfer totals, and the newest-first history listing annotated with
human-readable relative dates. Nothing here mutates the ledger.
"""

from dataclasses import dataclass
from datetime import datetime, date
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional

from .currency import ZERO, format_amount, to_amount
from .transactions import Transaction, TransactionType, parse_transaction_date


@dataclass(frozen=True)
class MonthlySummary:
    """Credit and transfer totals for one calendar month"""
    year: int
    month: int
    total_credit: Decimal = ZERO
    total_transfer: Decimal = ZERO
    credit_count: int = 0
    transfer_count: int = 0

    @property
    def net(self) -> Decimal:
        return to_amount(self.total_credit - self.total_transfer)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "year": self.year,
            "month": self.month,
            "totalCredit": format_amount(self.total_credit),
            "totalTransfer": format_amount(self.total_transfer),
            "creditCount": self.credit_count,
            "transferCount": self.transfer_count,
            "net": format_amount(self.net),
        }


@dataclass(frozen=True)
class HistoryEntry:
    """A transaction paired with its display date"""
    transaction: Transaction
    relative_date: str

    def to_dict(self) -> Dict[str, Any]:
        data = self.transaction.to_dict()
        data["relativeDate"] = self.relative_date
        return data


def monthly_summary(transactions: Iterable[Transaction], today: Optional[date] = None) -> MonthlySummary:
    """
    Sum Credit and Transfer amounts whose transaction_date falls in the
    month and year of ``today``. Records with an unparseable date are skipped.
    """
    today = today or date.today()
    total_credit = ZERO
    total_transfer = ZERO
    credit_count = 0
    transfer_count = 0

    for txn in transactions:
        when = txn.transaction_datetime()
        if when is None or when.year != today.year or when.month != today.month:
            continue
        if txn.type == TransactionType.CREDIT:
            total_credit += txn.amount
            credit_count += 1
        elif txn.type == TransactionType.TRANSFER:
            total_transfer += txn.amount
            transfer_count += 1

    return MonthlySummary(
        year=today.year,
        month=today.month,
        total_credit=to_amount(total_credit),
        total_transfer=to_amount(total_transfer),
        credit_count=credit_count,
        transfer_count=transfer_count,
    )


def relative_date(value: str, now: Optional[datetime] = None) -> str:
    """
    'Today', 'Yesterday', 'N days ago' (2-6 days), otherwise 'Mon D, YYYY'.
    Unparseable input is returned unchanged.
    """
    when = parse_transaction_date(value)
    if when is None:
        return value
    now = now or datetime.now()

    days = (now.date() - when.date()).days
    if days == 0:
        return "Today"
    if days == 1:
        return "Yesterday"
    if 1 < days < 7:
        return f"{days} days ago"
    return f"{when.strftime('%b')} {when.day}, {when.year}"


def history_listing(transactions: Iterable[Transaction], now: Optional[datetime] = None) -> List[HistoryEntry]:
    """All transactions in stored (newest-first) order, each with a relative date"""
    now = now or datetime.now()
    return [HistoryEntry(txn, relative_date(txn.transaction_date, now)) for txn in transactions]
