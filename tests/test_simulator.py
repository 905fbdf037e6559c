"""
Tests for the transaction simulator

Delays are configured to zero (or a few milliseconds where a test needs a
submission to still be pending).
"""

import asyncio
import pytest
from datetime import datetime, timezone
from decimal import Decimal

from mockbank.errors import ValidationError, SimulatorBusyError
from mockbank.events import EventDispatcher, SimulatorEvent
from mockbank.ledger import Ledger, BALANCE_KEY, USER_NAME_KEY
from mockbank.simulator import (
    TransactionSimulator, TransferCommand, TopUpCommand,
    REQUIRED_MESSAGE, ACCOUNT_NUMBER_MESSAGE, AMOUNT_MESSAGE, INSUFFICIENT_FUNDS_MESSAGE,
    DEFAULT_TOP_UP_NARRATION
)
from mockbank.storage import InMemoryStorage
from mockbank.transactions import Transaction, TransactionType, TransactionStatus, REFERENCE_PATTERN

pytest_plugins = ('pytest_asyncio',)


def transfer(amount="1", **overrides) -> TransferCommand:
    fields = dict(
        account_name="CHIOMA OKAFOR",
        bank_name="Access Bank",
        account_number="0123456789",
        amount=amount,
        phone_number="0803-123-4567",
        narration="Lunch",
        transaction_date="2024-03-15T12:30",
    )
    fields.update(overrides)
    return TransferCommand(**fields)


def make_simulator(storage=None, delay=0.0, **kwargs):
    storage = storage or InMemoryStorage()
    ledger = Ledger(storage).load()
    events = EventDispatcher()
    simulator = TransactionSimulator(
        ledger,
        events=events,
        transfer_delay=delay,
        top_up_delay=delay,
        summary_redirect_delay=0.0,
        **kwargs
    )
    return simulator, ledger, events, storage


class TestValidation:
    """Test synchronous form validation"""

    def setup_method(self):
        self.simulator, self.ledger, self.events, self.storage = make_simulator()

    def test_required_fields(self):
        """Test every missing required field is reported"""
        with pytest.raises(ValidationError) as exc_info:
            self.simulator.validate_transfer(
                TransferCommand(account_name="", bank_name=" ", account_number="", amount="")
            )
        assert exc_info.value.errors == {
            "account_name": REQUIRED_MESSAGE,
            "bank_name": REQUIRED_MESSAGE,
            "account_number": REQUIRED_MESSAGE,
            "amount": REQUIRED_MESSAGE,
        }

    def test_optional_fields(self):
        """Test phone, narration and date may be empty"""
        command = transfer(phone_number="", narration="", transaction_date="")
        assert self.simulator.validate_transfer(command) == Decimal("1.00")

    def test_account_number_must_be_ten_digits(self):
        """Test account number format"""
        for bad in ("012345678", "01234567890", "01234abcde", "０１２３４５６７８９"):
            with pytest.raises(ValidationError) as exc_info:
                self.simulator.validate_transfer(transfer(account_number=bad))
            assert exc_info.value.errors["account_number"] == ACCOUNT_NUMBER_MESSAGE

    def test_amount_must_be_positive(self):
        """Test zero, negative and unparseable amounts"""
        for bad in ("0", "-1", "abc", "0.001"):
            with pytest.raises(ValidationError) as exc_info:
                self.simulator.validate_transfer(transfer(amount=bad))
            assert exc_info.value.errors == {"amount": AMOUNT_MESSAGE}

    def test_malformed_amounts_rejected(self):
        """Test amounts with stray characters are not reinterpreted"""
        self.ledger.apply(Decimal("5000.00"), Transaction(
            id="seed", account_name="ADA", bank_name="Mock Bank", account_number="",
            phone_number="", amount=Decimal("5000.00"), narration="",
            transaction_date="2024-03-15T12:30", reference_number="TXN12345678AB12",
            type=TransactionType.CREDIT, created_at=datetime.now(timezone.utc),
        ))
        for bad in ("12abc34", "1e3", "5 apples 0", "0.005"):
            with pytest.raises(ValidationError) as exc_info:
                self.simulator.validate_transfer(transfer(amount=bad))
            assert exc_info.value.errors == {"amount": AMOUNT_MESSAGE}
        assert self.simulator.validate_transfer(transfer(amount="₦1,234.50")) == Decimal("1234.50")

    def test_insufficient_funds(self):
        """Test amounts above the balance are rejected"""
        with pytest.raises(ValidationError) as exc_info:
            self.simulator.validate_transfer(transfer(amount="3.21"))
        assert exc_info.value.errors == {"amount": INSUFFICIENT_FUNDS_MESSAGE}

    def test_entire_balance_allowed(self):
        """Test transferring exactly the balance"""
        assert self.simulator.validate_transfer(transfer(amount="3.20")) == Decimal("3.20")

    def test_validation_error_is_value_error(self):
        """Test ValidationError can be caught as ValueError"""
        with pytest.raises(ValueError):
            self.simulator.validate_transfer(transfer(amount="100"))

    def test_top_up_amount(self):
        """Test top-up validation"""
        assert self.simulator.validate_top_up(TopUpCommand(amount="50")) == Decimal("50.00")
        with pytest.raises(ValidationError) as exc_info:
            self.simulator.validate_top_up(TopUpCommand(amount=""))
        assert exc_info.value.errors == {"amount": REQUIRED_MESSAGE}
        with pytest.raises(ValidationError):
            self.simulator.validate_top_up(TopUpCommand(amount="-3"))

    def test_decimal_amounts(self):
        """Test Decimal input is accepted directly"""
        assert self.simulator.validate_top_up(TopUpCommand(amount=Decimal("2.5"))) == Decimal("2.50")
        with pytest.raises(ValidationError):
            self.simulator.validate_top_up(TopUpCommand(amount=Decimal("NaN")))


class TestAmountCheck:
    """Test live insufficient-funds feedback"""

    def setup_method(self):
        self.simulator, self.ledger, _, _ = make_simulator()

    def test_within_balance(self):
        """Test no message when the amount fits"""
        assert self.simulator.check_amount("3.20") is None
        assert self.simulator.check_amount("1") is None

    def test_exceeds_balance(self):
        """Test the message names the available balance"""
        assert self.simulator.check_amount("3.21") == "Insufficient funds. Available balance: ₦3.20"

    def test_unparseable_gives_no_feedback(self):
        """Test partial input while typing"""
        assert self.simulator.check_amount("") is None
        assert self.simulator.check_amount(None) is None
        assert self.simulator.check_amount("abc") is None


class TestSubmitTransfer:
    """Test the transfer protocol"""

    @pytest.mark.asyncio
    async def test_transfer_debits_balance(self):
        """Test 3.20 - 1.00 = 2.20 with the record at the head of history"""
        simulator, ledger, _, storage = make_simulator()
        txn = await simulator.submit_transfer(transfer(amount="1"))

        assert ledger.balance == Decimal("2.20")
        assert ledger.transactions[0] == txn
        assert txn.type == TransactionType.TRANSFER
        assert txn.status == TransactionStatus.SUCCESSFUL
        assert txn.amount == Decimal("1.00")
        assert txn.account_number == "0123456789"
        assert REFERENCE_PATTERN.match(txn.reference_number)
        assert storage.get_item(BALANCE_KEY) == "2.20"
        assert ledger.current_transaction == txn
        assert not simulator.is_pending

    @pytest.mark.asyncio
    async def test_transfer_rejected_leaves_ledger_unchanged(self):
        """Test balance 10, transfer 15.00 is rejected"""
        storage = InMemoryStorage({BALANCE_KEY: "10.00"})
        simulator, ledger, events, _ = make_simulator(storage)
        seen = []
        events.subscribe_all(seen.append)

        with pytest.raises(ValidationError) as exc_info:
            await simulator.submit_transfer(transfer(amount="15.00"))

        assert exc_info.value.errors["amount"] == INSUFFICIENT_FUNDS_MESSAGE
        assert ledger.balance == Decimal("10.00")
        assert ledger.transactions == ()
        assert seen == []
        assert not simulator.is_pending

    @pytest.mark.asyncio
    async def test_default_transaction_date(self):
        """Test an empty date is filled with the current time"""
        simulator, _, _, _ = make_simulator()
        txn = await simulator.submit_transfer(transfer(transaction_date=""))
        assert txn.transaction_datetime() is not None
        assert len(txn.transaction_date) == len("2024-03-15T12:30")

    @pytest.mark.asyncio
    async def test_fields_are_trimmed(self):
        """Test surrounding whitespace is stripped from form values"""
        simulator, _, _, _ = make_simulator()
        txn = await simulator.submit_transfer(transfer(account_name="  CHIOMA  ", account_number=" 0123456789 "))
        assert txn.account_name == "CHIOMA"
        assert txn.account_number == "0123456789"

    @pytest.mark.asyncio
    async def test_no_float_drift(self):
        """Test repeated 0.10 transfers stay exact"""
        storage = InMemoryStorage({BALANCE_KEY: "1.00"})
        simulator, ledger, _, _ = make_simulator(storage)
        for _ in range(10):
            await simulator.submit_transfer(transfer(amount="0.10"))
        assert ledger.balance == Decimal("0.00")
        assert len(ledger.transactions) == 10

        with pytest.raises(ValidationError):
            await simulator.submit_transfer(transfer(amount="0.01"))

    @pytest.mark.asyncio
    async def test_conservation(self):
        """Test balance equals initial plus credits minus transfers"""
        simulator, ledger, _, _ = make_simulator()
        await simulator.submit_top_up(TopUpCommand(amount="10.55"))
        await simulator.submit_transfer(transfer(amount="4.05"))
        await simulator.submit_top_up(TopUpCommand(amount="0.30"))
        await simulator.wait_idle()

        total = Decimal("3.20") + sum(t.balance_delta for t in ledger.transactions)
        assert ledger.balance == total == Decimal("10.00")

    @pytest.mark.asyncio
    async def test_events(self):
        """Test pending and completed are published in order"""
        simulator, _, events, _ = make_simulator()
        seen = []
        events.subscribe_all(seen.append)

        txn = await simulator.submit_transfer(transfer())

        assert [e.event_type for e in seen] == [
            SimulatorEvent.TRANSACTION_PENDING, SimulatorEvent.TRANSACTION_COMPLETED
        ]
        assert seen[0].data == {"type": "Transfer", "amount": "1.00"}
        assert seen[1].data["transaction"]["id"] == txn.id

    @pytest.mark.asyncio
    async def test_completion_is_logged(self, caplog):
        """Test the structured completion log line"""
        simulator, _, _, _ = make_simulator()
        with caplog.at_level("INFO", logger="mockbank.simulator"):
            txn = await simulator.submit_transfer(transfer())

        records = [r for r in caplog.records if getattr(r, "action", None) == "submit_transfer"]
        assert len(records) == 1
        assert records[0].resource == f"transaction:{txn.id}"
        assert records[0].extra["balance"] == "2.20"


class TestSubmitTopUp:
    """Test the top-up protocol"""

    @pytest.mark.asyncio
    async def test_top_up_with_display_name(self):
        """Test balance 0, top-up 50.00 with name ADA"""
        storage = InMemoryStorage({BALANCE_KEY: "0.00"})
        simulator, ledger, _, _ = make_simulator(storage)

        txn = await simulator.submit_top_up(TopUpCommand(amount="50.00", display_name="ADA"))

        assert ledger.balance == Decimal("50.00")
        assert ledger.user_name == "ADA"
        assert storage.get_item(USER_NAME_KEY) == "ADA"
        assert txn.type == TransactionType.CREDIT
        assert txn.account_name == "ADA"
        assert txn.bank_name == "Mock Bank"
        assert txn.narration == DEFAULT_TOP_UP_NARRATION
        await simulator.wait_idle()

    @pytest.mark.asyncio
    async def test_blank_display_name_keeps_user_name(self):
        """Test whitespace-only names do not override"""
        simulator, ledger, _, _ = make_simulator()
        txn = await simulator.submit_top_up(TopUpCommand(amount="1", display_name="   "))
        assert ledger.user_name == "BABATUNDE"
        assert txn.account_name == "BABATUNDE"
        await simulator.wait_idle()

    @pytest.mark.asyncio
    async def test_configured_bank_name(self):
        """Test the credit's bank name comes from configuration"""
        simulator, _, _, _ = make_simulator(top_up_bank_name="Wallet")
        txn = await simulator.submit_top_up(TopUpCommand(amount="1", narration="Salary"))
        assert txn.bank_name == "Wallet"
        assert txn.narration == "Salary"
        await simulator.wait_idle()

    @pytest.mark.asyncio
    async def test_navigation_signal_follows_completion(self):
        """Test NAVIGATE_SUMMARY is published after the redirect delay"""
        simulator, _, events, _ = make_simulator()
        seen = []
        events.subscribe_all(seen.append)

        txn = await simulator.submit_top_up(TopUpCommand(amount="5"))
        assert SimulatorEvent.NAVIGATE_SUMMARY not in [e.event_type for e in seen]

        await simulator.wait_idle()
        assert [e.event_type for e in seen] == [
            SimulatorEvent.TRANSACTION_PENDING,
            SimulatorEvent.TRANSACTION_COMPLETED,
            SimulatorEvent.NAVIGATE_SUMMARY,
        ]
        assert seen[-1].data == {"transaction_id": txn.id}

    @pytest.mark.asyncio
    async def test_invalid_top_up(self):
        """Test a rejected top-up changes nothing"""
        simulator, ledger, _, _ = make_simulator()
        with pytest.raises(ValidationError):
            await simulator.submit_top_up(TopUpCommand(amount="0"))
        assert ledger.balance == Decimal("3.20")
        assert ledger.transactions == ()


class TestSingleFlight:
    """Test that only one submission may be pending"""

    @pytest.mark.asyncio
    async def test_second_submission_rejected(self):
        """Test a concurrent submission raises SimulatorBusyError"""
        simulator, ledger, _, _ = make_simulator(delay=0.05)

        first = asyncio.create_task(simulator.submit_transfer(transfer(amount="1")))
        await asyncio.sleep(0)
        assert simulator.is_pending

        with pytest.raises(SimulatorBusyError) as exc_info:
            await simulator.submit_top_up(TopUpCommand(amount="1"))
        assert "form" in exc_info.value.errors

        await first
        assert ledger.balance == Decimal("2.20")
        assert len(ledger.transactions) == 1
        assert not simulator.is_pending

    @pytest.mark.asyncio
    async def test_cancelled_caller_does_not_cancel_mutation(self):
        """Test the delay runs to completion even if the caller is cancelled"""
        simulator, ledger, events, _ = make_simulator(delay=0.05)
        completed = asyncio.Event()
        events.subscribe(SimulatorEvent.TRANSACTION_COMPLETED, lambda event: completed.set())

        task = asyncio.create_task(simulator.submit_transfer(transfer(amount="1")))
        await asyncio.sleep(0)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        await asyncio.wait_for(completed.wait(), timeout=1.0)
        assert ledger.balance == Decimal("2.20")
        assert not simulator.is_pending

    @pytest.mark.asyncio
    async def test_failing_handler_does_not_break_submission(self):
        """Test subscriber errors never reach the simulator"""
        simulator, ledger, events, _ = make_simulator()

        def broken(event):
            raise RuntimeError("handler failed")

        events.subscribe_all(broken)
        await simulator.submit_transfer(transfer(amount="1"))
        assert ledger.balance == Decimal("2.20")
        assert not simulator.is_pending
