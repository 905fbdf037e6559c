"""
Banking session context

Owns the one storage backend, ledger, simulator, bank directory client and
event dispatcher for a user session. Everything is constructed explicitly
and passed by reference; the core modules hold no module-level state.
"""

from typing import Optional

from .config import MockBankConfig, get_config
from .directory import BankDirectoryClient
from .events import EventDispatcher
from .ledger import Ledger
from .logging_config import get_logger
from .simulator import TransactionSimulator
from .storage import StorageInterface, create_storage


class BankingSession:
    """Mock banking session with all components initialized"""

    def __init__(
        self,
        config: Optional[MockBankConfig] = None,
        storage: Optional[StorageInterface] = None
    ):
        self.config = config or get_config()
        self.logger = get_logger("mockbank.session")

        # Initialize storage
        self.storage = storage or create_storage(self.config.storage_url)

        # Initialize core components
        self.events = EventDispatcher()
        self.ledger = Ledger(
            self.storage,
            default_balance=self.config.default_balance,
            default_user_name=self.config.default_user_name
        ).load()
        self.simulator = TransactionSimulator(
            self.ledger,
            events=self.events,
            transfer_delay=self.config.transfer_delay_seconds,
            top_up_delay=self.config.top_up_delay_seconds,
            summary_redirect_delay=self.config.summary_redirect_delay_seconds,
            top_up_bank_name=self.config.top_up_bank_name,
            currency_symbol=self.config.currency_symbol
        )
        self.directory = BankDirectoryClient(
            url=self.config.banks_url,
            timeout=self.config.banks_timeout,
            enabled=bool(self.config.banks_url)
        )

        self.logger.info(f"Session started with storage {type(self.storage).__name__}")

    def close(self) -> None:
        self.directory.close()
        self.storage.close()
