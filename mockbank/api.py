"""
FastAPI REST API Module

JSON surface a UI drives: balance and history views, the live amount check,
transfer and top-up submission, the bank directory and cosmetic formatting.
Runs on port 8090.
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, HTTPException, Depends, Request, status
from fastapi.middleware.cors import CORSMiddleware
import uvicorn

from . import __version__
from .config import MockBankConfig, get_config
from .currency import format_amount, format_naira
from .errors import ValidationError, SimulatorBusyError
from .formatting import format_account_number, format_phone_number
from .logging_config import setup_logging, get_logger
from .reporting import monthly_summary, history_listing
from .schemas import TransferRequest, TopUpRequest, AmountCheckRequest, FormatRequest
from .session import BankingSession


logger = get_logger("mockbank.api")


def _validation_exception(e: ValidationError) -> HTTPException:
    if isinstance(e, SimulatorBusyError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail={"errors": e.errors})
    return HTTPException(status_code=422, detail={"errors": e.errors})


def create_app(
    session: Optional[BankingSession] = None,
    config: Optional[MockBankConfig] = None
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    A session passed in is owned by the caller; otherwise one is built from
    ``config`` (or the global configuration) and closed on shutdown.
    """
    owns_session = session is None

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        if owns_session:
            app.state.session.close()

    app = FastAPI(
        title="Mock Bank API",
        description="Simulated balance, transfers and top-ups for a single user",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan
    )
    app.state.session = session or BankingSession(config)

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    _register_routes(app)
    return app


# Dependency to get the banking session
def get_session(request: Request) -> BankingSession:
    return request.app.state.session


def _register_routes(app: FastAPI) -> None:

    # Health check endpoint
    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {"status": "healthy", "timestamp": datetime.now(timezone.utc).isoformat()}

    # Bank directory; a plain def so the blocking fetch runs in the threadpool
    @app.get("/api/banks")
    def list_banks(session: BankingSession = Depends(get_session)):
        """List recipient banks"""
        return [bank.to_dict() for bank in session.directory.get_banks()]

    # Ledger views
    @app.get("/api/ledger")
    async def get_ledger(session: BankingSession = Depends(get_session)):
        """Current balance and user name"""
        ledger = session.ledger
        return {
            "balance": format_amount(ledger.balance),
            "formattedBalance": format_naira(ledger.balance, session.config.currency_symbol),
            "userName": ledger.user_name,
            "transactionCount": len(ledger.transactions),
            "pending": session.simulator.is_pending,
        }

    @app.delete("/api/ledger")
    async def reset_ledger(session: BankingSession = Depends(get_session)):
        """Clear persisted state and return to defaults"""
        if session.simulator.is_pending:
            raise _validation_exception(SimulatorBusyError())
        session.ledger.reset()
        return {
            "balance": format_amount(session.ledger.balance),
            "userName": session.ledger.user_name,
            "message": "Ledger reset to defaults",
        }

    @app.get("/api/transactions")
    async def get_transactions(session: BankingSession = Depends(get_session)):
        """Transaction history, newest first, with relative dates"""
        return [entry.to_dict() for entry in history_listing(session.ledger.transactions)]

    @app.get("/api/summary")
    async def get_summary(session: BankingSession = Depends(get_session)):
        """Current month's credit and transfer totals"""
        summary = monthly_summary(session.ledger.transactions)
        data = summary.to_dict()
        data["balance"] = format_amount(session.ledger.balance)
        data["userName"] = session.ledger.user_name
        return data

    @app.get("/api/receipt")
    async def get_receipt(session: BankingSession = Depends(get_session)):
        """Last completed transaction"""
        transaction = session.ledger.current_transaction
        if transaction is None:
            raise HTTPException(status_code=404, detail="No completed transaction")
        return transaction.to_dict()

    # Submission
    @app.post("/api/amount-check")
    async def check_amount(
        request: AmountCheckRequest,
        session: BankingSession = Depends(get_session)
    ):
        """Live insufficient-funds feedback for the amount field"""
        message = session.simulator.check_amount(request.amount)
        return {"ok": message is None, "message": message}

    @app.post("/api/transfers", status_code=status.HTTP_201_CREATED)
    async def submit_transfer(
        request: TransferRequest,
        session: BankingSession = Depends(get_session)
    ):
        """Submit a transfer; responds once the simulated delay has elapsed"""
        try:
            transaction = await session.simulator.submit_transfer(request.to_command())
        except ValidationError as e:
            raise _validation_exception(e)
        return transaction.to_dict()

    @app.post("/api/top-ups", status_code=status.HTTP_201_CREATED)
    async def submit_top_up(
        request: TopUpRequest,
        session: BankingSession = Depends(get_session)
    ):
        """Submit a top-up; responds once the simulated delay has elapsed"""
        try:
            transaction = await session.simulator.submit_top_up(request.to_command())
        except ValidationError as e:
            raise _validation_exception(e)
        return transaction.to_dict()

    # Cosmetic formatting
    @app.post("/api/format")
    async def format_fields(request: FormatRequest):
        """Format account and phone numbers as the form displays them"""
        result = {}
        if request.account_number is not None:
            result["account_number"] = format_account_number(request.account_number)
        if request.phone_number is not None:
            result["phone_number"] = format_phone_number(request.phone_number)
        return result

    @app.get("/")
    async def root():
        """Root endpoint with system information"""
        return {
            "system": "Mock Bank",
            "version": __version__,
            "endpoints": {
                "docs": "/docs",
                "health": "/health",
                "banks": "/api/banks",
                "ledger": "/api/ledger",
                "transactions": "/api/transactions",
                "summary": "/api/summary",
                "receipt": "/api/receipt",
                "transfers": "/api/transfers",
                "top_ups": "/api/top-ups",
            }
        }


# Run server function
def run_server(config: Optional[MockBankConfig] = None, debug: bool = False):
    """Run the FastAPI server"""
    config = config or get_config()
    setup_logging(level="DEBUG" if debug else config.log_level, fmt=config.log_format)
    logger.info(f"Starting Mock Bank API on {config.api_host}:{config.api_port}")
    uvicorn.run(
        create_app(config=config),
        host=config.api_host,
        port=config.api_port,
        log_level="debug" if debug else "info"
    )
