"""
Request models for the HTTP API

Amounts travel as strings so the simulator's own parsing and validation
decide what is acceptable; these models only describe the form shape.
"""

from typing import Optional
from pydantic import BaseModel, Field

from .simulator import TransferCommand, TopUpCommand


class TransferRequest(BaseModel):
    account_name: str = ""
    bank_name: str = ""
    account_number: str = ""
    amount: str = Field("", description="Decimal amount as string")
    phone_number: str = ""
    narration: str = ""
    transaction_date: str = Field("", description="Local timestamp YYYY-MM-DDTHH:MM")

    def to_command(self) -> TransferCommand:
        return TransferCommand(
            account_name=self.account_name,
            bank_name=self.bank_name,
            account_number=self.account_number,
            amount=self.amount,
            phone_number=self.phone_number,
            narration=self.narration,
            transaction_date=self.transaction_date
        )


class TopUpRequest(BaseModel):
    amount: str = Field("", description="Decimal amount as string")
    display_name: Optional[str] = Field(None, description="Replaces the user name when non-empty")
    narration: str = ""
    transaction_date: str = ""

    def to_command(self) -> TopUpCommand:
        return TopUpCommand(
            amount=self.amount,
            display_name=self.display_name,
            narration=self.narration,
            transaction_date=self.transaction_date
        )


class AmountCheckRequest(BaseModel):
    amount: str


class FormatRequest(BaseModel):
    account_number: Optional[str] = None
    phone_number: Optional[str] = None
