"""
Tax deadline reminders (VAT returns, income tax, custom)
"""
from datetime import date
from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

DeadlineType = Literal["vat", "income-tax", "custom"]


class Deadline(BaseModel):
    id: str
    user_id: str
    title: str
    description: str = ""
    due_date: date
    type: DeadlineType = "custom"
    penalty: Optional[Decimal] = None
    is_completed: bool = False

    model_config = ConfigDict(from_attributes=True)

    def to_dict(self) -> dict:
        data = self.model_dump()
        if data.get("penalty") is not None:
            data["penalty"] = float(data["penalty"])
        return data


class DeadlineCreate(BaseModel):
    title: str = Field(..., min_length=1)
    description: str = ""
    due_date: date
    type: DeadlineType = "custom"
    penalty: Optional[Decimal] = Field(None, ge=0)
