# models.py
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal

from pydantic import BaseModel, Field, field_validator

WLD_SCALE = 8
COP_SCALE = 2
# NUMERIC(18, s): 18 significant digits in total
AMOUNT_PRECISION = 18


def quantize_amount(value: Decimal, scale: int) -> Decimal:
    """Round to the column scale the way PostgreSQL NUMERIC does."""
    if value.adjusted() >= AMOUNT_PRECISION - scale:
        raise ValueError(f"must fit NUMERIC({AMOUNT_PRECISION},{scale})")
    quantized = value.quantize(Decimal(1).scaleb(-scale), rounding=ROUND_HALF_UP)
    if quantized.adjusted() >= AMOUNT_PRECISION - scale:
        raise ValueError(f"must fit NUMERIC({AMOUNT_PRECISION},{scale})")
    return quantized


class Order(BaseModel):
    id: int
    world_id_hash: str
    type: str
    amount_wld: Decimal
    amount_cop: Decimal
    status: str = "OPEN"
    counterparty_contact: str | None = None
    created_at: datetime

    @field_validator("created_at")
    @classmethod
    def _utc(cls, v: datetime) -> datetime:
        # SQLite CURRENT_TIMESTAMP is UTC without an offset
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v.astimezone(timezone.utc)


class OrderInput(BaseModel):
    world_id_hash: str = Field(min_length=1)
    type: str = Field(min_length=1)
    amount_wld: Decimal
    amount_cop: Decimal
    counterparty_contact: str | None = None

    @field_validator("amount_wld", "amount_cop")
    @classmethod
    def _non_zero(cls, v: Decimal) -> Decimal:
        if not v.is_finite() or v == 0:
            raise ValueError("amount is required")
        return v

    @field_validator("amount_wld")
    @classmethod
    def _wld_scale(cls, v: Decimal) -> Decimal:
        return quantize_amount(v, WLD_SCALE)

    @field_validator("amount_cop")
    @classmethod
    def _cop_scale(cls, v: Decimal) -> Decimal:
        return quantize_amount(v, COP_SCALE)

    @field_validator("counterparty_contact")
    @classmethod
    def _blank_contact(cls, v: str | None) -> str | None:
        return v or None


class OrderUpdate(BaseModel):
    """Partial update; only fields present in the request body are applied."""

    status: str | None = Field(default=None, min_length=1)
    counterparty_contact: str | None = None

    def changes(self) -> dict:
        values = self.model_dump(exclude_unset=True)
        if values.get("status") is None:
            values.pop("status", None)
        if "counterparty_contact" in values:
            values["counterparty_contact"] = values["counterparty_contact"] or None
        return values
