"""
Business record types read from the record store.

Each type is an immutable dataclass with a tolerant ``from_row`` constructor.
Rows come from heterogeneous sources (SQL, REST, CSV), so numeric fields are
coerced and timestamps are parsed with pandas. A row missing its required
timestamp is skipped (``from_row`` returns None) instead of failing the batch.
"""

import logging
import math
import numbers
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Mapping, Optional

import pandas as pd

logger = logging.getLogger(__name__)

# Numeric epochs at or above this are milliseconds (1e11 s is past the year 5000)
_EPOCH_MS_THRESHOLD = 1e11


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Parses a timestamp into an aware UTC datetime; None when unparsable.

    Numbers are Unix epochs in seconds, or milliseconds when large enough.
    """
    if value is None or value == "" or isinstance(value, bool):
        return None
    if isinstance(value, numbers.Real):
        if pd.isna(value):
            return None
        unit = "ms" if abs(value) >= _EPOCH_MS_THRESHOLD else "s"
        ts = pd.to_datetime(value, unit=unit, utc=True, errors="coerce")
    else:
        ts = pd.to_datetime(value, utc=True, errors="coerce")
    if ts is None or pd.isna(ts):
        return None
    return ts.to_pydatetime()


def to_number(value: Any, default: float = 0.0) -> float:
    """Coerces numeric-ish values (str, Decimal, NaN, None) to float."""
    if value is None or value == "":
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if math.isnan(number) or math.isinf(number):
        return default
    return number


def to_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and math.isnan(value):
        return ""
    return str(value).strip()


def _optional_text(value: Any) -> Optional[str]:
    text = to_text(value)
    return text or None


@dataclass(frozen=True)
class Transaction:
    id: str
    date: datetime
    amount: float
    kind: str  # "income" | "expense"
    method: str = ""
    description: str = ""

    @property
    def is_income(self) -> bool:
        return self.kind == "income"

    @property
    def is_expense(self) -> bool:
        return self.kind == "expense"

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> Optional["Transaction"]:
        date = parse_timestamp(row.get("date"))
        if date is None:
            logger.debug(f"Skipping transaction {row.get('id')!r}: missing date")
            return None
        kind = to_text(row.get("kind") or row.get("type")).lower()
        return cls(
            id=to_text(row.get("id")),
            date=date,
            amount=to_number(row.get("amount")),
            kind=kind,
            method=to_text(row.get("method")),
            description=to_text(row.get("description")),
        )


@dataclass(frozen=True)
class Appointment:
    id: str
    start_time: datetime
    status: str  # confirmed | completed | cancelled | no_show
    client_id: Optional[str] = None
    staff_id: Optional[str] = None
    service_name: str = ""
    client_name: str = ""
    staff_name: str = ""

    @property
    def is_cancelled(self) -> bool:
        return self.status == "cancelled"

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> Optional["Appointment"]:
        start_time = parse_timestamp(row.get("start_time"))
        if start_time is None:
            logger.debug(f"Skipping appointment {row.get('id')!r}: missing start_time")
            return None
        status = to_text(row.get("status")).lower().replace("-", "_")
        return cls(
            id=to_text(row.get("id")),
            start_time=start_time,
            status=status,
            client_id=_optional_text(row.get("client_id")),
            staff_id=_optional_text(row.get("staff_id")),
            service_name=to_text(row.get("service_name")),
            client_name=to_text(row.get("client_name")),
            staff_name=to_text(row.get("staff_name")),
        )


@dataclass(frozen=True)
class Client:
    id: str
    name: str
    created_at: Optional[datetime] = None
    last_visit: Optional[datetime] = None
    total_spent: float = 0.0

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> Optional["Client"]:
        return cls(
            id=to_text(row.get("id")),
            name=to_text(row.get("name")),
            created_at=parse_timestamp(row.get("created_at")),
            last_visit=parse_timestamp(row.get("last_visit")),
            total_spent=to_number(row.get("total_spent")),
        )


@dataclass(frozen=True)
class Staff:
    id: str
    name: str

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> Optional["Staff"]:
        staff_id = to_text(row.get("id"))
        if not staff_id:
            logger.debug("Skipping staff row without id")
            return None
        return cls(id=staff_id, name=to_text(row.get("name")))


@dataclass(frozen=True)
class Product:
    id: str
    name: str
    stock_quantity: float = 0.0
    minimum_stock: float = 0.0
    price: float = 0.0

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> Optional["Product"]:
        return cls(
            id=to_text(row.get("id")),
            name=to_text(row.get("name")),
            stock_quantity=to_number(row.get("stock_quantity")),
            minimum_stock=to_number(row.get("minimum_stock")),
            price=to_number(row.get("price")),
        )


@dataclass(frozen=True)
class SaleLine:
    """A line of a sale (comanda): either a product or a service."""
    id: str
    sale_id: str
    product_id: Optional[str] = None
    service_id: Optional[str] = None
    name: str = ""
    quantity: float = 1.0
    unit_price: float = 0.0

    @property
    def line_total(self) -> float:
        return self.unit_price * self.quantity

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> Optional["SaleLine"]:
        # Missing or zero quantity counts as a single unit
        quantity = to_number(row.get("quantity")) or 1.0
        return cls(
            id=to_text(row.get("id")),
            sale_id=to_text(row.get("comanda_id") or row.get("sale_id")),
            product_id=_optional_text(row.get("product_id")),
            service_id=_optional_text(row.get("service_id")),
            name=to_text(row.get("product_name") or row.get("name")),
            quantity=quantity,
            unit_price=to_number(row.get("unit_price")),
        )


@dataclass(frozen=True)
class Sale:
    id: str
    total: float
    staff_id: Optional[str]
    status: str
    created_at: datetime

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> Optional["Sale"]:
        created_at = parse_timestamp(row.get("created_at"))
        if created_at is None:
            logger.debug(f"Skipping sale {row.get('id')!r}: missing created_at")
            return None
        return cls(
            id=to_text(row.get("id")),
            total=to_number(row.get("total")),
            staff_id=_optional_text(row.get("staff_id")),
            status=to_text(row.get("status")).lower(),
            created_at=created_at,
        )


RECORD_TYPES: Dict[str, type] = {
    "transactions": Transaction,
    "appointments": Appointment,
    "clients": Client,
    "staff": Staff,
    "products": Product,
    "sale_lines": SaleLine,
    "sales": Sale,
}
