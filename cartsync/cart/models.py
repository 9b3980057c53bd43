"""Cart models with Decimal-based pricing."""
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Iterable, Optional

from pydantic import BaseModel, field_validator

from cartsync.errors import SerializationError
from cartsync.money import multiply, parse_decimal, round_money, to_decimal, to_float


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _require(data: Any, key: str) -> Any:
    if not isinstance(data, dict):
        raise SerializationError(f"Line item payload must be a mapping, got {type(data).__name__}")
    if key not in data or data[key] is None:
        raise SerializationError(f"Line item payload missing '{key}'")
    return data[key]


def _parse_quantity(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise SerializationError(f"Invalid quantity: {value!r}")
    try:
        quantity = int(value)
    except (ValueError, OverflowError) as e:
        raise SerializationError(f"Invalid quantity: {value!r}") from e
    if quantity != value or quantity < 1:
        raise SerializationError(f"Invalid quantity: {value!r}")
    return quantity


class Product(BaseModel):
    """Product being added to a cart. Extra fields are kept as display metadata."""
    id: str
    name: str
    price: Decimal

    class Config:
        extra = "allow"

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v):
        return str(v) if isinstance(v, int) else v

    @field_validator("price", mode="before")
    @classmethod
    def convert_to_decimal(cls, v):
        return parse_decimal(v)

    @property
    def attributes(self) -> dict[str, Any]:
        return dict(self.model_extra or {})


@dataclass
class CartLineItem:
    """Single product entry in a cart."""
    product_id: str
    name: str
    unit_price: Decimal
    quantity: int
    attributes: dict[str, Any] = field(default_factory=dict)
    added_at: str = ""

    def __post_init__(self):
        if not self.added_at:
            self.added_at = _now()
        self.unit_price = to_decimal(self.unit_price)

    @property
    def line_total(self) -> Decimal:
        return multiply(self.unit_price, self.quantity)

    @classmethod
    def from_product(cls, product: Product, quantity: int) -> "CartLineItem":
        return cls(
            product_id=product.id,
            name=product.name,
            unit_price=product.price,
            quantity=quantity,
            attributes=product.attributes,
        )

    def with_quantity(self, quantity: int) -> "CartLineItem":
        return replace(self, quantity=quantity, attributes=dict(self.attributes))

    def to_dict(self) -> dict:
        """Convert to dictionary for the local snapshot."""
        return {
            "product_id": self.product_id,
            "name": self.name,
            "unit_price": str(self.unit_price),
            "quantity": self.quantity,
            "attributes": self.attributes,
            "added_at": self.added_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "CartLineItem":
        """Create from a local snapshot entry. Raises SerializationError on bad shape."""
        attributes = data.get("attributes") if isinstance(data, dict) else None
        if attributes is not None and not isinstance(attributes, dict):
            raise SerializationError("Line item 'attributes' must be a mapping")
        try:
            unit_price = parse_decimal(_require(data, "unit_price"))
        except ValueError as e:
            raise SerializationError(str(e)) from e
        return cls(
            product_id=str(_require(data, "product_id")),
            name=str(_require(data, "name")),
            unit_price=unit_price,
            quantity=_parse_quantity(_require(data, "quantity")),
            attributes=dict(attributes or {}),
            added_at=str(data.get("added_at") or ""),
        )

    def to_document(self, user_id: str) -> dict:
        """Convert to a cart_items row."""
        return {
            "user_id": user_id,
            "product_id": self.product_id,
            "name": self.name,
            "unit_price": to_float(self.unit_price),
            "quantity": self.quantity,
            "attributes": self.attributes,
            "added_at": self.added_at,
        }

    @classmethod
    def from_document(cls, row: dict) -> "CartLineItem":
        """Create from a cart_items row; same validation as snapshot entries."""
        return cls.from_dict(row)


@dataclass(frozen=True)
class Cart:
    """Immutable set of line items keyed by product id."""
    items: tuple[CartLineItem, ...] = ()

    @classmethod
    def of(cls, items: Iterable[CartLineItem]) -> "Cart":
        """Build a cart; later duplicates of a product id replace earlier ones."""
        by_id: dict[str, CartLineItem] = {}
        for item in items:
            by_id[item.product_id] = item
        return cls(items=tuple(by_id.values()))

    @property
    def is_empty(self) -> bool:
        return not self.items

    @property
    def total_items(self) -> int:
        """Total number of units in cart."""
        return sum(item.quantity for item in self.items)

    @property
    def total_price(self) -> Decimal:
        """Sum of unit price times quantity."""
        return round_money(sum((item.line_total for item in self.items), Decimal("0")))

    def get(self, product_id: str) -> Optional[CartLineItem]:
        return next((item for item in self.items if item.product_id == product_id), None)

    def __contains__(self, product_id: object) -> bool:
        return self.get(product_id) is not None  # type: ignore[arg-type]

    def __len__(self) -> int:
        return len(self.items)

    def with_item(self, item: CartLineItem) -> "Cart":
        """Insert or replace the line item for item.product_id."""
        if item.product_id in self:
            return Cart(tuple(item if i.product_id == item.product_id else i for i in self.items))
        return Cart(self.items + (item,))

    def with_added(self, product: Product, quantity: int) -> "Cart":
        existing = self.get(product.id)
        if existing:
            return self.with_item(existing.with_quantity(existing.quantity + quantity))
        return self.with_item(CartLineItem.from_product(product, quantity))

    def with_quantity(self, product_id: str, quantity: int) -> "Cart":
        existing = self.get(product_id)
        if existing is None:
            return self
        return self.with_item(existing.with_quantity(quantity))

    def without(self, product_id: str) -> "Cart":
        return Cart(tuple(item for item in self.items if item.product_id != product_id))

    def to_dict(self) -> dict:
        return {
            "items": [item.to_dict() for item in self.items],
            "total_items": self.total_items,
            "total_price": str(self.total_price),
        }


@dataclass
class Order:
    """Checkout artifact. Written once to the orders table."""
    user_id: str
    email: Optional[str]
    items: list[CartLineItem]
    billing: dict[str, Any]
    total: Decimal
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: str = ""

    def __post_init__(self):
        if not self.created_at:
            self.created_at = _now()

    def to_document(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "email": self.email,
            "billing": self.billing,
            "items": [item.to_dict() for item in self.items],
            "total": to_float(self.total),
            "created_at": self.created_at,
        }

    @classmethod
    def from_document(cls, row: dict) -> "Order":
        try:
            total = parse_decimal(_require(row, "total"))
        except ValueError as e:
            raise SerializationError(str(e)) from e
        return cls(
            id=str(_require(row, "id")),
            user_id=str(_require(row, "user_id")),
            email=row.get("email"),
            items=[CartLineItem.from_dict(item) for item in row.get("items") or []],
            billing=dict(row.get("billing") or {}),
            total=total,
            created_at=str(row.get("created_at") or ""),
        )
