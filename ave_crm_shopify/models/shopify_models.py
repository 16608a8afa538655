"""Canonical store payloads, shared read-only by every store dispatch."""

from typing import Optional, List, Dict, Any, Literal
from pydantic import BaseModel, Field, ConfigDict


def _money(value: Optional[float]) -> str:
    if value is None:
        return ""
    return f"{value:.2f}"


class ProductOption(BaseModel):
    """A product option and its distinct values, in first-seen order."""
    name: str
    values: List[str] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)


class ProductImage(BaseModel):
    """Product image sent to Shopify."""
    src: str
    alt: Optional[str] = None
    position: int = 1
    width: int = 600
    height: int = 600

    model_config = ConfigDict(frozen=True)

    def to_rest_payload(self) -> Dict[str, Any]:
        return {
            "alt": self.alt,
            "position": self.position,
            "width": self.width,
            "height": self.height,
            "src": self.src,
            "variant_ids": [],
        }


class CanonicalVariant(BaseModel):
    """Store-agnostic product variant."""
    internal_id: Optional[str] = None
    title: str
    price: float
    compare_at_price: Optional[float] = None
    sku: str
    position: int = Field(ge=1)
    option_values: List[str] = Field(min_length=1, max_length=3)
    weight: float = 0.0
    stock_qty: int = 0
    dropshipping_id: Optional[str] = None

    model_config = ConfigDict(frozen=True)

    def to_rest_payload(self, variant_id: Optional[str] = None) -> Dict[str, Any]:
        """Render the Shopify REST variant body (weight in grams)."""
        options = list(self.option_values) + [None] * (3 - len(self.option_values))
        payload = {
            "title": self.title,
            "price": _money(self.price),
            "sku": self.sku,
            "position": self.position,
            "inventory_policy": "deny",
            "compare_at_price": _money(self.compare_at_price),
            "option1": options[0],
            "option2": options[1],
            "option3": options[2],
            "fulfillment_service": "manual",
            "grams": int(self.weight),
            "inventory_management": "shopify",
            "requires_shipping": True,
            "weight": float(self.weight),
            "weight_unit": "g",
            "inventory_quantity": self.stock_qty,
            "old_inventory_quantity": self.stock_qty,
        }
        if variant_id:
            payload["id"] = variant_id
        return payload


class CanonicalProduct(BaseModel):
    """Store-agnostic product, built once per sync call."""
    internal_id: Optional[str] = None
    name: str
    sku_ref: str
    suggested_price: float = 0.0
    weight: float = 0.0
    stock_qty: int = 0
    vendor: str = ""
    category: str = ""
    status: Literal["active", "draft"] = "active"
    description_html: str = ""
    tags: List[str] = Field(default_factory=list)
    handle: str
    options: List[ProductOption] = Field(default_factory=list)
    variants: List[CanonicalVariant] = Field(min_length=1)
    images: List[ProductImage] = Field(default_factory=list)
    dropshipping_id: Optional[str] = None

    model_config = ConfigDict(frozen=True)

    @property
    def product_type(self) -> str:
        """Cross-reference type of the product."""
        return "dropshipping" if self.dropshipping_id else "own"

    def internal_ids(self) -> List[str]:
        """Product id followed by every variant id that is known."""
        ids = [self.internal_id] if self.internal_id else []
        ids.extend(v.internal_id for v in self.variants if v.internal_id)
        return ids

    def dropshipping_ids(self) -> List[str]:
        ids = [self.dropshipping_id] if self.dropshipping_id else []
        ids.extend(v.dropshipping_id for v in self.variants if v.dropshipping_id)
        return ids

    def to_rest_payload(
        self,
        product_id: Optional[str] = None,
        variant_ids: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        """
        Render the Shopify REST product body.

        Args:
            product_id: Store-native product id, set for updates
            variant_ids: Internal variant id -> store-native variant id

        Returns:
            {"product": {...}} ready to send
        """
        variant_ids = variant_ids or {}
        images = [img.to_rest_payload() for img in self.images]
        product = {
            "title": self.name,
            "body_html": self.description_html,
            "vendor": self.vendor,
            "product_type": self.category,
            "handle": self.handle,
            "tags": ",".join(self.tags),
            "status": self.status,
            "options": [opt.model_dump() for opt in self.options],
            "variants": [
                v.to_rest_payload(variant_ids.get(v.internal_id) if v.internal_id else None)
                for v in self.variants
            ],
            "images": images,
            "image": images[0] if images else None,
        }
        if product_id:
            product["id"] = product_id
        return {"product": product}


class TaxLine(BaseModel):
    price: float = 0.0
    rate: float = 0.0
    title: str = "IVA"

    model_config = ConfigDict(frozen=True)


class LineItem(BaseModel):
    """One order line."""
    title: str = "Producto"
    price: float = 0.0
    grams: int = 500
    sku: str = ""
    quantity: int = Field(1, ge=0)
    tax_lines: List[TaxLine] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)


class CanonicalOrder(BaseModel):
    """Store-agnostic order, built once per sync call."""
    email: str
    phone: str = ""
    customer_name: str = ""
    line_items: List[LineItem] = Field(default_factory=list)
    payment_status: Literal["success", "pending"] = "pending"
    total_amount: float = 0.0
    total_tax: float = 0.0
    currency: str = "COP"

    model_config = ConfigDict(frozen=True)

    def customer(self) -> Dict[str, str]:
        first, _, last = self.customer_name.strip().partition(" ")
        return {
            "email": self.email,
            "first_name": first,
            "last_name": last.strip() or first,
        }

    def to_rest_payload(self) -> Dict[str, Any]:
        """Render the Shopify REST order body."""
        return {
            "order": {
                "email": self.email,
                "phone": self.phone,
                "customer": self.customer(),
                "line_items": [item.model_dump() for item in self.line_items],
                "transactions": [
                    {
                        "kind": "sale",
                        "status": self.payment_status,
                        "amount": self.total_amount,
                    }
                ],
                "total_tax": self.total_tax,
                "currency": self.currency,
            }
        }
