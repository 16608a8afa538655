"""Pure transforms from CRM inputs to canonical store payloads."""

import os
import re
import unicodedata
from html import escape
from typing import Any, Dict, List, Optional, Sequence, Tuple
from urllib.parse import urlparse

from .errors import InvalidArgumentError
from .models.ave_models import (
    ProductInput,
    VariantInput,
    OrderInput,
    ImageContext,
)
from .models.shopify_models import (
    CanonicalProduct,
    CanonicalVariant,
    ProductOption,
    ProductImage,
    CanonicalOrder,
    LineItem,
    TaxLine,
)

DEFAULT_OPTION = "Default"
DEFAULT_ITEM_TITLE = "Producto"
DEFAULT_ITEM_WEIGHT_KG = 0.5
TAX_TITLE = "IVA"

_NON_ALNUM = re.compile(r"[^a-zA-Z0-9]+")


def make_handle(name: str, ref: Optional[str] = None) -> str:
    """
    Build a Shopify product handle.

    Transliterates to ASCII, collapses every run of non-alphanumerics into a
    hyphen, trims hyphens and lowercases. The reference is appended when
    given, for call sites that need distinct handles per product.
    """
    text = " ".join(part for part in (name, ref) if part)
    ascii_text = unicodedata.normalize("NFKD", text).encode("ascii", "ignore").decode("ascii")
    return _NON_ALNUM.sub("-", ascii_text).strip("-").lower()


def resolve_image_url(path: Optional[str], context: Optional[ImageContext]) -> Optional[str]:
    """
    Turn a stored image path into a public URL.

    Absolute URLs are returned unchanged. Relative filesystem paths are
    resolved against the project root and published under the context's
    base URL. Paths outside the project root do not resolve.
    """
    if not path:
        return None
    if urlparse(path).scheme in ("http", "https"):
        return path
    if context is None:
        return None

    root = os.path.normpath(context.project_root)
    full_path = os.path.normpath(os.path.join(root, path))
    relative = os.path.relpath(full_path, root)
    if relative == os.curdir or relative.startswith(os.pardir):
        return None
    return f"{context.base_url}/{relative.replace(os.sep, '/')}"


def _split_tags(tags: Any) -> List[str]:
    if isinstance(tags, str):
        return [t.strip() for t in tags.split(",") if t.strip()]
    return [str(t) for t in tags or []]


def build_variants(
    product: ProductInput,
) -> Tuple[List[CanonicalVariant], List[ProductOption]]:
    """
    Build variants and the shared option set.

    Option names are collected from the variants' attributes in first-seen
    order. Each variant gives one value per option, in option order; a
    variant without a value for an option takes "Default", which then joins
    that option's values. Values are de-duplicated in first-seen order.
    """
    if not product.variants:
        variant = CanonicalVariant(
            title=product.name,
            price=product.suggested_price,
            sku=product.ref,
            position=1,
            option_values=[DEFAULT_OPTION],
            weight=product.weight,
            stock_qty=product.stock,
        )
        return [variant], [ProductOption(name=DEFAULT_OPTION, values=[DEFAULT_OPTION])]

    option_names: List[str] = []
    for item in product.variants:
        for key in item.attributes:
            if key not in option_names:
                option_names.append(key)
    if len(option_names) > 3:
        raise InvalidArgumentError("Shopify supports at most 3 options per product")
    if not option_names:
        option_names = [DEFAULT_OPTION]

    buckets: Dict[str, List[str]] = {name: [] for name in option_names}
    variants: List[CanonicalVariant] = []
    for position, item in enumerate(product.variants, start=1):
        variants.append(
            CanonicalVariant(
                internal_id=item.id,
                title=item.name or f"Variante {position}",
                price=item.price if item.price is not None else product.suggested_price,
                compare_at_price=item.suggested_price,
                sku=item.sku or product.ref,
                position=position,
                option_values=_collect_options(item, buckets),
                weight=item.weight if item.weight is not None else product.weight,
                stock_qty=item.stock if item.stock is not None else product.stock,
                dropshipping_id=item.dropshipping_id,
            )
        )

    options = [ProductOption(name=name, values=values) for name, values in buckets.items()]
    return variants, options


def _collect_options(item: VariantInput, buckets: Dict[str, List[str]]) -> List[str]:
    values = []
    for name, bucket in buckets.items():
        value = item.attributes.get(name, DEFAULT_OPTION)
        if value not in bucket:
            bucket.append(value)
        values.append(value)
    return values


def build_images(product: ProductInput, context: Optional[ImageContext], size: int = 600) -> List[ProductImage]:
    src = resolve_image_url(product.image_path, context)
    if not src and product.uploaded_image and product.image_path:
        src = product.image_path
    if not src:
        return []
    return [ProductImage(src=src, alt=product.name, position=1, width=size, height=size)]


def build_product_payload(
    product: ProductInput,
    image_context: Optional[ImageContext] = None,
    *,
    unique_handle: bool = False,
    image_size: int = 600,
) -> CanonicalProduct:
    """
    Build the canonical product sent to every store.

    Args:
        product: CRM product
        image_context: Where relative image paths are published from
        unique_handle: Append the product reference to the handle
        image_size: Declared image width and height

    Returns:
        Canonical product
    """
    variants, options = build_variants(product)
    return CanonicalProduct(
        internal_id=product.product_id,
        name=product.name,
        sku_ref=product.ref,
        suggested_price=product.suggested_price,
        weight=product.weight,
        stock_qty=product.stock,
        vendor=product.vendor,
        category=product.category,
        status="draft" if product.status == 1 else "active",
        description_html=product.description or f"<strong>{escape(product.name)}</strong>",
        tags=_split_tags(product.tags),
        handle=make_handle(product.name, product.ref if unique_handle else None),
        options=options,
        variants=variants,
        images=build_images(product, image_context, image_size),
        dropshipping_id=product.dropshipping_id,
    )


def _at(values: Sequence[Any], index: int) -> Any:
    return values[index] if index < len(values) else None


def _or(value: Any, default: Any) -> Any:
    return default if value is None else value


def _line_item(title, price, weight_kg, sku, quantity, tax) -> LineItem:
    tax = float(_or(tax, 0))
    return LineItem(
        title=title or DEFAULT_ITEM_TITLE,
        price=float(_or(price, 0)),
        grams=int(round(float(_or(weight_kg, DEFAULT_ITEM_WEIGHT_KG)) * 1000)),
        sku=sku or "",
        quantity=int(_or(quantity, 1)),
        tax_lines=[TaxLine(price=tax, rate=tax / 100, title=TAX_TITLE)],
    )


def build_line_items(order: OrderInput) -> List[LineItem]:
    """
    Build order lines from structured items, or else from parallel arrays.

    The two shapes are never merged: structured items win whenever present.
    """
    post = order.order_post
    if post.items:
        return [
            _line_item(item.title, item.price, item.weight, item.sku, item.quantity, item.tax)
            for item in post.items
        ]

    lines = []
    for index in range(len(post.product_name)):
        ref = _at(order.products, index)
        lines.append(
            _line_item(
                ref.product_name if ref else None,
                _at(post.rate_value, index),
                _at(post.weight, index),
                ref.product_ref if ref else None,
                _at(post.quantity, index),
                _at(post.tax, index),
            )
        )
    return lines


def build_order_payload(order: OrderInput, currency: str = "COP") -> CanonicalOrder:
    """Build the canonical order sent to every store."""
    return CanonicalOrder(
        email=order.client_email,
        phone=order.client_phone,
        customer_name=order.client_name,
        line_items=build_line_items(order),
        payment_status="success" if order.paid == 1 else "pending",
        total_amount=order.grand_total,
        total_tax=order.vat,
        currency=currency,
    )
