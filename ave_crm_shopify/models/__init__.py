"""Data models for Ave CRM records, canonical Shopify payloads and results."""

from .ave_models import (
    StoreCredential,
    CrossReference,
    OrderRecord,
    ImageContext,
    UploadedFile,
    VariantInput,
    ProductInput,
    OrderItemInput,
    OrderPost,
    ProductRefRecord,
    OrderInput,
    normalize_store_ref,
)
from .shopify_models import (
    ProductOption,
    ProductImage,
    CanonicalVariant,
    CanonicalProduct,
    TaxLine,
    LineItem,
    CanonicalOrder,
)
from .results import (
    VariantStockResult,
    StoreResult,
    FanoutReport,
    OperationResult,
    StatusChangeResult,
)

__all__ = [
    "StoreCredential",
    "CrossReference",
    "OrderRecord",
    "ImageContext",
    "UploadedFile",
    "VariantInput",
    "ProductInput",
    "OrderItemInput",
    "OrderPost",
    "ProductRefRecord",
    "OrderInput",
    "normalize_store_ref",
    "ProductOption",
    "ProductImage",
    "CanonicalVariant",
    "CanonicalProduct",
    "TaxLine",
    "LineItem",
    "CanonicalOrder",
    "VariantStockResult",
    "StoreResult",
    "FanoutReport",
    "OperationResult",
    "StatusChangeResult",
]
