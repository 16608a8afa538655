"""Pydantic models for Ave CRM records and inputs."""

import re
from typing import Optional, List, Dict, Union, Literal, Any
from pydantic import BaseModel, Field, ConfigDict, field_validator

_NON_DIGITS = re.compile(r"\D+")


def normalize_store_ref(value: Any) -> Optional[str]:
    """Strip every non-digit from a store id (e.g. a GraphQL global id)."""
    if value is None:
        return None
    digits = _NON_DIGITS.sub("", str(value))
    return digits or None


class StoreCredential(BaseModel):
    """One Shopify store tied to a company, as returned by the token endpoint."""
    store_id: str = Field(alias="id")
    store_url: str = Field(alias="url")
    access_token: str = Field(alias="token")
    owning_agent_id: Optional[str] = Field(None, alias="id_agente")

    model_config = ConfigDict(populate_by_name=True, frozen=True, coerce_numbers_to_str=True)


class CrossReference(BaseModel):
    """Mapping of one internal product or variant id to one store's native id."""
    internal_product_id: str = Field(alias="product_id")
    parent_internal_id: Optional[str] = Field(None, alias="parent_id")
    store_product_ref: Optional[str] = Field(None, alias="product_ref")
    store_id: str = Field(alias="token_id")
    product_type: Literal["own", "dropshipping"] = "own"
    dropshipping_id: Optional[str] = Field(None, alias="product_dropshipping_id")

    model_config = ConfigDict(populate_by_name=True, coerce_numbers_to_str=True)

    @field_validator("store_product_ref", mode="before")
    @classmethod
    def _bare_numeric(cls, value):
        return normalize_store_ref(value)

    def to_wire(self) -> Dict[str, Any]:
        """Body row for the CRM productEcommerce endpoint."""
        return self.model_dump(by_alias=True)


class OrderRecord(BaseModel):
    """Order log entry kept by the CRM for orders sent to Shopify."""
    order_number: Optional[str] = None
    shopify_order_id: Optional[str] = None

    model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True)


class UploadedFile(BaseModel):
    """Metadata of an image uploaded with the product form."""
    tmp_name: str
    name: Optional[str] = None


class ImageContext(BaseModel):
    """
    Where the calling application is served from.

    Relative image paths are resolved against project_root and published
    under scheme://host/base_path.
    """
    scheme: str = "http"
    host: str
    base_path: str = ""
    project_root: str = "."

    @property
    def base_url(self) -> str:
        base_path = self.base_path.strip("/")
        url = f"{self.scheme}://{self.host}"
        return f"{url}/{base_path}" if base_path else url


class VariantInput(BaseModel):
    """A product variant as sent by the CRM."""
    id: Optional[str] = None
    name: Optional[str] = None
    price: Optional[float] = None
    suggested_price: Optional[float] = None
    sku: Optional[str] = None
    weight: Optional[float] = None
    stock: Optional[int] = None
    attributes: Dict[str, str] = Field(default_factory=dict)
    dropshipping_id: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True, coerce_numbers_to_str=True)

    @field_validator("attributes")
    @classmethod
    def _at_most_three_options(cls, value: Dict[str, str]) -> Dict[str, str]:
        if len(value) > 3:
            raise ValueError("Shopify supports at most 3 options per product")
        return value


class ProductInput(BaseModel):
    """A CRM product, with the CRM form field names as aliases."""
    name: str = Field(alias="productName")
    ref: str = Field(alias="productRef")
    suggested_price: float = Field(0.0, alias="sugerido")
    weight: float = Field(0.0, alias="peso", description="Weight in grams")
    stock: int = Field(0, alias="unidades")
    vendor: str = Field("", alias="marcaName")
    category: str = Field("", alias="categoryName")
    status: int = Field(0, alias="productStatus", description="1 = draft, anything else = active")
    description: str = Field("", alias="productDesc")
    tags: Union[List[str], str] = Field(default_factory=list, alias="etiquetas")
    variants: List[VariantInput] = Field(default_factory=list)
    image_path: Optional[str] = Field(None, alias="url")
    product_id: Optional[str] = Field(None, alias="productId")
    dropshipping_id: Optional[str] = Field(None, alias="dropshippingId")
    uploaded_image: Optional[UploadedFile] = Field(None, alias="uploadedImage")

    model_config = ConfigDict(populate_by_name=True, coerce_numbers_to_str=True)


class OrderItemInput(BaseModel):
    """A structured order line."""
    title: Optional[str] = Field(None, alias="productName")
    price: Optional[float] = Field(None, alias="rateValue")
    weight: Optional[float] = Field(None, alias="peso", description="Weight in kilograms")
    sku: Optional[str] = Field(None, alias="productRef")
    quantity: Optional[int] = None
    tax: Optional[float] = Field(None, alias="ivaValue")

    model_config = ConfigDict(populate_by_name=True, coerce_numbers_to_str=True)


class OrderPost(BaseModel):
    """Raw order form: structured items or parallel arrays indexed by line."""
    items: List[OrderItemInput] = Field(default_factory=list)
    product_name: List[Optional[str]] = Field(default_factory=list, alias="productName")
    rate_value: List[Optional[float]] = Field(default_factory=list, alias="rateValue")
    weight: List[Optional[float]] = Field(default_factory=list, alias="peso")
    quantity: List[Optional[int]] = Field(default_factory=list)
    tax: List[Optional[float]] = Field(default_factory=list, alias="ivaValue")

    model_config = ConfigDict(populate_by_name=True, coerce_numbers_to_str=True)


class ProductRefRecord(BaseModel):
    """Product looked up by the CRM for a parallel-array order line."""
    product_name: Optional[str] = None
    product_ref: Optional[str] = None

    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)


class OrderInput(BaseModel):
    """A CRM order, with the CRM form field names as aliases."""
    client_email: str = Field(alias="clientEmail")
    client_phone: str = Field("", alias="clientTel")
    client_name: str = Field("", alias="clientName")
    grand_total: float = Field(alias="grandTotal")
    vat: float = 0.0
    paid: int = Field(0, alias="pagado")
    order_post: OrderPost = Field(default_factory=OrderPost, alias="orderPost")
    products: List[ProductRefRecord] = Field(default_factory=list)

    model_config = ConfigDict(populate_by_name=True, coerce_numbers_to_str=True)
