"""Result records returned by the connector operations."""

from typing import Optional, List, Dict, Any
from pydantic import BaseModel, Field

from .ave_models import StoreCredential, CrossReference


class VariantStockResult(BaseModel):
    """Outcome of one variant stock update in one store."""
    variant_id: Optional[str] = None
    store_ref: Optional[str] = None
    quantity: int = 0
    success: bool = True
    result: Any = None
    error: Optional[str] = None


class StoreResult(BaseModel):
    """Outcome of one operation in one store. Never shared across stores."""
    store_url: str
    store_id: Optional[str] = None
    success: bool = True
    precreated: bool = False
    sent_payload: Any = None
    remote_result: Any = None
    error: Optional[str] = None
    derived_refs: List[CrossReference] = Field(default_factory=list)
    items: List[VariantStockResult] = Field(default_factory=list)


class FanoutReport(BaseModel):
    """Per-store results keyed by store URL, plus the stores that were resolved."""
    results: Dict[str, StoreResult] = Field(default_factory=dict)
    stores: List[StoreCredential] = Field(default_factory=list)

    @property
    def all_succeeded(self) -> bool:
        return all(r.success for r in self.results.values())

    @property
    def failed_stores(self) -> List[str]:
        return [url for url, r in self.results.items() if not r.success]


class OperationResult(BaseModel):
    """Outcome of a single-store order operation."""
    success: bool
    result: Any = None
    error: Optional[str] = None


class StatusChangeResult(BaseModel):
    """Outcome of an order status change: the note, then the mapped action."""
    success: bool
    result_note: Any = None
    result_change_status: Optional[OperationResult] = None
    error: Optional[str] = None
