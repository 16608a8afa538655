"""Match internal product and variant ids to store-native ids."""

from collections import Counter
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .models.ave_models import CrossReference, StoreCredential, normalize_store_ref
from .models.shopify_models import CanonicalProduct, CanonicalVariant

__all__ = [
    "normalize_store_ref",
    "refs_for_store",
    "partition_existing",
    "variant_id_map",
    "match_variant_ids",
    "derive_created_refs",
    "derive_existing_refs",
    "top_level_ref",
]


def refs_for_store(known_refs: Sequence[CrossReference], store_id: str) -> List[CrossReference]:
    return [ref for ref in known_refs if ref.store_id == str(store_id)]


def partition_existing(
    candidate_ids: Sequence[str],
    known_refs: Sequence[CrossReference],
    store_id: str,
) -> Tuple[Dict[str, str], List[str]]:
    """
    Split candidate ids into those already mapped in a store and those missing.

    Args:
        candidate_ids: Internal product and variant ids
        known_refs: Mappings for any store
        store_id: Store to reconcile against

    Returns:
        (internal id -> store ref, ids without a store ref)
    """
    lookup = {
        ref.internal_product_id: ref.store_product_ref
        for ref in refs_for_store(known_refs, store_id)
        if ref.store_product_ref
    }
    existing = {}
    missing = []
    for candidate in candidate_ids:
        key = str(candidate)
        if key in lookup:
            existing[key] = lookup[key]
        else:
            missing.append(key)
    return existing, missing


def variant_id_map(product: CanonicalProduct, existing: Dict[str, str]) -> Dict[str, str]:
    """Internal variant id -> store variant id, for variants already mapped."""
    return {
        v.internal_id: existing[v.internal_id]
        for v in product.variants
        if v.internal_id and v.internal_id in existing
    }


def _response_product(response: Any) -> Dict[str, Any]:
    if isinstance(response, dict):
        product = response.get("product", response)
        if isinstance(product, dict):
            return product
    return {}


def match_variant_ids(product: CanonicalProduct, response: Any) -> List[Optional[str]]:
    """
    Store variant id for each canonical variant, in variant order.

    A variant is matched by SKU when its SKU is unique on both sides, else by
    the position Shopify echoes back, else by response order when the
    response holds exactly one entry per variant. Anything else is None.
    """
    returned = [v for v in _response_product(response).get("variants") or [] if isinstance(v, dict)]
    sku_counts = Counter(v.sku for v in product.variants)
    by_sku: Dict[Any, List[Any]] = {}
    for variant in returned:
        by_sku.setdefault(variant.get("sku"), []).append(variant.get("id"))
    by_position = {
        str(variant["position"]): variant.get("id")
        for variant in returned
        if variant.get("position") is not None
    }

    ids = []
    for index, variant in enumerate(product.variants):
        matches = by_sku.get(variant.sku, [])
        if sku_counts[variant.sku] == 1 and len(matches) == 1:
            store_id = matches[0]
        elif str(variant.position) in by_position:
            store_id = by_position[str(variant.position)]
        elif len(returned) == len(product.variants):
            store_id = returned[index].get("id")
        else:
            store_id = None
        ids.append(normalize_store_ref(store_id))
    return ids


def _row_dropshipping_id(product: CanonicalProduct, variant: Optional[CanonicalVariant] = None) -> Optional[str]:
    if variant is not None and variant.dropshipping_id:
        return variant.dropshipping_id
    return product.dropshipping_id


def derive_created_refs(
    product: CanonicalProduct,
    response: Any,
    credential: StoreCredential,
) -> List[CrossReference]:
    """
    Derive mappings from a store's create/update response.

    A variant that cannot be matched in the response is recorded with a
    null store ref.
    """
    if not product.internal_id:
        return []
    created = _response_product(response)
    refs = [
        CrossReference(
            internal_product_id=product.internal_id,
            parent_internal_id=None,
            store_product_ref=normalize_store_ref(created.get("id")),
            store_id=credential.store_id,
            product_type=product.product_type,
            dropshipping_id=_row_dropshipping_id(product),
        )
    ]
    for variant, store_ref in zip(product.variants, match_variant_ids(product, response)):
        if not variant.internal_id:
            continue
        refs.append(
            CrossReference(
                internal_product_id=variant.internal_id,
                parent_internal_id=product.internal_id,
                store_product_ref=store_ref,
                store_id=credential.store_id,
                product_type=product.product_type,
                dropshipping_id=_row_dropshipping_id(product, variant),
            )
        )
    return refs


def derive_existing_refs(
    product: CanonicalProduct,
    existing: Dict[str, str],
    credential: StoreCredential,
) -> List[CrossReference]:
    """Mappings for a product already present in a store, plus its mapped variants."""
    if not product.internal_id or product.internal_id not in existing:
        return []
    refs = [
        CrossReference(
            internal_product_id=product.internal_id,
            store_product_ref=existing[product.internal_id],
            store_id=credential.store_id,
            product_type=product.product_type,
            dropshipping_id=_row_dropshipping_id(product),
        )
    ]
    for variant in product.variants:
        if not variant.internal_id or variant.internal_id not in existing:
            continue
        refs.append(
            CrossReference(
                internal_product_id=variant.internal_id,
                parent_internal_id=product.internal_id,
                store_product_ref=existing[variant.internal_id],
                store_id=credential.store_id,
                product_type=product.product_type,
                dropshipping_id=_row_dropshipping_id(product, variant),
            )
        )
    return refs


def top_level_ref(product: CanonicalProduct, existing: Dict[str, str]) -> Optional[str]:
    if not product.internal_id:
        return None
    return existing.get(product.internal_id)
