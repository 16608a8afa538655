"""Publish CRM products to every store of a company."""

import logging
from typing import Any, Dict, List, Optional, Union

from .config import ConnectorConfig
from .crm import AveCrmGateway
from .errors import require
from .fanout import StoreClientFactory, dispatch, failed_result, open_store
from .models.ave_models import ProductInput, ImageContext, StoreCredential, CrossReference
from .models.results import StoreResult, FanoutReport, VariantStockResult
from .models.shopify_models import CanonicalProduct
from .payload import build_product_payload
from .reconciler import (
    partition_existing,
    variant_id_map,
    derive_created_refs,
    derive_existing_refs,
    top_level_ref,
)

logger = logging.getLogger("ave_crm_shopify.products")

ProductLike = Union[ProductInput, Dict[str, Any]]


class ProductSync:
    """
    Product operations fanned out to every store of a company.

    Each operation resolves the company's stores, builds the canonical
    product once, reads the known cross-references, then handles every store
    independently. Operations return None when the company has no stores.
    """

    def __init__(
        self,
        crm: AveCrmGateway,
        store_client_factory: StoreClientFactory,
        config: Optional[ConnectorConfig] = None,
        image_context: Optional[ImageContext] = None,
    ):
        self.crm = crm
        self.store_client_factory = store_client_factory
        self.config = config or ConnectorConfig()
        self.image_context = image_context

    def build(self, product: ProductLike, image_context: Optional[ImageContext] = None) -> CanonicalProduct:
        """Build the canonical product for a CRM product."""
        if not isinstance(product, ProductInput):
            product = ProductInput.model_validate(product)
        return build_product_payload(
            product,
            image_context or self.image_context,
            unique_handle=self.config.product.unique_handles,
            image_size=self.config.product.image_size,
        )

    async def known_references(self, auth_token: str, product: CanonicalProduct) -> List[CrossReference]:
        """Mappings of the product and its variants; dropshipping matches win."""
        dropshipping_ids = product.dropshipping_ids()
        if dropshipping_ids:
            refs = await self.crm.get_dropshipping_references(auth_token, dropshipping_ids)
            if refs:
                return refs
        return await self.crm.get_cross_references(auth_token, product.internal_ids())

    async def _run(
        self,
        operation: str,
        company_id: str,
        auth_token: str,
        product: ProductLike,
        image_context: Optional[ImageContext],
        handler_factory,
    ) -> Optional[FanoutReport]:
        canonical = self.build(product, image_context)
        stores = await self.crm.get_store_tokens_by_company(company_id, auth_token)
        if not stores:
            logger.info("no_stores_configured", extra={"operation": operation, "company_id": company_id})
            return None

        payload = canonical.to_rest_payload()
        try:
            known_refs = await self.known_references(auth_token, canonical)
        except Exception as e:
            logger.error(
                "reference_lookup_failed",
                extra={"operation": operation, "product_id": canonical.internal_id, "error": str(e)},
            )
            message = f"No se pudieron consultar las referencias del producto: {e}"
            return FanoutReport(
                results={s.store_url: failed_result(s, message, payload) for s in stores},
                stores=stores,
            )

        results = await dispatch(
            stores,
            handler_factory(auth_token, canonical, payload, known_refs),
            operation=operation,
            payload=payload,
            max_concurrency=self.config.fanout.max_concurrent_stores,
        )
        return FanoutReport(results=results, stores=stores)

    async def _persist(
        self,
        credential: StoreCredential,
        auth_token: str,
        refs: List[CrossReference],
        payload: Dict[str, Any],
        response: Any,
        derived_refs: List[CrossReference],
    ) -> StoreResult:
        """Store result once the store call went through; a failed persist keeps the response."""
        result = StoreResult(
            store_url=credential.store_url,
            store_id=credential.store_id,
            sent_payload=payload,
            remote_result=response,
            derived_refs=derived_refs,
        )
        if not refs:
            return result
        try:
            await self.crm.put_cross_references(auth_token, refs)
        except Exception as e:
            logger.error(
                "reference_persist_failed",
                extra={"store": credential.store_url, "refs": len(refs), "error": str(e)},
            )
            result.success = False
            result.error = f"No se pudieron guardar las referencias del producto: {e}"
        return result

    async def _create(
        self,
        credential: StoreCredential,
        auth_token: str,
        canonical: CanonicalProduct,
        payload: Dict[str, Any],
    ) -> StoreResult:
        async with open_store(self.store_client_factory, credential) as client:
            response = await client.create_product(payload)
        refs = derive_created_refs(canonical, response, credential)
        return await self._persist(credential, auth_token, refs, payload, response, refs)

    async def _update(
        self,
        credential: StoreCredential,
        auth_token: str,
        canonical: CanonicalProduct,
        existing: Dict[str, str],
        store_ref: str,
    ) -> StoreResult:
        payload = canonical.to_rest_payload(store_ref, variant_id_map(canonical, existing))
        async with open_store(self.store_client_factory, credential) as client:
            response = await client.update_product(store_ref, payload)
        refs = derive_created_refs(canonical, response, credential)
        new_refs = [
            ref for ref in refs
            if ref.store_product_ref and existing.get(ref.internal_product_id) != ref.store_product_ref
        ]
        return await self._persist(credential, auth_token, new_refs, payload, response, refs)

    def _post_handler(self, auth_token, canonical, payload, known_refs):
        async def handle(credential: StoreCredential) -> StoreResult:
            existing, _ = partition_existing(canonical.internal_ids(), known_refs, credential.store_id)
            if top_level_ref(canonical, existing):
                return StoreResult(
                    store_url=credential.store_url,
                    store_id=credential.store_id,
                    precreated=True,
                    sent_payload=payload,
                    derived_refs=derive_existing_refs(canonical, existing, credential),
                )
            return await self._create(credential, auth_token, canonical, payload)
        return handle

    def _put_handler(self, auth_token, canonical, payload, known_refs):
        async def handle(credential: StoreCredential) -> StoreResult:
            existing, _ = partition_existing(canonical.internal_ids(), known_refs, credential.store_id)
            store_ref = top_level_ref(canonical, existing)
            if not store_ref:
                return failed_result(
                    credential,
                    f"El producto {canonical.internal_id} no existe en la tienda {credential.store_url}",
                    payload,
                )
            return await self._update(credential, auth_token, canonical, existing, store_ref)
        return handle

    def _sync_handler(self, auth_token, canonical, payload, known_refs):
        async def handle(credential: StoreCredential) -> StoreResult:
            existing, _ = partition_existing(canonical.internal_ids(), known_refs, credential.store_id)
            store_ref = top_level_ref(canonical, existing)
            if store_ref:
                return await self._update(credential, auth_token, canonical, existing, store_ref)
            return await self._create(credential, auth_token, canonical, payload)
        return handle

    def _stock_handler(self, auth_token, canonical, payload, known_refs):
        async def handle(credential: StoreCredential) -> StoreResult:
            existing, _ = partition_existing(canonical.internal_ids(), known_refs, credential.store_id)
            product_ref = top_level_ref(canonical, existing)
            # A product sent without variants has a single variant with no internal id.
            default_variant = len(canonical.variants) == 1 and not canonical.variants[0].internal_id
            items: List[VariantStockResult] = []
            async with open_store(self.store_client_factory, credential) as client:
                for variant in canonical.variants:
                    store_ref = existing.get(variant.internal_id) if variant.internal_id else None
                    if not store_ref and not (default_variant and product_ref):
                        items.append(
                            VariantStockResult(
                                variant_id=variant.internal_id,
                                quantity=variant.stock_qty,
                                success=False,
                                error=f"La variante {variant.sku} no existe en la tienda",
                            )
                        )
                        continue
                    try:
                        if not store_ref:
                            store_ref = await client.default_variant_id(product_ref)
                        result = await client.update_stock(store_ref, variant.stock_qty)
                        items.append(
                            VariantStockResult(
                                variant_id=variant.internal_id,
                                store_ref=store_ref,
                                quantity=variant.stock_qty,
                                result=result,
                            )
                        )
                    except Exception as e:
                        logger.warning(
                            "variant_stock_update_failed",
                            extra={"store": credential.store_url, "variant_id": variant.internal_id, "error": str(e)},
                        )
                        items.append(
                            VariantStockResult(
                                variant_id=variant.internal_id,
                                store_ref=store_ref,
                                quantity=variant.stock_qty,
                                success=False,
                                error=str(e),
                            )
                        )
            failed = [item for item in items if not item.success]
            return StoreResult(
                store_url=credential.store_url,
                store_id=credential.store_id,
                success=not failed,
                sent_payload={item.store_ref or item.variant_id: item.quantity for item in items},
                items=items,
                error=f"{len(failed)} de {len(items)} variantes sin actualizar" if failed else None,
            )
        return handle

    async def post(
        self,
        company_id: str,
        auth_token: str,
        product: ProductLike,
        image_context: Optional[ImageContext] = None,
    ) -> Optional[FanoutReport]:
        """
        Create the product in every store that does not have it yet.

        Stores that already hold a mapping for the product are not called;
        their result is marked precreated.
        """
        return await self._run("product.post", company_id, auth_token, product, image_context, self._post_handler)

    async def put(
        self,
        company_id: str,
        auth_token: str,
        product: ProductLike,
        image_context: Optional[ImageContext] = None,
    ) -> Optional[FanoutReport]:
        """Update the product in every store that holds a mapping for it."""
        product = product if isinstance(product, ProductInput) else ProductInput.model_validate(product)
        require(product.product_id, "El ID del producto no puede estar vacio.")
        return await self._run("product.put", company_id, auth_token, product, image_context, self._put_handler)

    async def sync(
        self,
        company_id: str,
        auth_token: str,
        product: ProductLike,
        image_context: Optional[ImageContext] = None,
    ) -> Optional[FanoutReport]:
        """Update the product where it is mapped and create it everywhere else."""
        return await self._run("product.sync", company_id, auth_token, product, image_context, self._sync_handler)

    async def put_stock(
        self,
        company_id: str,
        auth_token: str,
        product: ProductLike,
    ) -> Optional[FanoutReport]:
        """
        Push the stock of every mapped variant to every store.

        A store succeeds only when all of its variant updates succeed; the
        per-variant outcomes are kept in the store result's items.
        """
        product = product if isinstance(product, ProductInput) else ProductInput.model_validate(product)
        require(product.product_id, "El ID del producto no puede estar vacio.")
        return await self._run("product.put_stock", company_id, auth_token, product, None, self._stock_handler)
