"""Example usage of the Ave CRM Shopify connector."""

import asyncio
import json
import logging
import os

from ave_crm_shopify import AveCrmShopifyConnector, load_config
from ave_crm_shopify.models import ImageContext

logging.basicConfig(level=logging.INFO)


async def main():
    """Example: publish a product to every store of a company, then mirror an order status."""

    config = load_config("config.json")
    company_id = os.environ["AVE_COMPANY_ID"]
    auth_token = os.environ["AVE_TOKEN"]

    image_context = ImageContext(
        scheme="https",
        host="app.aveonline.co",
        base_path="/avestock",
        project_root="/var/www/avestock",
    )

    product = {
        "productName": "Camiseta Basica",
        "productRef": "CAM-001",
        "sugerido": 45000,
        "peso": 300,
        "unidades": 12,
        "productId": "501",
        "url": "public/images/501/camiseta.webp",
        "variants": [
            {"id": "601", "sku": "CAM-001-S", "stock": 5, "attributes": {"talla": "S"}},
            {"id": "602", "sku": "CAM-001-M", "stock": 7, "attributes": {"talla": "M"}},
        ],
    }

    async with AveCrmShopifyConnector(config, image_context=image_context) as connector:
        print("Publishing product...")
        report = await connector.product.sync(company_id, auth_token, product)
        if report is None:
            print("The company has no Shopify stores")
            return

        for store_url, result in report.results.items():
            status = "precreated" if result.precreated else ("ok" if result.success else result.error)
            print(f"- {store_url}: {status}")

        print("\nUpdating stock...")
        report = await connector.product.put_stock(company_id, auth_token, product)
        for store_url, result in report.results.items():
            print(f"- {store_url}: {len(result.items)} variants, success={result.success}")

        print("\nMirroring order status...")
        change = await connector.order.change_status(
            os.environ["AVE_ORDER_ID"], company_id, auth_token, os.environ["AVE_AGENT_ID"], "En reparto"
        )
        print(json.dumps(change.model_dump(mode="json"), indent=2, default=str))


if __name__ == "__main__":
    asyncio.run(main())
