"""Configuration management for the Ave CRM Shopify connector."""

import json
from pathlib import Path
from typing import Optional, Union
from pydantic import BaseModel, Field, ConfigDict


class CrmConfig(BaseModel):
    """Ave CRM API configuration."""
    base_url: str = Field(
        "https://api.aveonline.co/api-shopify/public/api",
        description="Base URL of the Ave Shopify API"
    )
    timeout_seconds: float = Field(30.0, gt=0, description="Timeout for CRM requests")


class ShopifyConfig(BaseModel):
    """Shopify Admin API configuration shared by every store."""
    api_version: str = Field("2025-07", description="Shopify API version")
    timeout_seconds: float = Field(30.0, gt=0, description="Timeout for store requests")
    location_id: Optional[str] = Field(
        None,
        description="Inventory location for stock updates (first active location if unset)"
    )


class RateLimitConfig(BaseModel):
    """Rate limiting configuration, applied per store client."""
    max_requests_per_second: float = Field(2.0, gt=0, description="Maximum API requests per second")
    burst_size: int = Field(10, gt=0, description="Maximum burst size for rate limiter")


class ProductConfig(BaseModel):
    """Product payload settings."""
    unique_handles: bool = Field(False, description="Append the product reference to generated handles")
    image_size: int = Field(600, gt=0, description="Declared width/height of product images")


class OrderConfig(BaseModel):
    """Order payload settings."""
    currency: str = Field("COP", description="Currency code (ISO 4217) sent with orders")
    default_cancel_reason: str = Field("DECLINED", description="Shopify cancel reason")


class FanoutConfig(BaseModel):
    """Store dispatch settings."""
    max_concurrent_stores: int = Field(
        1,
        ge=1,
        description="Stores processed at once (1 keeps the dispatch sequential)"
    )


class TelemetryConfig(BaseModel):
    """Metrics configuration."""
    console_export: bool = Field(False, description="Export dispatch metrics to the console")


class ConnectorConfig(BaseModel):
    """Main configuration for the Ave CRM Shopify connector."""
    crm: CrmConfig = Field(default_factory=CrmConfig)
    shopify: ShopifyConfig = Field(default_factory=ShopifyConfig)
    rate_limit: RateLimitConfig = Field(default_factory=RateLimitConfig)
    product: ProductConfig = Field(default_factory=ProductConfig)
    order: OrderConfig = Field(default_factory=OrderConfig)
    fanout: FanoutConfig = Field(default_factory=FanoutConfig)
    telemetry: TelemetryConfig = Field(default_factory=TelemetryConfig)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "crm": {
                    "base_url": "https://api.aveonline.co/api-shopify/public/api",
                    "timeout_seconds": 30
                },
                "shopify": {
                    "api_version": "2025-07",
                    "timeout_seconds": 30
                },
                "rate_limit": {
                    "max_requests_per_second": 2.0,
                    "burst_size": 10
                },
                "product": {
                    "unique_handles": False
                },
                "order": {
                    "currency": "COP",
                    "default_cancel_reason": "DECLINED"
                },
                "fanout": {
                    "max_concurrent_stores": 1
                },
                "telemetry": {
                    "console_export": False
                }
            }
        }
    )


def load_config(config_path: Union[str, Path]) -> ConnectorConfig:
    """Load configuration from a JSON file."""
    config_file = Path(config_path)
    if not config_file.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_file) as f:
        config_data = json.load(f)

    return ConnectorConfig(**config_data)
