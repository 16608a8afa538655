"""OpenTelemetry helpers for store dispatch metrics."""

from typing import Optional

from opentelemetry import metrics
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import ConsoleMetricExporter, PeriodicExportingMetricReader

METER_NAME = "ave_crm_shopify"

_meter_provider_initialized = False


def init_metrics() -> None:
    """Install a meter provider with a console exporter, once per process."""
    global _meter_provider_initialized
    if _meter_provider_initialized:
        return
    reader = PeriodicExportingMetricReader(ConsoleMetricExporter())
    provider = MeterProvider(metric_readers=[reader])
    metrics.set_meter_provider(provider)
    _meter_provider_initialized = True


def get_dispatch_duration_histogram() -> Optional[object]:
    """Histogram of per-store dispatch durations."""
    meter = metrics.get_meter(METER_NAME)
    return meter.create_histogram(
        name="ave_shopify.store.dispatch.duration",
        unit="ms",
        description="Duration of one operation against one store",
    )


def get_dispatch_failure_counter() -> Optional[object]:
    """Counter of per-store dispatch failures."""
    meter = metrics.get_meter(METER_NAME)
    return meter.create_counter(
        name="ave_shopify.store.dispatch.failures",
        unit="1",
        description="Store operations that ended in an error",
    )
