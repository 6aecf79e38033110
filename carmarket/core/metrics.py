import time
import logging
from functools import wraps
from typing import Optional

from prometheus_client import Counter, Histogram, Info, generate_latest
from prometheus_client.core import CollectorRegistry

logger = logging.getLogger(__name__)

# Prometheus Registry
REGISTRY = CollectorRegistry()

service_calls_total = Counter(
    'carmarket_service_calls_total',
    'Total service method calls',
    ['status', 'service', 'method'],
    registry=REGISTRY
)

service_call_duration_seconds = Histogram(
    'carmarket_service_call_duration_seconds',
    'Service method duration in seconds',
    ['service', 'method'],
    buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 2.0, 5.0],
    registry=REGISTRY
)

cache_lookups_total = Counter(
    'carmarket_cache_lookups_total',
    'Cache lookups by cache name and outcome',
    ['cache', 'outcome'],
    registry=REGISTRY
)

system_info = Info(
    'carmarket_info',
    'System information',
    registry=REGISTRY
)
system_info.info({
    'version': '1.0.0',
    'service': 'carmarket'
})


def record_cache_lookup(cache_name: str, hit: bool) -> None:
    cache_lookups_total.labels(cache=cache_name, outcome='hit' if hit else 'miss').inc()


def track_performance(service_name: Optional[str] = None):
    """
    Decorator to track duration and outcome of async service methods

    Usage:
    @track_performance(service_name="CarService")
    async def search_cars(self, request):
        ...
    """
    def decorator(func):
        @wraps(func)
        async def wrapper(*args, **kwargs):
            actual_service_name = service_name or (args[0].__class__.__name__ if args else "Unknown")
            method_name = func.__name__

            start_time = time.perf_counter()
            success = False

            try:
                result = await func(*args, **kwargs)
                success = True
                return result
            except Exception as e:
                logger.warning(f"Error in {actual_service_name}.{method_name}: {e}")
                raise
            finally:
                duration_seconds = time.perf_counter() - start_time

                service_calls_total.labels(
                    status='success' if success else 'error',
                    service=actual_service_name,
                    method=method_name
                ).inc()
                service_call_duration_seconds.labels(
                    service=actual_service_name,
                    method=method_name
                ).observe(duration_seconds)

                logger.debug(
                    f"Method executed: {actual_service_name}.{method_name}",
                    extra={
                        'service_name': actual_service_name,
                        'method_name': method_name,
                        'duration_ms': duration_seconds * 1000,
                        'success': success,
                    }
                )

        return wrapper
    return decorator


def get_prometheus_metrics() -> bytes:
    """Get Prometheus metrics in text format"""
    return generate_latest(REGISTRY)
