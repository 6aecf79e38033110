from prometheus_client import Counter
from slowapi import Limiter
from slowapi.util import get_remote_address

from carmarket.core.config import RATE_LIMIT_ENABLED, RATE_LIMIT_STORAGE_URI
from carmarket.core.metrics import REGISTRY

PUBLIC_LIMIT = "100/minute"
SEARCH_LIMIT = "50/minute"
AUTH_LIMIT = "20/minute"

limiter = Limiter(
    key_func=get_remote_address,
    storage_uri=RATE_LIMIT_STORAGE_URI,
    enabled=RATE_LIMIT_ENABLED,
)

# Metric for monitoring
rate_limit_exceeded_counter = Counter(
    'carmarket_rate_limit_exceeded_total',
    'Total rate limit violations',
    ['endpoint'],
    registry=REGISTRY
)
