from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel


class AdminStats(BaseModel):
    total_users: int
    active_users: int
    total_dealers: int
    active_dealers: int
    total_cars: int
    active_cars: int
    total_favorites: int
    average_cars_per_dealer: Decimal
    last_updated: datetime


class CacheEvictResponse(BaseModel):
    cache_name: str
    evicted: int
