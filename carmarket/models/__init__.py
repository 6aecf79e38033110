# Alembic will detect models here
from .user import User, UserRole
from .dealer import Dealer
from .car import Car, CarFeatures, CarImage, Condition, FuelType, Transmission, VehicleType
from .favorite import Favorite
