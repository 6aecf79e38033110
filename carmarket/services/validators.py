from decimal import Decimal
from typing import Tuple

from carmarket.models.user import UserRole
from carmarket.services.exceptions import BusinessRuleError, PermissionDeniedError


class BusinessRules:
    SIMILAR_PRICE_TOLERANCE = Decimal("0.2")
    SIMILAR_YEAR_TOLERANCE = 2
    SELF_REGISTRATION_ROLES = (UserRole.BUYER, UserRole.DEALER)

    @staticmethod
    def similar_price_band(price: Decimal) -> Tuple[Decimal, Decimal]:
        delta = price * BusinessRules.SIMILAR_PRICE_TOLERANCE
        return price - delta, price + delta

    @staticmethod
    def similar_year_band(year: int) -> Tuple[int, int]:
        return year - BusinessRules.SIMILAR_YEAR_TOLERANCE, year + BusinessRules.SIMILAR_YEAR_TOLERANCE

    @staticmethod
    def validate_self_registration_role(role: UserRole):
        if role not in BusinessRules.SELF_REGISTRATION_ROLES:
            raise BusinessRuleError("Role must be BUYER or DEALER", "INVALID_ROLE")

    @staticmethod
    def ensure_can_modify_car(car, actor):
        """Admins may modify any listing; dealers only their own."""
        if actor.role == UserRole.ADMIN:
            return
        if car.dealer is None or car.dealer.user_id != actor.id:
            raise PermissionDeniedError("You can only modify your own cars")

    @staticmethod
    def ensure_not_self(actor, user_id, action: str):
        if actor.id == user_id:
            raise BusinessRuleError(f"Administrators cannot {action} their own account")
