from app.models.user import User
from app.models.purchase import Purchase, PurchaseStatus

__all__ = [
    "User",
    "Purchase",
    "PurchaseStatus",
]
