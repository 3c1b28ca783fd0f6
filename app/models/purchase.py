from sqlalchemy import CheckConstraint, Column, Integer, String, ForeignKey, DateTime, JSON
from sqlalchemy.sql import func
from app.db.base import Base


class PurchaseStatus:
    COMPLETED = "completed"   # one-time payment captured
    ACTIVE = "active"         # subscription currently billing
    CANCELLED = "cancelled"   # terminated now, or scheduled (see payment_data)
    ON_HOLD = "on_hold"       # payment issue, suspended
    FAILED = "failed"
    EXPIRED = "expired"

    ALL = (COMPLETED, ACTIVE, CANCELLED, ON_HOLD, FAILED, EXPIRED)


class Purchase(Base):
    """
    One row per Dodo checkout session or subscription.

    `dodo_session_id` holds the checkout session id for one-time purchases and the
    subscription id for subscriptions. It is unique, so every insert path is
    idempotent on webhook redelivery.
    """

    __tablename__ = "purchases"
    __table_args__ = (
        CheckConstraint(
            "status IN ('completed', 'active', 'cancelled', 'on_hold', 'failed', 'expired')",
            name="ck_purchases_status",
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    dodo_session_id = Column(String, unique=True, nullable=False, index=True)
    product_id = Column(String, nullable=True)

    # Minor currency units (cents), as Dodo sends them
    amount = Column(Integer, nullable=True)
    currency = Column(String, nullable=False, default="usd")

    status = Column(String, nullable=False, default=PurchaseStatus.COMPLETED)
    plan_type = Column(String, nullable=True)

    # Last provider payload seen for this row (cancel_at_next_billing_date, next_billing_date, ...)
    payment_data = Column(JSON, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
