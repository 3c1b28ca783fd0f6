"""
Purchase row persistence.

Every mutation touches a single row and is keyed on `dodo_session_id`, so redelivered
webhooks and concurrent deliveries for the same subscription converge on one row.
"""
import logging
from typing import Optional

from sqlalchemy import func
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.errors import StorageError
from app.models.purchase import Purchase, PurchaseStatus
from app.models.user import User

logger = logging.getLogger(__name__)


def _insert_for(db: Session):
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        return postgresql.insert
    if dialect == "sqlite":
        return sqlite.insert
    raise StorageError(f"Unsupported database dialect for upserts: {dialect}")


def find_user_by_email(db: Session, email: Optional[str]) -> Optional[User]:
    if not email:
        return None
    return db.query(User).filter(func.lower(User.email) == email.strip().lower()).first()


def get_purchase(db: Session, dodo_session_id: str, user_id: Optional[str] = None) -> Optional[Purchase]:
    query = db.query(Purchase).filter(Purchase.dodo_session_id == dodo_session_id)
    if user_id is not None:
        query = query.filter(Purchase.user_id == user_id)
    return query.first()


def insert_purchase_if_absent(db: Session, values: dict) -> bool:
    """
    INSERT ... ON CONFLICT (dodo_session_id) DO NOTHING.
    Returns True when a new row was written, False when it already existed.
    """
    insert = _insert_for(db)
    stmt = insert(Purchase).values(**values).on_conflict_do_nothing(
        index_elements=[Purchase.dodo_session_id]
    )
    try:
        result = db.execute(stmt)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("[purchases] Insert failed for %s: %s", values.get("dodo_session_id"), e)
        raise StorageError("Failed to save purchase") from e
    return bool(result.rowcount)


def upsert_purchase(db: Session, values: dict, update_fields: tuple) -> None:
    """INSERT ... ON CONFLICT (dodo_session_id) DO UPDATE the given fields."""
    insert = _insert_for(db)
    stmt = insert(Purchase).values(**values)
    set_ = {name: getattr(stmt.excluded, name) for name in update_fields}
    set_["updated_at"] = func.now()
    stmt = stmt.on_conflict_do_update(index_elements=[Purchase.dodo_session_id], set_=set_)
    try:
        db.execute(stmt)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("[purchases] Upsert failed for %s: %s", values.get("dodo_session_id"), e)
        raise StorageError("Failed to save subscription") from e


def update_purchase(db: Session, purchase: Purchase, status: str, payment_data: dict) -> Purchase:
    if status not in PurchaseStatus.ALL:
        raise ValueError(f"Unknown purchase status: {status}")
    purchase.status = status
    purchase.payment_data = payment_data
    try:
        db.commit()
        db.refresh(purchase)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("[purchases] Update failed for %s: %s", purchase.dodo_session_id, e)
        raise StorageError("Failed to update subscription status") from e
    return purchase


def list_active_purchases(db: Session, user_id: str) -> list:
    return (
        db.query(Purchase)
        .filter(Purchase.user_id == user_id, Purchase.status == PurchaseStatus.ACTIVE)
        .order_by(Purchase.created_at.desc(), Purchase.id.desc())
        .all()
    )
