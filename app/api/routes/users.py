import logging
from typing import List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.errors import InvalidInput, NotFound, StorageError, Unauthorized
from app.db.session import get_db
from app.dependencies.auth import get_current_user_id, verify_supabase_token
from app.models.user import User
from app.schemas.billing import PurchaseResponse
from app.schemas.user import UserResponse, UserSyncRequest
from app.services.purchases import list_active_purchases

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/profile", response_model=UserResponse)
def get_profile(
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    """Get current user profile"""
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise NotFound("User not found")
    return user


@router.get("/subscriptions", response_model=List[PurchaseResponse])
def get_subscriptions(
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    """Active subscriptions and purchases for the current user, newest first."""
    rows = list_active_purchases(db, user_id)
    logger.info("[users] Fetched %d active purchases for user %s", len(rows), user_id)
    return rows


@router.post("/sync", response_model=UserResponse)
def sync_user(
    profile: Optional[UserSyncRequest] = None,
    db: Session = Depends(get_db),
    claims: dict = Depends(verify_supabase_token),
):
    """
    Create or update the caller's row from their verified token.
    Called by the frontend after sign-in so webhook email lookups can find the user.
    """
    profile = profile or UserSyncRequest()
    user_id = claims["sub"]
    email = (claims.get("email") or "").strip().lower()
    if not email:
        raise Unauthorized("Token missing email claim")

    user = db.query(User).filter(User.id == user_id).first()
    if user is None:
        user = User(id=user_id, email=email)
        db.add(user)
    else:
        user.email = email
    if profile.name is not None:
        user.name = profile.name
    if profile.avatar_url is not None:
        user.avatar_url = profile.avatar_url

    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        logger.warning("[users] Email %s already belongs to another user: %s", email, e)
        raise InvalidInput("Email already in use")
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("[users] Failed to sync user %s: %s", user_id, e)
        raise StorageError("Failed to save profile") from e
    db.refresh(user)
    return user
