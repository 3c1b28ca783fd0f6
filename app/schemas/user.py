from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class UserResponse(BaseModel):
    id: str
    email: str
    name: Optional[str] = None
    avatar_url: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class UserSyncRequest(BaseModel):
    """Profile fields from the identity provider; id and email come from the token."""
    model_config = ConfigDict(populate_by_name=True)

    name: Optional[str] = None
    avatar_url: Optional[str] = Field(None, alias="avatarUrl")
