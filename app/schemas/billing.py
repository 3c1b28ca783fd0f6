from datetime import datetime
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictFloat, StrictInt, StrictStr


class CreateCheckoutRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    product_id: Optional[StrictStr] = Field(None, alias="productId")
    success_url: Optional[StrictStr] = Field(None, alias="successUrl")
    cancel_url: Optional[StrictStr] = Field(None, alias="cancelUrl")
    # Client clock, epoch milliseconds
    timestamp: Optional[Union[StrictInt, StrictFloat]] = None


class CheckoutResponse(BaseModel):
    url: str


class CancelSubscriptionRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    subscription_id: Optional[StrictStr] = Field(None, alias="subscriptionId")
    cancel_immediately: StrictBool = Field(False, alias="cancelImmediately")


class PurchaseResponse(BaseModel):
    id: int
    user_id: str
    dodo_session_id: str
    product_id: Optional[str] = None
    amount: Optional[int] = None
    currency: str
    status: str
    plan_type: Optional[str] = None
    payment_data: Optional[Any] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
