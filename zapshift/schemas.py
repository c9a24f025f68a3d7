from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# --- parcels ---

class ParcelCreate(CamelModel):
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    parcel_type: Optional[str] = None
    weight: Optional[float] = Field(None, gt=0)
    sender_name: Optional[str] = None
    sender_email: str = Field(..., min_length=3)
    receiver_name: Optional[str] = None
    receiver_email: Optional[str] = None
    cost: int = Field(..., gt=0)


class ParcelOut(CamelModel):
    id: str
    name: str
    description: Optional[str] = None
    parcel_type: Optional[str] = None
    weight: Optional[float] = None
    sender_name: Optional[str] = None
    sender_email: str
    receiver_name: Optional[str] = None
    receiver_email: Optional[str] = None
    cost: int
    payment_status: str
    tracking_id: Optional[str] = None
    created_at: datetime


# --- users ---

class UserCreate(CamelModel):
    email: str = Field(..., min_length=3)
    name: Optional[str] = None
    photo_url: Optional[str] = None


class UserInsertResult(CamelModel):
    inserted: bool
    id: str


# --- checkout ---

class CheckoutRequest(CamelModel):
    # Accepts 50 or "50"; validated by the route so the error stays a 400.
    cost: Any = None
    parcel_name: Optional[str] = None
    parcel_id: str = Field(..., min_length=1)
    sender_email: str = Field(..., min_length=3)
    success_url: Optional[str] = None
    cancel_url: Optional[str] = None


class CheckoutResponse(BaseModel):
    id: str
    url: Optional[str] = None


class SessionMetadata(CamelModel):
    """Metadata attached to every checkout session this service creates."""

    parcel_id: str = Field(..., min_length=1)
    parcel_name: Optional[str] = None

    def to_stripe(self) -> dict:
        data = {"parcelId": self.parcel_id}
        if self.parcel_name:
            data["parcelName"] = self.parcel_name
        return data


class CheckoutSession(BaseModel):
    """Read-only view of a Stripe checkout session."""

    session_id: str
    payment_status: str
    amount_total: Optional[int] = None
    currency: Optional[str] = None
    customer_email: Optional[str] = None
    metadata: Optional[SessionMetadata] = None
    payment_intent: Optional[str] = None


class CreatedSession(BaseModel):
    session_id: str
    redirect_url: Optional[str] = None


# --- payments ---

class PaymentOut(CamelModel):
    id: str
    amount: float
    currency: str
    customer_email: Optional[str] = None
    parcel_id: str
    parcel_name: Optional[str] = None
    tracking_id: str
    transaction_id: str
    payment_status: str
    paid_at: datetime


class PaymentSuccessResponse(CamelModel):
    success: bool
    status: str
    message: Optional[str] = None
    tracking_id: Optional[str] = None
    transaction_id: Optional[str] = None
    payment_id: Optional[str] = None
    parcel_id: Optional[str] = None


class DeleteResult(BaseModel):
    deleted: bool

