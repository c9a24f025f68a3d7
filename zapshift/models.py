import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, String, Integer, Float, DateTime, Text

from zapshift.database import Base

UNPAID = "unpaid"
PAID = "paid"


def _new_id():
    return uuid.uuid4().hex


def _utcnow():
    return datetime.now(timezone.utc)


class Parcel(Base):
    __tablename__ = "parcels"

    id = Column(String(32), primary_key=True, default=_new_id)
    name = Column(String, nullable=False)
    description = Column(Text)
    parcel_type = Column(String)
    weight = Column(Float)
    sender_name = Column(String)
    sender_email = Column(String, nullable=False, index=True)
    receiver_name = Column(String)
    receiver_email = Column(String)
    cost = Column(Integer, nullable=False)                   # major currency units
    payment_status = Column(String, nullable=False, default=UNPAID)   # unpaid | paid
    tracking_id = Column(String)                             # set once, on payment
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, index=True)


class Payment(Base):
    """Ledger entry for a completed checkout. Never updated or deleted."""

    __tablename__ = "payments"

    id = Column(String(32), primary_key=True, default=_new_id)
    amount = Column(Float, nullable=False)
    currency = Column(String, nullable=False)
    customer_email = Column(String, index=True)
    parcel_id = Column(String(32), unique=True, nullable=False)
    parcel_name = Column(String)
    tracking_id = Column(String, nullable=False)
    transaction_id = Column(String, unique=True, nullable=False)   # Stripe PaymentIntent ID
    payment_status = Column(String, nullable=False)
    paid_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, index=True)


class User(Base):
    __tablename__ = "users"

    id = Column(String(32), primary_key=True, default=_new_id)
    email = Column(String, unique=True, nullable=False, index=True)
    name = Column(String)
    photo_url = Column(String)
    role = Column(String, nullable=False, default="user")
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
