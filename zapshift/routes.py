import logging
import re
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from zapshift.auth import CallerIdentity, require_same_email, verify_token
from zapshift.config import SITE_DOMAIN
from zapshift.database import get_db
from zapshift.errors import InvalidRequest, NotFound
from zapshift.models import Parcel, User, PAID
from zapshift.reconciliation import PaymentReconciler
from zapshift.schemas import (
    CheckoutRequest,
    CheckoutResponse,
    DeleteResult,
    ParcelCreate,
    ParcelOut,
    PaymentOut,
    PaymentSuccessResponse,
    SessionMetadata,
    UserCreate,
    UserInsertResult,
)
from zapshift.stores import ParcelStore, PaymentStore, UserStore, commit
from zapshift.stripe_service import StripeGateway, get_gateway

logger = logging.getLogger(__name__)

router = APIRouter()

PARCEL_ID_RE = re.compile(r"^[0-9a-f]{32}$")


def _parse_cost(value) -> int:
    if isinstance(value, bool):
        raise InvalidRequest("Invalid cost amount")
    if isinstance(value, int):
        amount = value
    elif isinstance(value, str) and value.strip().isdecimal():
        amount = int(value.strip())
    else:
        raise InvalidRequest("Invalid cost amount")
    if amount <= 0:
        raise InvalidRequest("Invalid cost amount")
    return amount


def _load_parcel(parcels: ParcelStore, parcel_id: str) -> Parcel:
    parcel = parcels.find_by_id(parcel_id)
    if parcel is None:
        raise NotFound(f"Parcel {parcel_id} not found")
    return parcel


# --- parcels ---

@router.get("/parcels", response_model=List[ParcelOut])
def list_parcels(
    email: Optional[str] = None,
    payment_status: Optional[str] = Query(None, alias="paymentStatus"),
    db: Session = Depends(get_db),
):
    return ParcelStore(db).find_many(sender_email=email, payment_status=payment_status)


@router.get("/parcels/{parcel_id}", response_model=ParcelOut)
def get_parcel(parcel_id: str, db: Session = Depends(get_db)):
    return _load_parcel(ParcelStore(db), parcel_id)


@router.post("/parcels", response_model=ParcelOut, status_code=status.HTTP_201_CREATED)
def create_parcel(request: ParcelCreate, db: Session = Depends(get_db)):
    parcels = ParcelStore(db)
    parcel = Parcel(**request.model_dump())
    parcels.insert(parcel)
    commit(db)
    db.refresh(parcel)
    logger.info("Parcel %s booked by %s", parcel.id, parcel.sender_email)
    return parcel


@router.delete("/parcels/{parcel_id}", response_model=DeleteResult)
def delete_parcel(parcel_id: str, db: Session = Depends(get_db)):
    if not PARCEL_ID_RE.match(parcel_id):
        raise InvalidRequest("Invalid ID format")

    parcels = ParcelStore(db)
    parcel = _load_parcel(parcels, parcel_id)
    if parcel.payment_status == PAID:
        raise InvalidRequest("Paid parcels cannot be deleted")

    deleted = parcels.delete_by_id(parcel_id)
    commit(db)
    return {"deleted": deleted}


# --- users ---

@router.post("/users", response_model=UserInsertResult, status_code=status.HTTP_201_CREATED)
def create_user(request: UserCreate, db: Session = Depends(get_db)):
    users = UserStore(db)
    existing = users.find_by_email(request.email)
    if existing:
        return JSONResponse(content={"inserted": False, "id": existing.id})

    user_id = users.insert(User(**request.model_dump()))
    commit(db)
    return {"inserted": True, "id": user_id}


# --- payments ---

@router.post("/create-checkout-session", response_model=CheckoutResponse)
def create_checkout_session(
    request: CheckoutRequest,
    db: Session = Depends(get_db),
    gateway: StripeGateway = Depends(get_gateway),
):
    cost = _parse_cost(request.cost)

    parcel = _load_parcel(ParcelStore(db), request.parcel_id)
    if parcel.payment_status == PAID:
        raise InvalidRequest("Parcel is already paid")
    if cost != parcel.cost:
        raise InvalidRequest("Cost does not match the booked parcel")

    parcel_name = request.parcel_name or parcel.name
    description = f"Please pay for: {parcel_name}" if parcel_name else "Parcel Delivery"
    created = gateway.create_session(
        cost=cost,
        description=description,
        customer_email=request.sender_email,
        metadata=SessionMetadata(parcel_id=parcel.id, parcel_name=parcel_name),
        success_url=request.success_url
        or f"{SITE_DOMAIN}/dashboard/payment-success?session_id={{CHECKOUT_SESSION_ID}}",
        cancel_url=request.cancel_url or f"{SITE_DOMAIN}/dashboard/payment-cancelled",
    )
    return {"id": created.session_id, "url": created.redirect_url}


@router.patch("/payment-success", response_model=PaymentSuccessResponse, response_model_exclude_none=True)
def payment_success(
    session_id: Optional[str] = None,
    db: Session = Depends(get_db),
    gateway: StripeGateway = Depends(get_gateway),
):
    result = PaymentReconciler(db, gateway).reconcile(session_id)

    if not result.succeeded:
        body = PaymentSuccessResponse(
            success=False,
            status=result.outcome.value,
            message="Payment has not been completed",
        )
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=body.model_dump(by_alias=True, exclude_none=True),
        )

    return PaymentSuccessResponse(
        success=True,
        status=result.outcome.value,
        tracking_id=result.tracking_id,
        transaction_id=result.transaction_id,
        payment_id=result.payment_id,
        parcel_id=result.parcel_id,
    )


@router.get("/payments", response_model=List[PaymentOut])
def list_payments(
    email: Optional[str] = None,
    identity: CallerIdentity = Depends(verify_token),
    db: Session = Depends(get_db),
):
    email = email or identity.email
    require_same_email(identity, email)
    return PaymentStore(db).find_by_email(email)
