"""
Payment reconciliation.

Takes the reference of a checkout session, confirms it with Stripe and, the
first time the session is seen as paid, flips the parcel to ``paid``, assigns
its tracking id and appends a ledger entry, all in one transaction. Every later
call for the same parcel is answered from the stored state without writing.

Concurrent calls for the same parcel are settled by the conditional update in
``ParcelStore.mark_paid_if_unpaid``: only one of them can move the row out of
``unpaid``, the others report the winner's result.
"""

import enum
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.orm import Session

from zapshift.errors import DataIntegrity, InvalidRequest
from zapshift.models import Payment, PAID
from zapshift.schemas import CheckoutSession
from zapshift.stores import ParcelStore, PaymentStore, commit
from zapshift.tracking import generate_tracking_id

logger = logging.getLogger(__name__)


def _transaction_id(session: CheckoutSession) -> str:
    # Free checkouts have no payment intent; the session id stands in.
    return session.payment_intent or session.session_id


class Outcome(str, enum.Enum):
    CONFIRMED = "confirmed"
    ALREADY_PROCESSED = "already_processed"
    NOT_PAID = "not_paid"


@dataclass(frozen=True)
class ReconciliationResult:
    outcome: Outcome
    session_id: str
    parcel_id: Optional[str] = None
    tracking_id: Optional[str] = None
    transaction_id: Optional[str] = None
    payment_id: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.outcome is not Outcome.NOT_PAID


class PaymentReconciler:
    def __init__(self, db: Session, gateway, parcels: ParcelStore = None, payments: PaymentStore = None):
        self.db = db
        self.gateway = gateway
        self.parcels = parcels or ParcelStore(db)
        self.payments = payments or PaymentStore(db)

    def reconcile(self, session_reference: str) -> ReconciliationResult:
        if not session_reference or not session_reference.strip():
            raise InvalidRequest("session_id is required")

        session = self.gateway.retrieve_session(session_reference)
        if session.payment_status != PAID:
            logger.info("Session %s not paid (status=%s)", session.session_id, session.payment_status)
            return ReconciliationResult(Outcome.NOT_PAID, session_id=session.session_id)

        if session.metadata is None:
            raise DataIntegrity(f"Session {session.session_id} carries no parcel metadata")
        parcel_id = session.metadata.parcel_id
        parcel = self.parcels.find_by_id(parcel_id)
        if parcel is None:
            raise DataIntegrity(f"Session {session.session_id} references unknown parcel {parcel_id}")

        if parcel.payment_status == PAID:
            return self._already_processed(session, parcel_id)

        tracking_id = generate_tracking_id()
        if not self.parcels.mark_paid_if_unpaid(parcel_id, tracking_id):
            # Another reconciliation moved the parcel between our read and write.
            self.db.rollback()
            return self._already_processed(session, parcel_id)

        payment_id = self.payments.insert(self._ledger_entry(session, parcel_id, tracking_id))
        commit(self.db)

        logger.info(
            "Parcel %s paid: tracking=%s transaction=%s payment=%s",
            parcel_id, tracking_id, _transaction_id(session), payment_id,
        )
        return ReconciliationResult(
            Outcome.CONFIRMED,
            session_id=session.session_id,
            parcel_id=parcel_id,
            tracking_id=tracking_id,
            transaction_id=_transaction_id(session),
            payment_id=payment_id,
        )

    def _already_processed(self, session: CheckoutSession, parcel_id: str) -> ReconciliationResult:
        parcel = self.parcels.find_by_id(parcel_id)
        if parcel is None or parcel.payment_status != PAID:
            raise DataIntegrity(f"Parcel {parcel_id} changed during reconciliation")
        existing = self.payments.find_by_parcel_id(parcel_id)
        logger.warning("Session %s already reconciled for parcel %s", session.session_id, parcel_id)
        return ReconciliationResult(
            Outcome.ALREADY_PROCESSED,
            session_id=session.session_id,
            parcel_id=parcel_id,
            tracking_id=parcel.tracking_id,
            transaction_id=_transaction_id(session),
            payment_id=existing.id if existing else None,
        )

    @staticmethod
    def _ledger_entry(session: CheckoutSession, parcel_id: str, tracking_id: str) -> Payment:
        return Payment(
            amount=(session.amount_total or 0) / 100,
            currency=session.currency,
            customer_email=session.customer_email,
            parcel_id=parcel_id,
            parcel_name=session.metadata.parcel_name,
            tracking_id=tracking_id,
            transaction_id=_transaction_id(session),
            payment_status=PAID,
            paid_at=datetime.now(timezone.utc),
        )
