"""
Repositories over an injected SQLAlchemy session.

Stores flush but never commit: the caller owns the unit of work and ends it
with :func:`commit`. Database failures surface as ``StoreUnavailable``;
constraint violations as ``DataIntegrity``.
"""

import logging
from contextlib import contextmanager
from typing import List, Optional

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from zapshift.errors import DataIntegrity, StoreUnavailable
from zapshift.models import Parcel, Payment, User, PAID, UNPAID

logger = logging.getLogger(__name__)


@contextmanager
def store_errors(db: Session, action: str):
    try:
        yield
    except IntegrityError as exc:
        db.rollback()
        logger.warning("Constraint violated while trying to %s: %s", action, exc.orig)
        raise DataIntegrity(f"Could not {action}: conflicting record") from exc
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("Database error while trying to %s: %s", action, exc)
        raise StoreUnavailable(f"Could not {action}") from exc


def commit(db: Session) -> None:
    with store_errors(db, "commit changes"):
        db.commit()


class ParcelStore:
    def __init__(self, db: Session):
        self.db = db

    def find_by_id(self, parcel_id: str) -> Optional[Parcel]:
        with store_errors(self.db, "load parcel"):
            return self.db.get(Parcel, parcel_id)

    def find_many(self, sender_email: str = None, payment_status: str = None) -> List[Parcel]:
        with store_errors(self.db, "list parcels"):
            query = self.db.query(Parcel)
            if sender_email:
                query = query.filter(Parcel.sender_email == sender_email)
            if payment_status:
                query = query.filter(Parcel.payment_status == payment_status)
            return query.order_by(Parcel.created_at.desc()).all()

    def insert(self, parcel: Parcel) -> str:
        parcel.payment_status = UNPAID
        parcel.tracking_id = None
        with store_errors(self.db, "save parcel"):
            self.db.add(parcel)
            self.db.flush()
        return parcel.id

    def mark_paid_if_unpaid(self, parcel_id: str, tracking_id: str) -> bool:
        """Compare-and-set from unpaid to paid. Returns whether this call won."""
        stmt = (
            update(Parcel)
            .where(Parcel.id == parcel_id, Parcel.payment_status == UNPAID)
            .values(payment_status=PAID, tracking_id=tracking_id)
            .execution_options(synchronize_session=False)
        )
        with store_errors(self.db, "update parcel status"):
            result = self.db.execute(stmt)
        return result.rowcount == 1

    def delete_by_id(self, parcel_id: str) -> bool:
        with store_errors(self.db, "delete parcel"):
            deleted = self.db.query(Parcel).filter(Parcel.id == parcel_id).delete(
                synchronize_session=False
            )
        return deleted == 1


class PaymentStore:
    """Append-only payment ledger."""

    def __init__(self, db: Session):
        self.db = db

    def insert(self, payment: Payment) -> str:
        with store_errors(self.db, "record payment"):
            self.db.add(payment)
            self.db.flush()
        return payment.id

    def find_by_parcel_id(self, parcel_id: str) -> Optional[Payment]:
        with store_errors(self.db, "load payment"):
            return self.db.query(Payment).filter_by(parcel_id=parcel_id).first()

    def find_by_email(self, email: str) -> List[Payment]:
        with store_errors(self.db, "list payments"):
            return (
                self.db.query(Payment)
                .filter(Payment.customer_email == email)
                .order_by(Payment.paid_at.desc())
                .all()
            )


class UserStore:
    def __init__(self, db: Session):
        self.db = db

    def find_by_email(self, email: str) -> Optional[User]:
        with store_errors(self.db, "load user"):
            return self.db.query(User).filter_by(email=email).first()

    def insert(self, user: User) -> str:
        with store_errors(self.db, "save user"):
            self.db.add(user)
            self.db.flush()
        return user.id
