"""Manual payment ledger edits. Every mutation re-derives the booking balance before commit."""
import uuid

from sqlalchemy.orm import Session

from app.core.dates import as_utc
from app.models.booking import Booking
from app.models.payment import PaymentTransaction
from app.schemas.payments import TransactionCreate, TransactionUpdate
from app.services.audit_service import log_audit
from app.services.errors import NotFoundError
from app.services.reconciliation_service import reconcile_booking


def list_transactions(db: Session, booking_id: str | None = None) -> list[PaymentTransaction]:
    q = db.query(PaymentTransaction)
    if booking_id:
        q = q.filter(PaymentTransaction.booking_id == booking_id)
    return q.order_by(PaymentTransaction.created_at.desc()).all()


def add_transaction(db: Session, data: TransactionCreate, *, actor: str) -> tuple[PaymentTransaction, Booking]:
    if not db.get(Booking, data.bookingId):
        raise NotFoundError("Booking not found")
    tx = PaymentTransaction(
        id=str(uuid.uuid4()),
        booking_id=data.bookingId,
        amount=data.amount,
        status=data.status,
        method=data.method,
        provider_ref=data.ref,
        details={"method": data.method, "ref": data.ref, "source": "manual"},
    )
    if data.createdAt:
        tx.created_at = as_utc(data.createdAt)
    db.add(tx)
    booking = reconcile_booking(db, data.bookingId, commit=False)
    log_audit(db, actor, "payment.created", "payment_transaction", tx.id, {"booking_id": data.bookingId, "amount": data.amount, "status": data.status})
    db.commit()
    db.refresh(tx)
    db.refresh(booking)
    return tx, booking


def update_transaction(db: Session, transaction_id: str, patch: TransactionUpdate, *, actor: str) -> tuple[PaymentTransaction, Booking]:
    tx = db.get(PaymentTransaction, transaction_id)
    if not tx:
        raise NotFoundError("Payment not found")
    fields = patch.model_dump(exclude_unset=True)
    if fields.get("amount") is not None:
        tx.amount = fields["amount"]
    if fields.get("status"):
        tx.status = fields["status"]
    if fields.get("method"):
        tx.method = fields["method"]
    if "ref" in fields:
        tx.provider_ref = fields["ref"] or ""
    if fields.get("createdAt"):
        tx.created_at = as_utc(fields["createdAt"])
    tx.details = {**(tx.details or {}), "method": tx.method, "ref": tx.provider_ref, "edited_by": actor}
    booking = reconcile_booking(db, tx.booking_id, commit=False)
    log_audit(db, actor, "payment.updated", "payment_transaction", tx.id, fields)
    db.commit()
    db.refresh(booking)
    return tx, booking


def delete_transaction(db: Session, transaction_id: str, *, actor: str) -> Booking:
    tx = db.get(PaymentTransaction, transaction_id)
    if not tx:
        raise NotFoundError("Payment not found")
    booking_id = tx.booking_id
    log_audit(db, actor, "payment.deleted", "payment_transaction", tx.id, {"booking_id": booking_id, "amount": tx.amount})
    db.delete(tx)
    db.flush()
    booking = reconcile_booking(db, booking_id, commit=False)
    db.commit()
    db.refresh(booking)
    return booking
