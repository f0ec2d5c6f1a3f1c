from decimal import Decimal

import pytest

from app.models.payment import PaymentTransaction
from app.schemas.payments import TransactionCreate, TransactionUpdate
from app.services import transaction_service
from app.services.errors import NotFoundError
from app.services.reconciliation_service import derive_payment_status, reconcile_booking


@pytest.mark.parametrize(
    "paid,total,expected",
    [
        ("0", "1000", "unpaid"),
        ("300", "1000", "deposit_paid"),
        ("999.95", "1000", "fully_paid"),
        ("999.94", "1000", "deposit_paid"),
        ("1200", "1000", "fully_paid"),
        ("0", "0", "unpaid"),
        ("50", "0", "unpaid"),
    ],
)
def test_derive_payment_status(paid, total, expected):
    assert derive_payment_status(Decimal(paid), Decimal(total)) == expected


def test_add_update_delete_keeps_balance_in_sync(db, make_booking):
    b = make_booking(total="1000")

    t1, booking = transaction_service.add_transaction(db, TransactionCreate(bookingId=b.id, amount=Decimal("300")), actor="u1")
    assert booking.amount_paid == Decimal("300")
    assert booking.payment_status == "deposit_paid"

    t2, booking = transaction_service.add_transaction(db, TransactionCreate(bookingId=b.id, amount=Decimal("700")), actor="u1")
    assert booking.amount_paid == Decimal("1000")
    assert booking.payment_status == "fully_paid"

    booking = transaction_service.delete_transaction(db, t1.id, actor="u1")
    assert booking.amount_paid == Decimal("700")
    assert booking.payment_status == "deposit_paid"

    _, booking = transaction_service.update_transaction(db, t2.id, TransactionUpdate(status="refunded"), actor="u1")
    assert booking.amount_paid == Decimal("0")
    assert booking.payment_status == "unpaid"


def test_only_paid_transactions_count(db, make_booking):
    b = make_booking(total="500")
    transaction_service.add_transaction(db, TransactionCreate(bookingId=b.id, amount=Decimal("200"), status="pending"), actor="u1")
    _, booking = transaction_service.add_transaction(db, TransactionCreate(bookingId=b.id, amount=Decimal("100")), actor="u1")

    assert booking.amount_paid == Decimal("100")


def test_payment_confirms_pending_booking(db, make_booking):
    b = make_booking(total="400", status="Pending")
    _, booking = transaction_service.add_transaction(db, TransactionCreate(bookingId=b.id, amount=Decimal("120")), actor="u1")

    assert booking.status == "Confirmed"


def test_cancelled_booking_keeps_status(db, make_booking):
    b = make_booking(total="400", status="Cancelled")
    _, booking = transaction_service.add_transaction(db, TransactionCreate(bookingId=b.id, amount=Decimal("120")), actor="u1")

    assert booking.status == "Cancelled"
    assert booking.payment_status == "deposit_paid"


def test_reconcile_overwrites_drifted_amount(db, make_booking):
    b = make_booking(total="1000", paid="999")
    db.add(PaymentTransaction(id="tx-1", booking_id=b.id, amount=Decimal("250"), status="paid", method="cash", details={}))
    db.commit()

    booking = reconcile_booking(db, b.id)
    assert booking.amount_paid == Decimal("250")


def test_reconcile_unknown_booking(db):
    with pytest.raises(NotFoundError):
        reconcile_booking(db, "missing")
