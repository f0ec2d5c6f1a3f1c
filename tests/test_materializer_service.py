import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from app.models.audit_log import AuditLog
from app.models.booking import Booking
from app.models.email_log import EmailLog
from app.models.extra import Extra
from app.models.payment import PaymentTransaction
from app.models.payment_event import PaymentEvent
from app.models.payment_token import PaymentToken
from app.schemas.booking import BookingUpdate
from app.schemas.checkout import CheckoutIntent, PaymentLinkIntent, intent_from_metadata
from app.services import booking_service, materializer_service, notification_service, payment_link_service
from app.services.reconciliation_service import reconcile_booking
from app.services.stripe_gateway import METADATA_VALUE_LENGTH
from app.services.materializer_service import _LedgerWriteFailed, is_payable_event, materialize_checkout

START = datetime(2030, 6, 3, 14, tzinfo=timezone.utc)
END = datetime(2030, 6, 6, 10, tzinfo=timezone.utc)


def _intent(boat_id="boat-1", total="376", due="113", option="deposit") -> CheckoutIntent:
    return CheckoutIntent(
        boat_id=boat_id,
        model_id="model-s",
        client_name="Rui Lopes",
        client_email="rui@example.com",
        client_phone="+351900000000",
        start_time=START,
        end_time=END,
        guests=2,
        total_price=Decimal(total),
        deposit_amount=Decimal("113"),
        amount_due=Decimal(due),
        payment_option=option,
        extras=[["late", 1]],
        billing_nif="501234567",
    )


def test_metadata_survives_the_processor():
    intent = _intent()
    meta = intent.to_metadata()

    assert all(isinstance(v, str) for v in meta.values())
    assert intent_from_metadata(meta) == intent
    assert isinstance(intent_from_metadata({"booking_id": "b1", "token_id": "t1", "amount_due": "70.00"}), PaymentLinkIntent)


def test_incomplete_metadata_is_rejected():
    with pytest.raises(ValueError):
        intent_from_metadata({"boat_id": "boat-1"})


def test_only_paid_checkout_events_are_payable(checkout_event):
    meta = _intent().to_metadata()
    assert is_payable_event(checkout_event(meta, 11300))
    assert is_payable_event(checkout_event(meta, 11300, event_type="checkout.session.async_payment_succeeded"))
    assert not is_payable_event(checkout_event(meta, 11300, payment_status="unpaid"))
    assert not is_payable_event(checkout_event(meta, 11300, event_type="payment_intent.created"))


def test_deposit_creates_confirmed_booking(db, catalog, checkout_event):
    event = checkout_event(_intent().to_metadata(), 11300, session_id="cs_dep")
    r = materialize_checkout(db, event)

    assert r.created and not r.duplicate and r.ledger_recorded
    b = db.get(Booking, r.booking_id)
    assert b.houseboat_id == "boat-1"
    assert b.status == "Confirmed"
    assert b.source == "website"
    assert b.total_price == Decimal("376")
    assert b.amount_paid == Decimal("113")
    assert b.payment_status == "deposit_paid"
    assert b.billing_nif == "501234567"
    assert b.selected_extras[0]["id"] == "late"
    assert b.selected_extras[0]["name"] == "Late check-out"
    assert b.selected_extras[0]["quantity"] == 1
    assert db.query(PaymentTransaction).filter(PaymentTransaction.booking_id == b.id).one().amount == Decimal("113")
    assert db.query(PaymentEvent).filter(PaymentEvent.session_id == "cs_dep").one().booking_id == b.id

    templates = {e.template for e in db.query(EmailLog).all()}
    assert templates == {"receipt"}


def test_full_payment_requests_invoice(db, catalog, checkout_event):
    event = checkout_event(_intent(due="376", option="full").to_metadata(), 37600)
    r = materialize_checkout(db, event)

    assert r.is_fully_paid
    assert db.get(Booking, r.booking_id).payment_status == "fully_paid"
    finance = db.query(EmailLog).filter(EmailLog.template == "finance_invoice").one()
    assert finance.to_email == "finance@moorings.test"


def test_redelivered_event_is_applied_once(db, catalog, checkout_event):
    event = checkout_event(_intent().to_metadata(), 11300, session_id="cs_twice", event_id="evt_twice")

    first = materialize_checkout(db, event)
    second = materialize_checkout(db, event)

    assert second.duplicate and second.booking_id == first.booking_id
    assert db.query(Booking).count() == 1
    assert db.query(PaymentTransaction).count() == 1
    assert db.get(Booking, first.booking_id).amount_paid == Decimal("113")


def test_second_event_for_same_session_is_a_duplicate(db, catalog, checkout_event):
    meta = _intent().to_metadata()
    materialize_checkout(db, checkout_event(meta, 11300, session_id="cs_async"))
    r = materialize_checkout(db, checkout_event(meta, 11300, session_id="cs_async",
                                                event_type="checkout.session.async_payment_succeeded"))

    assert r.duplicate
    assert db.query(Booking).count() == 1


def test_taken_boat_is_swapped_for_a_free_one(db, catalog, make_booking, checkout_event):
    make_booking(houseboat_id="boat-1", start=START - timedelta(days=1), nights=2)

    r = materialize_checkout(db, checkout_event(_intent().to_metadata(), 11300))

    assert not r.overbooked
    assert db.get(Booking, r.booking_id).houseboat_id == "boat-2"


def test_overbooking_is_recorded_not_dropped(db, catalog, make_booking, checkout_event):
    make_booking(houseboat_id="boat-1", start=START, nights=1)
    make_booking(houseboat_id="boat-2", start=START, nights=1)

    r = materialize_checkout(db, checkout_event(_intent().to_metadata(), 11300))

    assert r.overbooked
    b = db.get(Booking, r.booking_id)
    assert b.houseboat_id == "boat-1"
    assert "OVERBOOKED" in b.notes
    assert db.query(AuditLog).filter(AuditLog.action == "booking.overbooking_detected").count() == 1


def test_ledger_failure_still_confirms_booking(db, catalog, checkout_event, monkeypatch):
    def _boom(*args, **kwargs):
        raise _LedgerWriteFailed("disk full")

    monkeypatch.setattr(materializer_service, "_record_ledger_entry", _boom)
    r = materialize_checkout(db, checkout_event(_intent().to_metadata(), 11300, session_id="cs_noledger"))

    assert r.created and not r.ledger_recorded
    b = db.get(Booking, r.booking_id)
    assert b.status == "Confirmed"
    assert b.amount_paid == Decimal("113")
    assert b.payment_status == "deposit_paid"
    assert db.query(PaymentTransaction).count() == 0
    assert db.query(PaymentEvent).filter(PaymentEvent.session_id == "cs_noledger").count() == 1
    assert db.query(AuditLog).filter(AuditLog.action == "payment.ledger_write_failed").count() == 1


def test_staff_edit_keeps_payment_recorded_without_ledger_row(db, catalog, checkout_event, monkeypatch):
    def _boom(*args, **kwargs):
        raise _LedgerWriteFailed("disk full")

    monkeypatch.setattr(materializer_service, "_record_ledger_entry", _boom)
    r = materialize_checkout(db, checkout_event(_intent().to_metadata(), 11300))

    b, _ = booking_service.update_booking(db, r.booking_id, BookingUpdate(notes="Arriving late"), actor="u1")

    assert b.notes == "Arriving late"
    assert b.amount_paid == Decimal("113")
    assert b.payment_status == "deposit_paid"


def test_ledger_row_is_written_after_the_booking_commits(db, catalog, checkout_event, monkeypatch):
    real = materializer_service._record_ledger_entry
    calls = []

    def _fails_once(*args, **kwargs):
        calls.append(1)
        if len(calls) == 1:
            raise _LedgerWriteFailed("lock timeout")
        return real(*args, **kwargs)

    monkeypatch.setattr(materializer_service, "_record_ledger_entry", _fails_once)
    r = materialize_checkout(db, checkout_event(_intent().to_metadata(), 11300, session_id="cs_late_ledger"))

    assert r.ledger_recorded
    tx = db.query(PaymentTransaction).filter(PaymentTransaction.booking_id == r.booking_id).one()
    assert tx.amount == Decimal("113")
    assert tx.details["session_id"] == "cs_late_ledger"
    assert db.query(AuditLog).filter(AuditLog.action == "payment.ledger_write_failed").count() == 1
    assert db.query(AuditLog).filter(AuditLog.action == "payment.ledger_backfilled").count() == 1

    b = reconcile_booking(db, r.booking_id)
    assert b.amount_paid == Decimal("113")
    assert b.payment_status == "deposit_paid"


def test_mail_failure_does_not_undo_booking(db, catalog, checkout_event, monkeypatch):
    def _broken(*args, **kwargs):
        raise RuntimeError("smtp down")

    monkeypatch.setattr(notification_service, "queue_email", _broken)
    r = materialize_checkout(db, checkout_event(_intent().to_metadata(), 11300))

    assert db.get(Booking, r.booking_id).payment_status == "deposit_paid"


def test_link_session_pays_existing_booking(db, make_booking, checkout_event):
    b = make_booking(total="1000", paid="300")
    db.add(PaymentTransaction(id="dep", booking_id=b.id, amount=Decimal("300"), status="paid", method="cash", details={}))
    db.commit()
    tok = payment_link_service.generate_link(db, b.id, actor="u1")
    meta = PaymentLinkIntent(booking_id=b.id, token_id=tok.id, amount_due=Decimal("700")).to_metadata()

    r = materialize_checkout(db, checkout_event(meta, 70000))

    assert not r.created and r.is_fully_paid
    db.expire_all()
    assert db.get(Booking, b.id).amount_paid == Decimal("1000")
    assert db.get(Booking, b.id).payment_status == "fully_paid"
    assert db.get(PaymentToken, tok.id).used_at is not None


def test_zero_amount_session_is_rejected(db, catalog, checkout_event):
    with pytest.raises(ValueError):
        materialize_checkout(db, checkout_event(_intent().to_metadata(), 0))
    assert db.query(Booking).count() == 0


def test_payment_on_settled_booking_does_not_notify_finance_again(db, make_booking, checkout_event):
    b = make_booking(total="1000", paid="1000")
    db.add(PaymentTransaction(id="full", booking_id=b.id, amount=Decimal("1000"), status="paid", method="transfer", details={}))
    db.commit()
    reconcile_booking(db, b.id)
    meta = PaymentLinkIntent(booking_id=b.id, token_id="tok-gone", amount_due=Decimal("50")).to_metadata()

    r = materialize_checkout(db, checkout_event(meta, 5000))

    assert r.is_fully_paid and not r.settled_now
    assert db.query(EmailLog).filter(EmailLog.template == "finance_invoice").count() == 0
    assert db.query(EmailLog).filter(EmailLog.template == "receipt").count() == 1


def test_extras_are_rebuilt_from_the_catalog(db, catalog, checkout_event):
    extra_ids = []
    for n in range(6):
        e = Extra(id=str(uuid.uuid4()), name=f"Kayak tour {n}", price=Decimal("15"), price_type="per_stay", active=True)
        db.add(e)
        extra_ids.append(e.id)
    db.commit()
    intent = _intent()
    intent.extras = [[extra_id, 2] for extra_id in extra_ids]
    meta = intent.to_metadata()

    assert all(len(v) <= METADATA_VALUE_LENGTH for v in meta.values())

    r = materialize_checkout(db, checkout_event(meta, 11300))
    rows = db.get(Booking, r.booking_id).selected_extras
    assert [row["id"] for row in rows] == extra_ids
    assert rows[0] == {"id": extra_ids[0], "name": "Kayak tour 0", "price": 15.0, "quantity": 2}
