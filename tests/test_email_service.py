from app.models.email_log import EmailLog
from app.services import email_service


def test_queue_without_transport_logs_and_marks_sent(db):
    eid = email_service.queue_email(db, "guest@example.com", "Hello", "Body", related_booking_id="b1", template="receipt")

    log = db.get(EmailLog, eid)
    assert log.status == "sent"
    assert log.attempts == 1
    assert log.related_booking_id == "b1"


def test_failed_send_is_retried_by_the_worker(db, monkeypatch):
    calls = []

    def _flaky(to_email, subject, body):
        calls.append(to_email)
        if len(calls) == 1:
            raise OSError("connection reset")

    monkeypatch.setattr(email_service, "send_email", _flaky)
    eid = email_service.queue_email(db, "guest@example.com", "Hello", "Body")
    assert db.get(EmailLog, eid).status == "failed"

    result = email_service.process_pending_emails(db)
    assert result == {"processed": 1, "sent": 1, "failed": 0}
    log = db.get(EmailLog, eid)
    assert log.status == "sent"
    assert log.attempts == 2


def test_worker_gives_up_after_max_attempts(db, monkeypatch):
    def _down(*args):
        raise OSError("smtp down")

    monkeypatch.setattr(email_service, "send_email", _down)
    eid = email_service.queue_email(db, "guest@example.com", "Hello", "Body")
    for _ in range(email_service.MAX_ATTEMPTS + 2):
        email_service.process_pending_emails(db)

    assert db.get(EmailLog, eid).attempts == email_service.MAX_ATTEMPTS
