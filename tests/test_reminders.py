"""Tests for the appointment reminder sweep."""
import asyncio
from datetime import date, datetime, timezone

from servicehub import worker
from servicehub.models import Notification
from servicehub.models_appointment import Appointment
from servicehub.services.notification_service import Notifier
from servicehub.workers import reminder_worker
from servicehub.workers.reminder_worker import send_appointment_reminders

TODAY = date(2026, 2, 16)
TOMORROW = date(2026, 2, 17)


def reminders(db):
    return db.query(Notification).order_by(Notification.id).all()


def test_day_before_reminder(db, notifier, customer, make_appointment, now):
    timed = make_appointment(date=TOMORROW, start_time="10:00", status="confirmed")
    untimed = make_appointment(date=TOMORROW, status="pending")

    summary = send_appointment_reminders(db, notifier, now=now)

    assert summary["sent_24h"] == 2
    assert summary["failed"] == 0
    first, second = reminders(db)
    assert first.title == "Appointment reminder"
    assert first.message == "Tomorrow at 10:00: Bike service"
    assert first.user_id == customer.id
    assert first.related_id == timed.id
    assert first.category == "appointments"
    assert second.message == "Tomorrow: Bike service"
    assert second.related_id == untimed.id

    db.expire_all()
    assert db.get(Appointment, timed.id).reminder_sent_24h is True


def test_starting_soon_window(db, notifier, make_appointment, now):
    # now is 10:00 in Berlin
    in_an_hour = make_appointment(date=TODAY, start_time="11:00", status="confirmed")
    edge = make_appointment(date=TODAY, start_time="11:30", status="confirmed")
    make_appointment(date=TODAY, start_time="11:31", status="confirmed")
    make_appointment(date=TODAY, start_time="10:00", status="confirmed")
    make_appointment(date=TODAY, start_time="09:00", status="confirmed")

    summary = send_appointment_reminders(db, notifier, now=now)

    assert summary["sent_1h"] == 2
    assert summary["checked_1h"] == 5
    sent = reminders(db)
    assert [n.related_id for n in sent] == [in_an_hour.id, edge.id]
    assert sent[0].title == "Appointment starting soon"
    assert sent[0].message == "In about 60 minutes: Bike service"
    assert sent[1].message == "In about 90 minutes: Bike service"


def test_sweep_is_idempotent(db, notifier, make_appointment, now):
    make_appointment(date=TOMORROW, start_time="10:00", status="confirmed")
    make_appointment(date=TODAY, start_time="10:45", status="confirmed")

    first = send_appointment_reminders(db, notifier, now=now)
    second = send_appointment_reminders(db, notifier, now=now)

    assert (first["sent_24h"], first["sent_1h"]) == (1, 1)
    assert (second["sent_24h"], second["sent_1h"]) == (0, 0)
    assert len(reminders(db)) == 2


def test_only_pending_and_confirmed_are_reminded(db, notifier, make_appointment, now):
    for status in ("proposed", "cancelled", "completed", "rescheduled"):
        make_appointment(date=TOMORROW, start_time="10:00", status=status)

    summary = send_appointment_reminders(db, notifier, now=now)

    assert summary["sent_24h"] == 0
    assert reminders(db) == []


def test_already_flagged_not_resent(db, notifier, make_appointment, now):
    make_appointment(date=TOMORROW, start_time="10:00", status="confirmed", reminder_sent_24h=True)
    assert send_appointment_reminders(db, notifier, now=now)["sent_24h"] == 0


def test_failed_reminder_is_retried_next_sweep(db, make_appointment, now):
    broken = make_appointment(date=TOMORROW, start_time="09:00", status="confirmed")
    healthy = make_appointment(date=TOMORROW, start_time="10:00", status="confirmed")

    class FlakyNotifier(Notifier):
        def notify(self, user_id, title, message, **kwargs):
            if kwargs.get("related_id") == broken.id:
                self.db.rollback()
                return None
            return super().notify(user_id, title, message, **kwargs)

    summary = send_appointment_reminders(db, FlakyNotifier(db, push_sender=None), now=now)

    assert summary == {"sent_24h": 1, "sent_1h": 0, "checked_1h": 0, "failed": 1}
    db.expire_all()
    assert db.get(Appointment, broken.id).reminder_sent_24h is False
    assert db.get(Appointment, healthy.id).reminder_sent_24h is True

    retry = send_appointment_reminders(db, Notifier(db, push_sender=None), now=now)
    assert retry["sent_24h"] == 1


def test_tomorrow_is_business_local(db, notifier, make_appointment):
    # 23:30 UTC on Monday is already Tuesday in Berlin
    late = datetime(2026, 2, 16, 23, 30, tzinfo=timezone.utc)
    make_appointment(date=date(2026, 2, 17), start_time="10:00", status="confirmed")
    wednesday = make_appointment(date=date(2026, 2, 18), start_time="10:00", status="confirmed")

    summary = send_appointment_reminders(db, notifier, now=late)

    assert summary["sent_24h"] == 1
    assert [n.related_id for n in reminders(db)] == [wednesday.id]


def test_naive_now_is_utc(db, notifier, make_appointment):
    make_appointment(date=TODAY, start_time="11:00", status="confirmed")
    summary = send_appointment_reminders(db, notifier, now=datetime(2026, 2, 16, 9, 0))
    assert summary["sent_1h"] == 1


def test_process_uses_own_session(session_factory, db, make_appointment, monkeypatch):
    make_appointment(date=date(2026, 2, 17), status="confirmed")
    monkeypatch.setattr(reminder_worker, "SessionLocal", session_factory)
    monkeypatch.setattr(
        reminder_worker,
        "send_appointment_reminders",
        lambda session: {"sent_24h": 0, "sent_1h": 0, "checked_1h": 0, "failed": 0, "session": session},
    )

    summary = asyncio.run(reminder_worker.process_appointment_reminders())

    assert summary["session"] is not db


def test_cron_runs_every_half_hour():
    [job] = worker.WorkerSettings.cron_jobs
    assert job.minute == {0, 30}
    assert job.run_at_startup is True
    assert worker.appointment_reminders_task in worker.WorkerSettings.functions


def change_before_claim(monkeypatch, db, **values):
    """Apply `values` to the row between selection and the flag claim"""
    real_claim = reminder_worker._claim

    def claim(session, appointment_id, flag, day):
        db.query(Appointment).filter(Appointment.id == appointment_id).update(values, synchronize_session=False)
        db.commit()
        return real_claim(session, appointment_id, flag, day)

    monkeypatch.setattr(reminder_worker, "_claim", claim)


def test_cancelled_after_selection_is_not_reminded(db, notifier, make_appointment, now, monkeypatch):
    appointment = make_appointment(date=TOMORROW, start_time="10:00", status="confirmed")
    change_before_claim(monkeypatch, db, status="cancelled")

    summary = send_appointment_reminders(db, notifier, now=now)

    assert summary["sent_24h"] == 0
    assert summary["failed"] == 0
    assert reminders(db) == []
    db.expire_all()
    assert db.get(Appointment, appointment.id).reminder_sent_24h is False


def test_moved_after_selection_is_not_reminded(db, notifier, make_appointment, now, monkeypatch):
    make_appointment(date=TODAY, start_time="10:45", status="confirmed")
    change_before_claim(monkeypatch, db, date=date(2026, 2, 20))

    summary = send_appointment_reminders(db, notifier, now=now)

    assert summary["checked_1h"] == 1
    assert summary["sent_1h"] == 0
    assert reminders(db) == []


def test_claimed_by_concurrent_sweep_sends_once(db, notifier, make_appointment, now, monkeypatch):
    appointment = make_appointment(date=TOMORROW, start_time="10:00", status="confirmed")
    change_before_claim(monkeypatch, db, reminder_sent_24h=True)

    summary = send_appointment_reminders(db, notifier, now=now)

    assert summary["sent_24h"] == 0
    assert summary["failed"] == 0
    assert reminders(db) == []
    db.expire_all()
    assert db.get(Appointment, appointment.id).reminder_sent_24h is True
