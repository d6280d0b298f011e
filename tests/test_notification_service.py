"""Tests for notification persistence and push delivery."""
import json
from concurrent.futures import Future
from functools import partial

import httpx
import pytest

from servicehub.models import Notification, PushToken
from servicehub.services import push_service
from servicehub.services.notification_service import Notifier
from servicehub.services.push_service import send_push_notification


class ImmediateExecutor:
    """Runs submitted work inline so push results are observable in the test"""

    def submit(self, fn, *args, **kwargs):
        future = Future()
        try:
            future.set_result(fn(*args, **kwargs))
        except Exception as e:
            future.set_exception(e)
        return future


def add_token(db, user, token, is_active=True):
    db.add(PushToken(user_id=user.id, token=token, platform="ios", is_active=is_active))
    db.commit()


def test_notify_persists_notification(db, customer):
    notification = Notifier(db, push_sender=None).notify(
        customer.id, "Hello", "World", category="appointments", related_id=7, deep_link="appointments/7"
    )

    assert notification.id is not None
    stored = db.query(Notification).one()
    assert stored.user_id == customer.id
    assert stored.title == "Hello"
    assert stored.read is False
    assert stored.category == "appointments"
    assert stored.related_type == "appointment"
    assert stored.deep_link == "appointments/7"


def test_push_sent_to_active_tokens(db, customer):
    add_token(db, customer, "ExponentPushToken[active]")
    add_token(db, customer, "ExponentPushToken[old]", is_active=False)
    calls = []

    def sender(tokens, title, message, data):
        calls.append((tokens, title, message, data))
        return []

    notification = Notifier(db, push_sender=sender, executor=ImmediateExecutor()).notify(
        customer.id, "Reminder", "Tomorrow", related_id=3, deep_link="appointments/3"
    )

    [(tokens, title, message, data)] = calls
    assert tokens == ["ExponentPushToken[active]"]
    assert (title, message) == ("Reminder", "Tomorrow")
    assert data["notificationId"] == notification.id
    assert data["deepLink"] == "appointments/3"
    assert data["relatedId"] == 3


def test_no_push_without_tokens(db, customer):
    sender_called = []
    Notifier(db, push_sender=lambda *args: sender_called.append(args), executor=ImmediateExecutor()).notify(
        customer.id, "Reminder", "Tomorrow"
    )
    assert sender_called == []


def test_unregistered_tokens_are_deactivated(db, session_factory, customer):
    add_token(db, customer, "ExponentPushToken[gone]")
    add_token(db, customer, "ExponentPushToken[kept]")

    notifier = Notifier(
        db,
        push_sender=lambda tokens, title, message, data: ["ExponentPushToken[gone]"],
        executor=ImmediateExecutor(),
        session_factory=session_factory,
    )
    notifier.notify(customer.id, "Reminder", "Tomorrow")

    db.expire_all()
    states = {t.token: t.is_active for t in db.query(PushToken).all()}
    assert states == {"ExponentPushToken[gone]": False, "ExponentPushToken[kept]": True}


def test_push_failure_does_not_affect_notification(db, customer):
    add_token(db, customer, "ExponentPushToken[active]")

    def failing_sender(*args):
        raise httpx.ConnectError("push service unreachable")

    notification = Notifier(db, push_sender=failing_sender, executor=ImmediateExecutor()).notify(
        customer.id, "Reminder", "Tomorrow"
    )

    assert notification is not None
    assert db.query(Notification).count() == 1


def test_storage_failure_returns_none(db, customer, monkeypatch):
    notifier = Notifier(db, push_sender=None)

    def failing_commit():
        raise RuntimeError("database is locked")

    monkeypatch.setattr(db, "commit", failing_commit)
    assert notifier.notify(customer.id, "Reminder", "Tomorrow") is None
    monkeypatch.undo()

    assert db.query(Notification).count() == 0


def test_notify_many_counts_stored(db, customer, other_customer):
    sent = Notifier(db, push_sender=None).notify_many([customer.id, other_customer.id], "Closed", "We are closed")
    assert sent == 2


# ============================================================================
# Expo transport
# ============================================================================


@pytest.fixture
def expo(monkeypatch):
    """Route httpx.Client through a MockTransport and record the request batches"""
    batches = []
    responses = {}

    def handler(request: httpx.Request) -> httpx.Response:
        batch = json.loads(request.content)
        batches.append(batch)
        tickets = [responses.get(message["to"], {"status": "ok", "id": "ticket"}) for message in batch]
        return httpx.Response(200, json={"data": tickets})

    monkeypatch.setattr(httpx, "Client", partial(httpx.Client, transport=httpx.MockTransport(handler)))
    return batches, responses


def test_push_message_format(expo):
    batches, _ = expo

    invalid = send_push_notification(["ExponentPushToken[a]"], "Title", "Body", {"deepLink": "appointments/1"})

    assert invalid == []
    [[message]] = batches
    assert message == {
        "to": "ExponentPushToken[a]",
        "title": "Title",
        "body": "Body",
        "sound": "default",
        "data": {"deepLink": "appointments/1"},
    }


def test_push_reports_unregistered_devices(expo):
    batches, responses = expo
    responses["ExponentPushToken[gone]"] = {"status": "error", "details": {"error": "DeviceNotRegistered"}}
    responses["ExponentPushToken[limited]"] = {"status": "error", "details": {"error": "MessageRateExceeded"}}

    invalid = send_push_notification(
        ["ExponentPushToken[ok]", "ExponentPushToken[gone]", "ExponentPushToken[limited]"], "Title", "Body"
    )

    assert invalid == ["ExponentPushToken[gone]"]


def test_push_batches_large_token_lists(expo):
    batches, _ = expo
    tokens = [f"ExponentPushToken[{i}]" for i in range(push_service.EXPO_BATCH_SIZE + 5)]

    send_push_notification(tokens, "Title", "Body")

    assert [len(batch) for batch in batches] == [push_service.EXPO_BATCH_SIZE, 5]


def test_push_without_tokens_skips_request(expo):
    batches, _ = expo
    assert send_push_notification([], "Title", "Body") == []
    assert batches == []


def test_push_http_error_propagates(monkeypatch):
    transport = httpx.MockTransport(lambda request: httpx.Response(500, json={"errors": ["boom"]}))
    monkeypatch.setattr(httpx, "Client", partial(httpx.Client, transport=transport))

    with pytest.raises(httpx.HTTPStatusError):
        send_push_notification(["ExponentPushToken[a]"], "Title", "Body")
