"""
Notification Service
Persists in-app notifications and dispatches best-effort push delivery.
A notification failure is logged and never propagated to the caller.
"""

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, Optional

from sqlalchemy.orm import Session

from ..config import PUSH_ENABLED
from ..database import SessionLocal
from ..models import Notification, PushToken
from .push_service import send_push_notification

logger = logging.getLogger(__name__)

# Push delivery runs off the request/sweep thread
_push_executor = ThreadPoolExecutor(max_workers=4, thread_name_prefix="push")


class Notifier:
    """Create a notification for a user and push it to their devices"""

    def __init__(
        self,
        db: Session,
        push_sender: Optional[Callable] = None,
        executor=None,
        session_factory: Callable[[], Session] = SessionLocal,
    ):
        self.db = db
        if push_sender is None and PUSH_ENABLED:
            push_sender = send_push_notification
        self.push_sender = push_sender
        self.executor = executor or _push_executor
        self.session_factory = session_factory

    def notify(
        self,
        user_id: int,
        title: str,
        message: str,
        category: str = "appointment",
        related_id: Optional[int] = None,
        related_type: Optional[str] = "appointment",
        deep_link: Optional[str] = None,
        notification_type: str = "appointment_reminder",
    ) -> Optional[Notification]:
        """
        Persist a notification and push it.

        Commits the current session, so any pending changes on it (e.g. a reminder
        flag) are recorded together with the notification. On failure the session
        is rolled back, the error is logged and None is returned.
        """
        try:
            notification = Notification(
                user_id=user_id,
                title=title,
                message=message,
                type=notification_type,
                category=category,
                deep_link=deep_link,
                related_id=related_id,
                related_type=related_type,
                read=False,
            )
            self.db.add(notification)
            self.db.commit()
            self.db.refresh(notification)
        except Exception as e:
            self.db.rollback()
            logger.error(f"❌ Failed to create notification for user {user_id}: {e}")
            return None

        self._dispatch_push(notification)
        return notification

    def notify_many(self, user_ids: list[int], title: str, message: str, **kwargs) -> int:
        """Notify several users; returns how many notifications were stored"""
        sent = 0
        for user_id in user_ids:
            if self.notify(user_id, title, message, **kwargs):
                sent += 1
        return sent

    def _dispatch_push(self, notification: Notification) -> Optional[Future]:
        if not self.push_sender:
            return None

        try:
            tokens = [
                t.token
                for t in self.db.query(PushToken)
                .filter(PushToken.user_id == notification.user_id, PushToken.is_active.is_(True))
                .all()
            ]
        except Exception as e:
            logger.error(f"❌ Failed to load push tokens for user {notification.user_id}: {e}")
            return None

        if not tokens:
            logger.debug(f"No push tokens found for user {notification.user_id}")
            return None

        data = {
            "notificationId": notification.id,
            "type": notification.type,
            "category": notification.category,
            "deepLink": notification.deep_link or "",
            "relatedId": notification.related_id or "",
            "relatedType": notification.related_type or "",
        }

        try:
            future = self.executor.submit(
                self.push_sender, tokens, notification.title, notification.message, data
            )
        except Exception as e:
            logger.error(f"❌ Failed to schedule push for user {notification.user_id}: {e}")
            return None

        user_id = notification.user_id
        future.add_done_callback(lambda f: self._on_push_done(f, user_id))
        return future

    def _on_push_done(self, future: Future, user_id: int) -> None:
        error = future.exception()
        if error:
            logger.error(f"❌ Push notification failed for user {user_id}: {error}")
            return

        invalid_tokens = future.result() or []
        if invalid_tokens:
            self._deactivate_tokens(invalid_tokens)

    def _deactivate_tokens(self, tokens: list[str]) -> None:
        db = self.session_factory()
        try:
            db.query(PushToken).filter(PushToken.token.in_(tokens)).update(
                {PushToken.is_active: False}, synchronize_session=False
            )
            db.commit()
            logger.info(f"🧹 Deactivated {len(tokens)} unregistered push token(s)")
        except Exception as e:
            db.rollback()
            logger.error(f"❌ Failed to deactivate push tokens: {e}")
        finally:
            db.close()
