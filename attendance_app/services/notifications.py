import uuid
from collections import deque
from datetime import datetime
from typing import Deque, List

from attendance_app.schemas import NotificationKind, NotificationMessage
from attendance_app.utils.logger import get_logger

log = get_logger(__name__)

MAX_NOTIFICATIONS = 50


class NotificationCenter:
    """Newest-first list of UI notifications; the oldest drop off past 50."""

    def __init__(self, max_items: int = MAX_NOTIFICATIONS):
        self._items: Deque[NotificationMessage] = deque(maxlen=max_items)

    def notify(self, kind: NotificationKind, title: str, message: str) -> None:
        try:
            item = NotificationMessage(
                id=uuid.uuid4().hex,
                type=kind,
                title=title,
                message=message,
                timestamp=datetime.now(),
            )
        except ValueError as e:
            # Notifications are fire-and-forget; a bad one is logged and dropped.
            log.error(f"Dropped notification {title!r}: {e}")
            return
        self._items.appendleft(item)
        log.info(f"[{kind}] {title}: {message}")

    def list(self) -> List[NotificationMessage]:
        return list(self._items)

    def unread_count(self) -> int:
        return sum(1 for n in self._items if not n.read)

    def mark_as_read(self, notification_id: str) -> bool:
        for item in self._items:
            if item.id == notification_id:
                item.read = True
                return True
        return False

    def clear_all(self) -> None:
        self._items.clear()

    def __len__(self) -> int:
        return len(self._items)
