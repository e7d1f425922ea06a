import logging
from collections import deque
from typing import Callable

from enums.actor_role import ActorRole
from enums.notification_level import NotificationLevel
from enums.order_status import OrderStatus
from exceptions import OrderListException
from models.notification import NotificationDTO
from models.order import OrderDTO
from utils.error_handler import handle_service_error, handle_unexpected_error
from utils.localizator import Localizator

logger = logging.getLogger(__name__)

NotificationListener = Callable[[NotificationDTO], None]


class NotificationService:
    """
    Localized user-facing messages for one viewer.

    The presentation layer subscribes a listener (toast, banner) and gets
    every message as it is produced; the latest messages are also kept in
    history for views that attach late.
    """

    HISTORY_SIZE = 50

    def __init__(self, role: ActorRole):
        self.role = role
        self._listeners: list[NotificationListener] = []
        self.history: deque[NotificationDTO] = deque(maxlen=self.HISTORY_SIZE)

    def subscribe(self, listener: NotificationListener) -> None:
        self._listeners.append(listener)

    def unsubscribe(self, listener: NotificationListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def send(self, level: NotificationLevel, key: str, order_id: str | None = None, **params) -> NotificationDTO:
        text = Localizator.get_text(self.role, key)
        if params or order_id is not None:
            text = text.format(order_id=order_id, **params)
        return self._dispatch(NotificationDTO(level=level, key=key, text=text, order_id=order_id))

    def error(self, exception: Exception, level: NotificationLevel = NotificationLevel.ERROR) -> NotificationDTO:
        if isinstance(exception, OrderListException):
            text = handle_service_error(exception, self.role)
        else:
            text = handle_unexpected_error(exception)
        notification = NotificationDTO(
            level=level,
            key=type(exception).__name__,
            text=text,
            order_id=getattr(exception, "order_id", None),
        )
        return self._dispatch(notification)

    def new_order(self, order: OrderDTO) -> NotificationDTO:
        return self.send(NotificationLevel.INFO, "notification_new_order", order_id=order.order_id)

    def order_updated(self, order: OrderDTO) -> NotificationDTO:
        if order.status == OrderStatus.CANCELLED:
            return self.send(NotificationLevel.INFO, "order_cancelled", order_id=order.order_id)
        return self.send(
            NotificationLevel.INFO, "notification_order_updated", order_id=order.order_id,
            status=Localizator.get_status_text(order.status)
        )

    def _dispatch(self, notification: NotificationDTO) -> NotificationDTO:
        self.history.append(notification)
        logger.info(f"Notification [{notification.level.value}] {notification.key}: {notification.text}")
        for listener in list(self._listeners):
            try:
                listener(notification)
            except Exception as e:
                logger.error(f"Notification listener failed: {e}", exc_info=True)
        return notification
