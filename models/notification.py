from datetime import datetime, timezone

from pydantic import BaseModel, Field

from enums.notification_level import NotificationLevel


class NotificationDTO(BaseModel):
    """A user-facing message (toast, banner) produced by a controller."""
    level: NotificationLevel
    key: str  # Localization key the text was built from
    text: str
    order_id: str | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
