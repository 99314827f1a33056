# marketplace/models/notification.py
from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, Integer, String, Text

from marketplace.core.enums import NotificationType
from marketplace.core.utils import utc_now
from marketplace.database import Base
from marketplace.models._types import enum_column_type


class Notification(Base):
    """In-app message addressed to a single account."""
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    title = Column(String, nullable=False)
    message = Column(Text, nullable=False)
    type = Column(enum_column_type(NotificationType), nullable=False, default=NotificationType.SYSTEM)
    data = Column(JSON, nullable=True, default=dict)
    is_read = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False, index=True)

    def __repr__(self):
        return f"<Notification user={self.user_id} type={self.type} read={self.is_read}>"
