"""SQLAlchemy model for persisted notifications."""

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, JSON, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import expression

from notification_hub.infrastructure.database import Base
from notification_hub.utils import app_now_naive


class NotificationModel(Base):
    """Database representation for user notifications."""

    __tablename__ = "notification"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("user.id"), nullable=False, index=True)
    type = Column(String(50), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    link = Column(String(255), nullable=True)
    priority = Column(String(10), nullable=False, default="normal")
    # ``metadata`` is reserved on declarative classes, hence the attribute name.
    payload = Column("metadata", JSON, nullable=False, default=dict)
    is_read = Column(
        Boolean, nullable=False, default=False, server_default=expression.false()
    )
    read_at = Column(DateTime(), nullable=True)
    created_at = Column(
        DateTime(), nullable=False, default=app_now_naive, index=True
    )

    user = relationship("UserModel", lazy="joined")


__all__ = ["NotificationModel"]
