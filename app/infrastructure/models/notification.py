"""SQLAlchemy model for persisted notifications."""

from sqlalchemy import JSON, Column, DateTime, Index, Integer, String, Text

from app.infrastructure.database import Base
from app.utils import now_in_app_naive_datetime


class NotificationModel(Base):
    """Database representation for user notifications."""

    __tablename__ = "notification"
    __table_args__ = (
        Index("ix_notification_user_created", "user_id", "created_at"),
        Index("ix_notification_user_status", "user_id", "status"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(64), nullable=False)
    type = Column(String(50), nullable=False)
    title = Column(String(200), nullable=False)
    message = Column(Text, nullable=False)
    status = Column(String(20), nullable=False, default="UNREAD")
    priority = Column(String(10), nullable=False, default="MEDIUM")
    created_at = Column(DateTime(), nullable=False, default=now_in_app_naive_datetime)
    read_at = Column(DateTime(), nullable=True)
    dismissed_at = Column(DateTime(), nullable=True)
    expires_at = Column(DateTime(), nullable=True)
    related_entity_id = Column(String(100), nullable=True, index=True)
    action_url = Column(String(500), nullable=True)
    # "metadata" is reserved on declarative classes.
    extra = Column("metadata", JSON, nullable=False, default=dict)
    version = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}


__all__ = ["NotificationModel"]
