# leave_mgmt/notifications/models.py

from datetime import datetime

from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, ForeignKey

from leave_mgmt.database import Base

TYPES = ("info", "success", "warning", "error")
CATEGORIES = ("leave_request", "leave_approval", "leave_rejection", "system", "reminder")
RECIPIENT_ROLES = ("employee", "manager", "hr", "admin")


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True)
    # NULL user_id = broadcast to everyone holding recipient_role
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    title = Column(String(200), nullable=False)
    message = Column(Text, nullable=False)
    type = Column(String(20), nullable=False, default="info")
    category = Column(String(30), nullable=False, default="system")
    recipient_role = Column(String(20), nullable=True)
    related_id = Column(Integer, nullable=True)
    related_type = Column(String(30), nullable=True)
    is_read = Column(Boolean, nullable=False, default=False)
    read_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "title": self.title,
            "message": self.message,
            "type": self.type,
            "category": self.category,
            "recipient_role": self.recipient_role,
            "related_id": self.related_id,
            "related_type": self.related_type,
            "is_read": bool(self.is_read),
            "read_at": self.read_at.isoformat() if self.read_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<Notification id={self.id} user_id={self.user_id} category={self.category}>"
