"""
Audit log model for tracking geofence and session actions
"""
import uuid
from datetime import datetime
from enum import Enum
from sqlalchemy import Column, String, DateTime, Text, ForeignKey, Enum as SQLEnum, JSON
from sqlalchemy.orm import relationship
from fleetwatch.models.database import Base


class AuditAction(str, Enum):
    # Authentication
    LOGIN = "login"
    LOGIN_FAILED = "login_failed"

    # Geofence
    GEOFENCE_CREATE = "geofence_create"
    GEOFENCE_UPDATE = "geofence_update"
    GEOFENCE_DELETE = "geofence_delete"


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    # Who performed the action
    user_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    user_email = Column(String(255), nullable=True)  # Denormalized for historical record
    user_role = Column(String(50), nullable=True)
    client_id = Column(String(36), nullable=True)

    # What action was performed
    action = Column(SQLEnum(AuditAction), nullable=False)

    # Target of the action
    target_type = Column(String(50), nullable=True)
    target_id = Column(String(36), nullable=True)
    target_identifier = Column(String(255), nullable=True)  # Human-readable identifier

    # Details
    description = Column(Text, nullable=True)
    details = Column(JSON, nullable=True)

    # Context
    ip_address = Column(String(45), nullable=True)
    user_agent = Column(String(500), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, index=True)

    user = relationship("User", back_populates="audit_logs")

    def __repr__(self):
        return f"<AuditLog {self.action} by {self.user_email} at {self.created_at}>"
