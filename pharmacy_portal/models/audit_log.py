from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey
from sqlalchemy.orm import relationship

from pharmacy_portal.db.base import Base


class AuditLog(Base):
    """Administrative action journal"""

    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True)
    action = Column(String(100), nullable=False)
    performed_by = Column(String(50), nullable=False, index=True)
    timestamp = Column(DateTime, default=lambda: datetime.now().replace(microsecond=0), nullable=False, index=True)
    category = Column(String(50), nullable=False, index=True)
    details = Column(String(1000), nullable=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    user = relationship("User")
