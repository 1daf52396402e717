from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, Time, ForeignKey, Index
from sqlalchemy.orm import relationship

from pharmacy_portal.db.base import Base


def _now_seconds() -> datetime:
    return datetime.now().replace(microsecond=0)


class Pac(Base):
    """One submitted pouch accuracy check batch"""

    __tablename__ = "pac"
    __table_args__ = (
        Index("idx_pac_store", "store"),
        Index("idx_pac_submission_date", "submission_date"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    submission_date = Column(DateTime, default=_now_seconds, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    # end_time - start_time, stored at write time so SQL aggregates stay portable
    duration_seconds = Column(Integer, nullable=False, default=0)
    pouches_checked = Column(Integer, nullable=False)
    store = Column(String(100), nullable=False)

    user = relationship("User", back_populates="pacs")
