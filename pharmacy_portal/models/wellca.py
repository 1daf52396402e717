import enum
from sqlalchemy import Column, Integer, Date, Numeric, Enum

from pharmacy_portal.db.base import Base


class ServiceType(str, enum.Enum):
    """Clinical services billed from the Wellca form"""
    FOLLOW_UP_MED_REVIEW = "FOLLOW_UP_MED_REVIEW"
    OTHER_INJECTION_BILLED = "OTHER_INJECTION_BILLED"
    RENEWAL_CHARGED = "RENEWAL_CHARGED"
    FOLLOW_UP_DIABETIC_MED_REVIEW = "FOLLOW_UP_DIABETIC_MED_REVIEW"
    MINOR_ALIGNMENT_VIRTUAL = "MINOR_ALIGNMENT_VIRTUAL"
    ANNUAL_DIABETIC_MED_REVIEW = "ANNUAL_DIABETIC_MED_REVIEW"
    ANNUAL_MED_REVIEW = "ANNUAL_MED_REVIEW"
    DIABETIC_EDUCATION_REVIEW = "DIABETIC_EDUCATION_REVIEW"
    MINOR_ALIGNMENT_IN_PERSON = "MINOR_ALIGNMENT_IN_PERSON"


class WellcaEntry(Base):
    """Daily Wellca metrics: courier deliveries, prescriptions and services"""

    __tablename__ = "wellca_entries"

    id = Column(Integer, primary_key=True, index=True)
    date = Column(Date, nullable=False, unique=True, index=True)

    purolator = Column(Integer, nullable=False, default=0)
    fedex = Column(Integer, nullable=False, default=0)
    one_courier = Column(Integer, nullable=False, default=0)
    go_bolt = Column(Integer, nullable=False, default=0)

    new_rx = Column(Integer, nullable=True)
    refill = Column(Integer, nullable=True)
    re_auth = Column(Integer, nullable=True)
    hold = Column(Integer, nullable=True)
    profiles_entered = Column(Integer, nullable=True)
    who_filled_rx = Column(Integer, nullable=True)

    active_percentage = Column(Numeric(5, 2), nullable=True)
    service_type = Column(Enum(ServiceType, name="service_type"), nullable=True)
    service_cost = Column(Numeric(10, 2), nullable=True)

    @property
    def total_deliveries(self) -> int:
        return (self.purolator or 0) + (self.fedex or 0) + (self.one_courier or 0) + (self.go_bolt or 0)

    @property
    def total_filled(self) -> int:
        return (self.new_rx or 0) + (self.refill or 0) + (self.re_auth or 0)

    @property
    def total_entered(self) -> int:
        return self.total_filled + (self.hold or 0)
