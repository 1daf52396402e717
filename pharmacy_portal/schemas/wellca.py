from datetime import date
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, Field

from pharmacy_portal.models.wellca import ServiceType

MAX_DELIVERIES = 9999


class WellcaBase(BaseModel):
    date: date
    purolator: Optional[int] = Field(None, ge=0, le=MAX_DELIVERIES)
    fedex: Optional[int] = Field(None, ge=0, le=MAX_DELIVERIES)
    one_courier: Optional[int] = Field(None, alias="oneCourier", ge=0, le=MAX_DELIVERIES)
    go_bolt: Optional[int] = Field(None, alias="goBolt", ge=0, le=MAX_DELIVERIES)
    new_rx: Optional[int] = Field(None, alias="newRx", ge=0)
    refill: Optional[int] = Field(None, ge=0)
    re_auth: Optional[int] = Field(None, alias="reAuth", ge=0)
    hold: Optional[int] = Field(None, ge=0)
    profiles_entered: Optional[int] = Field(None, alias="profilesEntered", ge=0)
    who_filled_rx: Optional[int] = Field(None, alias="whoFilledRx", ge=0)
    active_percentage: Optional[Decimal] = Field(None, alias="activePercentage", ge=0, le=100)
    service_type: Optional[ServiceType] = Field(None, alias="serviceType")
    service_cost: Optional[Decimal] = Field(None, alias="serviceCost", ge=0, max_digits=10, decimal_places=2)

    class Config:
        populate_by_name = True


class WellcaCreate(WellcaBase):
    pass


class WellcaResponse(WellcaBase):
    id: int
    total_deliveries: int = Field(0, alias="totalDeliveries")
    total_filled: int = Field(0, alias="totalFilled")
    total_entered: int = Field(0, alias="totalEntered")

    class Config:
        from_attributes = True
        populate_by_name = True


class WeeklyStats(BaseModel):
    average_profiles_entered: float = Field(..., alias="averageProfilesEntered")
    total_rx_filled: int = Field(..., alias="totalRxFilled")
    entries_count: int = Field(..., alias="entriesCount")

    class Config:
        populate_by_name = True


class ServiceTypeStat(BaseModel):
    type: Optional[ServiceType] = None
    count: int
    total_cost: Decimal = Field(Decimal("0"), alias="totalCost")

    class Config:
        populate_by_name = True


class DailyDeliveryCount(BaseModel):
    date: date
    purolator_count: int = Field(0, alias="purolatorCount")
    fedex_count: int = Field(0, alias="fedexCount")
    one_courier_count: int = Field(0, alias="oneCourierCount")
    go_bolt_count: int = Field(0, alias="goBoltCount")

    class Config:
        populate_by_name = True
