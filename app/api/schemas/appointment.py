from pydantic import BaseModel

from app.models.appointment import AppointmentPublic, AppointmentStatus


class SlotInfo(BaseModel):
    time: str  # HH:MM
    available: bool


class AvailableSlotsResponse(BaseModel):
    date: str  # YYYY-MM-DD
    slots: list[SlotInfo]


class PolicyStatusResponse(BaseModel):
    can_cancel: bool
    can_reschedule: bool
    requires_fee: bool
    fee_amount: float
    currency: str
    hours_remaining: float
    time_until_appointment: str
    policy_message: str
    refresh_seconds: int  # re-fetch interval for a live countdown


class AppointmentActionResponse(BaseModel):
    appointment: AppointmentPublic
    policy: PolicyStatusResponse


class RescheduleRequest(BaseModel):
    date: str
    timeslot: str
    reason: str | None = None


class StatusUpdateRequest(BaseModel):
    status: AppointmentStatus
