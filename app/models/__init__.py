from app.models.appointment import (
    SLOT_HOLDING_STATUSES,
    TERMINAL_STATUSES,
    Appointment,
    AppointmentCreate,
    AppointmentPublic,
    AppointmentStatus,
    AppointmentType,
)
from app.models.blocked_slot import BlockedSlot, BlockedSlotCreate, BlockedSlotPublic

__all__ = [
    "SLOT_HOLDING_STATUSES",
    "TERMINAL_STATUSES",
    "Appointment",
    "AppointmentCreate",
    "AppointmentPublic",
    "AppointmentStatus",
    "AppointmentType",
    "BlockedSlot",
    "BlockedSlotCreate",
    "BlockedSlotPublic",
]
