from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class BookingRequest(BaseModel):
    # Presence is checked by the booking service so that it reports a 400.
    model_config = ConfigDict(populate_by_name=True)

    application_id: str | None = Field(default=None, alias="applicationId")
    datetime: str | None = None
    notes: str | None = Field(default=None, max_length=2000)


class SlotResponse(BaseModel):
    date: str
    time: str
    datetime: str
    available: bool


class DateRange(BaseModel):
    start: str
    end: str


class AvailabilityResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    range: DateRange
    total_slots: int = Field(serialization_alias="totalSlots")
    available_slots: int = Field(serialization_alias="availableSlots")
    slots_by_date: dict[str, list[SlotResponse]] = Field(serialization_alias="slotsByDate")


class AppointmentDetails(BaseModel):
    datetime: str
    formatted_date: str = Field(serialization_alias="formattedDate")
    formatted_time: str = Field(serialization_alias="formattedTime")
    calendar_event_id: str = Field(serialization_alias="calendarEventId")


class BookingResponse(BaseModel):
    success: bool = True
    message: str
    appointment: AppointmentDetails
    application: dict | None = None
    warning: str | None = None
