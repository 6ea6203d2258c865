"""
Finalized hotel bookings.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field


class BookingRecord(BaseModel):
    """A booking as stored in the bookings table."""
    model_config = ConfigDict(populate_by_name=True)

    id: int
    user_id: str = Field(..., alias="userId")
    hotel_id: int = Field(..., alias="hotelId")
    hotel_name: str = Field(..., alias="hotelName")
    check_in: str = Field(..., alias="checkIn")
    check_out: str = Field(..., alias="checkOut")
    guests: int
    total_price: Optional[int] = Field(None, alias="totalPrice")
    status: str = "confirmed"
    created_at: datetime = Field(default_factory=datetime.utcnow, alias="createdAt")


class BookingCreateRequest(BaseModel):
    """
    Body of POST /api/bookings.

    Fields are optional so the endpoint can answer 400 INCOMPLETE_BOOKING_DATA
    itself instead of a validation error.
    """
    model_config = ConfigDict(populate_by_name=True)

    hotel_id: Optional[int] = Field(None, alias="hotelId")
    hotel_name: Optional[str] = Field(None, alias="hotelName", max_length=200)
    check_in: Optional[str] = Field(None, alias="checkIn", max_length=32)
    check_out: Optional[str] = Field(None, alias="checkOut", max_length=32)
    guests: Optional[int] = Field(None, ge=1)
    total_price: Optional[int] = Field(None, alias="totalPrice", ge=0)

    def is_complete(self) -> bool:
        return bool(self.hotel_id and self.hotel_name and self.check_in and self.check_out and self.guests)


class BookingCreateResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    message: str
    booking_id: int = Field(..., alias="bookingId")
