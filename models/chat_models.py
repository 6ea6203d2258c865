"""
Request and response payloads of the chat and conversation endpoints.
"""

from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field

from .conversation_model import Turn
from .reservation_model import BookingState, ReservationSlots


class ChatRequest(BaseModel):
    """Body of POST /api/chat. Presence is checked by the endpoint so it can answer 400."""
    model_config = ConfigDict(populate_by_name=True)

    prompt: Optional[str] = None
    session_id: Optional[str] = Field(None, alias="sessionId", max_length=128)


class HotelSelectionRequest(BaseModel):
    """Body of POST /api/chat/hotel, sent when a hotel card is clicked."""
    model_config = ConfigDict(populate_by_name=True)

    session_id: str = Field(..., alias="sessionId", min_length=1, max_length=128)
    hotel_id: int = Field(..., alias="hotelId")


class ChatResponse(BaseModel):
    """Assistant reply together with the reservation progress."""
    model_config = ConfigDict(populate_by_name=True)

    text: str
    session_id: str = Field(..., alias="sessionId")
    state: BookingState
    slots: ReservationSlots
    confirmed: bool = False
    reservation: Optional[str] = None
    booking_id: Optional[int] = Field(None, alias="bookingId")


class ConversationSaveRequest(BaseModel):
    """Body of POST /api/conversations."""
    model_config = ConfigDict(populate_by_name=True)

    session_id: Optional[str] = Field(None, alias="sessionId", max_length=128)
    messages: Optional[List[Turn]] = None


class ConversationSaveResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    message: str
    conversation_id: int = Field(..., alias="conversationId")
