"""Data models for the Stayava booking assistant."""

from .hotel_models import HotelRef, DEFAULT_CATALOG, find_hotel
from .reservation_model import ReservationSlots, BookingState, derive_state
from .conversation_model import Turn, ConversationRecord
from .session_model import ChatSession
from .booking_model import BookingRecord, BookingCreateRequest, BookingCreateResponse
from .chat_models import (
    ChatRequest, ChatResponse, HotelSelectionRequest,
    ConversationSaveRequest, ConversationSaveResponse
)

__all__ = [
    "HotelRef", "DEFAULT_CATALOG", "find_hotel",
    "ReservationSlots", "BookingState", "derive_state",
    "Turn", "ConversationRecord", "ChatSession",
    "BookingRecord", "BookingCreateRequest", "BookingCreateResponse",
    "ChatRequest", "ChatResponse", "HotelSelectionRequest",
    "ConversationSaveRequest", "ConversationSaveResponse"
]
