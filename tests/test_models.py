"""
Unit tests for models - hotel catalog, reservation slots, turns and sessions.
"""

import pytest
from datetime import datetime, timedelta
from pydantic import ValidationError
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from models import (
    BookingCreateRequest, BookingState, ChatRequest, ChatResponse, ChatSession, ConversationRecord,
    DEFAULT_CATALOG, HotelRef, ReservationSlots, Turn, derive_state, find_hotel
)
from models.session_model import MAX_TRANSCRIPT_TURNS
from tests.test_logger import test_logger


class TestHotelRef:
    """Test catalog entries."""

    def setup_method(self):
        test_logger.log_section("TESTING: models/hotel_models.py - HotelRef")

    def test_formatted_price(self):
        with test_logger.case("hotel_models.py", "HotelRef.formatted_price", "space_grouping"):
            hotel = find_hotel(DEFAULT_CATALOG, 1)
            assert hotel.formatted_price() == "1 240 000 DH/nuit"

    def test_short_name(self):
        with test_logger.case("hotel_models.py", "HotelRef.short_name", "strip_city"):
            assert find_hotel(DEFAULT_CATALOG, 2).short_name == "The Langham"

    def test_hotel_is_immutable(self):
        with test_logger.case("hotel_models.py", "HotelRef", "frozen"):
            with pytest.raises(ValidationError):
                DEFAULT_CATALOG[0].price = 1

    def test_rating_bounds(self):
        with test_logger.case("hotel_models.py", "HotelRef", "rating_bounds"):
            with pytest.raises(ValidationError):
                HotelRef(id=9, name="X", price=10, location="Y", rating=6.0)

    def test_find_hotel_unknown(self):
        with test_logger.case("hotel_models.py", "find_hotel", "unknown_id"):
            assert find_hotel(DEFAULT_CATALOG, 99) is None

    def test_catalog_ids_unique(self):
        with test_logger.case("hotel_models.py", "DEFAULT_CATALOG", "unique_ids"):
            ids = [hotel.id for hotel in DEFAULT_CATALOG]
            assert len(ids) == len(set(ids)) == 5


class TestReservationSlots:
    """Test slot completeness, labels and serialization."""

    def setup_method(self):
        test_logger.log_section("TESTING: models/reservation_model.py - ReservationSlots")

    def test_is_complete(self):
        with test_logger.case("reservation_model.py", "ReservationSlots.is_complete", "all_required"):
            slots = ReservationSlots(city="Marrakech", check_in="12/09/2025", check_out="20/09/2025")
            assert not slots.is_complete()
            assert slots.model_copy(update={"guests": 2}).is_complete()

    def test_hotel_not_required(self):
        with test_logger.case("reservation_model.py", "ReservationSlots.is_complete", "hotel_optional"):
            slots = ReservationSlots(city="Rabat", check_in="a", check_out="b", guests=1)
            assert slots.hotel is None
            assert slots.is_complete()

    def test_missing_fields_order(self):
        with test_logger.case("reservation_model.py", "ReservationSlots.missing_fields", "order"):
            assert ReservationSlots(check_in="12/09/2025").missing_fields() == [
                "Ville de destination", "Date de départ", "Nombre de personnes"
            ]

    def test_guests_must_be_positive(self):
        with test_logger.case("reservation_model.py", "ReservationSlots", "guests_positive"):
            with pytest.raises(ValidationError):
                ReservationSlots(guests=0)

    def test_camel_case_aliases(self):
        with test_logger.case("reservation_model.py", "ReservationSlots", "aliases"):
            slots = ReservationSlots(checkIn="2025-09-12", checkOut="2025-09-20")
            dumped = slots.model_dump(by_alias=True)
            assert dumped["checkIn"] == "2025-09-12"
            assert dumped["checkOut"] == "2025-09-20"
            assert "confirmed" not in dumped

    def test_summary_includes_hotel(self):
        with test_logger.case("reservation_model.py", "ReservationSlots.summary", "with_hotel"):
            slots = ReservationSlots(
                city="Marrakech", check_in="12/09/2025", check_out="20/09/2025",
                guests=2, hotel=DEFAULT_CATALOG[0]
            )
            summary = slots.summary()
            assert summary.startswith("Réservation pour 2 personne(s) à Marrakech")
            assert "The Ritz-Carlton, Melbourne" in summary

    @pytest.mark.parametrize("check_in, check_out, expected", [
        ("12/09/2025", "20/09/2025", 8),
        ("2025-09-12", "2025-09-14", 2),
        ("12/09/2025", "2025-09-13", 1),
        ("20/09/2025", "12/09/2025", None),
        ("12/09/2025", "12/09/2025", None),
        ("31/02/2025", "12/03/2025", None),
        ("12/09/2025", None, None),
    ])
    def test_nights(self, check_in, check_out, expected):
        with test_logger.case("reservation_model.py", "ReservationSlots.nights", f"{check_in}->{check_out}"):
            assert ReservationSlots(check_in=check_in, check_out=check_out).nights() == expected

    def test_total_price(self):
        with test_logger.case("reservation_model.py", "ReservationSlots.total_price", "hotel_times_nights"):
            slots = ReservationSlots(check_in="12/09/2025", check_out="20/09/2025")
            assert slots.total_price() is None
            assert slots.model_copy(update={"hotel": DEFAULT_CATALOG[4]}).total_price() == 1680000 * 8


class TestDeriveState:
    """The booking state is a pure function of slots and confirmation."""

    def setup_method(self):
        test_logger.log_section("TESTING: models/reservation_model.py - derive_state")

    @pytest.mark.parametrize("slots,expected", [
        (ReservationSlots(), BookingState.AWAITING_CITY),
        (ReservationSlots(city="Fes"), BookingState.AWAITING_CHECKIN),
        (ReservationSlots(city="Fes", check_in="2025-09-12"), BookingState.AWAITING_CHECKOUT),
        (ReservationSlots(city="Fes", check_in="2025-09-12", check_out="2025-09-20"),
         BookingState.AWAITING_GUESTS),
        (ReservationSlots(city="Fes", check_in="2025-09-12", check_out="2025-09-20", guests=3),
         BookingState.AWAITING_CONFIRMATION),
    ])
    def test_state_follows_first_missing_slot(self, slots, expected):
        with test_logger.case("reservation_model.py", "derive_state", expected.value):
            assert derive_state(slots) == expected

    def test_confirmed_requires_complete_slots(self):
        with test_logger.case("reservation_model.py", "derive_state", "confirm_incomplete"):
            assert derive_state(ReservationSlots(city="Fes"), confirmed=True) == BookingState.AWAITING_CHECKIN

    def test_confirmed(self):
        with test_logger.case("reservation_model.py", "derive_state", "confirmed"):
            slots = ReservationSlots(city="Fes", check_in="a", check_out="b", guests=2)
            assert derive_state(slots, confirmed=True) == BookingState.CONFIRMED

    def test_same_inputs_same_state(self):
        with test_logger.case("reservation_model.py", "derive_state", "pure"):
            slots = ReservationSlots(city="Fes", check_in="a")
            assert derive_state(slots) == derive_state(slots.model_copy())


class TestTurnAndRecord:
    """Test conversation turns and stored records."""

    def setup_method(self):
        test_logger.log_section("TESTING: models/conversation_model.py")

    def test_turn_is_immutable(self):
        with test_logger.case("conversation_model.py", "Turn", "frozen"):
            turn = Turn(role="user", content="Bonjour")
            with pytest.raises(ValidationError):
                turn.content = "changed"

    def test_turn_role_restricted(self):
        with test_logger.case("conversation_model.py", "Turn", "role_values"):
            with pytest.raises(ValidationError):
                Turn(role="bot", content="x")

    def test_record_aliases(self):
        with test_logger.case("conversation_model.py", "ConversationRecord", "aliases"):
            record = ConversationRecord(id=1, sessionId="s1", userId="u1")
            dumped = record.model_dump(by_alias=True)
            assert dumped["sessionId"] == "s1"
            assert dumped["userId"] == "u1"
            assert "createdAt" in dumped


class TestChatSession:
    """Test in-memory session transcripts."""

    def setup_method(self):
        test_logger.log_section("TESTING: models/session_model.py - ChatSession")

    def test_state_derived_from_slots(self):
        with test_logger.case("session_model.py", "ChatSession.state", "derived"):
            session = ChatSession(id="s1")
            assert session.state == BookingState.AWAITING_CITY
            session.slots = ReservationSlots(city="Agadir")
            assert session.state == BookingState.AWAITING_CHECKIN

    def test_add_turn_appends_in_order(self):
        with test_logger.case("session_model.py", "ChatSession.add_turn", "order"):
            session = ChatSession(id="s1")
            session.add_turn("user", "un")
            session.add_turn("assistant", "deux")
            assert [t.content for t in session.transcript] == ["un", "deux"]

    def test_transcript_cap_keeps_system_turn(self):
        with test_logger.case("session_model.py", "ChatSession.add_turn", "cap_keeps_system"):
            session = ChatSession(id="s1")
            session.add_turn("system", "persona")
            for i in range(MAX_TRANSCRIPT_TURNS + 10):
                session.add_turn("user", f"message {i}")

            assert len(session.transcript) == MAX_TRANSCRIPT_TURNS
            assert session.transcript[0].role == "system"
            assert session.transcript[-1].content == f"message {MAX_TRANSCRIPT_TURNS + 9}"

    def test_is_expired(self):
        with test_logger.case("session_model.py", "ChatSession.is_expired", "ttl"):
            session = ChatSession(id="s1")
            assert not session.is_expired(24)
            session.last_active = datetime.utcnow() - timedelta(hours=25)
            assert session.is_expired(24)


class TestChatPayloads:
    """Test endpoint payloads."""

    def setup_method(self):
        test_logger.log_section("TESTING: models/chat_models.py")

    def test_chat_request_accepts_camel_case(self):
        with test_logger.case("chat_models.py", "ChatRequest", "camel_case"):
            request = ChatRequest(prompt="Marrakech", sessionId="abc")
            assert request.session_id == "abc"

    def test_chat_request_fields_optional(self):
        with test_logger.case("chat_models.py", "ChatRequest", "optional_fields"):
            request = ChatRequest()
            assert request.prompt is None
            assert request.session_id is None

    def test_chat_request_prompt_unbounded(self):
        with test_logger.case("chat_models.py", "ChatRequest", "long_prompt"):
            assert len(ChatRequest(prompt="a" * 20001, sessionId="abc").prompt) == 20001

    def test_booking_request_completeness(self):
        with test_logger.case("booking_model.py", "BookingCreateRequest.is_complete", "required_fields"):
            request = BookingCreateRequest(
                hotelId=1, hotelName="The Ritz-Carlton, Melbourne", checkIn="2025-09-12", checkOut="2025-09-14", guests=2
            )
            assert request.is_complete()
            assert request.total_price is None
            assert not request.model_copy(update={"check_out": None}).is_complete()
            assert not BookingCreateRequest().is_complete()

    def test_booking_request_rejects_bad_values(self):
        with test_logger.case("booking_model.py", "BookingCreateRequest", "validation"):
            with pytest.raises(ValidationError):
                BookingCreateRequest(guests=0)
            with pytest.raises(ValidationError):
                BookingCreateRequest(totalPrice=-1)

    def test_chat_response_serializes_state(self):
        with test_logger.case("chat_models.py", "ChatResponse", "serialization"):
            response = ChatResponse(
                text="Bonjour",
                session_id="abc",
                state=BookingState.AWAITING_CITY,
                slots=ReservationSlots()
            )
            dumped = response.model_dump(by_alias=True, mode="json")
            assert dumped["sessionId"] == "abc"
            assert dumped["state"] == "awaiting_city"
