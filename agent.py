"""
Booking assistant turn orchestration.

Each user message runs one turn: extract reservation slots, get a reply
from Gemini (or straight from the fallback responder when Gemini is not
configured), append the user and assistant turns to the session
transcript, persist them, and return the reply. The booking state is never
stored; it is derived from the slots after every turn.
"""

import asyncio
import time
from dataclasses import dataclass
from typing import Dict, List, Optional

from starlette.concurrency import run_in_threadpool

from database import ConversationStore, StorageError
from gemini_client import GeminiClient
from models import (
    BookingState, ChatSession, DEFAULT_CATALOG, HotelRef, ReservationSlots, Turn, find_hotel
)
from tools import FallbackResponder, PERSONA, build_prompt, extract
from logger import get_logger

logger = get_logger(__name__)


class AgentError(Exception):
    """Custom exception for agent errors."""
    pass


class InvalidInputError(AgentError):
    """Client-side input problem, reported before any processing."""

    def __init__(self, message: str, code: str):
        super().__init__(message)
        self.code = code


class SessionAccessDenied(AgentError):
    """The session is bound to a different user."""
    pass


@dataclass
class TurnResult:
    """Outcome of one handled turn."""
    reply: str
    session_id: str
    slots: ReservationSlots
    state: BookingState
    confirmed: bool
    source: str
    reservation: Optional[str] = None
    booking_id: Optional[int] = None


class SessionManager:
    """In-memory registry of chat sessions with expiry."""

    def __init__(self, persona: str = PERSONA, ttl_hours: int = 24):
        self.persona = persona
        self.ttl_hours = ttl_hours
        self._sessions: Dict[str, ChatSession] = {}

    def get(self, session_id: str) -> Optional[ChatSession]:
        return self._sessions.get(session_id)

    def get_or_create(self, session_id: str, user_id: Optional[str] = None) -> ChatSession:
        """
        Return the live session, creating it (or replacing an expired one)
        with the persona as its first, system turn.

        Raises:
            SessionAccessDenied: The live session belongs to another user
        """
        session = self._sessions.get(session_id)

        if session is not None and session.is_expired(self.ttl_hours):
            logger.info("Session expired, creating new", session_id=session_id)
            session = None

        if session is None:
            session = ChatSession(id=session_id, user_id=user_id)
            session.add_turn("system", self.persona)
            self._sessions[session_id] = session
            logger.info("New session created", session_id=session_id)
        elif session.user_id and session.user_id != user_id:
            logger.warning("Session access denied", session_id=session_id, requester_id=user_id)
            raise SessionAccessDenied(f"Session {session_id} belongs to another user")
        elif user_id:
            session.user_id = user_id

        return session

    def delete(self, session_id: str) -> bool:
        return self._sessions.pop(session_id, None) is not None

    def cleanup_expired(self) -> int:
        expired_ids = [
            session_id
            for session_id, session in self._sessions.items()
            if session.is_expired(self.ttl_hours)
        ]
        for session_id in expired_ids:
            del self._sessions[session_id]

        logger.info("Cleaned up expired sessions", count=len(expired_ids))
        return len(expired_ids)

    def stats(self) -> Dict[str, int]:
        sessions = list(self._sessions.values())
        active_count = sum(1 for s in sessions if not s.is_expired(self.ttl_hours))
        return {
            "total_sessions": len(sessions),
            "active_sessions": active_count,
            "expired_sessions": len(sessions) - active_count,
            "total_messages": sum(len(s.transcript) for s in sessions),
        }

    def clear(self) -> None:
        self._sessions.clear()


class BookingAgent:
    """
    Conversation orchestrator for hotel reservations.

    All collaborators are passed in; the agent owns only its session
    registry.
    """

    def __init__(
        self,
        completion_client: GeminiClient,
        store: ConversationStore,
        fallback: Optional[FallbackResponder] = None,
        catalog: Optional[List[HotelRef]] = None,
        sessions: Optional[SessionManager] = None,
        persona: str = PERSONA,
        typing_delay: float = 1.2,
        max_prompt_chars: int = 2000
    ):
        """
        Args:
            completion_client: Gemini client (falls back internally on failure)
            store: Conversation persistence
            fallback: Rule-based responder, defaults to the client's own
            catalog: Hotels offered in prompts and recommendations
            sessions: Session registry, a fresh one by default
            persona: System persona opening every prompt
            typing_delay: Minimum seconds a turn takes, simulating typing
            max_prompt_chars: Cap applied to the user message in the prompt
        """
        self.completion_client = completion_client
        self.store = store
        self.fallback = fallback or completion_client.fallback
        self.catalog = list(catalog) if catalog is not None else list(DEFAULT_CATALOG)
        self.sessions = sessions or SessionManager(persona=persona)
        self.persona = persona
        self.typing_delay = max(0.0, typing_delay)
        self.max_prompt_chars = max_prompt_chars

    async def handle_message(
        self,
        session_id: Optional[str],
        prompt: Optional[str],
        user_id: Optional[str] = None
    ) -> TurnResult:
        """
        Process one user message to completion.

        Args:
            session_id: Client-generated session identifier
            prompt: Raw user message
            user_id: Authenticated user, if any

        Returns:
            TurnResult with the reply and the updated reservation progress

        Raises:
            InvalidInputError: Missing prompt or session id
            SessionAccessDenied: Session bound to another user
        """
        message = (prompt or "").strip()
        if not message:
            raise InvalidInputError("Prompt is required", code="MISSING_PROMPT")

        session_id = (session_id or "").strip()
        if not session_id:
            raise InvalidInputError("Session ID required for conversation tracking", code="NO_SESSION_ID")

        session = self.sessions.get_or_create(session_id, user_id)

        async with session.lock:
            start_time = time.time()

            slots = extract(message, session.slots, self.catalog)

            if self.completion_client.is_configured:
                source = "completion"
                full_prompt = build_prompt(
                    self.persona,
                    slots,
                    self.catalog,
                    session.transcript,
                    message,
                    max_utterance_chars=self.max_prompt_chars,
                )
                reply = await run_in_threadpool(
                    self.completion_client.complete, full_prompt, message, slots
                )
            else:
                source = "fallback"
                reply = self.fallback.respond(message, slots)

            reservation = None
            booking_id = None
            if slots.confirmed and slots.is_complete():
                if slots.hotel is None and self.fallback.recommendations:
                    slots = slots.model_copy(update={"hotel": self.fallback.recommendations[0]})
                reservation = slots.summary()
                logger.info("Reservation confirmed", session_id=session_id, reservation=reservation)
                # a repeated confirmation does not book twice
                if user_id and slots.hotel is not None and not session.confirmed:
                    booking_id = await self._book(user_id, slots)

            session.slots = slots
            session.confirmed = slots.confirmed

            await self._simulate_typing(start_time)

            user_turn = session.add_turn("user", message)
            assistant_turn = session.add_turn("assistant", reply)
            await self._persist(session_id, user_id, [user_turn, assistant_turn])

            state = session.state
            logger.turn(
                session_id=session_id,
                state=state.value,
                source=source,
                duration_ms=(time.time() - start_time) * 1000,
            )

            return TurnResult(
                reply=reply,
                session_id=session_id,
                slots=slots,
                state=state,
                confirmed=slots.confirmed,
                source=source,
                reservation=reservation,
                booking_id=booking_id,
            )

    async def select_hotel(
        self,
        session_id: str,
        hotel_id: int,
        user_id: Optional[str] = None
    ) -> TurnResult:
        """
        Bind a catalog hotel to the session's reservation (hotel card click).

        Raises:
            InvalidInputError: Missing session id or unknown hotel
            SessionAccessDenied: Session bound to another user
        """
        session_id = (session_id or "").strip()
        if not session_id:
            raise InvalidInputError("Session ID required for conversation tracking", code="NO_SESSION_ID")

        hotel = find_hotel(self.catalog, hotel_id)
        if hotel is None:
            raise InvalidInputError(f"Unknown hotel: {hotel_id}", code="UNKNOWN_HOTEL")

        session = self.sessions.get_or_create(session_id, user_id)

        async with session.lock:
            session.slots = session.slots.model_copy(update={"hotel": hotel, "confirmed": False})
            session.confirmed = False

            reply = self.fallback.hotel_details(hotel)
            assistant_turn = session.add_turn("assistant", reply)
            await self._persist(session_id, user_id, [assistant_turn])

            logger.info("Hotel selected", session_id=session_id, hotel_id=hotel.id)

            return TurnResult(
                reply=reply,
                session_id=session_id,
                slots=session.slots,
                state=session.state,
                confirmed=False,
                source="catalog",
            )

    async def _simulate_typing(self, start_time: float) -> None:
        remaining = self.typing_delay - (time.time() - start_time)
        if remaining > 0:
            await asyncio.sleep(remaining)

    async def _book(self, user_id: str, slots: ReservationSlots) -> Optional[int]:
        """Record the confirmed reservation for the user, None when storage fails."""
        try:
            return await run_in_threadpool(
                self.store.create_booking,
                user_id,
                slots.hotel.id,
                slots.hotel.name,
                slots.check_in,
                slots.check_out,
                slots.guests,
                slots.total_price(),
            )
        except StorageError as e:
            logger.error("Reservation confirmed without a saved booking", user_id=user_id, error=str(e))
            return None

    async def _persist(self, session_id: str, user_id: Optional[str], turns: List[Turn]) -> None:
        """Save the turns; a storage failure never costs the user the reply."""
        try:
            record_id = await run_in_threadpool(self.store.append, session_id, user_id, turns)
            logger.debug("Turn persisted", session_id=session_id, record_id=record_id)
        except StorageError as e:
            logger.error("Reply returned without a saved record", session_id=session_id, error=str(e))
