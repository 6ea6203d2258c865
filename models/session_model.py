"""
Data model for an in-progress chat session.
"""

import asyncio
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field, PrivateAttr

from .conversation_model import Turn
from .reservation_model import BookingState, ReservationSlots, derive_state

MAX_TRANSCRIPT_TURNS = 100


class ChatSession(BaseModel):
    """Transcript and reservation progress of one browser-tab session."""
    id: str
    user_id: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    last_active: datetime = Field(default_factory=datetime.utcnow)
    transcript: List[Turn] = Field(default_factory=list)
    slots: ReservationSlots = Field(default_factory=ReservationSlots)
    confirmed: bool = False

    _lock: asyncio.Lock = PrivateAttr(default_factory=asyncio.Lock)

    @property
    def lock(self) -> asyncio.Lock:
        """Held for the whole of a turn so turns of one session never overlap."""
        return self._lock

    @property
    def state(self) -> BookingState:
        return derive_state(self.slots, self.confirmed)

    def add_turn(self, role: str, content: str) -> Turn:
        """Append a turn to the transcript."""
        turn = Turn(role=role, content=content)
        self.transcript.append(turn)
        self.last_active = datetime.utcnow()

        if len(self.transcript) > MAX_TRANSCRIPT_TURNS:
            # keep the leading system turn
            head = self.transcript[:1] if self.transcript[0].role == "system" else []
            self.transcript = head + self.transcript[-(MAX_TRANSCRIPT_TURNS - len(head)):]
        return turn

    def is_expired(self, hours: int = 24) -> bool:
        """Check if session has expired."""
        time_diff = datetime.utcnow() - self.last_active
        return time_diff.total_seconds() > (hours * 3600)
