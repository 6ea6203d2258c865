"""
Relational conversation store.

One row per save call: the chat endpoint writes the user turn and the
assistant reply of each exchange as a new row, and "the" conversation of a
session is the most recently written row.
"""

import json
from datetime import datetime
from typing import List, Optional

from sqlalchemy import Column, DateTime, Integer, String, Text, create_engine, select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from models import BookingRecord, ConversationRecord, Turn
from logger import get_logger

logger = get_logger(__name__)

Base = declarative_base()


class StorageError(Exception):
    """Conversation store failure - wraps SQLAlchemy exceptions."""
    pass


class ConversationNotFound(StorageError):
    """No conversation stored for the session."""
    pass


class ConversationAccessDenied(StorageError):
    """Conversation belongs to another user."""
    pass


class ConversationRow(Base):
    __tablename__ = "conversations"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(64), index=True, nullable=True)
    session_id = Column(String(128), index=True, nullable=False)
    messages = Column(Text, nullable=False)  # JSON list of turns
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


class BookingRow(Base):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(64), index=True, nullable=False)
    hotel_id = Column(Integer, nullable=False)
    hotel_name = Column(String(200), nullable=False)
    check_in = Column(String(32), nullable=False)
    check_out = Column(String(32), nullable=False)
    guests = Column(Integer, nullable=False)
    total_price = Column(Integer, nullable=True)
    status = Column(String(32), default="confirmed", nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)


def _serialize(turns: List[Turn]) -> str:
    return json.dumps([turn.model_dump(mode="json") for turn in turns], ensure_ascii=False)


def _to_record(row: ConversationRow) -> ConversationRecord:
    return ConversationRecord(
        id=row.id,
        session_id=row.session_id,
        user_id=row.user_id,
        messages=[Turn(**item) for item in json.loads(row.messages)],
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _to_booking(row: BookingRow) -> BookingRecord:
    return BookingRecord(
        id=row.id,
        user_id=row.user_id,
        hotel_id=row.hotel_id,
        hotel_name=row.hotel_name,
        check_in=row.check_in,
        check_out=row.check_out,
        guests=row.guests,
        total_price=row.total_price,
        status=row.status,
        created_at=row.created_at,
    )


class ConversationStore:
    """Persists and reads conversation snapshots keyed by session id."""

    def __init__(self, database_url: str = "sqlite:///./stayava.db"):
        self.database_url = database_url
        engine_kwargs = {}
        if database_url.startswith("sqlite"):
            engine_kwargs["connect_args"] = {"check_same_thread": False}
            if database_url in ("sqlite://", "sqlite:///:memory:"):
                # keep one shared connection so the in-memory database survives
                engine_kwargs["poolclass"] = StaticPool

        self.engine = create_engine(database_url, **engine_kwargs)
        self.SessionLocal = sessionmaker(bind=self.engine, autoflush=False, expire_on_commit=False)

    def init_db(self) -> None:
        """Create the conversations and bookings tables if missing."""
        try:
            Base.metadata.create_all(bind=self.engine)
            logger.info("Tables created/verified", url=self.engine.url.render_as_string(hide_password=True))
        except SQLAlchemyError as e:
            logger.storage_error("init_db", str(e))
            raise StorageError(f"Failed to initialize database: {e}") from e

    def append(self, session_id: str, user_id: Optional[str], turns: List[Turn]) -> int:
        """
        Store a new snapshot for the session.

        Args:
            session_id: Session the turns belong to
            user_id: Authenticated owner, or None for anonymous sessions
            turns: Messages of this save, in order

        Returns:
            Id of the new record
        """
        row = ConversationRow(
            user_id=user_id,
            session_id=session_id,
            messages=_serialize(turns),
        )
        try:
            with self.SessionLocal() as db:
                db.add(row)
                db.commit()
                db.refresh(row)
        except SQLAlchemyError as e:
            logger.storage_error("append", str(e), session_id=session_id)
            raise StorageError(f"Failed to save conversation: {e}") from e

        logger.debug("Conversation saved", record_id=row.id, session_id=session_id, messages=len(turns))
        return row.id

    def update(self, record_id: int, turns: List[Turn]) -> ConversationRecord:
        """Replace the message list of an existing record."""
        try:
            with self.SessionLocal() as db:
                row = db.get(ConversationRow, record_id)
                if row is None:
                    raise ConversationNotFound(f"Conversation {record_id} not found")
                row.messages = _serialize(turns)
                row.updated_at = datetime.utcnow()
                db.commit()
                db.refresh(row)
                return _to_record(row)
        except SQLAlchemyError as e:
            logger.storage_error("update", str(e), record_id=record_id)
            raise StorageError(f"Failed to update conversation: {e}") from e

    def get_latest(self, session_id: str) -> Optional[ConversationRecord]:
        """Most recently written record of the session, or None."""
        stmt = (
            select(ConversationRow)
            .where(ConversationRow.session_id == session_id)
            .order_by(ConversationRow.updated_at.desc(), ConversationRow.id.desc())
            .limit(1)
        )
        try:
            with self.SessionLocal() as db:
                row = db.execute(stmt).scalars().first()
                return _to_record(row) if row else None
        except SQLAlchemyError as e:
            logger.storage_error("get_latest", str(e), session_id=session_id)
            raise StorageError(f"Failed to read conversation: {e}") from e

    def get_for_requester(self, session_id: str, requester_id: Optional[str]) -> ConversationRecord:
        """
        Latest record of the session, subject to ownership.

        Anonymous records are readable by anyone holding the session id;
        a record bound to a user is readable only by that user.

        Raises:
            ConversationNotFound: Nothing stored for the session
            ConversationAccessDenied: Record owned by someone else
        """
        record = self.get_latest(session_id)
        if record is None:
            raise ConversationNotFound(f"No conversation for session {session_id}")
        if record.user_id is not None and record.user_id != requester_id:
            logger.warning("Conversation access denied", session_id=session_id, requester_id=requester_id)
            raise ConversationAccessDenied(f"Conversation for session {session_id} belongs to another user")
        return record

    def list_for_user(self, user_id: str, limit: int = 20) -> List[ConversationRecord]:
        """Records owned by the user, most recent first."""
        stmt = (
            select(ConversationRow)
            .where(ConversationRow.user_id == user_id)
            .order_by(ConversationRow.created_at.desc(), ConversationRow.id.desc())
            .limit(limit)
        )
        try:
            with self.SessionLocal() as db:
                return [_to_record(row) for row in db.execute(stmt).scalars().all()]
        except SQLAlchemyError as e:
            logger.storage_error("list_for_user", str(e), user_id=user_id)
            raise StorageError(f"Failed to read conversation history: {e}") from e

    def create_booking(
        self,
        user_id: str,
        hotel_id: int,
        hotel_name: str,
        check_in: str,
        check_out: str,
        guests: int,
        total_price: Optional[int] = None,
    ) -> int:
        """
        Store a confirmed reservation for the user.

        Returns:
            Id of the new booking
        """
        row = BookingRow(
            user_id=user_id,
            hotel_id=hotel_id,
            hotel_name=hotel_name,
            check_in=check_in,
            check_out=check_out,
            guests=guests,
            total_price=total_price,
        )
        try:
            with self.SessionLocal() as db:
                db.add(row)
                db.commit()
                db.refresh(row)
        except SQLAlchemyError as e:
            logger.storage_error("create_booking", str(e), user_id=user_id)
            raise StorageError(f"Failed to save booking: {e}") from e

        logger.info("Booking saved", booking_id=row.id, user_id=user_id, hotel_id=hotel_id)
        return row.id

    def list_bookings_for_user(self, user_id: str) -> List[BookingRecord]:
        """Bookings owned by the user, most recent first."""
        stmt = (
            select(BookingRow)
            .where(BookingRow.user_id == user_id)
            .order_by(BookingRow.created_at.desc(), BookingRow.id.desc())
        )
        try:
            with self.SessionLocal() as db:
                return [_to_booking(row) for row in db.execute(stmt).scalars().all()]
        except SQLAlchemyError as e:
            logger.storage_error("list_bookings_for_user", str(e), user_id=user_id)
            raise StorageError(f"Failed to read bookings: {e}") from e

    def health_check(self) -> dict:
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return {"healthy": True, "details": "Connected"}
        except SQLAlchemyError as e:
            return {
                "healthy": False,
                "details": {"exception_type": type(e).__name__, "message": str(e)}
            }

    def close(self) -> None:
        self.engine.dispose()
