"""
Unit tests for database.py - conversation persistence and ownership.
"""

import pytest
from unittest.mock import Mock
from sqlalchemy.exc import OperationalError
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from database import (
    ConversationAccessDenied, ConversationNotFound, ConversationStore, StorageError
)
from models import Turn
from tests.test_logger import test_logger


@pytest.fixture
def store():
    """Fresh in-memory store per test."""
    conversation_store = ConversationStore("sqlite://")
    conversation_store.init_db()
    yield conversation_store
    conversation_store.close()


def turns(*contents):
    roles = ["user", "assistant"]
    return [Turn(role=roles[i % 2], content=content) for i, content in enumerate(contents)]


class TestConversationStore:
    """Test append, read-back and listing."""

    def setup_method(self):
        test_logger.log_section("TESTING: database.py - ConversationStore")

    def test_append_and_read_back(self, store):
        with test_logger.case("database.py", "append", "read_back"):
            record_id = store.append("session-1", None, turns("Marrakech", "Quand arrivez-vous ?"))
            record = store.get_latest("session-1")

            assert record.id == record_id
            assert record.session_id == "session-1"
            assert record.user_id is None
            assert [t.content for t in record.messages] == ["Marrakech", "Quand arrivez-vous ?"]
            assert [t.role for t in record.messages] == ["user", "assistant"]

    def test_latest_record_wins(self, store):
        with test_logger.case("database.py", "get_latest", "most_recent"):
            store.append("session-1", None, turns("premier"))
            second_id = store.append("session-1", None, turns("second"))
            store.append("session-2", None, turns("autre session"))

            record = store.get_latest("session-1")
            assert record.id == second_id
            assert record.messages[0].content == "second"

    def test_unknown_session(self, store):
        with test_logger.case("database.py", "get_latest", "unknown"):
            assert store.get_latest("missing") is None

    def test_unicode_preserved(self, store):
        with test_logger.case("database.py", "append", "unicode"):
            store.append("s", None, turns("Réservation 🎉"))
            assert store.get_latest("s").messages[0].content == "Réservation 🎉"

    def test_update_replaces_messages(self, store):
        with test_logger.case("database.py", "update", "replace"):
            record_id = store.append("s", "u1", turns("un"))
            updated = store.update(record_id, turns("un", "deux"))
            assert len(updated.messages) == 2
            assert updated.updated_at >= updated.created_at

    def test_update_unknown_record(self, store):
        with test_logger.case("database.py", "update", "unknown"):
            with pytest.raises(ConversationNotFound):
                store.update(999, turns("x"))

    def test_list_for_user(self, store):
        with test_logger.case("database.py", "list_for_user", "owned_newest_first"):
            first = store.append("a", "u1", turns("a"))
            store.append("b", "u2", turns("b"))
            second = store.append("c", "u1", turns("c"))
            store.append("d", None, turns("d"))

            records = store.list_for_user("u1")
            assert [r.id for r in records] == [second, first]

    def test_list_limit(self, store):
        with test_logger.case("database.py", "list_for_user", "limit"):
            for i in range(5):
                store.append(f"s{i}", "u1", turns(str(i)))
            assert len(store.list_for_user("u1", limit=3)) == 3

    def test_health_check(self, store):
        with test_logger.case("database.py", "health_check", "connected"):
            assert store.health_check()["healthy"] is True


class TestOwnership:
    """Anonymous records are shared by session id; owned records are private."""

    def setup_method(self):
        test_logger.log_section("TESTING: database.py - Ownership")

    def test_anonymous_record_readable_by_anyone(self, store):
        with test_logger.case("database.py", "get_for_requester", "anonymous_record"):
            store.append("s", None, turns("x"))
            assert store.get_for_requester("s", None).session_id == "s"
            assert store.get_for_requester("s", "u1").session_id == "s"

    def test_owner_can_read(self, store):
        with test_logger.case("database.py", "get_for_requester", "owner"):
            store.append("s", "u1", turns("x"))
            assert store.get_for_requester("s", "u1").user_id == "u1"

    @pytest.mark.parametrize("requester", ["u2", None])
    def test_other_requester_denied(self, store, requester):
        with test_logger.case("database.py", "get_for_requester", f"denied[{requester}]"):
            store.append("s", "u1", turns("x"))
            with pytest.raises(ConversationAccessDenied):
                store.get_for_requester("s", requester)

    def test_not_found(self, store):
        with test_logger.case("database.py", "get_for_requester", "not_found"):
            with pytest.raises(ConversationNotFound):
                store.get_for_requester("missing", "u1")


class TestBookings:
    """Test booking storage."""

    def setup_method(self):
        test_logger.log_section("TESTING: database.py - Bookings")

    def test_create_and_list(self, store):
        with test_logger.case("database.py", "create_booking", "read_back"):
            booking_id = store.create_booking("u1", 2, "The Langham, Gold Coast", "12/09/2025", "20/09/2025", 2, 9920000)

            bookings = store.list_bookings_for_user("u1")
            assert [b.id for b in bookings] == [booking_id]
            booking = bookings[0]
            assert booking.user_id == "u1"
            assert booking.hotel_name == "The Langham, Gold Coast"
            assert booking.check_out == "20/09/2025"
            assert booking.total_price == 9920000
            assert booking.status == "confirmed"
            assert booking.created_at is not None

    def test_price_optional(self, store):
        with test_logger.case("database.py", "create_booking", "no_price"):
            store.create_booking("u1", 1, "The Ritz-Carlton, Melbourne", "2025-09-12", "2025-09-10", 1)
            assert store.list_bookings_for_user("u1")[0].total_price is None

    def test_list_newest_first_and_per_user(self, store):
        with test_logger.case("database.py", "list_bookings_for_user", "ordering"):
            first = store.create_booking("u1", 1, "A", "2025-09-12", "2025-09-13", 1)
            second = store.create_booking("u1", 2, "B", "2025-10-12", "2025-10-13", 1)
            store.create_booking("u2", 3, "C", "2025-11-12", "2025-11-13", 1)

            assert [b.id for b in store.list_bookings_for_user("u1")] == [second, first]
            assert store.list_bookings_for_user("nobody") == []


class TestStorageFailures:
    """SQLAlchemy errors surface as StorageError."""

    def setup_method(self):
        test_logger.log_section("TESTING: database.py - Failures")

    def test_append_failure_wrapped(self):
        with test_logger.case("database.py", "append", "missing_table"):
            # table never created
            bare_store = ConversationStore("sqlite://")
            with pytest.raises(StorageError):
                bare_store.append("s", None, turns("x"))

    def test_booking_failure_wrapped(self):
        with test_logger.case("database.py", "create_booking", "missing_table"):
            bare_store = ConversationStore("sqlite://")
            with pytest.raises(StorageError):
                bare_store.create_booking("u1", 1, "A", "2025-09-12", "2025-09-13", 1)
            with pytest.raises(StorageError):
                bare_store.list_bookings_for_user("u1")

    def test_health_check_reports_failure(self):
        with test_logger.case("database.py", "health_check", "failure"):
            broken_store = ConversationStore("sqlite://")
            broken_store.engine = Mock()
            broken_store.engine.connect.side_effect = OperationalError("SELECT 1", {}, Exception("down"))

            status = broken_store.health_check()
            assert status["healthy"] is False
            assert status["details"]["exception_type"] == "OperationalError"
