"""
Reservation slot extraction from free-text user messages.

Heuristics run in a fixed order: reset, hotel, city, date, guest count,
confirmation. Each category stops at its first match but independent
categories may all fill from the same message, e.g. a date and a guest
count. The token patterns are shared with the fallback responder so both
read a message the same way.
"""

import re
from typing import Iterable, Optional

from models import HotelRef, ReservationSlots

DATE_PATTERN = re.compile(r"\b(\d{2}/\d{2}/\d{4}|\d{4}-\d{2}-\d{2})\b")
GUEST_PATTERN = re.compile(r"\b(\d{1,4})\s*(?:guests?|persons?|people|personnes?)\b", re.IGNORECASE)
BARE_NUMBER_PATTERN = re.compile(r"^\d{1,3}$")
DIGIT_PATTERN = re.compile(r"\d")

CONFIRM_PATTERN = re.compile(r"\b(?:yes|oui)\b|\br[ée]serv", re.IGNORECASE)
RESET_PATTERN = re.compile(r"\b(?:no|non|autre)\b", re.IGNORECASE)
GREETING_PATTERN = re.compile(r"\b(?:bonjour|salut|hello|hi)\b", re.IGNORECASE)
CITY_KEYWORD_PATTERN = re.compile(r"\b(?:ville|city)\b", re.IGNORECASE)
DEPARTURE_KEYWORD_PATTERN = re.compile(r"d[ée]part|check-?out|departure", re.IGNORECASE)

# Bare numbers at or above this are not read as a guest count.
MAX_BARE_GUESTS = 20


def is_confirmation(text: str) -> bool:
    return bool(CONFIRM_PATTERN.search(text))


def is_reset(text: str) -> bool:
    return bool(RESET_PATTERN.search(text))


def is_greeting(text: str) -> bool:
    return bool(GREETING_PATTERN.search(text))


def has_intent_token(text: str) -> bool:
    return is_confirmation(text) or is_reset(text) or is_greeting(text)


def find_date(text: str) -> Optional[str]:
    """First DD/MM/YYYY or YYYY-MM-DD substring, as written."""
    match = DATE_PATTERN.search(text)
    return match.group(1) if match else None


def find_guest_count(text: str) -> Optional[int]:
    """
    Guest count from '<n> guests/people/personnes', or from a message that
    is nothing but a number below MAX_BARE_GUESTS once dates are removed.
    """
    match = GUEST_PATTERN.search(text)
    if match:
        count = int(match.group(1))
        return count if count > 0 else None

    remainder = DATE_PATTERN.sub("", text).strip()
    if BARE_NUMBER_PATTERN.match(remainder):
        count = int(remainder)
        if 0 < count < MAX_BARE_GUESTS:
            return count
    return None


def looks_like_place_name(text: str) -> bool:
    """A message with no digits, no question mark and no intent keyword."""
    stripped = text.strip()
    if not stripped or DIGIT_PATTERN.search(stripped):
        return False
    if stripped.endswith("?"):
        return False
    return not has_intent_token(stripped)


def find_hotel_mention(text: str, catalog: Iterable[HotelRef]) -> Optional[HotelRef]:
    """Catalog hotel whose distinctive name ('Langham', 'Peninsula'...) appears in the text."""
    lowered = text.lower()
    for hotel in catalog:
        key = hotel.short_name.lower()
        if key.startswith("the "):
            key = key[4:]
        if key and key in lowered:
            return hotel
    return None


def extract(
    utterance: str,
    current: Optional[ReservationSlots] = None,
    catalog: Optional[Iterable[HotelRef]] = None
) -> ReservationSlots:
    """
    Return the slots updated with what the utterance adds.

    Args:
        utterance: Raw user message
        current: Slots collected so far (not modified)
        catalog: Hotels that may be named in the message

    Returns:
        A new ReservationSlots. A reset message yields empty slots; a
        message with nothing to extract yields the current slots with
        `confirmed` cleared.
    """
    slots = current or ReservationSlots()
    text = (utterance or "").strip()

    if not text:
        return slots.model_copy(update={"confirmed": False})

    if is_reset(text):
        return ReservationSlots()

    updates = {}

    hotel = find_hotel_mention(text, catalog) if catalog else None
    if hotel is not None:
        updates["hotel"] = hotel

    if not slots.city and hotel is None and looks_like_place_name(text):
        updates["city"] = text.rstrip(".!,;").strip()

    date = find_date(text)
    if date:
        if not slots.check_in:
            updates["check_in"] = date
        elif date != slots.check_in:
            updates["check_out"] = date

    guests = find_guest_count(text)
    if guests and not slots.guests:
        updates["guests"] = guests

    updates["confirmed"] = is_confirmation(text)
    return slots.model_copy(update=updates)
