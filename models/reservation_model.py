"""
Reservation slots and the booking state derived from them.
"""

from datetime import date, datetime
from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field

from .hotel_models import HotelRef

DATE_FORMATS = ("%d/%m/%Y", "%Y-%m-%d")


def parse_date(value: Optional[str]) -> Optional[date]:
    """Date from DD/MM/YYYY or YYYY-MM-DD text, None when it is neither."""
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(value or "", fmt).date()
        except ValueError:
            continue
    return None


class ReservationSlots(BaseModel):
    """
    Reservation details collected so far in a conversation.

    `confirmed` is transient: it reflects the latest utterance only and is
    never serialized.
    """
    model_config = ConfigDict(populate_by_name=True)

    city: Optional[str] = None
    check_in: Optional[str] = Field(None, alias="checkIn")
    check_out: Optional[str] = Field(None, alias="checkOut")
    guests: Optional[int] = Field(None, ge=1)
    hotel: Optional[HotelRef] = None
    confirmed: bool = Field(False, exclude=True)

    def is_complete(self) -> bool:
        """A reservation is complete once city, both dates and guests are set."""
        return bool(self.city and self.check_in and self.check_out and self.guests)

    def missing_fields(self) -> List[str]:
        """Labels of the required fields still unset, in collection order."""
        labels = [
            (self.city, "Ville de destination"),
            (self.check_in, "Date d'arrivée"),
            (self.check_out, "Date de départ"),
            (self.guests, "Nombre de personnes"),
        ]
        return [label for value, label in labels if not value]

    def nights(self) -> Optional[int]:
        """Length of stay, None when a date is missing, unreadable or out of order."""
        arrival, departure = parse_date(self.check_in), parse_date(self.check_out)
        if arrival is None or departure is None or departure <= arrival:
            return None
        return (departure - arrival).days

    def total_price(self) -> Optional[int]:
        """Hotel nightly price times the number of nights, when both are known."""
        nights = self.nights()
        if self.hotel is None or nights is None:
            return None
        return self.hotel.price * nights

    def summary(self) -> str:
        text = f"Réservation pour {self.guests} personne(s) à {self.city} du {self.check_in} au {self.check_out}"
        if self.hotel:
            text += f" ({self.hotel.name})"
        return text


class BookingState(str, Enum):
    """Conversation state, always recomputed from the slots."""
    AWAITING_CITY = "awaiting_city"
    AWAITING_CHECKIN = "awaiting_checkin"
    AWAITING_CHECKOUT = "awaiting_checkout"
    AWAITING_GUESTS = "awaiting_guests"
    AWAITING_CONFIRMATION = "awaiting_confirmation"
    CONFIRMED = "confirmed"


def derive_state(slots: ReservationSlots, confirmed: bool = False) -> BookingState:
    """
    Compute the booking state from slot contents and the confirmation flag.

    A confirmation only counts once the reservation is complete.
    """
    if not slots.city:
        return BookingState.AWAITING_CITY
    if not slots.check_in:
        return BookingState.AWAITING_CHECKIN
    if not slots.check_out:
        return BookingState.AWAITING_CHECKOUT
    if not slots.guests:
        return BookingState.AWAITING_GUESTS
    if confirmed:
        return BookingState.CONFIRMED
    return BookingState.AWAITING_CONFIRMATION
