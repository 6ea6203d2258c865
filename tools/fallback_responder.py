"""
Rule-based replies used whenever the completion provider is unavailable.

The rules are checked in a fixed order that mirrors the slot extractor, and
each maps to one canned reply. This responder needs no network and no
credentials, so it is what keeps the assistant answering when Gemini is
unconfigured or failing.
"""

from typing import List, Optional

from models import DEFAULT_CATALOG, HotelRef, ReservationSlots
from .slot_extractor import (
    CITY_KEYWORD_PATTERN,
    DEPARTURE_KEYWORD_PATTERN,
    find_date,
    find_guest_count,
    is_confirmation,
    is_greeting,
    is_reset,
    looks_like_place_name,
)

WELCOME_MESSAGE = (
    "Bonjour ! 👋 Bienvenue chez Stayava. Je suis votre assistant de réservation. "
    "Dans quelle ville souhaitez-vous séjourner ?"
)
ASK_CITY = "Avec plaisir ! Dans quelle ville souhaitez-vous séjourner ?"
ASK_CHECK_IN = "Excellent choix ! Quand souhaitez-vous arriver ? (Format : JJ/MM/AAAA ou AAAA-MM-JJ)"
ASK_CHECK_OUT = "Super ! Et quand prévoyez-vous de partir ? (Date de départ)"
ASK_GUESTS = "Parfait ! Combien de personnes voyageront avec vous ?"
BOOKING_CONFIRMED = (
    "Magnifique ! 🎊 Votre réservation est confirmée !\n\n"
    "Vous recevrez un email de confirmation sous peu avec tous les détails.\n\n"
    "Puis-je vous aider pour autre chose ?"
)
ASK_CITY_AGAIN = "Pas de problème ! Dans quelle ville souhaitez-vous séjourner ?"
ASK_ALL_FIELDS = (
    "Je comprends. Pour vous aider au mieux, j'ai besoin de quelques informations : "
    "la ville, les dates d'arrivée et de départ, et le nombre de personnes."
)

RECOMMENDATION_COUNT = 3


class FallbackResponder:
    """Deterministic next-turn replies from keyword rules and slot state."""

    def __init__(self, catalog: Optional[List[HotelRef]] = None):
        self.catalog = list(catalog) if catalog is not None else list(DEFAULT_CATALOG)

    @property
    def recommendations(self) -> List[HotelRef]:
        return self.catalog[:RECOMMENDATION_COUNT]

    def respond(self, utterance: str, slots: Optional[ReservationSlots] = None) -> str:
        """
        Pick the reply of the first matching rule.

        Args:
            utterance: Latest user message
            slots: Slots after extraction of this message, if known

        Returns:
            Reply text, never empty
        """
        text = (utterance or "").strip()
        slots = slots or ReservationSlots()

        if CITY_KEYWORD_PATTERN.search(text) or looks_like_place_name(text):
            return ASK_CHECK_IN

        if find_date(text):
            departure_context = bool(DEPARTURE_KEYWORD_PATTERN.search(text)) or bool(
                slots.check_in and slots.check_out
            )
            return ASK_GUESTS if departure_context else ASK_CHECK_OUT

        if find_guest_count(text):
            return self.recommendation_message()

        if is_confirmation(text):
            return BOOKING_CONFIRMED if slots.is_complete() else self.next_question(slots)

        if is_reset(text):
            return ASK_CITY_AGAIN

        if is_greeting(text):
            return WELCOME_MESSAGE

        return ASK_ALL_FIELDS

    @staticmethod
    def next_question(slots: ReservationSlots) -> str:
        """Question for the first reservation field still missing."""
        if not slots.city:
            return ASK_CITY
        if not slots.check_in:
            return ASK_CHECK_IN
        if not slots.check_out:
            return ASK_CHECK_OUT
        if not slots.guests:
            return ASK_GUESTS
        return ASK_ALL_FIELDS

    def recommendation_message(self) -> str:
        blocks = [
            f"🏨 {hotel.name} - {hotel.formatted_price()}\n"
            f"⭐ Note : {hotel.rating:.1f} | 📍 {hotel.location}"
            for hotel in self.recommendations
        ]
        return (
            "Parfait ! 🎉\n\nVoici mes meilleures recommandations pour vous :\n\n"
            + "\n\n".join(blocks)
            + "\n\nSouhaitez-vous réserver l'un de ces hôtels ?"
        )

    @staticmethod
    def hotel_details(hotel: HotelRef) -> str:
        """Reply shown when the user picks a hotel card on the site."""
        return (
            f"Excellent choix ! 🏨\n\n{hotel.name}\n💰 {hotel.formatted_price()}\n"
            f"⭐ {hotel.rating}/5\n📍 {hotel.location}\n\n"
            "Souhaitez-vous réserver cet hôtel ? Si oui, indiquez-moi vos dates d'arrivée et de départ."
        )
