"""
Prompt construction for the Gemini completion call.
"""

from typing import Iterable, List, Optional

from models import HotelRef, ReservationSlots, Turn

DEFAULT_MAX_UTTERANCE_CHARS = 2000

PERSONA = """Tu es un assistant de réservation d'hôtels de luxe pour Stayava.

RÔLE :
- Tu aides les clients à réserver des hôtels de luxe
- Tu es professionnel, chaleureux et efficace
- Tu poses des questions claires et précises"""

INSTRUCTIONS = """INSTRUCTIONS :
- Sois concis (maximum 3-4 phrases)
- Utilise des emojis avec modération (🏨 ⭐ 📍 🎉)
- Une fois toutes les infos collectées, propose 2-3 hôtels adaptés
- Confirme la réservation si le client accepte
- Reste naturel et conversationnel"""


def format_catalog(catalog: Iterable[HotelRef]) -> str:
    lines = [
        f"- {hotel.name} : {hotel.formatted_price()} ({hotel.rating:.1f}⭐) - {hotel.location}"
        for hotel in catalog
    ]
    return "HÔTELS DISPONIBLES :\n" + "\n".join(lines)


def format_slots(slots: ReservationSlots) -> str:
    collected = [
        ("Ville", slots.city),
        ("Arrivée", slots.check_in),
        ("Départ", slots.check_out),
        ("Personnes", slots.guests),
        ("Hôtel choisi", slots.hotel.name if slots.hotel else None),
    ]
    lines = [f"- {label} : {value}" for label, value in collected if value]
    missing = slots.missing_fields()

    parts = ["INFORMATIONS DÉJÀ COLLECTÉES :\n" + ("\n".join(lines) if lines else "- Aucune")]
    if missing:
        numbered = "\n".join(f"{idx}. {label}" for idx, label in enumerate(missing, 1))
        parts.append(f"INFORMATIONS À COLLECTER (dans l'ordre) :\n{numbered}")
    else:
        parts.append("Toutes les informations sont collectées : propose les hôtels et demande confirmation.")
    return "\n\n".join(parts)


def format_transcript(transcript: Iterable[Turn]) -> str:
    """Render user and assistant turns as Client:/Assistant: lines; system turns are left out."""
    lines = []
    for turn in transcript:
        if turn.role == "user":
            lines.append(f"Client: {turn.content}")
        elif turn.role == "assistant":
            lines.append(f"Assistant: {turn.content}")
    return "\n".join(lines)


def build(
    persona: str,
    slots: ReservationSlots,
    catalog: Iterable[HotelRef],
    transcript: List[Turn],
    latest_utterance: str,
    max_utterance_chars: Optional[int] = DEFAULT_MAX_UTTERANCE_CHARS
) -> str:
    """
    Build the full completion prompt.

    Args:
        persona: Role description opening the prompt
        slots: Slots collected so far, including this turn's extraction
        catalog: Hotels the assistant may recommend
        transcript: Earlier turns of the session, oldest first
        latest_utterance: The message being answered
        max_utterance_chars: Cap applied to the latest message only; extra
            characters are dropped silently

    Returns:
        Prompt text
    """
    utterance = (latest_utterance or "").strip()
    if max_utterance_chars is not None:
        utterance = utterance[:max_utterance_chars]

    history = format_transcript(transcript) or "(début de la conversation)"

    return (
        f"{persona}\n\n"
        f"{format_slots(slots)}\n\n"
        f"{format_catalog(catalog)}\n\n"
        f"{INSTRUCTIONS}\n\n"
        f"HISTORIQUE DE CONVERSATION :\n{history}\n\n"
        f"Client: {utterance}\n\n"
        "Réponds maintenant uniquement en tant qu'assistant (maximum 4 phrases) :"
    )
