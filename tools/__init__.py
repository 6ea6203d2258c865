"""Conversation tools for the booking assistant."""

from .slot_extractor import extract
from .prompt_builder import PERSONA, build as build_prompt
from .fallback_responder import FallbackResponder, WELCOME_MESSAGE

__all__ = ["extract", "PERSONA", "build_prompt", "FallbackResponder", "WELCOME_MESSAGE"]
