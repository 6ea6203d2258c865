"""
Gemini REST client for assistant replies.

complete() never raises: whatever goes wrong (no credentials, bad status,
timeout, network error, unexpected body) is logged as a completion_failure
event and the reply comes from the FallbackResponder instead.
"""

import time
from typing import Any, Dict, Optional
from urllib.parse import urlparse

import requests

from models import ReservationSlots
from tools import FallbackResponder
from logger import get_logger

logger = get_logger(__name__)

PROVIDER_DOMAIN = "googleapis.com"
PLACEHOLDER_KEYS = {"YOUR_GEMINI_API_KEY_HERE", "CHANGE_ME", "changeme"}


class MalformedResponseError(Exception):
    """Completion body lacks candidates[0].content.parts[0].text."""
    pass


class GeminiClient:
    """Single-shot generateContent calls with a fallback reply on any failure."""

    def __init__(
        self,
        api_key: str,
        api_url: str,
        fallback: FallbackResponder,
        timeout: float = 8.0,
        temperature: float = 0.2,
        top_k: int = 40,
        top_p: float = 0.95,
        max_output_tokens: int = 512
    ):
        """
        Args:
            api_key: Gemini API key
            api_url: Full generateContent endpoint URL
            fallback: Responder used whenever the call cannot produce a reply
            timeout: Seconds before the request is abandoned
        """
        self.api_key = (api_key or "").strip()
        self.api_url = (api_url or "").strip()
        self.fallback = fallback
        self.timeout = timeout
        self.generation_config = {
            "temperature": temperature,
            "topK": top_k,
            "topP": top_p,
            "maxOutputTokens": max_output_tokens,
        }
        self.is_configured = self.check_configuration()

    @property
    def model_name(self) -> str:
        """Model segment of the endpoint path, e.g. 'gemini-2.0-flash-lite'."""
        path = urlparse(self.api_url).path
        tail = path.rsplit("/", 1)[-1]
        return tail.split(":", 1)[0] or "gemini"

    def check_configuration(self) -> bool:
        has_api_key = bool(self.api_key) and self.api_key not in PLACEHOLDER_KEYS \
            and not self.api_key.startswith("YOUR_")
        host = urlparse(self.api_url).hostname or ""
        has_api_url = self.api_url.startswith("https://") and (
            host == PROVIDER_DOMAIN or host.endswith("." + PROVIDER_DOMAIN)
        )

        if not has_api_key:
            logger.warning("Gemini API key not configured, replies will use the fallback responder")
        elif not has_api_url:
            logger.warning("Gemini API URL not recognized", host=host or "missing")

        return has_api_key and has_api_url

    def complete(
        self,
        prompt: str,
        utterance: Optional[str] = None,
        slots: Optional[ReservationSlots] = None
    ) -> str:
        """
        Return the model reply, or the fallback reply on any failure.

        Args:
            prompt: Full prompt text
            utterance: Latest user message for the fallback rules (defaults to prompt)
            slots: Current slots for the fallback rules

        Returns:
            Reply text
        """
        fallback_input = utterance if utterance is not None else prompt

        if not self.is_configured:
            logger.completion_failure("unconfigured")
            return self.fallback.respond(fallback_input, slots)

        start_time = time.time()
        try:
            response = requests.post(
                self.api_url,
                params={"key": self.api_key},
                headers={"Content-Type": "application/json"},
                json=self._request_body(prompt),
                timeout=self.timeout,
            )
            response.raise_for_status()
        except requests.Timeout:
            logger.completion_failure("timeout", timeout_s=self.timeout)
            return self.fallback.respond(fallback_input, slots)

        except requests.HTTPError as http_err:
            status = getattr(http_err.response, "status_code", None)
            logger.completion_failure("http_status", status=status)
            return self.fallback.respond(fallback_input, slots)

        except requests.RequestException as e:
            logger.completion_failure("transport", error=type(e).__name__, detail=str(e)[:200])
            return self.fallback.respond(fallback_input, slots)

        try:
            text = self._extract_text(response.json())
        except (ValueError, MalformedResponseError) as e:
            # ValueError covers a non-JSON body
            logger.completion_failure("malformed_body", detail=str(e)[:200])
            return self.fallback.respond(fallback_input, slots)

        duration = (time.time() - start_time) * 1000
        logger.llm_call(model=self.model_name, duration_ms=duration, response_length=len(text))
        return text

    def _request_body(self, prompt: str) -> Dict[str, Any]:
        return {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": dict(self.generation_config),
        }

    @staticmethod
    def _extract_text(data: Any) -> str:
        try:
            text = data["candidates"][0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError):
            raise MalformedResponseError("missing candidates[0].content.parts[0].text")

        if not isinstance(text, str) or not text.strip():
            raise MalformedResponseError("empty completion text")
        return text.strip()
