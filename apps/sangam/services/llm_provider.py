"""
Generative model provider for answer synthesis. Takes a fully built prompt, returns plain text.

When ENV=test (or LLM_PROVIDER=deterministic), uses DeterministicAnswerProvider (no network).
Otherwise Gemini via google-generativeai, imported and configured lazily on first call,
so deterministic runs never load the SDK.
"""

import logging
from typing import Protocol, runtime_checkable

from apps.sangam.config import Settings
from apps.sangam.errors import ConfigurationError

logger = logging.getLogger(__name__)

CONTEXT_MARKER = "CONTEXT FROM PREVIOUS CONVERSATIONS:\n"
QUESTION_MARKER = "\n\nUSER QUESTION:"


@runtime_checkable
class LLMProvider(Protocol):
    """Protocol for text generation."""

    def generate(self, prompt: str) -> str:
        ...


class DeterministicAnswerProvider:
    """
    Deterministic provider for tests. No network.
    Echoes the context block of the prompt, so answers contain the retrieved text verbatim.
    """

    def generate(self, prompt: str) -> str:
        start = prompt.find(CONTEXT_MARKER)
        if start == -1:
            return "Deterministic response."
        start += len(CONTEXT_MARKER)
        end = prompt.find(QUESTION_MARKER, start)
        context = prompt[start:] if end == -1 else prompt[start:end]
        return f"Based on previous conversations:\n{context.strip()}"


class GeminiProvider:
    """Gemini text generation. One request per call; no retry."""

    def __init__(self, api_key: str, model: str = "gemini-2.5-flash") -> None:
        self.api_key = api_key
        self.model_id = model
        self._model = None

    def _get_model(self):
        if self._model is None:
            if not self.api_key:
                raise ConfigurationError("GEMINI_API_KEY is not set")
            import google.generativeai as genai

            genai.configure(api_key=self.api_key)
            self._model = genai.GenerativeModel(self.model_id)
        return self._model

    def generate(self, prompt: str) -> str:
        resp = self._get_model().generate_content(prompt)
        try:
            return resp.text or ""
        except ValueError:
            # Blocked or empty candidates: .text raises instead of returning "".
            logger.warning("gemini: response had no text model=%s", self.model_id)
            return ""


def llm_provider_name(settings: Settings) -> str:
    """LLM_PROVIDER wins; otherwise ENV=test => deterministic, else gemini."""
    if settings.llm_provider in ("deterministic", "gemini"):
        return settings.llm_provider
    return "deterministic" if settings.is_test else "gemini"


def create_llm_provider(settings: Settings) -> LLMProvider:
    """Build the generation provider selected by settings."""
    if llm_provider_name(settings) == "deterministic":
        logger.info("Using deterministic LLM provider (no network)")
        return DeterministicAnswerProvider()
    logger.info("Using Gemini LLM provider model=%s", settings.gemini_model)
    return GeminiProvider(settings.gemini_api_key, settings.gemini_model)
