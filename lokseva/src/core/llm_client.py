"""
LokSeva - Gemini Client
========================
Thin wrappers around Google Gemini for the three kinds of call the
service makes:

``RotatingEmbedder``
    LangChain ``GoogleGenerativeAIEmbeddings`` behind the ``Embedder``
    protocol.  Each call is made with a randomly chosen API key.

``GeminiClient.generate``
    Text-only generation through ``ChatGoogleGenerativeAI`` (chat answers
    and conversation titles).

``GeminiClient.generate_with_image``
    Multimodal generation through the ``google-genai`` SDK, with the
    image attached as inline bytes (home-safety audit).

Key Rotation
------------
Every call picks one key uniformly at random from
``settings.gemini_api_keys``.  There is no retry: a rate-limited key
simply fails the request.
"""

from __future__ import annotations

import random
from typing import Protocol, runtime_checkable

from lokseva.config.settings import settings
from lokseva.src.utils.logger import get_logger

logger = get_logger(__name__)


@runtime_checkable
class Embedder(Protocol):
    """Anything that can produce embedding vectors from text."""

    def embed_documents(self, texts: list[str]) -> list[list[float]]: ...

    def embed_query(self, text: str) -> list[float]: ...


def pick_api_key(keys: list[str] | None = None) -> str:
    """Return one Gemini key chosen uniformly at random."""
    keys = keys if keys is not None else settings.gemini_api_keys
    if not keys:
        raise RuntimeError("No Gemini API keys configured.")
    return random.choice(keys)


def _message_text(response: object) -> str:
    """Flatten a LangChain message's content into plain text."""
    content = getattr(response, "content", response)
    if isinstance(content, list):
        parts = [part.get("text", "") if isinstance(part, dict) else str(part) for part in content]
        return "".join(parts)
    return str(content)


class RotatingEmbedder:
    """
    ``Embedder`` that builds a ``GoogleGenerativeAIEmbeddings`` per call,
    each time with a freshly picked API key.
    """

    __slots__ = ("_model", "_keys")

    def __init__(self, model: str | None = None, keys: list[str] | None = None) -> None:
        self._model = model or settings.EMBEDDING_MODEL
        self._keys = keys


    def _client(self) -> object:
        from langchain_google_genai import GoogleGenerativeAIEmbeddings

        return GoogleGenerativeAIEmbeddings(model=self._model, google_api_key=pick_api_key(self._keys))


    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        return self._client().embed_documents(texts)  # type: ignore[attr-defined]


    def embed_query(self, text: str) -> list[float]:
        return self._client().embed_query(text)  # type: ignore[attr-defined]


class GeminiClient:
    """
    Async text and vision generation against Gemini.

    Parameters
    ----------
    model
        Text model id.  Defaults to ``settings.LLM_MODEL``.
    vision_model
        Multimodal model id.  Defaults to ``settings.VISION_MODEL``.
    temperature
        Sampling temperature for text generation.
    keys
        Override the key pool (tests).
    """

    __slots__ = ("_model", "_vision_model", "_temperature", "_keys")

    def __init__(self, model: str | None = None, vision_model: str | None = None, temperature: float | None = None, keys: list[str] | None = None) -> None:
        self._model = model or settings.LLM_MODEL
        self._vision_model = vision_model or settings.VISION_MODEL
        self._temperature = settings.LLM_TEMPERATURE if temperature is None else temperature
        self._keys = keys
        logger.info("Gemini client ready: text=%s, vision=%s, keys=%d", self._model, self._vision_model, len(keys if keys is not None else settings.gemini_api_keys))


    async def generate(self, prompt: str) -> str:
        """Send a single text prompt and return the model's text."""
        from langchain_google_genai import ChatGoogleGenerativeAI

        llm = ChatGoogleGenerativeAI(model=self._model, temperature=self._temperature, google_api_key=pick_api_key(self._keys))
        response = await llm.ainvoke(prompt)
        return _message_text(response)


    async def generate_with_image(self, prompt: str, image: bytes, mime_type: str = "image/jpeg") -> str:
        """Send a prompt plus one inline image and return the model's text."""
        from google import genai
        from google.genai import types

        async with genai.Client(api_key=pick_api_key(self._keys)).aio as client:
            response = await client.models.generate_content(model=self._vision_model, contents=[prompt, types.Part.from_bytes(data=image, mime_type=mime_type)])

        if not response.text:
            logger.warning("[VISION] Empty response from Gemini.")
            return ""
        return response.text
