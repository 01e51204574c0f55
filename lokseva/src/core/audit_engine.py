"""
LokSeva - Home-Safety Audit Engine
===================================
Personalised accessibility audit of a single room photo.

Flow:
    1. Profile lookup → age + medical history (or a generic elderly context)
    2. Clean the image payload → strip ``data:`` URI prefix, base64-decode
    3. Build prompt → NBC 2016 reference checklist + user context + room type
    4. Call the multimodal model with the image attached as inline bytes
    5. Strip code fences and return the text **unvalidated**

The report is returned as a string; the mobile client parses the JSON
itself.
"""

from __future__ import annotations

import base64
import binascii
import time

from lokseva.config.prompt_templates import AUDIT_CONTEXT_TEMPLATE, AUDIT_PROMPT_TEMPLATE, DEFAULT_AUDIT_CONTEXT, DEFAULT_ROOM_TYPE, NBC_STANDARDS
from lokseva.src.core.exceptions import InvalidImageError
from lokseva.src.core.llm_client import GeminiClient
from lokseva.src.database.mongo_store import ProfileRepository
from lokseva.src.utils.logger import get_logger
from lokseva.src.utils.text_utils import strip_code_fences, strip_data_uri

logger = get_logger(__name__)


def decode_image(payload: str) -> bytes:
    """
    Decode a base64 image, with or without a ``data:`` URI prefix.

    Line breaks and other whitespace are ignored, so MIME-style payloads
    wrapped every 76 characters decode the same as unwrapped ones.
    """
    body = "".join(strip_data_uri(payload).split())
    try:
        image = base64.b64decode(body, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise InvalidImageError("Image payload is not valid base64.") from exc
    if not image:
        raise InvalidImageError("Image payload is empty.")
    return image


class HomeSafetyAuditor:
    """Runs the vision audit for one user and one photo."""

    __slots__ = ("_llm", "_profiles")

    def __init__(self, llm: GeminiClient, profiles: ProfileRepository) -> None:
        self._llm = llm
        self._profiles = profiles


    async def audit(self, user_email: str, image_base64: str, room_type: str | None = None) -> str:
        """
        Return the model's audit report as cleaned text.

        Raises
        ------
        InvalidImageError
            If the image cannot be decoded.  Raised before any model call.
        """
        image = decode_image(image_base64)

        profile = await self._profiles.get(user_email)
        if profile:
            user_context = AUDIT_CONTEXT_TEMPLATE.format(age=profile.get("age"), medical_history=profile.get("medicalHistory"))
        else:
            user_context = DEFAULT_AUDIT_CONTEXT

        medical = profile.get("medicalHistory") if profile else None
        logger.info("[AUDIT] Request from %s | room=%s | context=%s | %d bytes", user_email, room_type or DEFAULT_ROOM_TYPE, medical or "None", len(image))

        prompt = AUDIT_PROMPT_TEMPLATE.format(standards=NBC_STANDARDS, user_context=user_context, room_type=room_type or DEFAULT_ROOM_TYPE)

        t_llm = time.perf_counter()
        report = strip_code_fences(await self._llm.generate_with_image(prompt, image, mime_type="image/jpeg"))
        logger.info("[AUDIT] Report generated in %.1fms (%d chars)", (time.perf_counter() - t_llm) * 1000, len(report))
        return report
