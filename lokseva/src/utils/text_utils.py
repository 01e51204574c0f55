"""
LokSeva - Text Utilities
=========================
Helpers for cleaning model output and client payloads, and for
rendering catalog / conversation data into prompt-ready text.

These utilities are consumed by the core engines and the seeding job
and should remain stateless and side-effect-free.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping

# ── Markdown code fences (```json … ```) wrapped around model output ──
_CODE_FENCE_RE = re.compile(r"```(?:json)?")

# ── Characters removed from generated titles ──────────────────────────
_TITLE_NOISE_RE = re.compile(r"['\"\n]")


def strip_code_fences(text: str) -> str:
    """
    Remove Markdown code-fence delimiters from a model response.

    Gemini frequently wraps JSON answers in ```json … ``` even when asked
    for raw JSON.  Only the delimiters are removed; the body is kept.

    Examples::

        '```json\\n{"a": 1}\\n```'  → '{"a": 1}'
        'plain text'               → 'plain text'
    """
    return _CODE_FENCE_RE.sub("", text).strip()


def strip_data_uri(payload: str) -> str:
    """
    Return the base64 body of a ``data:<mime>;base64,<body>`` URI.

    Payloads without a comma are returned unchanged.
    """
    if "," in payload:
        return payload.split(",", 1)[1]
    return payload


def clean_title(raw: str, max_chars: int) -> str:
    """Strip quotes and newlines from a generated title and cut it to *max_chars*."""
    return _TITLE_NOISE_RE.sub("", raw)[:max_chars].strip()


def preview(text: str, max_chars: int) -> str:
    """Short preview used in conversation summaries (always ends with an ellipsis)."""
    return text[:max_chars] + "..."


def describe_agency(agency: Mapping[str, object]) -> str:
    """
    Synthesize the sentence that gets embedded for an agency.

    Example::

        "CareFirst offers nursing, physiotherapy in Andheri. Rating: 4.6."
    """
    location = agency.get("location") or {}
    area = location.get("area", "") if isinstance(location, Mapping) else ""
    services = ", ".join(agency.get("services") or [])
    return f"{agency.get('name', '')} offers {services} in {area}. Rating: {agency.get('rating')}."


def format_transcript(messages: Iterable[Mapping[str, object]]) -> str:
    """Render stored messages as ``SENDER: text`` lines."""
    return "\n".join(f"{str(m.get('sender', '')).upper()}: {m.get('text', '')}" for m in messages)
