"""
LokSeva - RAG Engine
=====================
Orchestrates the conversational retrieval flow for ``POST /api/chat``.

Architecture
------------
``RAGManager``
    Stateless pipeline orchestrator.  Flow:
        1. Profile lookup → personalised or anonymous context
        2. Conversation lookup → last ``HISTORY_WINDOW`` messages as transcript
        3. Retrieve → embed the raw message, top-K agencies from the vector index
        4. Build prompt → profile + transcript + verified agencies + rules
        5. Call Gemini → strip code fences → parse JSON reply
        6. Ground → drop recommendations naming agencies that were not retrieved
        7. Save → append to the conversation, or create it with a generated title
        8. Return reply, recommendations, conversation id and title

Nothing is retried.  Downstream exceptions propagate to the route, which
turns them into a generic 500.  A reply that does not parse as JSON is
*not* an error: the raw text becomes the reply and the recommendation
list is empty.

Usage:
    from lokseva.src.core.rag_engine import RAGManager
    rag = RAGManager(vector_store, llm, profiles, conversations)
    result = await rag.generate_response("asha@example.com", "Need a night nurse in Pune")
"""

from __future__ import annotations

import asyncio
import json
import time

from pydantic import ValidationError

from lokseva.config.prompt_templates import AGENCY_CONTEXT_LINE, ANONYMOUS_PROFILE, CHAT_PROMPT_TEMPLATE, DEFAULT_TITLE, NO_AGENCIES_FOUND, PROFILE_CONTEXT_TEMPLATE, TITLE_PROMPT_TEMPLATE
from lokseva.config.settings import settings
from lokseva.src.api.schemas import ChatOut, ChatReply, Recommendation
from lokseva.src.core.exceptions import ConversationNotFoundError
from lokseva.src.core.llm_client import GeminiClient
from lokseva.src.database.mongo_store import ConversationRepository, ProfileRepository
from lokseva.src.database.vector_store import AgencyVectorStore, SearchResult
from lokseva.src.utils.logger import get_logger
from lokseva.src.utils.text_utils import clean_title, format_transcript, strip_code_fences

logger = get_logger(__name__)


class RAGManager:
    """
    Chat pipeline: profile → history → retrieve → generate → parse → persist.

    Parameters
    ----------
    vector_store
        An ``AgencyVectorStore`` (or anything with a compatible ``search``).
    llm
        A ``GeminiClient`` (or anything with an async ``generate``).
    profiles, conversations
        MongoDB repositories.
    top_k, history_window, title_max_chars
        Overrides for the corresponding settings.
    """

    __slots__ = ("_store", "_llm", "_profiles", "_conversations", "_top_k", "_history_window", "_title_max_chars")

    def __init__(self, vector_store: AgencyVectorStore, llm: GeminiClient, profiles: ProfileRepository, conversations: ConversationRepository, top_k: int | None = None, history_window: int | None = None, title_max_chars: int | None = None) -> None:
        self._store = vector_store
        self._llm = llm
        self._profiles = profiles
        self._conversations = conversations
        self._top_k = top_k or settings.SEARCH_TOP_K
        self._history_window = history_window or settings.HISTORY_WINDOW
        self._title_max_chars = title_max_chars or settings.TITLE_MAX_CHARS


    async def generate_response(self, user_email: str, message: str, conversation_id: str | None = None) -> ChatOut:
        """
        Run the full chat pipeline for one message.

        Raises
        ------
        ConversationNotFoundError
            If *conversation_id* is given but malformed or unknown.
        """
        t_start = time.perf_counter()

        # ── 1. Profile context ────────────────────────────────────────
        profile = await self._profiles.get(user_email)
        user_context = self._format_profile(profile)
        logger.info("[CHAT] Profile for '%s': %s", user_email, "found" if profile else "anonymous")

        # ── 2. Conversation transcript ────────────────────────────────
        conversation = None
        history_str = ""
        if conversation_id:
            conversation = await self._conversations.get_recent(conversation_id, self._history_window)
            if conversation is None:
                raise ConversationNotFoundError(conversation_id)
            history_str = format_transcript(conversation.get("messages", []))

        # ── 3. Retrieve agencies ──────────────────────────────────────
        t_search = time.perf_counter()
        matches: list[SearchResult] = await asyncio.to_thread(self._store.search, message, self._top_k)
        search_ms = (time.perf_counter() - t_search) * 1000
        logger.info("[CHAT] Retrieved %d agencies in %.1fms", len(matches), search_ms)

        # ── 4. Build prompt ───────────────────────────────────────────
        prompt = CHAT_PROMPT_TEMPLATE.format(user_context=user_context, history=history_str, agency_context=self._format_agencies(matches), question=message)

        # ── 5. Generate + parse ───────────────────────────────────────
        t_llm = time.perf_counter()
        raw = strip_code_fences(await self._llm.generate(prompt))
        llm_ms = (time.perf_counter() - t_llm) * 1000
        parsed = self._parse_reply(raw)

        # ── 6. Ground recommendations ─────────────────────────────────
        parsed = self._ground_recommendations(parsed, matches)

        # ── 7. Persist ────────────────────────────────────────────────
        exchange = [("user", message), ("bot", parsed.reply)]
        if conversation is not None:
            title = conversation.get("title")
            if not title:
                title = await self._generate_title(message)
                await self._conversations.append(conversation_id, exchange, title=title)  # type: ignore[arg-type]
            else:
                await self._conversations.append(conversation_id, exchange)  # type: ignore[arg-type]
        else:
            title = await self._generate_title(message)
            conversation_id = await self._conversations.create(user_email, title, exchange)

        total_ms = (time.perf_counter() - t_start) * 1000
        logger.info("[CHAT] Pipeline total: %.1fms (search=%.1f, llm=%.1f), %d recommendation(s)", total_ms, search_ms, llm_ms, len(parsed.recommendations))

        return ChatOut(reply=parsed.reply, recommendations=parsed.recommendations, conversation_id=conversation_id, title=title)

    # ══════════════════════════════════════════════════════════════════
    #  PROMPT FORMATTING
    # ══════════════════════════════════════════════════════════════════

    @staticmethod
    def _format_profile(profile: dict[str, object] | None) -> str:
        if not profile:
            return ANONYMOUS_PROFILE
        return PROFILE_CONTEXT_TEMPLATE.format(name=profile.get("name"), age=profile.get("age"), medical_history=profile.get("medicalHistory"), address=profile.get("address"))


    @staticmethod
    def _format_agencies(matches: list[SearchResult]) -> str:
        """One line per retrieved agency, or the fixed no-match marker."""
        if not matches:
            return NO_AGENCIES_FOUND
        return "\n".join(AGENCY_CONTEXT_LINE.format(name=m.get("name"), services=m.get("services"), rating=m.get("rating"), area=m.get("area")) for m in matches)

    # ══════════════════════════════════════════════════════════════════
    #  OUTPUT HANDLING
    # ══════════════════════════════════════════════════════════════════

    @staticmethod
    def _parse_reply(raw: str) -> ChatReply:
        """
        Parse the model's JSON reply.

        Output that is not a JSON object with a string ``reply`` becomes a
        plain reply.  Recommendations are validated one by one; malformed
        entries are dropped without discarding the reply.
        """
        try:
            data = json.loads(raw)
        except ValueError:
            data = None
        if not isinstance(data, dict) or not isinstance(data.get("reply"), str):
            logger.warning("[CHAT] Model output is not the expected JSON, returning it as plain text.")
            return ChatReply(reply=raw, recommendations=[])

        candidates = data.get("recommendations")
        recommendations: list[Recommendation] = []
        for item in candidates if isinstance(candidates, list) else []:
            try:
                recommendations.append(Recommendation.model_validate(item))
            except ValidationError:
                logger.warning("[CHAT] Skipping malformed recommendation: %r", item)
        return ChatReply(reply=data["reply"], recommendations=recommendations)


    @staticmethod
    def _ground_recommendations(parsed: ChatReply, matches: list[SearchResult]) -> ChatReply:
        """Keep only recommendations whose name matches a retrieved agency."""
        known = {str(m.get("name", "")).strip().lower() for m in matches}
        kept = [rec for rec in parsed.recommendations if rec.name.strip().lower() in known]
        if len(kept) != len(parsed.recommendations):
            logger.warning("[CHAT] Dropped %d recommendation(s) not present in retrieved agencies.", len(parsed.recommendations) - len(kept))
        return ChatReply(reply=parsed.reply, recommendations=kept)


    async def _generate_title(self, message: str) -> str:
        raw = await self._llm.generate(TITLE_PROMPT_TEMPLATE.format(question=message))
        return clean_title(raw, self._title_max_chars) or DEFAULT_TITLE
