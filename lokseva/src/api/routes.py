"""
LokSeva - API Routes
=====================
Every REST endpoint the mobile app calls:

    POST /api/user/profile        → upsert a user profile
    POST /api/chat                → RAG chat turn
    GET  /api/chat/history        → paginated conversation summaries
    GET  /api/chat/{id}           → one full conversation
    POST /api/audit-image         → home-safety audit of a photo
    GET  /api/agencies            → full agency catalog
    POST /api/seed-vectors        → re-embed the catalog into the vector index

Each handler is a thin controller: it checks required fields (400 with a
field-specific message), delegates to a core engine or repository, and
maps downstream failures to a generic 500.  The exception itself is only
logged.
"""

from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Query

from lokseva.config.prompt_templates import DEFAULT_TITLE
from lokseva.config.settings import settings
from lokseva.src.api.dependencies import get_agency_catalog, get_auditor, get_conversation_repository, get_profile_repository, get_rag_manager, get_seeder
from lokseva.src.api.schemas import AuditIn, AuditOut, ChatIn, ChatOut, Conversation, ConversationSummary, HistoryPage, MessageOut, Profile, ProfileIn, ProfileSaved
from lokseva.src.core.audit_engine import HomeSafetyAuditor
from lokseva.src.core.exceptions import ConversationNotFoundError, InvalidImageError
from lokseva.src.core.rag_engine import RAGManager
from lokseva.src.core.seeder import VectorSeeder
from lokseva.src.database.agency_catalog import FileAgencyCatalog, MongoAgencyCatalog
from lokseva.src.database.mongo_store import ConversationRepository, ProfileRepository
from lokseva.src.utils.logger import get_logger
from lokseva.src.utils.text_utils import preview

logger = get_logger(__name__)

router = APIRouter(prefix="/api")


def _iso_utc(value: object) -> str:
    """ISO-8601 in UTC.  Motor returns naive datetimes that are already UTC."""
    if not isinstance(value, datetime):
        value = datetime.now(timezone.utc)
    elif value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


# ── Agencies ───────────────────────────────────────────────────────────

@router.get("/agencies")
async def list_agencies(catalog: MongoAgencyCatalog | FileAgencyCatalog = Depends(get_agency_catalog)) -> list[dict]:
    try:
        return await catalog.list_all()
    except Exception:
        logger.exception("[CATALOG] Failed to fetch agencies.")
        raise HTTPException(status_code=500, detail="Failed to fetch agencies")


# ── Profile ────────────────────────────────────────────────────────────

@router.post("/user/profile", response_model=ProfileSaved)
async def save_profile(body: ProfileIn, profiles: ProfileRepository = Depends(get_profile_repository)) -> ProfileSaved:
    if not body.email:
        raise HTTPException(status_code=400, detail="Email is required")

    try:
        user = await profiles.upsert(body.email, body.changes())
    except Exception:
        logger.exception("[PROFILE] Failed to save profile for '%s'.", body.email)
        raise HTTPException(status_code=500, detail="Failed to save profile")

    return ProfileSaved(message="Profile saved successfully", user=Profile.model_validate(user))


# ── Chat ───────────────────────────────────────────────────────────────

@router.get("/chat/history", response_model=HistoryPage)
async def chat_history(
    user_email: str | None = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    conversations: ConversationRepository = Depends(get_conversation_repository),
) -> HistoryPage:
    if not user_email:
        raise HTTPException(status_code=400, detail="user_email is required")

    try:
        chats = await conversations.list_for_user(user_email, page, limit)
    except Exception:
        logger.exception("[HISTORY] Failed to fetch history for '%s'.", user_email)
        raise HTTPException(status_code=500, detail="Failed to fetch history")

    history = []
    for chat in chats:
        created_at = chat.get("createdAt")
        messages = chat.get("messages") or []
        history.append(ConversationSummary(
            conversation_id=str(chat["_id"]),
            title=chat.get("title") or DEFAULT_TITLE,
            date=_iso_utc(created_at),
            last_message=preview(messages[-1].get("text", ""), settings.HISTORY_PREVIEW_CHARS) if messages else "",
        ))

    # A full page is the only hint that more pages may exist.
    return HistoryPage(history=history, has_more=len(chats) == limit)


@router.get("/chat/{conversation_id}", response_model=Conversation)
async def get_chat(conversation_id: str, conversations: ConversationRepository = Depends(get_conversation_repository)) -> Conversation:
    try:
        chat = await conversations.get(conversation_id)
    except Exception:
        logger.exception("[HISTORY] Failed to load conversation %s.", conversation_id)
        raise HTTPException(status_code=500, detail="Server Error")

    if chat is None:
        raise HTTPException(status_code=404, detail="Chat not found")
    return Conversation.model_validate({**chat, "_id": str(chat["_id"])})


@router.post("/chat", response_model=ChatOut)
async def chat(body: ChatIn, rag: RAGManager = Depends(get_rag_manager)) -> ChatOut:
    if not body.user_email:
        raise HTTPException(status_code=400, detail="user_email is required")
    if not body.message or not body.message.strip():
        raise HTTPException(status_code=400, detail="message is required")

    try:
        return await rag.generate_response(body.user_email, body.message, body.conversation_id)
    except ConversationNotFoundError:
        raise HTTPException(status_code=404, detail="Chat not found")
    except Exception:
        logger.exception("[CHAT] AI Error.")
        raise HTTPException(status_code=500, detail="Something went wrong")


# ── Home-safety audit ──────────────────────────────────────────────────

@router.post("/audit-image", response_model=AuditOut)
async def audit_image(body: AuditIn, auditor: HomeSafetyAuditor = Depends(get_auditor)) -> AuditOut:
    if not body.user_email:
        raise HTTPException(status_code=400, detail="user_email is required")
    if not body.image_base64:
        raise HTTPException(status_code=400, detail="No image provided")

    try:
        report = await auditor.audit(body.user_email, body.image_base64, body.room_type)
    except InvalidImageError:
        raise HTTPException(status_code=400, detail="Invalid image data")
    except Exception:
        logger.exception("[AUDIT] Vision analysis failed.")
        raise HTTPException(status_code=500, detail="Vision Analysis Failed")

    return AuditOut(audit_report=report)


# ── Seeding ────────────────────────────────────────────────────────────

@router.post("/seed-vectors", response_model=MessageOut)
async def seed_vectors(seeder: VectorSeeder = Depends(get_seeder)) -> MessageOut:
    try:
        count = await seeder.run()
    except Exception:
        logger.exception("[SEED] Seeding failed.")
        raise HTTPException(status_code=500, detail="Failed to seed vectors")

    return MessageOut(message=f"Successfully embedded {count} agencies!")
