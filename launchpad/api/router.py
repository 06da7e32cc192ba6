"""
AI and document endpoints: ``/api/ai``, ``/api/pdf-extract`` and
``/api/pitch-decks``. Errors are returned as ``{"error": ...}``.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, UploadFile
from fastapi.responses import JSONResponse

from launchpad.api.ai.gateway import AIGateway, ChatContext, get_gateway
from launchpad.api.ai.providers import ChatTurn
from launchpad.api.auth import get_current_viewer
from launchpad.api.schemas import AIContextIn, AIRequest
from launchpad.config import get_settings
from launchpad.database.models import Profile
from launchpad.exceptions import AuthorizationError, InvalidInputError, LaunchPadError
from launchpad.storage.pdf_extract import extract_pdf, validate_pdf_upload
from launchpad.storage.supabase import upload_pitch_deck

logger = logging.getLogger(__name__)
router = APIRouter()


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def _chat_context(context: Optional[AIContextIn]) -> ChatContext:
    if context is None:
        return ChatContext()
    return ChatContext(
        user_type=context.user_type,
        startup_name=context.startup_name,
        pitch_context=context.pitch_context,
        conversation_history=[ChatTurn(t.role, t.content) for t in context.conversation_history],
        pitch_deck_content=context.pitch_deck_content,
    )


# ──────────────────────────────────────────────────────────────────────────────
#  AI gateway
# ──────────────────────────────────────────────────────────────────────────────
@router.post("/ai")
async def ai_endpoint(body: AIRequest, gateway: AIGateway = Depends(get_gateway)):
    try:
        if body.action == "test":
            return {"success": await gateway.test_connection(body.provider)}

        if body.action == "listModels":
            return {"models": await gateway.list_models(body.provider)}

        if body.action == "generate":
            if not body.prompt:
                raise InvalidInputError("Prompt is required")
            response = await gateway.generate(body.prompt, _chat_context(body.context), body.provider)
            return response.to_dict()

        return _error(400, "Invalid action")
    except InvalidInputError as exc:
        return _error(400, exc.message)
    except Exception as exc:
        logger.error("API route error: %s", exc, exc_info=True)
        return _error(500, str(exc) or "Unknown error")


# ──────────────────────────────────────────────────────────────────────────────
#  PDF extraction / pitch-deck upload
# ──────────────────────────────────────────────────────────────────────────────
async def _read_pdf(file: Optional[UploadFile]) -> bytes:
    if file is None:
        raise InvalidInputError("No file provided")
    data = await file.read()
    validate_pdf_upload(file.filename, file.content_type, len(data), get_settings().max_upload_size_mb)
    return data


@router.post("/pdf-extract")
async def pdf_extract(file: Optional[UploadFile] = File(None)):
    try:
        data = await _read_pdf(file)
    except InvalidInputError as exc:
        return _error(400, exc.message)
    try:
        return extract_pdf(data, file.filename)
    except Exception as exc:
        logger.error("Error processing PDF: %s", exc, exc_info=True)
        return _error(500, f"Failed to process PDF: {exc}")


@router.post("/pitch-decks", status_code=201)
async def upload_deck(
    file: Optional[UploadFile] = File(None),
    viewer: Profile = Depends(get_current_viewer),
):
    if viewer.user_type != "founder":
        raise AuthorizationError("Only founders can upload pitch decks")
    try:
        data = await _read_pdf(file)
    except InvalidInputError as exc:
        return _error(400, exc.message)
    try:
        extracted = extract_pdf(data, file.filename)
        stored = upload_pitch_deck(data, file.filename)
    except LaunchPadError as exc:
        logger.error("Pitch deck upload failed: %s", exc.message)
        return _error(exc.status_code, exc.message)
    except Exception as exc:
        logger.error("Error processing pitch deck: %s", exc, exc_info=True)
        return _error(500, f"Failed to process PDF: {exc}")
    return {
        "pitch_deck_url": stored["public_url"],
        "storage_path": stored["storage_path"],
        "pitch_deck_text": extracted["text"],
        "pages": extracted["pages"],
        "method": extracted["method"],
    }
