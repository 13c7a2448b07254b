"""Router for lesson workspace sessions."""

import logging
from urllib.parse import quote

from fastapi import APIRouter, Depends, File, HTTPException, Response, UploadFile, status

from app.ai.orchestrator import LessonOrchestrator
from app.api.deps import get_orchestrator, get_session, get_session_store
from app.api.models import AttachmentListResponse, AttachmentResponse, GenerateLessonRequest, GenerateLessonResponse, RefineLessonRequest, RefineLessonResponse, SessionStateResponse
from app.config import Settings, get_settings
from app.media.normalizer import Upload, normalize_uploads
from app.services.export import build_download_filename
from app.services.sessions import LessonSession, SessionBusyError, SessionNotFoundError, SessionStore, generate_session_lesson, refine_session_lesson

router = APIRouter()
logger = logging.getLogger("app.api.routes.sessions")

FILES_FIELD = File(...)
MAX_FILES_PER_UPLOAD = 10


@router.post("", response_model=SessionStateResponse, status_code=status.HTTP_201_CREATED)
async def create_session(store: SessionStore = Depends(get_session_store)) -> SessionStateResponse:  # noqa: B008
  """Open an empty lesson workspace."""
  return SessionStateResponse.from_session(store.create())


@router.get("/{session_id}", response_model=SessionStateResponse)
async def get_session_state(session: LessonSession = Depends(get_session)) -> SessionStateResponse:  # noqa: B008
  """Return status, attachments, conversation and lesson metadata."""
  return SessionStateResponse.from_session(session)


@router.delete("/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
async def discard_session(session_id: str, store: SessionStore = Depends(get_session_store)) -> Response:  # noqa: B008
  """Drop a session and everything it holds."""
  store.discard(session_id)
  return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{session_id}/attachments", response_model=AttachmentListResponse)
async def upload_attachments(files: list[UploadFile] = FILES_FIELD, session: LessonSession = Depends(get_session), settings: Settings = Depends(get_settings)) -> AttachmentListResponse:  # noqa: B008
  """Normalize uploaded files concurrently; a failing file only marks its own record."""
  if not files:
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No files provided")
  if len(files) > MAX_FILES_PER_UPLOAD:
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Maximum {MAX_FILES_PER_UPLOAD} files allowed.")
  if session.is_processing:
    raise SessionBusyError("Cannot add attachments while a request is running.")

  uploads = []
  for file in files:
    content = await file.read()
    uploads.append(Upload(name=file.filename or "upload", content=content, media_type=file.content_type))

  records = await normalize_uploads(session.attachments, uploads, max_bytes=settings.max_upload_bytes)
  failed = sum(1 for record in records if record.status == "error")
  logger.info("Session %s normalized %s upload(s), %s failed", session.session_id, len(records), failed)
  return AttachmentListResponse(attachments=[AttachmentResponse.from_record(record) for record in records])


@router.get("/{session_id}/attachments", response_model=AttachmentListResponse)
async def list_attachments(session: LessonSession = Depends(get_session)) -> AttachmentListResponse:  # noqa: B008
  """List the session's attachments in upload order."""
  return AttachmentListResponse(attachments=[AttachmentResponse.from_record(record) for record in session.attachments.records()])


@router.delete("/{session_id}/attachments/{attachment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_attachment(attachment_id: str, session: LessonSession = Depends(get_session)) -> Response:  # noqa: B008
  """Remove one attachment; in-flight normalization for it is discarded."""
  if session.attachments.remove(attachment_id) is None:
    raise SessionNotFoundError(f"Attachment {attachment_id} not found.")
  return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{session_id}/generate", response_model=GenerateLessonResponse)
async def generate_lesson(payload: GenerateLessonRequest, session: LessonSession = Depends(get_session), orchestrator: LessonOrchestrator = Depends(get_orchestrator)) -> GenerateLessonResponse:  # noqa: B008
  """Run the five-stage pipeline and store the assembled lesson on the session."""
  result = await generate_session_lesson(session, orchestrator, mode=payload.mode, text=payload.text, url=payload.url)
  return GenerateLessonResponse(session_id=session.session_id, status_message=session.status_message, html_length=len(result.html), usage=result.usage, metadata=session.metadata())


@router.post("/{session_id}/refine", response_model=RefineLessonResponse)
async def refine_lesson(payload: RefineLessonRequest, session: LessonSession = Depends(get_session), orchestrator: LessonOrchestrator = Depends(get_orchestrator)) -> RefineLessonResponse:  # noqa: B008
  """Apply a chat change request to the current lesson."""
  reply = await refine_session_lesson(session, orchestrator, payload.request)
  return RefineLessonResponse(session_id=session.session_id, reply=reply, html_length=len(session.require_artifact()))


@router.get("/{session_id}/artifact")
async def get_artifact(session: LessonSession = Depends(get_session)) -> Response:  # noqa: B008
  """Serve the current lesson for preview."""
  return Response(content=session.require_artifact(), media_type="text/html; charset=utf-8", headers={"Cache-Control": "no-store"})


@router.get("/{session_id}/export")
async def export_artifact(session: LessonSession = Depends(get_session)) -> Response:  # noqa: B008
  """Serve the current lesson as a standalone file download."""
  html = session.require_artifact()
  filename = build_download_filename(html)
  # Header values are latin-1; non-ASCII titles travel in the RFC 5987 parameter.
  ascii_name = filename.encode("ascii", "ignore").decode("ascii")
  disposition = f"attachment; filename=\"{ascii_name}\"; filename*=UTF-8''{quote(filename)}"
  return Response(content=html, media_type="text/html; charset=utf-8", headers={"Content-Disposition": disposition})


@router.post("/{session_id}/reset", response_model=SessionStateResponse)
async def reset_session(session: LessonSession = Depends(get_session)) -> SessionStateResponse:  # noqa: B008
  """Clear the lesson, conversation and attachments."""
  session.reset()
  return SessionStateResponse.from_session(session)
