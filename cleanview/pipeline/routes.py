"""
FastAPI routes for the removal session.

Session Endpoints:
  POST /session/upload   - Store a new source video (resets the session)
  POST /session/start    - Launch a removal attempt (async)
  GET  /session          - Current state for the renderer
  POST /session/dismiss  - Clear an error
  POST /session/reset    - Discard source and result
  GET  /session/result   - Download the cleaned video

Credential Endpoints:
  GET  /credential         - Gate state + whether the key prompt is shown
  POST /credential/check   - Re-check the provider
  POST /credential/prompt  - Run the key selector
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, UploadFile
from fastapi.responses import FileResponse

from .models import (
    AspectRatio,
    CredentialStatusResponse,
    SessionStateResponse,
    SessionStatus,
    StartRequest,
)
from .orchestrator import SessionController

logger = logging.getLogger(__name__)


def get_controller(request: Request) -> SessionController:
    """The app-wide controller, built in main.lifespan."""
    controller = getattr(request.app.state, "controller", None)
    if controller is None:
        raise HTTPException(status_code=503, detail="Session controller not ready")
    return controller


def _state_response(controller: SessionController) -> SessionStateResponse:
    state = controller.state
    result = state.result if state.status == SessionStatus.COMPLETED else None
    return SessionStateResponse(
        status=state.status,
        message=state.message,
        error=state.error,
        result_url="/session/result" if result else None,
        download_name=result.download_name if result else None,
        auth_required=controller.auth_required,
        prompt_visible=controller.gate.prompt_visible,
        credential_state=controller.gate.state,
        source_filename=controller.source.filename if controller.source else None,
    )


# ═════════════════════════════════════════════════════════════════════════════
# Session Router
# ═════════════════════════════════════════════════════════════════════════════

session_router = APIRouter(prefix="/session", tags=["session"])


@session_router.get("", response_model=SessionStateResponse)
async def get_session(controller: SessionController = Depends(get_controller)):
    return _state_response(controller)


@session_router.post("/upload", response_model=SessionStateResponse)
async def upload_source(
    file: UploadFile = File(...),
    aspect_ratio: Optional[AspectRatio] = Form(None),
    controller: SessionController = Depends(get_controller),
):
    """Store the uploaded video. Non-video MIME types are logged, not rejected."""
    content_type = file.content_type or "application/octet-stream"
    if not content_type.startswith("video/"):
        logger.warning(f"Upload {file.filename} has non-video type {content_type}")

    data = await file.read()
    if not data:
        raise HTTPException(status_code=400, detail="Uploaded file is empty")

    source = controller.store.save_source(
        data,
        filename=file.filename or "upload.mp4",
        content_type=content_type,
        aspect_ratio=aspect_ratio,
    )
    controller.load_source(source)
    return _state_response(controller)


@session_router.post("/start", response_model=SessionStateResponse, status_code=202)
async def start_session(
    request: Optional[StartRequest] = None,
    controller: SessionController = Depends(get_controller),
):
    """
    Launch a removal attempt in the background.

    Errors:
      - 400: No source uploaded, or unknown preset
    """
    if controller.source is None:
        raise HTTPException(status_code=400, detail="Upload a video first")

    if request is not None and not controller.is_processing:
        try:
            controller.configure(request.preset_id, request.extra_instructions)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        if request.aspect_ratio is not None:
            controller.source = controller.source.model_copy(update={"aspect_ratio": request.aspect_ratio})

    if not controller.start_background():
        logger.info("Start requested while an attempt is already running")
    return _state_response(controller)


@session_router.post("/dismiss", response_model=SessionStateResponse)
async def dismiss_error(controller: SessionController = Depends(get_controller)):
    controller.dismiss()
    return _state_response(controller)


@session_router.post("/reset", response_model=SessionStateResponse)
async def reset_session(controller: SessionController = Depends(get_controller)):
    controller.reset()
    return _state_response(controller)


@session_router.get("/result")
async def download_result(controller: SessionController = Depends(get_controller)):
    """Serve the cleaned video as a download."""
    state = controller.state
    if state.status != SessionStatus.COMPLETED or state.result is None:
        raise HTTPException(status_code=404, detail="No result available")
    result = state.result
    return FileResponse(result.path, media_type=result.content_type, filename=result.download_name)


# ═════════════════════════════════════════════════════════════════════════════
# Credential Router
# ═════════════════════════════════════════════════════════════════════════════

credential_router = APIRouter(prefix="/credential", tags=["credential"])


def _credential_response(controller: SessionController) -> CredentialStatusResponse:
    return CredentialStatusResponse(
        state=controller.gate.state,
        prompt_visible=controller.gate.prompt_visible,
    )


@credential_router.get("", response_model=CredentialStatusResponse)
async def get_credential(controller: SessionController = Depends(get_controller)):
    return _credential_response(controller)


@credential_router.post("/check", response_model=CredentialStatusResponse)
async def check_credential(controller: SessionController = Depends(get_controller)):
    await controller.gate.check_credential()
    return _credential_response(controller)


@credential_router.post("/prompt", response_model=CredentialStatusResponse)
async def prompt_credential(controller: SessionController = Depends(get_controller)):
    await controller.gate.prompt_for_credential()
    return _credential_response(controller)
