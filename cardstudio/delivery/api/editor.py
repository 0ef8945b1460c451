# cardstudio/delivery/api/editor.py
from fastapi import APIRouter, Request, Depends, HTTPException, UploadFile, File, status
from fastapi.security import HTTPBasic, HTTPBasicCredentials
from fastapi.responses import JSONResponse, Response
from typing import List
import secrets
import logging
import traceback
import asyncio

from cardstudio.config.settings import settings
from cardstudio.delivery.schemas.body import (
    CreateSessionBody,
    DragOut,
    ExportBody,
    MoveBody,
    PhotoOut,
    PhotoTransformBody,
    PressBody,
    PreviewBoxOut,
    ReorderBody,
    SelectTemplateBody,
    SessionState,
    TemplateOut,
    TextLayerBody,
    TextLayerOut,
    ZoomBody,
)
from cardstudio.domain.drag_controller import DragTarget
from cardstudio.domain.editor_service import EditorService, EditorSession
from cardstudio.domain.errors import (
    CardStudioError,
    DecodeError,
    EncodeError,
    SaveError,
    TemplateNotReadyError,
    UnknownLayerError,
    UnknownTemplateError,
)
from cardstudio.infrastructure.storage.cloudinary_upload import CloudinarySaveTarget
from cardstudio.infrastructure.storage.save_target import DownloadSaveTarget, LocalDirectorySaveTarget

router = APIRouter()
security = HTTPBasic()
logger = logging.getLogger("uvicorn.error")

ENDPOINT_TIMEOUT_SECONDS = 55

_STATUS_BY_ERROR = [
    (TemplateNotReadyError, status.HTTP_409_CONFLICT),
    (DecodeError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (UnknownLayerError, status.HTTP_404_NOT_FOUND),
    (UnknownTemplateError, status.HTTP_404_NOT_FOUND),
    (EncodeError, status.HTTP_500_INTERNAL_SERVER_ERROR),
    (SaveError, status.HTTP_502_BAD_GATEWAY),
]


def verify_basic_auth(creds: HTTPBasicCredentials = Depends(security)) -> None:
    ok_user = secrets.compare_digest(creds.username, settings.BASIC_AUTH_USERNAME)
    ok_pass = secrets.compare_digest(creds.password, settings.BASIC_AUTH_PASSWORD)
    if not (ok_user and ok_pass):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication credentials",
            headers={"WWW-Authenticate": "Basic"},
        )


def to_http_error(e: CardStudioError) -> HTTPException:
    for error_type, code in _STATUS_BY_ERROR:
        if isinstance(e, error_type):
            return HTTPException(status_code=code, detail=e.message)
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)


def get_service(request: Request) -> EditorService:
    service = getattr(request.app.state, "editor_service", None)
    if service is None:
        logger.error("Editor service not initialized")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Service is not ready. Please try again in a moment.",
        )
    return service


def get_session(session_id: str, service: EditorService = Depends(get_service)) -> EditorSession:
    session = service.get_session(session_id)
    if session is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Session '{session_id}' does not exist.")
    return session


def session_state(session: EditorSession) -> SessionState:
    store = session.store
    template = store.template
    photo = store.photo
    preview = session.preview_size()
    return SessionState(
        id=session.id,
        template=TemplateOut(
            id=template.id,
            name=template.display_name,
            native_width=template.native_width,
            native_height=template.native_height,
            ready=template.is_ready,
        ) if template is not None else None,
        pending_template_id=session.pending_template_id,
        photo=PhotoOut(
            center_x=photo.center_x,
            center_y=photo.center_y,
            scale=photo.scale,
            intrinsic_width=photo.bitmap.width,
            intrinsic_height=photo.bitmap.height,
        ) if photo is not None else None,
        text_layers=[TextLayerOut.from_layer(t) for t in store.text_layers],
        selected_text_id=session.selected_text_id,
        preview=PreviewBoxOut(width=preview.width, height=preview.height) if preview else None,
    )


# --- templates & sessions ---
@router.get("/templates", response_model=List[TemplateOut], dependencies=[Depends(verify_basic_auth)])
async def list_templates(service: EditorService = Depends(get_service)):
    return [TemplateOut(id=t.id, name=t.name) for t in service.catalog]


@router.post("/sessions", response_model=SessionState, status_code=201, dependencies=[Depends(verify_basic_auth)])
async def create_session(body: CreateSessionBody, service: EditorService = Depends(get_service)):
    try:
        session = await service.create_session(body.template_id)
    except CardStudioError as e:
        logger.warning(f"Create session failed: {e.message}")
        raise to_http_error(e)
    return session_state(session)


@router.get("/sessions/{session_id}", response_model=SessionState, dependencies=[Depends(verify_basic_auth)])
async def get_session_state(session: EditorSession = Depends(get_session)):
    return session_state(session)


@router.delete("/sessions/{session_id}", status_code=204, dependencies=[Depends(verify_basic_auth)])
async def close_session(session_id: str, service: EditorService = Depends(get_service)):
    if not service.close_session(session_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Session '{session_id}' does not exist.")
    return Response(status_code=204)


@router.put("/sessions/{session_id}/template", response_model=SessionState, dependencies=[Depends(verify_basic_auth)])
async def select_template(body: SelectTemplateBody, session: EditorSession = Depends(get_session)):
    try:
        await session.select_template(body.template_id)
    except CardStudioError as e:
        logger.warning(f"[{session.id}] Template selection failed: {e.message}")
        raise to_http_error(e)
    return session_state(session)


# --- photo ---
@router.post("/sessions/{session_id}/photo", response_model=SessionState, dependencies=[Depends(verify_basic_auth)])
async def upload_photo(file: UploadFile = File(...), session: EditorSession = Depends(get_session)):
    data = await file.read()
    try:
        await session.upload_photo(data)
    except DecodeError as e:
        logger.warning(f"[{session.id}] Photo upload rejected ({file.filename}): {e.message}")
        raise to_http_error(e)
    return session_state(session)


@router.patch("/sessions/{session_id}/photo", response_model=SessionState, dependencies=[Depends(verify_basic_auth)])
async def update_photo(body: PhotoTransformBody, session: EditorSession = Depends(get_session)):
    session.store.update_photo_transform(body)
    return session_state(session)


@router.post("/sessions/{session_id}/photo/zoom", response_model=SessionState, dependencies=[Depends(verify_basic_auth)])
async def zoom_photo(body: ZoomBody, session: EditorSession = Depends(get_session)):
    session.store.zoom_photo(body.delta)
    return session_state(session)


@router.post("/sessions/{session_id}/photo/reset", response_model=SessionState, dependencies=[Depends(verify_basic_auth)])
async def reset_photo(session: EditorSession = Depends(get_session)):
    session.store.reset_photo()
    return session_state(session)


# --- text layers ---
@router.post("/sessions/{session_id}/texts", response_model=TextLayerOut, status_code=201, dependencies=[Depends(verify_basic_auth)])
async def add_text(session: EditorSession = Depends(get_session)):
    layer_id = session.add_text()
    return TextLayerOut.from_layer(session.store.get_text_layer(layer_id))


@router.patch("/sessions/{session_id}/texts/{layer_id}", response_model=TextLayerOut, dependencies=[Depends(verify_basic_auth)])
async def update_text(layer_id: str, body: TextLayerBody, session: EditorSession = Depends(get_session)):
    try:
        layer = session.store.update_text_layer(layer_id, body)
    except UnknownLayerError as e:
        raise to_http_error(e)
    return TextLayerOut.from_layer(layer)


@router.delete("/sessions/{session_id}/texts/{layer_id}", response_model=SessionState, dependencies=[Depends(verify_basic_auth)])
async def remove_text(layer_id: str, session: EditorSession = Depends(get_session)):
    try:
        session.remove_text(layer_id)
    except UnknownLayerError as e:
        raise to_http_error(e)
    return session_state(session)


@router.post("/sessions/{session_id}/texts/{layer_id}/reorder", response_model=SessionState, dependencies=[Depends(verify_basic_auth)])
async def reorder_text(layer_id: str, body: ReorderBody, session: EditorSession = Depends(get_session)):
    try:
        session.store.reorder_text_layer(layer_id, body.z_order)
    except UnknownLayerError as e:
        raise to_http_error(e)
    return session_state(session)


@router.post("/sessions/{session_id}/texts/{layer_id}/select", response_model=SessionState, dependencies=[Depends(verify_basic_auth)])
async def select_text(layer_id: str, session: EditorSession = Depends(get_session)):
    try:
        session.select_text(layer_id)
    except UnknownLayerError as e:
        raise to_http_error(e)
    return session_state(session)


# --- drag gestures (pointer coordinates in preview pixels) ---
@router.post("/sessions/{session_id}/drag/press", response_model=DragOut, dependencies=[Depends(verify_basic_auth)])
async def drag_press(body: PressBody, session: EditorSession = Depends(get_session)):
    preview = session.preview_size()
    if preview is None:
        return DragOut(tracking=False)
    if body.target == "text":
        if not body.layer_id:
            raise HTTPException(status_code=422, detail="layer_id is required for text drags")
        target = DragTarget.text(body.layer_id)
    else:
        target = DragTarget.photo()
    try:
        started = session.drag.press(target, body.x, body.y, preview, touches=body.touches)
    except UnknownLayerError as e:
        raise to_http_error(e)
    if started is None:
        return DragOut(tracking=False)
    return DragOut(tracking=True, x=started.start_fraction[0], y=started.start_fraction[1])


@router.post("/sessions/{session_id}/drag/move", response_model=DragOut, dependencies=[Depends(verify_basic_auth)])
async def drag_move(body: MoveBody, session: EditorSession = Depends(get_session)):
    committed = session.drag.move(body.x, body.y, touches=body.touches)
    if committed is None:
        return DragOut(tracking=False)
    return DragOut(tracking=True, x=committed[0], y=committed[1])


@router.post("/sessions/{session_id}/drag/release", response_model=DragOut, dependencies=[Depends(verify_basic_auth)])
async def drag_release(session: EditorSession = Depends(get_session)):
    session.drag.release()
    return DragOut(tracking=False)


# --- rendering ---
@router.get("/sessions/{session_id}/preview", dependencies=[Depends(verify_basic_auth)])
async def preview(session: EditorSession = Depends(get_session)):
    png = await session.render_preview_png()
    if png is None:
        return JSONResponse(status_code=202, content={"status": "loading", "message": "Loading template..."})
    return Response(content=png, media_type="image/png", headers={"Cache-Control": "no-store"})


def _save_target_for(session: EditorSession, request: Request):
    if settings.SAVE_BACKEND == "local":
        return LocalDirectorySaveTarget(settings.EXPORT_DIR, prefix=f"{session.id}-")
    if settings.SAVE_BACKEND == "cloudinary":
        return CloudinarySaveTarget(getattr(request.app.state, "executor", None), public_id_prefix=f"{session.id}_")
    return DownloadSaveTarget()


@router.post("/sessions/{session_id}/export", dependencies=[Depends(verify_basic_auth)])
async def export_card(request: Request, body: ExportBody, session: EditorSession = Depends(get_session)):
    logger.info(f"=== EXPORT START for {session.id} ({body.format.value}) ===")
    target = _save_target_for(session, request)
    try:
        result = await asyncio.wait_for(session.export(body.format, target), timeout=ENDPOINT_TIMEOUT_SECONDS)
    except asyncio.TimeoutError:
        logger.error(f"=== EXPORT TIMEOUT for {session.id} after {ENDPOINT_TIMEOUT_SECONDS}s ===")
        raise HTTPException(status_code=504, detail="Download failed: export timed out")
    except CardStudioError as e:
        logger.error(f"=== EXPORT ERROR for {session.id}: {e.message} ===\n{traceback.format_exc()}")
        http_error = to_http_error(e)
        http_error.detail = f"Download failed: {e.message}"
        raise http_error

    logger.info(f"=== EXPORT SUCCESS for {session.id}: {result.location} ===")
    if isinstance(target, DownloadSaveTarget):
        return Response(
            content=target.data,
            media_type=target.content_type,
            headers={
                "Content-Disposition": f'attachment; filename="{result.filename}"',
                "X-Notification": result.message,
            },
        )
    return JSONResponse(status_code=200, content=result.model_dump(mode="json"))
