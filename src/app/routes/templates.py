"""
Templates Routes: 템플릿 CRUD + 편집 세션.

- CRUD: 목록/생성/조회/수정/삭제/복제/원본 업로드
- 편집: 세션 열기 → 요소 추가/수정/삭제, 상호작용(이동/크기/회전/편집), 페이지 속성
- 편집 변경은 세션 autosave가 저장 (POST /save 로 즉시 flush)
"""

import asyncio
import logging
from typing import Any

from fastapi import APIRouter, Depends, File, HTTPException, Request, UploadFile
from pydantic import BaseModel, Field

from src.app.deps import CurrentUser, get_current_user, http_error
from src.domain.constants import get_mime_type
from src.domain.errors import CertificateError
from src.domain.schemas import Properties
from src.templates.manager import TemplateError, validate_template_name
from src.templates.session import EditorSession

logger = logging.getLogger(__name__)

# Routers
api_router = APIRouter()  # API endpoints


# =============================================================================
# Request Bodies
# =============================================================================

class TemplateCreate(BaseModel):
    name: str
    description: str = ""
    is_public: bool = False
    design_data: dict[str, Any] | None = None


class TemplateUpdate(BaseModel):
    name: str | None = None
    description: str | None = None
    is_public: bool | None = None


class ElementCreate(BaseModel):
    type: str
    viewport: tuple[float, float] | None = None


class ElementUpdate(BaseModel):
    content: str | None = None
    position: dict[str, float | None] | None = None
    style: dict[str, Any] | None = None


class MoveRequest(BaseModel):
    start: tuple[float, float] = Field(alias="from")
    end: tuple[float, float] = Field(alias="to")


class ResizeRequest(BaseModel):
    dx: float = 0
    dy: float = 0


class RotateRequest(BaseModel):
    degrees: float
    relative: bool = False


class EditRequest(BaseModel):
    value: str


class ShapeRequest(BaseModel):
    shape: str


class FieldRequest(BaseModel):
    field: str


class OrientationRequest(BaseModel):
    orientation: str | None = None
    toggle: bool = False


class CanvasRequest(BaseModel):
    action: str
    zoom: float | None = None
    element_id: str | None = None
    additive: bool = False
    rect: tuple[float, float, float, float] | None = None
    axis: str | None = None
    position: float | None = None
    index: int | None = None


# =============================================================================
# Helpers
# =============================================================================

async def _session(request: Request, template_id: str, user: CurrentUser) -> EditorSession:
    try:
        return await request.app.state.sessions.open(template_id, user.id, user.is_admin)
    except (CertificateError, TemplateError) as e:
        raise http_error(e) from e


def _element_response(session: EditorSession, element_id: str) -> dict[str, Any]:
    element = session.document.get_element(element_id)
    if element is None:
        raise HTTPException(
            status_code=404,
            detail={"code": "ELEMENT_NOT_FOUND", "message": f"Element '{element_id}' not found"},
        )
    return {"element": element.to_dict(), "sync": session.autosave.status()}


# =============================================================================
# CRUD
# =============================================================================

@api_router.get("")
async def list_templates(
    request: Request,
    page: int = 1,
    limit: int = 10,
    order_by: str = "created_at",
    order_dir: str = "desc",
    scope: str = "mine",
    user: CurrentUser = Depends(get_current_user),
) -> dict[str, Any]:
    """
    템플릿 목록 (페이지네이션).

    scope=all 은 admin 전용 (전체 사용자 템플릿).
    """
    if scope == "all" and not user.is_admin:
        raise HTTPException(
            status_code=403,
            detail={"code": "TEMPLATE_FORBIDDEN", "message": "Only admins can list all templates"},
        )
    try:
        result = await asyncio.to_thread(
            request.app.state.store.list_templates,
            user.id,
            page,
            limit,
            order_by,
            order_dir,
            scope == "all",
        )
    except TemplateError as e:
        raise http_error(e) from e
    return result.to_dict()


@api_router.post("", status_code=201)
async def create_template(
    request: Request,
    body: TemplateCreate,
    user: CurrentUser = Depends(get_current_user),
) -> dict[str, Any]:
    """템플릿 생성."""
    try:
        template = await asyncio.to_thread(
            request.app.state.store.create,
            user.id,
            body.name,
            body.description,
            body.design_data,
            body.is_public,
        )
    except TemplateError as e:
        raise http_error(e) from e
    return template.to_dict()


@api_router.get("/{template_id}")
async def get_template(
    request: Request,
    template_id: str,
    user: CurrentUser = Depends(get_current_user),
) -> dict[str, Any]:
    """템플릿 상세 (소유자, 공개, admin)."""
    try:
        template = await asyncio.to_thread(
            request.app.state.store.get, template_id, user.id, user.is_admin
        )
    except TemplateError as e:
        raise http_error(e) from e
    return template.to_dict()


@api_router.patch("/{template_id}")
async def update_template(
    request: Request,
    template_id: str,
    body: TemplateUpdate,
    user: CurrentUser = Depends(get_current_user),
) -> dict[str, Any]:
    """
    이름/설명/공개 여부 변경.

    편집 세션이 열려 있으면 세션 문서에 반영 후 flush (세션 autosave가 덮어쓰지 않도록).
    """
    session = request.app.state.sessions.get(template_id, user.id)
    try:
        if session is not None:
            name = validate_template_name(body.name) if body.name is not None else None
            session.document.update_details(name, body.description, body.is_public)
            await session.autosave.flush()
            if session.autosave.last_error is not None:
                raise session.autosave.last_error
            return session.template.to_dict()

        template = await asyncio.to_thread(
            request.app.state.store.update_details,
            template_id,
            user.id,
            user.is_admin,
            body.name,
            body.description,
            body.is_public,
        )
    except (CertificateError, TemplateError) as e:
        raise http_error(e) from e
    return template.to_dict()


@api_router.delete("/{template_id}")
async def delete_template(
    request: Request,
    template_id: str,
    user: CurrentUser = Depends(get_current_user),
) -> dict[str, Any]:
    """템플릿 삭제 (열린 편집 세션은 저장 없이 폐기)."""
    try:
        await asyncio.to_thread(
            request.app.state.store.delete, template_id, user.id, user.is_admin
        )
    except TemplateError as e:
        raise http_error(e) from e
    request.app.state.sessions.discard(template_id)
    return {"deleted": template_id}


@api_router.post("/{template_id}/duplicate", status_code=201)
async def duplicate_template(
    request: Request,
    template_id: str,
    user: CurrentUser = Depends(get_current_user),
) -> dict[str, Any]:
    """템플릿 복제 ("<name> (Copy)", 비공개)."""
    try:
        template = await asyncio.to_thread(
            request.app.state.store.duplicate, template_id, user.id, user.is_admin
        )
    except TemplateError as e:
        raise http_error(e) from e
    return template.to_dict()


@api_router.post("/{template_id}/source", status_code=201)
async def upload_source(
    request: Request,
    template_id: str,
    file: UploadFile = File(...),
    user: CurrentUser = Depends(get_current_user),
) -> dict[str, Any]:
    """DOCX 원본 업로드 (한 번만, 이후 불변)."""
    file_bytes = await file.read()
    try:
        path = await asyncio.to_thread(
            request.app.state.store.save_source,
            template_id,
            user.id,
            file_bytes,
            file.filename or "",
            user.is_admin,
        )
    except TemplateError as e:
        raise http_error(e) from e
    return {"template_id": template_id, "source_file": path.name}


# =============================================================================
# Editor Session
# =============================================================================

@api_router.get("/{template_id}/editor")
async def open_editor(
    request: Request,
    template_id: str,
    user: CurrentUser = Depends(get_current_user),
) -> dict[str, Any]:
    """편집 세션 열기: 템플릿 + 캔버스 + 동기화 상태."""
    session = await _session(request, template_id, user)
    return session.to_dict()


@api_router.post("/{template_id}/save")
async def save_now(
    request: Request,
    template_id: str,
    user: CurrentUser = Depends(get_current_user),
) -> dict[str, Any]:
    """대기 중인 autosave 즉시 flush."""
    session = await _session(request, template_id, user)
    saved = await session.autosave.flush()
    if not saved and session.autosave.last_error is not None:
        raise http_error(session.autosave.last_error)
    return {"saved": saved, "sync": session.autosave.status()}


@api_router.post("/{template_id}/elements", status_code=201)
async def add_element(
    request: Request,
    template_id: str,
    body: ElementCreate,
    user: CurrentUser = Depends(get_current_user),
) -> dict[str, Any]:
    """요소 추가 (뷰포트 중앙 기준 기본 위치)."""
    session = await _session(request, template_id, user)
    try:
        element = session.document.add_element(body.type, body.viewport)
    except CertificateError as e:
        raise http_error(e) from e
    session.canvas.select(element.id)
    return _element_response(session, element.id)


@api_router.patch("/{template_id}/elements/{element_id}")
async def update_element(
    request: Request,
    template_id: str,
    element_id: str,
    body: ElementUpdate,
    user: CurrentUser = Depends(get_current_user),
) -> dict[str, Any]:
    """요소 부분 수정 (content, position 축별, style 키별)."""
    session = await _session(request, template_id, user)
    changes = body.model_dump(exclude_none=True)
    if body.style is not None:
        changes["style"] = body.style
    session.document.update_element(element_id, changes)
    return _element_response(session, element_id)


@api_router.delete("/{template_id}/elements/{element_id}")
async def delete_element(
    request: Request,
    template_id: str,
    element_id: str,
    user: CurrentUser = Depends(get_current_user),
) -> dict[str, Any]:
    """요소 삭제 (멱등)."""
    session = await _session(request, template_id, user)
    deleted = session.document.delete_element(element_id)
    session.canvas.prune({e.id for e in session.document.elements})
    if session.controller.editing_id == element_id:
        session.controller.cancel_edit()
    return {"deleted": deleted, "sync": session.autosave.status()}


@api_router.post("/{template_id}/elements/{element_id}/image")
async def upload_element_image(
    request: Request,
    template_id: str,
    element_id: str,
    file: UploadFile = File(...),
    user: CurrentUser = Depends(get_current_user),
) -> dict[str, Any]:
    """이미지/placeholder 요소에 이미지 업로드."""
    session = await _session(request, template_id, user)
    data = await file.read()
    content_type = file.content_type or ""
    if not content_type or content_type == "application/octet-stream":
        content_type = get_mime_type(file.filename or "")
    # 문서 변경 + autosave 예약은 이벤트 루프에서
    try:
        url = request.app.state.images.upload_element_image(
            session.document,
            element_id,
            user.id,
            data,
            content_type,
        )
    except CertificateError as e:
        raise http_error(e) from e
    return {"url": url, **_element_response(session, element_id)}


# =============================================================================
# Element Interaction
# =============================================================================

@api_router.post("/{template_id}/elements/{element_id}/move")
async def move_element(
    request: Request,
    template_id: str,
    element_id: str,
    body: MoveRequest,
    user: CurrentUser = Depends(get_current_user),
) -> dict[str, Any]:
    """포인터 드래그 (from → to, 화면 좌표). 선택된 요소 전체가 함께 이동."""
    session = await _session(request, template_id, user)
    controller = session.controller
    try:
        started = controller.begin_drag(element_id, body.start)
    except CertificateError as e:
        raise http_error(e) from e
    if started:
        controller.drag(body.end)
        controller.end_drag()
    return {"moved": started, **_element_response(session, element_id)}


@api_router.post("/{template_id}/elements/{element_id}/resize")
async def resize_element(
    request: Request,
    template_id: str,
    element_id: str,
    body: ResizeRequest,
    user: CurrentUser = Depends(get_current_user),
) -> dict[str, Any]:
    """모서리 핸들 크기 조절 (최소 10px)."""
    session = await _session(request, template_id, user)
    try:
        session.controller.resize(element_id, body.dx, body.dy)
    except CertificateError as e:
        raise http_error(e) from e
    return _element_response(session, element_id)


@api_router.post("/{template_id}/elements/{element_id}/rotate")
async def rotate_element(
    request: Request,
    template_id: str,
    element_id: str,
    body: RotateRequest,
    user: CurrentUser = Depends(get_current_user),
) -> dict[str, Any]:
    """회전 (절대 각도 또는 relative=true면 증분)."""
    session = await _session(request, template_id, user)
    controller = session.controller
    try:
        if body.relative:
            controller.rotate_by(element_id, body.degrees)
        else:
            controller.rotate(element_id, body.degrees)
    except CertificateError as e:
        raise http_error(e) from e
    return _element_response(session, element_id)


@api_router.post("/{template_id}/elements/{element_id}/edit/begin")
async def begin_edit(
    request: Request,
    template_id: str,
    element_id: str,
    user: CurrentUser = Depends(get_current_user),
) -> dict[str, Any]:
    """편집 모드 진입 → 입력 초기값."""
    session = await _session(request, template_id, user)
    try:
        value = session.controller.begin_edit(element_id)
    except CertificateError as e:
        raise http_error(e) from e
    return {"element_id": element_id, "value": value}


@api_router.post("/{template_id}/elements/{element_id}/edit")
async def commit_edit(
    request: Request,
    template_id: str,
    element_id: str,
    body: EditRequest,
    user: CurrentUser = Depends(get_current_user),
) -> dict[str, Any]:
    """편집 확정 (placeholder는 {{path}}로 정규화)."""
    session = await _session(request, template_id, user)
    try:
        session.controller.commit_edit(body.value, element_id)
    except CertificateError as e:
        raise http_error(e) from e
    return _element_response(session, element_id)


@api_router.delete("/{template_id}/elements/{element_id}/edit")
async def cancel_edit(
    request: Request,
    template_id: str,
    element_id: str,
    user: CurrentUser = Depends(get_current_user),
) -> dict[str, Any]:
    """편집 취소 (변경 없음)."""
    session = await _session(request, template_id, user)
    session.controller.cancel_edit()
    return _element_response(session, element_id)


@api_router.post("/{template_id}/elements/{element_id}/shape")
async def set_shape(
    request: Request,
    template_id: str,
    element_id: str,
    body: ShapeRequest,
    user: CurrentUser = Depends(get_current_user),
) -> dict[str, Any]:
    """도형 종류 선택 (rectangle, circle, line)."""
    session = await _session(request, template_id, user)
    try:
        session.controller.set_shape(element_id, body.shape)
    except CertificateError as e:
        raise http_error(e) from e
    return _element_response(session, element_id)


@api_router.post("/{template_id}/elements/{element_id}/field")
async def choose_field(
    request: Request,
    template_id: str,
    element_id: str,
    body: FieldRequest,
    user: CurrentUser = Depends(get_current_user),
) -> dict[str, Any]:
    """카탈로그 필드를 placeholder에 지정."""
    session = await _session(request, template_id, user)
    try:
        session.controller.choose_field(element_id, body.field)
    except CertificateError as e:
        raise http_error(e) from e
    return _element_response(session, element_id)


# =============================================================================
# Page Properties / Canvas
# =============================================================================

@api_router.put("/{template_id}/properties")
async def replace_properties(
    request: Request,
    template_id: str,
    body: dict[str, Any],
    user: CurrentUser = Depends(get_current_user),
) -> dict[str, Any]:
    """페이지 속성 통째로 교체."""
    session = await _session(request, template_id, user)
    try:
        properties = Properties.from_dict(body)
    except CertificateError as e:
        raise http_error(e) from e
    session.document.update_properties(properties)
    return {"properties": properties.to_dict(), "sync": session.autosave.status()}


@api_router.post("/{template_id}/orientation")
async def set_orientation(
    request: Request,
    template_id: str,
    body: OrientationRequest,
    user: CurrentUser = Depends(get_current_user),
) -> dict[str, Any]:
    """orientation 지정 또는 토글 (실제로 바뀌면 width/height 교환)."""
    session = await _session(request, template_id, user)
    try:
        if body.toggle:
            session.document.toggle_orientation()
        elif body.orientation is not None:
            session.document.set_orientation(body.orientation)
        else:
            raise HTTPException(
                status_code=400,
                detail={"code": "INVALID_ORIENTATION", "message": "orientation or toggle required"},
            )
    except CertificateError as e:
        raise http_error(e) from e
    return {
        "properties": session.document.properties.to_dict(),
        "sync": session.autosave.status(),
    }


@api_router.post("/{template_id}/canvas")
async def canvas_action(
    request: Request,
    template_id: str,
    body: CanvasRequest,
    user: CurrentUser = Depends(get_current_user),
) -> dict[str, Any]:
    """
    캔버스 UI 상태 변경 (저장되지 않음).

    action: zoom_in, zoom_out, set_zoom, toggle_grid, toggle_snap,
            select, select_box, clear_selection, add_guide, remove_guide
    """
    session = await _session(request, template_id, user)
    canvas = session.canvas
    action = body.action

    try:
        if action == "zoom_in":
            canvas.zoom_in()
        elif action == "zoom_out":
            canvas.zoom_out()
        elif action == "set_zoom" and body.zoom is not None:
            canvas.set_zoom(body.zoom)
        elif action == "toggle_grid":
            canvas.toggle_grid()
        elif action == "toggle_snap":
            canvas.snap_to_grid = not canvas.snap_to_grid
        elif action == "select" and body.element_id:
            canvas.select(body.element_id, body.additive)
        elif action == "select_box" and body.rect is not None:
            canvas.select_box(body.rect, session.document.elements, body.additive)
        elif action == "clear_selection":
            canvas.clear_selection()
        elif action == "add_guide" and body.axis and body.position is not None:
            canvas.add_guide(body.axis, body.position)
        elif action == "remove_guide" and body.index is not None:
            canvas.remove_guide(body.index)
        else:
            raise HTTPException(
                status_code=400,
                detail={"code": "INVALID_CANVAS_ACTION", "message": f"Invalid canvas action '{action}'"},
            )
    except ValueError as e:
        raise HTTPException(
            status_code=400,
            detail={"code": "INVALID_CANVAS_ACTION", "message": str(e)},
        ) from e
    return {"canvas": canvas.to_dict()}
