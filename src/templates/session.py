"""
편집 세션: 템플릿 1개 = 문서 + 캔버스 + 상호작용 + autosave.

세션은 (template_id, user_id) 단위로 메모리에 유지.
모든 변경은 이벤트 루프 안에서만 (HTTP 핸들러) → 락 불필요.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any

from src.core.autosave import AutosaveController
from src.domain.constants import AUTOSAVE_DELAY_SECONDS, AUTOSAVE_MAX_RETRIES
from src.domain.schemas import Template
from src.templates.canvas import CanvasState
from src.templates.document import TemplateDocument
from src.templates.interaction import TransformController
from src.templates.manager import TemplateError, TemplateStore
from src.templates.placeholders import FieldCatalog

logger = logging.getLogger(__name__)


@dataclass
class EditorSession:
    """열린 편집 세션."""
    user_id: str
    is_admin: bool
    document: TemplateDocument
    canvas: CanvasState
    controller: TransformController
    autosave: AutosaveController

    @property
    def template(self) -> Template:
        return self.document.template

    def adopt(self, saved: Template) -> None:
        """저장 성공 후 서버 레코드 채택 (updated_at 등 서버 관리 필드)."""
        self.document.template.updated_at = saved.updated_at
        self.document.template.name = saved.name

    def to_dict(self) -> dict[str, Any]:
        return {
            "template": self.template.to_dict(),
            "canvas": self.canvas.to_dict(),
            "editing_id": self.controller.editing_id,
            "sync": self.autosave.status(),
        }


class SessionRegistry:
    """
    세션 레지스트리 (app.state.sessions).

    Usage:
        session = await registry.open(template_id, user_id)
        session.document.add_element("text")
        await registry.close_all()   # lifespan 종료 시
    """

    def __init__(
        self,
        store: TemplateStore,
        field_catalog: FieldCatalog | None = None,
        autosave_delay: float = AUTOSAVE_DELAY_SECONDS,
        max_retries: int = AUTOSAVE_MAX_RETRIES,
        retry_delay: float = 0.5,
        grid_size: int | None = None,
    ):
        self.store = store
        self.field_catalog = field_catalog or FieldCatalog([])
        self.autosave_delay = autosave_delay
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.grid_size = grid_size
        self._sessions: dict[tuple[str, str], EditorSession] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    async def open(self, template_id: str, user_id: str, is_admin: bool = False) -> EditorSession:
        """
        세션 열기 (이미 열려 있으면 재사용).

        Raises:
            TemplateError: TEMPLATE_NOT_FOUND, TEMPLATE_FORBIDDEN
        """
        key = (template_id, user_id)
        if key in self._sessions:
            return self._sessions[key]

        template = await asyncio.to_thread(self.store.get, template_id, user_id, is_admin)
        if template.user_id != user_id and not is_admin:
            raise TemplateError(
                "TEMPLATE_FORBIDDEN",
                f"Template '{template_id}' can only be edited by its owner",
                template_id=template_id,
            )

        async def _save(snapshot: Template) -> Template:
            return await asyncio.to_thread(self.store.save, snapshot, user_id, is_admin)

        document = TemplateDocument(template)
        canvas = CanvasState()
        if self.grid_size:
            canvas.grid_size = self.grid_size

        autosave = AutosaveController(
            _save,
            template,
            delay=self.autosave_delay,
            max_retries=self.max_retries,
            retry_delay=self.retry_delay,
        )
        session = EditorSession(
            user_id=user_id,
            is_admin=is_admin,
            document=document,
            canvas=canvas,
            controller=TransformController(document, canvas, self.field_catalog),
            autosave=autosave,
        )
        autosave.on_saved = session.adopt
        document.add_listener(autosave.schedule)

        self._sessions[key] = session
        logger.info(f"Editor session opened: {template_id} (user={user_id})")
        return session

    def get(self, template_id: str, user_id: str) -> EditorSession | None:
        return self._sessions.get((template_id, user_id))

    async def close(self, template_id: str, user_id: str) -> bool:
        """세션 닫기 (flush 후 제거). 세션 없으면 True."""
        session = self._sessions.pop((template_id, user_id), None)
        if session is None:
            return True
        return await session.autosave.aclose()

    def discard(self, template_id: str) -> None:
        """템플릿 삭제 시 해당 템플릿 세션 전부 폐기 (저장 안 함)."""
        for key in [k for k in self._sessions if k[0] == template_id]:
            self._sessions.pop(key).autosave.discard()

    async def close_all(self) -> None:
        """모든 세션 flush (lifespan 종료)."""
        for key in list(self._sessions):
            session = self._sessions.pop(key)
            if not await session.autosave.aclose():
                logger.error(f"Unsaved changes lost on shutdown: {key[0]} (user={key[1]})")
