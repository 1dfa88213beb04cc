from typing import Annotated, Any

from pydantic import BaseModel, Field

from models.template_models import (
    DeviceView,
    EditorMode,
    EditorState,
    EditorTab,
    ElementType,
    LastAction,
    Template,
)


# =============================================================================
# TEMPLATE STORAGE
# =============================================================================


class TemplateCreateRequest(BaseModel):
    template: Template | None = Field(
        default=None, description="Template content (None = default template)"
    )


class TemplateResponse(BaseModel):
    ok: bool = True
    template: Template
    version: int


class TemplateListResponse(BaseModel):
    ok: bool = True
    templates: list[dict[str, Any]]
    total: int


class TemplateDeleteResponse(BaseModel):
    ok: bool


# =============================================================================
# EDITOR SESSIONS
# =============================================================================


class OpenSessionRequest(BaseModel):
    """Open an editor session on a posted template, a saved one, or a new one."""
    template: Template | None = None
    template_id: str | None = None
    version: int | None = None


class EditorStateResponse(BaseModel):
    """Editor state after an operation, plus history and derived values."""
    ok: bool = True
    session_id: str
    state: EditorState
    can_undo: bool
    can_redo: bool
    undo_depth: int
    redo_depth: int
    total_duration: float
    playhead_fraction: float
    last_action: LastAction | None = None


class SessionCloseResponse(BaseModel):
    ok: bool


class SaveResponse(BaseModel):
    ok: bool = True
    template_id: str
    version: int | None = None


# =============================================================================
# MUTATION REQUESTS
# =============================================================================


class AddSectionRequest(BaseModel):
    type: str | None = None
    name: str | None = None


class UpdateRequest(BaseModel):
    """Partial attribute update for a template, section or element."""
    updates: dict[str, Any]


class ReorderSectionsRequest(BaseModel):
    from_index: int
    to_index: int


class AddElementRequest(BaseModel):
    type: ElementType


class MoveElementRequest(BaseModel):
    x: float = Field(allow_inf_nan=False)
    y: float = Field(allow_inf_nan=False)


class ResizeElementRequest(BaseModel):
    width: float = Field(allow_inf_nan=False)
    height: float = Field(allow_inf_nan=False)
    x: Annotated[float, Field(allow_inf_nan=False)] | None = None
    y: Annotated[float, Field(allow_inf_nan=False)] | None = None


class SelectSectionRequest(BaseModel):
    section_id: str | None = None


class SelectElementRequest(BaseModel):
    element_id: str | None = None


class SetTimeRequest(BaseModel):
    seconds: float = Field(allow_inf_nan=False)


class AdvancePlaybackRequest(BaseModel):
    delta: float = Field(gt=0, allow_inf_nan=False, description="Seconds elapsed since the last tick")


class SetModeRequest(BaseModel):
    mode: EditorMode


class SetZoomRequest(BaseModel):
    zoom: float = Field(allow_inf_nan=False)


class SetTabRequest(BaseModel):
    tab: EditorTab


class SetDeviceRequest(BaseModel):
    device: DeviceView
