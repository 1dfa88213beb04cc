"""
Editor Handler - REST API endpoints for template editor sessions.

A session is opened on a posted template, a saved template or a new
default template, then driven through the Mutation API. Every endpoint
returns the full editor state with history depths, so clients re-render
from a single source of truth.

Invalid section/element ids are not errors: the operation is a no-op and
the unchanged state is returned. Only an unknown session id yields 404.
"""

import logging
from typing import Any, Callable

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from database.base import get_db
from dependencies.editor import (
    get_actor,
    get_expected_version,
    get_session_registry,
    require_editor_session,
)
from models.api_models import (
    AddElementRequest,
    AddSectionRequest,
    AdvancePlaybackRequest,
    EditorStateResponse,
    MoveElementRequest,
    OpenSessionRequest,
    ReorderSectionsRequest,
    ResizeElementRequest,
    SaveResponse,
    SelectElementRequest,
    SelectSectionRequest,
    SessionCloseResponse,
    SetDeviceRequest,
    SetModeRequest,
    SetTabRequest,
    SetTimeRequest,
    SetZoomRequest,
    UpdateRequest,
)
from models.template_models import Template
from operators import template_editor
from operators.editor_selectors import playhead_fraction, total_duration
from operators.editor_session import EditorSession
from operators.session_registry import EditorSessionRegistry
from operators.template_operator import (
    SqlTemplateStore,
    TemplateNotFoundError,
    VersionConflictError,
    get_template,
)


router = APIRouter(prefix="/editor/sessions", tags=["editor"])
logger = logging.getLogger(__name__)


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================


def state_response(editor: EditorSession) -> EditorStateResponse:
    state = editor.state
    return EditorStateResponse(
        ok=True,
        session_id=editor.session_id,
        state=state,
        can_undo=editor.history.can_undo,
        can_redo=editor.history.can_redo,
        undo_depth=editor.history.undo_depth,
        redo_depth=editor.history.redo_depth,
        total_duration=total_duration(state),
        playhead_fraction=playhead_fraction(state),
        last_action=editor.last_action,
    )


def apply_operation(
    editor: EditorSession,
    operation: Callable[..., Any],
    *args: Any,
) -> EditorStateResponse:
    """Run one Mutation API operation under the session lock."""
    with editor.lock:
        operation(editor, *args)
        return state_response(editor)


def handle_store_error(e: Exception):
    """Convert persistence exceptions to HTTP exceptions."""
    if isinstance(e, TemplateNotFoundError):
        raise HTTPException(status_code=404, detail=str(e))
    elif isinstance(e, VersionConflictError):
        raise HTTPException(
            status_code=409,
            detail={
                "error": "version_conflict",
                "expected_version": e.expected_version,
                "current_version": e.current_version,
                "message": "Template was saved elsewhere. Please reload and retry.",
            },
        )
    else:
        raise HTTPException(status_code=500, detail="Failed to save template")


# =============================================================================
# SESSION LIFECYCLE
# =============================================================================


@router.post("", response_model=EditorStateResponse)
async def session_open(
    request: OpenSessionRequest,
    registry: EditorSessionRegistry = Depends(get_session_registry),
    db: Session = Depends(get_db),
):
    """
    Open an editor session.

    Body (all optional):
        template: inline template content
        template_id / version: load a saved template
    With neither, the session starts on a new default template.
    """
    template = request.template
    if template is None and request.template_id:
        try:
            template, _ = get_template(db, request.template_id, request.version)
        except TemplateNotFoundError as e:
            raise HTTPException(status_code=404, detail=str(e))

    editor = registry.open(template)
    return state_response(editor)


@router.get("/{session_id}", response_model=EditorStateResponse)
async def session_get(editor: EditorSession = Depends(require_editor_session)):
    return state_response(editor)


@router.delete("/{session_id}", response_model=SessionCloseResponse)
async def session_close(
    session_id: str,
    registry: EditorSessionRegistry = Depends(get_session_registry),
):
    if not registry.close(session_id):
        raise HTTPException(status_code=404, detail=f"Editor session {session_id} not found")
    return SessionCloseResponse(ok=True)


@router.put("/{session_id}/template", response_model=EditorStateResponse)
async def session_load_template(
    template: Template,
    editor: EditorSession = Depends(require_editor_session),
):
    """Replace the session's template wholesale (resets UI state and history)."""
    return apply_operation(editor, EditorSession.load_template, template)


@router.post("/{session_id}/save", response_model=SaveResponse)
async def session_save(
    editor: EditorSession = Depends(require_editor_session),
    db: Session = Depends(get_db),
    actor: str = Depends(get_actor),
    expected_version: int | None = Depends(get_expected_version),
):
    """
    Persist the session's template as a new revision.

    Optional X-Expected-Version header enables optimistic locking;
    returns 409 on conflict.
    """
    store = SqlTemplateStore(db, saved_by=actor, expected_version=expected_version)
    if not await editor.save_template(store):
        handle_store_error(editor.last_save_error)

    return SaveResponse(
        ok=True,
        template_id=editor.state.template.id,
        version=store.saved_version,
    )


# =============================================================================
# HISTORY
# =============================================================================


@router.post("/{session_id}/undo", response_model=EditorStateResponse)
async def session_undo(editor: EditorSession = Depends(require_editor_session)):
    return apply_operation(editor, template_editor.undo)


@router.post("/{session_id}/redo", response_model=EditorStateResponse)
async def session_redo(editor: EditorSession = Depends(require_editor_session)):
    return apply_operation(editor, template_editor.redo)


# =============================================================================
# TEMPLATE & SECTION OPERATIONS
# =============================================================================


@router.patch("/{session_id}/template", response_model=EditorStateResponse)
async def template_update(
    request: UpdateRequest,
    editor: EditorSession = Depends(require_editor_session),
):
    return apply_operation(editor, template_editor.update_template, request.updates)


@router.post("/{session_id}/sections", response_model=EditorStateResponse)
async def section_add(
    request: AddSectionRequest,
    editor: EditorSession = Depends(require_editor_session),
):
    return apply_operation(editor, template_editor.add_section, request.type, request.name)


@router.post("/{session_id}/sections/reorder", response_model=EditorStateResponse)
async def sections_reorder(
    request: ReorderSectionsRequest,
    editor: EditorSession = Depends(require_editor_session),
):
    return apply_operation(
        editor, template_editor.reorder_sections, request.from_index, request.to_index
    )


@router.patch("/{session_id}/sections/{section_id}", response_model=EditorStateResponse)
async def section_update(
    section_id: str,
    request: UpdateRequest,
    editor: EditorSession = Depends(require_editor_session),
):
    return apply_operation(editor, template_editor.update_section, section_id, request.updates)


@router.delete("/{session_id}/sections/{section_id}", response_model=EditorStateResponse)
async def section_delete(
    section_id: str,
    editor: EditorSession = Depends(require_editor_session),
):
    return apply_operation(editor, template_editor.delete_section, section_id)


@router.post("/{session_id}/sections/{section_id}/duplicate", response_model=EditorStateResponse)
async def section_duplicate(
    section_id: str,
    editor: EditorSession = Depends(require_editor_session),
):
    return apply_operation(editor, template_editor.duplicate_section, section_id)


# =============================================================================
# ELEMENT OPERATIONS
# =============================================================================


@router.post("/{session_id}/sections/{section_id}/elements", response_model=EditorStateResponse)
async def element_add(
    section_id: str,
    request: AddElementRequest,
    editor: EditorSession = Depends(require_editor_session),
):
    return apply_operation(editor, template_editor.add_element, section_id, request.type)


@router.patch(
    "/{session_id}/sections/{section_id}/elements/{element_id}",
    response_model=EditorStateResponse,
)
async def element_update(
    section_id: str,
    element_id: str,
    request: UpdateRequest,
    editor: EditorSession = Depends(require_editor_session),
):
    return apply_operation(
        editor, template_editor.update_element, section_id, element_id, request.updates
    )


@router.delete(
    "/{session_id}/sections/{section_id}/elements/{element_id}",
    response_model=EditorStateResponse,
)
async def element_delete(
    section_id: str,
    element_id: str,
    editor: EditorSession = Depends(require_editor_session),
):
    return apply_operation(editor, template_editor.delete_element, section_id, element_id)


@router.post(
    "/{session_id}/sections/{section_id}/elements/{element_id}/duplicate",
    response_model=EditorStateResponse,
)
async def element_duplicate(
    section_id: str,
    element_id: str,
    editor: EditorSession = Depends(require_editor_session),
):
    return apply_operation(editor, template_editor.duplicate_element, section_id, element_id)


@router.post(
    "/{session_id}/sections/{section_id}/elements/{element_id}/up",
    response_model=EditorStateResponse,
)
async def element_move_up(
    section_id: str,
    element_id: str,
    editor: EditorSession = Depends(require_editor_session),
):
    return apply_operation(editor, template_editor.move_element_up, section_id, element_id)


@router.post(
    "/{session_id}/sections/{section_id}/elements/{element_id}/down",
    response_model=EditorStateResponse,
)
async def element_move_down(
    section_id: str,
    element_id: str,
    editor: EditorSession = Depends(require_editor_session),
):
    return apply_operation(editor, template_editor.move_element_down, section_id, element_id)


@router.post(
    "/{session_id}/sections/{section_id}/elements/{element_id}/drag",
    response_model=EditorStateResponse,
)
async def element_drag(
    section_id: str,
    element_id: str,
    request: MoveElementRequest,
    editor: EditorSession = Depends(require_editor_session),
):
    """Live drag position; call /gesture/commit on drop."""
    return apply_operation(
        editor, template_editor.move_element, section_id, element_id, request.x, request.y
    )


@router.post(
    "/{session_id}/sections/{section_id}/elements/{element_id}/resize",
    response_model=EditorStateResponse,
)
async def element_resize(
    section_id: str,
    element_id: str,
    request: ResizeElementRequest,
    editor: EditorSession = Depends(require_editor_session),
):
    """Live resize; call /gesture/commit on release."""
    return apply_operation(
        editor,
        template_editor.resize_element,
        section_id,
        element_id,
        request.width,
        request.height,
        request.x,
        request.y,
    )


@router.post("/{session_id}/gesture/commit", response_model=EditorStateResponse)
async def gesture_commit(editor: EditorSession = Depends(require_editor_session)):
    return apply_operation(editor, template_editor.commit_gesture)


# =============================================================================
# SELECTION, PLAYBACK & UI
# =============================================================================


@router.post("/{session_id}/select/section", response_model=EditorStateResponse)
async def select_section(
    request: SelectSectionRequest,
    editor: EditorSession = Depends(require_editor_session),
):
    return apply_operation(editor, template_editor.select_section, request.section_id)


@router.post("/{session_id}/select/element", response_model=EditorStateResponse)
async def select_element(
    request: SelectElementRequest,
    editor: EditorSession = Depends(require_editor_session),
):
    return apply_operation(editor, template_editor.select_element, request.element_id)


@router.post("/{session_id}/playback/time", response_model=EditorStateResponse)
async def playback_set_time(
    request: SetTimeRequest,
    editor: EditorSession = Depends(require_editor_session),
):
    return apply_operation(editor, template_editor.set_current_time, request.seconds)


@router.post("/{session_id}/playback/toggle", response_model=EditorStateResponse)
async def playback_toggle(editor: EditorSession = Depends(require_editor_session)):
    return apply_operation(editor, template_editor.toggle_playback)


@router.post("/{session_id}/playback/advance", response_model=EditorStateResponse)
async def playback_advance(
    request: AdvancePlaybackRequest,
    editor: EditorSession = Depends(require_editor_session),
):
    return apply_operation(editor, template_editor.advance_playback, request.delta)


@router.post("/{session_id}/ui/mode", response_model=EditorStateResponse)
async def ui_set_mode(
    request: SetModeRequest,
    editor: EditorSession = Depends(require_editor_session),
):
    return apply_operation(editor, template_editor.set_editor_mode, request.mode)


@router.post("/{session_id}/ui/property-editor", response_model=EditorStateResponse)
async def ui_toggle_property_editor(editor: EditorSession = Depends(require_editor_session)):
    return apply_operation(editor, template_editor.toggle_property_editor)


@router.post("/{session_id}/ui/zoom", response_model=EditorStateResponse)
async def ui_set_zoom(
    request: SetZoomRequest,
    editor: EditorSession = Depends(require_editor_session),
):
    return apply_operation(editor, template_editor.set_zoom, request.zoom)


@router.post("/{session_id}/ui/advanced-options", response_model=EditorStateResponse)
async def ui_toggle_advanced_options(editor: EditorSession = Depends(require_editor_session)):
    return apply_operation(editor, template_editor.toggle_advanced_options)


@router.post("/{session_id}/ui/tab", response_model=EditorStateResponse)
async def ui_set_tab(
    request: SetTabRequest,
    editor: EditorSession = Depends(require_editor_session),
):
    return apply_operation(editor, template_editor.set_active_tab, request.tab)


@router.post("/{session_id}/ui/device", response_model=EditorStateResponse)
async def ui_set_device(
    request: SetDeviceRequest,
    editor: EditorSession = Depends(require_editor_session),
):
    return apply_operation(editor, template_editor.set_device_view, request.device)
