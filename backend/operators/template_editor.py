"""
Template Editor - the Mutation API over an EditorSession.

Every operation takes the session first, builds the next state from a deep
copy of the current one and hands it to ``session.commit``. Operations never
raise for bad references or out-of-range values: TemplateEditorError is
resolved as a no-op that returns the unchanged state.

Tracked (undoable):
    add_section, update_section, delete_section, duplicate_section,
    reorder_sections, add_element, update_element, delete_element,
    duplicate_element, move_element_up, move_element_down,
    update_template, commit_gesture

Untracked (UI only):
    move_element, resize_element (live gestures), select_section,
    select_element, set_current_time, toggle_playback, advance_playback,
    set_editor_mode, toggle_property_editor, set_zoom,
    toggle_advanced_options, set_active_tab, set_device_view
"""

from __future__ import annotations

import logging
import math
from copy import deepcopy
from functools import wraps
from typing import Any

from pydantic import BaseModel, ValidationError

from models.template_models import (
    GEOMETRY_FIELDS,
    BaseElement,
    DeviceView,
    EditorMode,
    EditorState,
    EditorTab,
    ElementType,
    Section,
    Template,
    create_default_element,
    generate_id,
)
from operators.editor_session import (
    EditorSession,
    InvalidReferenceError,
    InvariantViolationError,
    LockedElementError,
    TemplateEditorError,
)

logger = logging.getLogger(__name__)

DUPLICATE_OFFSET = 5.0  # percent of canvas
MIN_ZOOM = 0.1
MAX_ZOOM = 5.0

SECTION_UPDATABLE_FIELDS = frozenset({"name", "type", "duration", "background", "transition", "notes"})
TEMPLATE_UPDATABLE_FIELDS = frozenset(
    {"name", "description", "aspect_ratio", "theme", "soundtrack_url", "category_tags", "settings"}
)


def editor_operation(func):
    """Resolve TemplateEditorError raised by ``func`` as a no-op."""
    @wraps(func)
    def wrapper(session: EditorSession, *args, **kwargs) -> EditorState:
        try:
            return func(session, *args, **kwargs)
        except TemplateEditorError as e:
            logger.debug("Ignored %s on session %s: %s", func.__name__, session.session_id, e)
            return session.state
    return wrapper


# =============================================================================
# HELPERS
# =============================================================================


def _get_section(template: Template, section_id: str) -> tuple[int, Section]:
    found = template.find_section(section_id)
    if found is None:
        raise InvalidReferenceError("Section", section_id)
    return found


def _get_element(section: Section, element_id: str) -> tuple[int, BaseElement]:
    found = section.find_element(element_id)
    if found is None:
        raise InvalidReferenceError("Element", element_id)
    return found


def _element_fields(element: BaseElement) -> frozenset[str]:
    return frozenset(type(element).model_fields) - {"id", "type"}


def _merge_updates(
    model: BaseModel,
    updates: dict[str, Any],
    allowed: frozenset[str],
) -> BaseModel:
    """
    Validate ``updates`` merged over ``model``, returning a new instance.

    Nested model fields accept partial dicts (e.g. ``{"style": {"color": ...}}``).
    """
    for key in updates:
        if key not in allowed:
            raise InvariantViolationError(f"Unknown or read-only field '{key}'")

    data = model.model_dump()
    for key, value in updates.items():
        current = getattr(model, key)
        if isinstance(current, BaseModel) and isinstance(value, dict):
            data[key] = {**current.model_dump(), **value}
        elif isinstance(value, BaseModel):
            data[key] = value.model_dump()
        else:
            data[key] = value

    try:
        return type(model).model_validate(data)
    except ValidationError as e:
        raise InvariantViolationError(f"Invalid update: {e.error_count()} error(s)") from e


def _with_template(state: EditorState, template: Template, **ui_updates: Any) -> EditorState:
    return EditorState(template=template, ui=state.ui.model_copy(update=ui_updates))


def _with_ui(state: EditorState, **ui_updates: Any) -> EditorState:
    return EditorState(template=state.template, ui=state.ui.model_copy(update=ui_updates))


def _finite(value: float, name: str) -> float:
    value = float(value)
    if not math.isfinite(value):
        raise InvariantViolationError(f"{name} must be a finite number")
    return value


def _fresh_element_copy(element: BaseElement, offset: float = 0.0) -> BaseElement:
    clone = element.model_copy(deep=True)
    clone.id = generate_id()
    if offset:
        clone.x = min(100.0, clone.x + offset)
        clone.y = min(100.0, clone.y + offset)
    return clone


# =============================================================================
# TEMPLATE OPERATIONS
# =============================================================================


@editor_operation
def update_template(session: EditorSession, updates: dict[str, Any]) -> EditorState:
    """Update template-level fields (name, description, aspect ratio, theme, ...)."""
    current = session.state
    template = _merge_updates(current.template, updates, TEMPLATE_UPDATABLE_FIELDS)
    return session.commit(
        _with_template(current, template),
        operation_type="update_template",
        operation_data={"fields": sorted(updates)},
    )


# =============================================================================
# SECTION OPERATIONS
# =============================================================================


@editor_operation
def add_section(
    session: EditorSession,
    section_type: str | None = None,
    name: str | None = None,
) -> EditorState:
    """Append a new empty section with defaults for its type and select it."""
    current = session.state
    template = deepcopy(current.template)
    new_section = Section.create_default(section_type or "custom")
    if name:
        new_section.name = name
    template.sections.append(new_section)

    return session.commit(
        _with_template(
            current,
            template,
            selected_section_id=new_section.id,
            selected_element_id=None,
        ),
        operation_type="add_section",
        operation_data={"section_id": new_section.id, "type": new_section.type},
    )


@editor_operation
def update_section(
    session: EditorSession,
    section_id: str,
    updates: dict[str, Any],
) -> EditorState:
    """Merge updates into a section. Duration must stay positive."""
    current = session.state
    template = deepcopy(current.template)
    index, section = _get_section(template, section_id)
    template.sections[index] = _merge_updates(section, updates, SECTION_UPDATABLE_FIELDS)

    return session.commit(
        _with_template(current, template),
        operation_type="update_section",
        operation_data={"section_id": section_id, "fields": sorted(updates)},
    )


@editor_operation
def delete_section(session: EditorSession, section_id: str) -> EditorState:
    """Remove a section. The last remaining section can't be deleted."""
    current = session.state
    template = deepcopy(current.template)
    index, _ = _get_section(template, section_id)
    if len(template.sections) <= 1:
        raise InvariantViolationError("A template must keep at least one section")
    template.sections.pop(index)

    ui_updates: dict[str, Any] = {}
    if current.ui.selected_section_id == section_id:
        ui_updates = {
            "selected_section_id": None,
            "selected_element_id": None,
            "show_property_editor": False,
        }

    return session.commit(
        _with_template(current, template, **ui_updates),
        operation_type="delete_section",
        operation_data={"section_id": section_id, "index": index},
    )


@editor_operation
def duplicate_section(session: EditorSession, section_id: str) -> EditorState:
    """Deep-copy a section (fresh ids throughout) and insert it right after the original."""
    current = session.state
    template = deepcopy(current.template)
    index, section = _get_section(template, section_id)

    clone = section.model_copy(deep=True)
    clone.id = generate_id()
    clone.name = f"{section.name} (copy)"
    clone.elements = [_fresh_element_copy(element) for element in section.elements]
    template.sections.insert(index + 1, clone)

    return session.commit(
        _with_template(
            current,
            template,
            selected_section_id=clone.id,
            selected_element_id=None,
        ),
        operation_type="duplicate_section",
        operation_data={"section_id": section_id, "new_section_id": clone.id},
    )


@editor_operation
def reorder_sections(session: EditorSession, from_index: int, to_index: int) -> EditorState:
    """Move the section at ``from_index`` to ``to_index``."""
    current = session.state
    template = deepcopy(current.template)
    count = len(template.sections)
    if not (0 <= from_index < count):
        raise InvalidReferenceError("Section index", from_index)
    if not (0 <= to_index < count):
        raise InvalidReferenceError("Section index", to_index)

    moved = template.sections.pop(from_index)
    template.sections.insert(to_index, moved)

    return session.commit(
        _with_template(current, template),
        operation_type="reorder_sections",
        operation_data={"from_index": from_index, "to_index": to_index},
    )


# =============================================================================
# ELEMENT OPERATIONS
# =============================================================================


@editor_operation
def add_element(
    session: EditorSession,
    section_id: str,
    element_type: ElementType | str,
) -> EditorState:
    """Append a new element with type defaults to a section and select it."""
    try:
        element_type = ElementType(element_type)
    except ValueError:
        raise InvalidReferenceError("Element type", element_type)

    current = session.state
    template = deepcopy(current.template)
    index, section = _get_section(template, section_id)
    element = create_default_element(element_type, section.type, template.theme)
    section.elements.append(element)

    return session.commit(
        _with_template(
            current,
            template,
            selected_section_id=section_id,
            selected_element_id=element.id,
            show_property_editor=True,
        ),
        operation_type="add_element",
        operation_data={"section_id": section_id, "element_id": element.id, "type": element_type.value},
    )


@editor_operation
def update_element(
    session: EditorSession,
    section_id: str,
    element_id: str,
    updates: dict[str, Any],
) -> EditorState:
    """
    Merge partial attributes into an element.

    Locked elements reject updates touching x, y, width, height or rotation;
    content and style edits still apply.
    """
    current = session.state
    template = deepcopy(current.template)
    _, section = _get_section(template, section_id)
    index, element = _get_element(section, element_id)
    if element.locked and GEOMETRY_FIELDS.intersection(updates):
        raise LockedElementError(element_id)

    section.elements[index] = _merge_updates(element, updates, _element_fields(element))

    return session.commit(
        _with_template(current, template),
        operation_type="update_element",
        operation_data={"section_id": section_id, "element_id": element_id, "fields": sorted(updates)},
    )


@editor_operation
def delete_element(session: EditorSession, section_id: str, element_id: str) -> EditorState:
    """Remove an element, clearing the selection if it pointed at it."""
    current = session.state
    template = deepcopy(current.template)
    _, section = _get_section(template, section_id)
    index, _ = _get_element(section, element_id)
    section.elements.pop(index)

    ui_updates: dict[str, Any] = {}
    if current.ui.selected_element_id == element_id:
        ui_updates = {"selected_element_id": None, "show_property_editor": False}

    return session.commit(
        _with_template(current, template, **ui_updates),
        operation_type="delete_element",
        operation_data={"section_id": section_id, "element_id": element_id},
    )


@editor_operation
def duplicate_element(session: EditorSession, section_id: str, element_id: str) -> EditorState:
    """Deep-copy an element with a new id, offset it, append it and select it."""
    current = session.state
    template = deepcopy(current.template)
    _, section = _get_section(template, section_id)
    _, element = _get_element(section, element_id)

    clone = _fresh_element_copy(element, offset=DUPLICATE_OFFSET)
    section.elements.append(clone)

    return session.commit(
        _with_template(
            current,
            template,
            selected_section_id=section_id,
            selected_element_id=clone.id,
        ),
        operation_type="duplicate_element",
        operation_data={"section_id": section_id, "element_id": element_id, "new_element_id": clone.id},
    )


def _swap_element(session: EditorSession, section_id: str, element_id: str, step: int) -> EditorState:
    current = session.state
    template = deepcopy(current.template)
    _, section = _get_section(template, section_id)
    index, _ = _get_element(section, element_id)
    target = index + step
    if not (0 <= target < len(section.elements)):
        return current

    section.elements[index], section.elements[target] = (
        section.elements[target],
        section.elements[index],
    )
    return session.commit(
        _with_template(current, template),
        operation_type="move_element_up" if step < 0 else "move_element_down",
        operation_data={"section_id": section_id, "element_id": element_id, "to_index": target},
    )


@editor_operation
def move_element_up(session: EditorSession, section_id: str, element_id: str) -> EditorState:
    """Swap an element with its predecessor. No-op for the first element."""
    return _swap_element(session, section_id, element_id, -1)


@editor_operation
def move_element_down(session: EditorSession, section_id: str, element_id: str) -> EditorState:
    """Swap an element with its successor. No-op for the last element."""
    return _swap_element(session, section_id, element_id, 1)


# =============================================================================
# LIVE GESTURES
# =============================================================================


def _apply_gesture(
    session: EditorSession,
    section_id: str,
    element_id: str,
    updates: dict[str, Any],
    operation_type: str,
) -> EditorState:
    current = session.state
    template = deepcopy(current.template)
    _, section = _get_section(template, section_id)
    index, element = _get_element(section, element_id)
    if element.locked:
        raise LockedElementError(element_id)

    section.elements[index] = _merge_updates(element, updates, _element_fields(element))
    return session.commit(
        _with_template(current, template),
        operation_type=operation_type,
        operation_data={"section_id": section_id, "element_id": element_id, **updates},
        tracked=False,
        gesture=True,
    )


@editor_operation
def move_element(
    session: EditorSession,
    section_id: str,
    element_id: str,
    x: float,
    y: float,
) -> EditorState:
    """Live drag position. Untracked until ``commit_gesture``."""
    return _apply_gesture(session, section_id, element_id, {"x": x, "y": y}, "move_element")


@editor_operation
def resize_element(
    session: EditorSession,
    section_id: str,
    element_id: str,
    width: float,
    height: float,
    x: float | None = None,
    y: float | None = None,
) -> EditorState:
    """Live resize. Untracked until ``commit_gesture``."""
    updates: dict[str, Any] = {"width": width, "height": height}
    if x is not None:
        updates["x"] = x
    if y is not None:
        updates["y"] = y
    return _apply_gesture(session, section_id, element_id, updates, "resize_element")


def commit_gesture(session: EditorSession) -> EditorState:
    """Record a finished drag/resize as one undoable step."""
    return session.commit_gesture()


# =============================================================================
# SELECTION & UI STATE (untracked)
# =============================================================================


@editor_operation
def select_section(session: EditorSession, section_id: str | None) -> EditorState:
    current = session.state
    if section_id is not None:
        _get_section(current.template, section_id)

    return session.commit(
        _with_ui(
            current,
            selected_section_id=section_id,
            selected_element_id=None,
            show_property_editor=False,
        ),
        operation_type="select_section",
        operation_data={"section_id": section_id},
        tracked=False,
    )


@editor_operation
def select_element(session: EditorSession, element_id: str | None) -> EditorState:
    """
    Select an element (or clear with None).

    Selecting an element outside the selected section moves the section
    selection to its owner so the selection stays consistent.
    """
    current = session.state
    ui_updates: dict[str, Any] = {
        "selected_element_id": element_id,
        "show_property_editor": element_id is not None,
    }
    if element_id is not None:
        owner = current.template.section_of_element(element_id)
        if owner is None:
            raise InvalidReferenceError("Element", element_id)
        ui_updates["selected_section_id"] = owner.id

    return session.commit(
        _with_ui(current, **ui_updates),
        operation_type="select_element",
        operation_data={"element_id": element_id},
        tracked=False,
    )


@editor_operation
def set_current_time(session: EditorSession, seconds: float) -> EditorState:
    """Move the playhead, clamped to [0, total duration]."""
    current = session.state
    total = current.template.total_duration()
    clamped = min(max(_finite(seconds, "Time"), 0.0), total)

    return session.commit(
        _with_ui(current, current_time=clamped),
        operation_type="set_current_time",
        operation_data={"seconds": clamped},
        tracked=False,
    )


@editor_operation
def toggle_playback(session: EditorSession) -> EditorState:
    current = session.state
    return session.commit(
        _with_ui(current, is_playing=not current.ui.is_playing),
        operation_type="toggle_playback",
        tracked=False,
    )


@editor_operation
def advance_playback(session: EditorSession, delta: float) -> EditorState:
    """Advance the playhead while playing; stops playback at the end."""
    delta = _finite(delta, "Playback delta")
    current = session.state
    if not current.ui.is_playing or delta <= 0:
        return current

    total = current.template.total_duration()
    new_time = current.ui.current_time + delta
    ui_updates: dict[str, Any] = {"current_time": min(new_time, total)}
    if new_time >= total:
        ui_updates["is_playing"] = False

    return session.commit(
        _with_ui(current, **ui_updates),
        operation_type="advance_playback",
        tracked=False,
    )


@editor_operation
def set_editor_mode(session: EditorSession, mode: EditorMode | str) -> EditorState:
    """Switch between edit and preview. Preview hides the property editor."""
    try:
        mode = EditorMode(mode)
    except ValueError:
        raise InvalidReferenceError("Editor mode", mode)

    current = session.state
    ui_updates: dict[str, Any] = {"editor_mode": mode}
    if mode == EditorMode.PREVIEW:
        ui_updates["show_property_editor"] = False

    return session.commit(
        _with_ui(current, **ui_updates),
        operation_type="set_editor_mode",
        operation_data={"mode": mode.value},
        tracked=False,
    )


@editor_operation
def toggle_property_editor(session: EditorSession) -> EditorState:
    current = session.state
    return session.commit(
        _with_ui(current, show_property_editor=not current.ui.show_property_editor),
        operation_type="toggle_property_editor",
        tracked=False,
    )


@editor_operation
def set_zoom(session: EditorSession, zoom: float) -> EditorState:
    current = session.state
    return session.commit(
        _with_ui(current, zoom=min(max(_finite(zoom, "Zoom"), MIN_ZOOM), MAX_ZOOM)),
        operation_type="set_zoom",
        tracked=False,
    )


@editor_operation
def toggle_advanced_options(session: EditorSession) -> EditorState:
    current = session.state
    return session.commit(
        _with_ui(current, show_advanced_options=not current.ui.show_advanced_options),
        operation_type="toggle_advanced_options",
        tracked=False,
    )


@editor_operation
def set_active_tab(session: EditorSession, tab: EditorTab | str) -> EditorState:
    try:
        tab = EditorTab(tab)
    except ValueError:
        raise InvalidReferenceError("Editor tab", tab)

    current = session.state
    return session.commit(
        _with_ui(current, active_tab=tab),
        operation_type="set_active_tab",
        tracked=False,
    )


@editor_operation
def set_device_view(session: EditorSession, device: DeviceView | str) -> EditorState:
    """Switch the preview frame between mobile and desktop."""
    try:
        device = DeviceView(device)
    except ValueError:
        raise InvalidReferenceError("Device view", device)

    current = session.state
    return session.commit(
        _with_ui(current, device_view=device),
        operation_type="set_device_view",
        tracked=False,
    )


# =============================================================================
# HISTORY
# =============================================================================


def undo(session: EditorSession) -> EditorState:
    return session.undo()


def redo(session: EditorSession) -> EditorState:
    return session.redo()
