"""Derived, read-only values computed from an EditorState."""

from __future__ import annotations

from models.template_models import BaseElement, EditorState, Section, Template


def total_duration(state: EditorState) -> float:
    """Sum of section durations, in seconds."""
    return state.template.total_duration()


def playhead_fraction(state: EditorState) -> float:
    """current_time / total_duration, or 0 for an empty timeline."""
    total = total_duration(state)
    if total <= 0:
        return 0.0
    return min(state.ui.current_time / total, 1.0)


def find_section(template: Template, section_id: str | None) -> Section | None:
    if section_id is None:
        return None
    found = template.find_section(section_id)
    return found[1] if found else None


def find_element(template: Template, element_id: str | None) -> BaseElement | None:
    if element_id is None:
        return None
    for section in template.sections:
        found = section.find_element(element_id)
        if found:
            return found[1]
    return None


def active_section(state: EditorState) -> Section | None:
    return find_section(state.template, state.ui.selected_section_id)


def active_element(state: EditorState) -> BaseElement | None:
    section = active_section(state)
    if section is None or state.ui.selected_element_id is None:
        return None
    found = section.find_element(state.ui.selected_element_id)
    return found[1] if found else None


def section_start_time(template: Template, section_id: str) -> float | None:
    """Playback offset of a section from the start of the template."""
    offset = 0.0
    for section in template.sections:
        if section.id == section_id:
            return offset
        offset += section.duration
    return None


def section_at_time(template: Template, time: float) -> tuple[Section, float] | None:
    """
    Find the section playing at ``time``.

    Returns (section, start offset). Section ranges are half-open, except
    that the template's end time maps to the last section.
    """
    if time < 0:
        return None

    offset = 0.0
    for section in template.sections:
        if offset <= time < offset + section.duration:
            return section, offset
        offset += section.duration

    if template.sections and time <= offset:
        last = template.sections[-1]
        return last, offset - last.duration
    return None


def visible_elements_at(state: EditorState, time: float | None = None) -> list[BaseElement]:
    """Elements visible at ``time`` (defaults to the playhead), bottom to top."""
    if time is None:
        time = state.ui.current_time

    found = section_at_time(state.template, time)
    if found is None:
        return []
    section, start = found
    local_time = time - start
    return [element for element in section.paint_order() if element.is_visible_at(local_time)]


def canvas_size(state: EditorState) -> tuple[int, int]:
    """Reference pixel size of the template canvas."""
    return state.template.aspect_ratio.canvas_size
