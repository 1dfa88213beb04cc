"""
Pydantic models for the template editor.

This module implements the data model edited by an editor session:
- Template -> Sections -> Elements, with sections ordered by playback
- Element variants as a discriminated union over ``type``
- UI/selection state and the combined EditorState that history snapshots

Geometry convention: x, y, width and height are percentages of the canvas.
x/y name the element's centre point. Pixels are resolved only at render
time through ``Element.to_pixels`` and ``AspectRatio.canvas_size``.
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, Literal, Union
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator, model_validator


def generate_id() -> str:
    """Generate an opaque id for sections and elements."""
    return str(uuid4())


# =============================================================================
# ENUMS
# =============================================================================


class AspectRatio(str, Enum):
    """Supported canvas aspect ratios."""
    PORTRAIT = "9:16"
    LANDSCAPE = "16:9"
    SQUARE = "1:1"
    VERTICAL = "4:5"

    @property
    def canvas_size(self) -> tuple[int, int]:
        """Reference render size (width, height) in pixels."""
        return _CANVAS_SIZES[self]


_CANVAS_SIZES = {
    AspectRatio.PORTRAIT: (1080, 1920),
    AspectRatio.LANDSCAPE: (1920, 1080),
    AspectRatio.SQUARE: (1080, 1080),
    AspectRatio.VERTICAL: (1080, 1350),
}


class SectionType(str, Enum):
    """
    Well-known section types.

    Section.type is an open set; these are the values the editor has
    defaults for. Any other non-empty string is accepted.
    """
    INTRO = "intro"
    HOOK = "hook"
    BODY = "body"
    CALL_TO_ACTION = "callToAction"
    OUTRO = "outro"
    CUSTOM = "custom"


class ElementType(str, Enum):
    TEXT = "text"
    IMAGE = "image"
    VIDEO = "video"
    AUDIO = "audio"
    SHAPE = "shape"
    EFFECT = "effect"
    STICKER = "sticker"


class BackgroundType(str, Enum):
    COLOR = "color"
    IMAGE = "image"
    VIDEO = "video"


class SectionTransitionType(str, Enum):
    CUT = "cut"
    FADE = "fade"
    SLIDE = "slide"
    ZOOM = "zoom"
    CUSTOM = "custom"


class ShapeKind(str, Enum):
    RECTANGLE = "rectangle"
    ELLIPSE = "ellipse"
    TRIANGLE = "triangle"
    LINE = "line"


class EffectKind(str, Enum):
    PARTICLE = "particle"
    FILTER = "filter"
    TRANSITION = "transition"
    AR = "ar"


class EditorMode(str, Enum):
    EDIT = "edit"
    PREVIEW = "preview"


class DeviceView(str, Enum):
    """Preview frame the canvas is shown in."""
    MOBILE = "mobile"
    DESKTOP = "desktop"


class EditorTab(str, Enum):
    ELEMENTS = "elements"
    TIMELINE = "timeline"
    PROPERTIES = "properties"
    ASSETS = "assets"


# =============================================================================
# SHARED BLOCKS
# =============================================================================


class ElementAnimation(BaseModel):
    """Entrance or exit animation attached to an element."""
    type: Literal["fade", "slide", "zoom", "rotate", "bounce", "flip", "custom"] = "fade"
    duration: float = Field(default=0.5, ge=0, description="Seconds")
    delay: float = Field(default=0.0, ge=0, description="Seconds")
    easing: str = Field(default="ease-in-out")


class TextStyle(BaseModel):
    """Font, colour and alignment block of a text element."""
    font_family: str = Field(default="Inter")
    font_size: float = Field(default=24, gt=0, description="Points at reference canvas size")
    font_weight: str = Field(default="500")
    color: str = Field(default="#FFFFFF")
    text_align: Literal["left", "center", "right", "justify"] = "center"
    background_color: str | None = None


class PixelBox(BaseModel):
    """Element bounding box resolved to pixels (top-left origin)."""
    left: float
    top: float
    width: float
    height: float
    rotation: float


# =============================================================================
# ELEMENTS
# =============================================================================


GEOMETRY_FIELDS = frozenset({"x", "y", "width", "height", "rotation"})


class BaseElement(BaseModel):
    """
    Attributes shared by every element variant.

    Position and size are percentages of the canvas. ``z_index`` orders
    painting within the owning section; ties fall back to list order.
    """
    id: str = Field(default_factory=generate_id, min_length=1)
    x: float = Field(
        default=50.0, ge=0, le=100, allow_inf_nan=False, description="Centre x, % of canvas width"
    )
    y: float = Field(
        default=50.0, ge=0, le=100, allow_inf_nan=False, description="Centre y, % of canvas height"
    )
    width: float = Field(
        default=50.0, gt=0, le=100, allow_inf_nan=False, description="% of canvas width"
    )
    height: float = Field(
        default=20.0, gt=0, le=100, allow_inf_nan=False, description="% of canvas height"
    )
    rotation: float = Field(
        default=0.0, allow_inf_nan=False, description="Degrees, normalised to [0, 360)"
    )
    opacity: float = Field(default=1.0, ge=0, le=1)
    z_index: int = Field(default=1)
    locked: bool = Field(default=False, description="Blocks geometric edits")
    hidden: bool = Field(default=False)
    link_url: str | None = None
    visible_from: float | None = Field(
        default=None, ge=0, description="Seconds from section start"
    )
    visible_to: float | None = Field(
        default=None, ge=0, description="Seconds from section start"
    )
    animation_in: ElementAnimation | None = None
    animation_out: ElementAnimation | None = None

    @field_validator("rotation")
    @classmethod
    def _normalise_rotation(cls, value: float) -> float:
        return value % 360

    @model_validator(mode="after")
    def _check_visibility_window(self):
        if (
            self.visible_from is not None
            and self.visible_to is not None
            and self.visible_to <= self.visible_from
        ):
            raise ValueError("visible_to must be greater than visible_from")
        return self

    def is_visible_at(self, local_time: float) -> bool:
        """Check visibility at a time relative to the section start."""
        if self.hidden:
            return False
        if self.visible_from is not None and local_time < self.visible_from:
            return False
        if self.visible_to is not None and local_time >= self.visible_to:
            return False
        return True

    def to_pixels(self, canvas_width: float, canvas_height: float) -> PixelBox:
        """Resolve percentage geometry against a canvas size."""
        width = self.width * canvas_width / 100
        height = self.height * canvas_height / 100
        return PixelBox(
            left=self.x * canvas_width / 100 - width / 2,
            top=self.y * canvas_height / 100 - height / 2,
            width=width,
            height=height,
            rotation=self.rotation,
        )


class TextElement(BaseElement):
    type: Literal["text"] = "text"
    content: str = Field(default="Add your text here")
    style: TextStyle = Field(default_factory=TextStyle)


class ImageElement(BaseElement):
    type: Literal["image"] = "image"
    src: str = Field(default="")
    alt: str = Field(default="")
    border_radius: float = Field(default=0, ge=0)


class VideoElement(BaseElement):
    type: Literal["video"] = "video"
    src: str = Field(default="")
    muted: bool = True
    loop: bool = True
    autoplay: bool = False
    start_time: float | None = Field(default=None, ge=0, description="Trim start, seconds")
    end_time: float | None = Field(default=None, ge=0, description="Trim end, seconds")


class AudioElement(BaseElement):
    type: Literal["audio"] = "audio"
    src: str = Field(default="")
    volume: float = Field(default=0.8, ge=0, le=1)
    start_time: float | None = Field(default=None, ge=0)
    end_time: float | None = Field(default=None, ge=0)
    visualizer: bool = True


class ShapeElement(BaseElement):
    type: Literal["shape"] = "shape"
    shape: ShapeKind = ShapeKind.RECTANGLE
    fill_color: str = Field(default="#4299E1")
    stroke_color: str | None = None
    stroke_width: float = Field(default=0, ge=0)


class EffectElement(BaseElement):
    type: Literal["effect"] = "effect"
    effect: EffectKind = EffectKind.PARTICLE
    config: dict[str, Any] = Field(default_factory=dict)


class StickerElement(BaseElement):
    type: Literal["sticker"] = "sticker"
    src: str = Field(default="")
    category: str = Field(default="general")


Element = Annotated[
    Union[
        TextElement,
        ImageElement,
        VideoElement,
        AudioElement,
        ShapeElement,
        EffectElement,
        StickerElement,
    ],
    Field(discriminator="type"),
]

ELEMENT_CLASSES: dict[ElementType, type[BaseElement]] = {
    ElementType.TEXT: TextElement,
    ElementType.IMAGE: ImageElement,
    ElementType.VIDEO: VideoElement,
    ElementType.AUDIO: AudioElement,
    ElementType.SHAPE: ShapeElement,
    ElementType.EFFECT: EffectElement,
    ElementType.STICKER: StickerElement,
}


def create_default_element(
    element_type: ElementType,
    section_type: str | None = None,
    theme: TemplateTheme | None = None,
) -> BaseElement:
    """
    Build a new element with type-appropriate defaults.

    Every element starts centred on the canvas with a non-zero size.
    """
    if element_type == ElementType.TEXT:
        style = TextStyle(font_family=theme.font_family) if theme else TextStyle()
        return TextElement(width=60, height=10, style=style)
    if element_type == ElementType.IMAGE:
        return ImageElement(width=50, height=30, alt="Image description")
    if element_type == ElementType.VIDEO:
        return VideoElement(
            width=60, height=40, autoplay=section_type == SectionType.INTRO.value
        )
    if element_type == ElementType.AUDIO:
        return AudioElement(width=60, height=8)
    if element_type == ElementType.SHAPE:
        return ShapeElement(width=30, height=20)
    if element_type == ElementType.EFFECT:
        return EffectElement(
            width=100,
            height=100,
            config={"particle_type": "confetti", "intensity": 5, "duration": 2},
        )
    return StickerElement(width=20, height=12)


# =============================================================================
# SECTIONS
# =============================================================================


DEFAULT_SECTION_DURATIONS = {
    SectionType.INTRO.value: 3.0,
    SectionType.HOOK.value: 5.0,
    SectionType.BODY.value: 10.0,
    SectionType.CALL_TO_ACTION.value: 4.0,
    SectionType.OUTRO.value: 3.0,
}
FALLBACK_SECTION_DURATION = 5.0


class SectionBackground(BaseModel):
    type: BackgroundType = BackgroundType.COLOR
    value: str = Field(default="#000000")
    opacity: float = Field(default=1.0, ge=0, le=1)


class SectionTransition(BaseModel):
    """Transition played when entering the section."""
    type: SectionTransitionType = SectionTransitionType.FADE
    duration: float = Field(default=0.5, ge=0, description="Seconds")
    direction: str | None = "in"
    easing: str = "ease-in-out"


class Section(BaseModel):
    """
    A timed segment of the template.

    Sections play back in list order; elements paint in (z_index, list
    order).
    """
    id: str = Field(default_factory=generate_id, min_length=1)
    name: str = Field(default="Section")
    type: str = Field(default=SectionType.CUSTOM.value, min_length=1)
    duration: float = Field(default=FALLBACK_SECTION_DURATION, gt=0, description="Seconds")
    background: SectionBackground | None = None
    transition: SectionTransition | None = None
    notes: str | None = None
    elements: list[Element] = Field(default_factory=list)

    def find_element(self, element_id: str) -> tuple[int, BaseElement] | None:
        for index, element in enumerate(self.elements):
            if element.id == element_id:
                return index, element
        return None

    def paint_order(self) -> list[BaseElement]:
        """Elements sorted bottom-to-top for rendering."""
        return [
            element
            for _, element in sorted(
                enumerate(self.elements), key=lambda item: (item[1].z_index, item[0])
            )
        ]

    @classmethod
    def create_default(cls, section_type: str = SectionType.CUSTOM.value) -> Section:
        """Create an empty section with defaults for its type."""
        return cls(
            name=f"{section_type[:1].upper()}{section_type[1:]} Section",
            type=section_type,
            duration=DEFAULT_SECTION_DURATIONS.get(section_type, FALLBACK_SECTION_DURATION),
            background=SectionBackground(),
            transition=SectionTransition(),
        )


# =============================================================================
# TEMPLATE
# =============================================================================


class TemplateTheme(BaseModel):
    primary_color: str = "#3B82F6"
    secondary_color: str = "#EC4899"
    font_family: str = "Inter"


class Template(BaseModel):
    """
    Root aggregate: an ordered list of sections.

    A template always holds at least one section, and section and element
    ids are unique across the whole template.
    """
    id: str = Field(default_factory=generate_id, min_length=1)
    name: str = Field(default="Untitled Template")
    description: str | None = None
    aspect_ratio: AspectRatio = AspectRatio.PORTRAIT
    sections: list[Section] = Field(min_length=1)
    theme: TemplateTheme | None = None
    soundtrack_url: str | None = None
    category_tags: list[str] = Field(default_factory=list)
    settings: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _check_unique_ids(self):
        section_ids = [section.id for section in self.sections]
        if len(section_ids) != len(set(section_ids)):
            raise ValueError("Section ids must be unique within a template")
        element_ids = [
            element.id for section in self.sections for element in section.elements
        ]
        if len(element_ids) != len(set(element_ids)):
            raise ValueError("Element ids must be unique within a template")
        return self

    def total_duration(self) -> float:
        return sum(section.duration for section in self.sections)

    def find_section(self, section_id: str) -> tuple[int, Section] | None:
        for index, section in enumerate(self.sections):
            if section.id == section_id:
                return index, section
        return None

    def section_of_element(self, element_id: str) -> Section | None:
        for section in self.sections:
            if section.find_element(element_id) is not None:
                return section
        return None

    @classmethod
    def create_default(cls, name: str = "Untitled Template") -> Template:
        """Create the welcome template: one five second intro section."""
        intro = Section.create_default(SectionType.INTRO.value)
        intro.name = "Intro Section"
        intro.duration = 5.0
        return cls(name=name, sections=[intro], theme=TemplateTheme())


# =============================================================================
# EDITOR STATE
# =============================================================================


class EditorUIState(BaseModel):
    """Selection, playback and panel state. Never persisted."""
    selected_section_id: str | None = None
    selected_element_id: str | None = None
    editor_mode: EditorMode = EditorMode.EDIT
    current_time: float = Field(default=0.0, ge=0, description="Seconds")
    is_playing: bool = False
    show_property_editor: bool = False
    zoom: float = Field(default=1.0, ge=0.1, le=5.0)
    show_advanced_options: bool = False
    active_tab: EditorTab = EditorTab.ELEMENTS
    device_view: DeviceView = DeviceView.MOBILE


class EditorState(BaseModel):
    """Template plus UI state; the unit stored in history snapshots."""
    template: Template
    ui: EditorUIState = Field(default_factory=EditorUIState)

    @classmethod
    def initial(cls, template: Template) -> EditorState:
        """Fresh state for a newly loaded template, first section selected."""
        return cls(
            template=template,
            ui=EditorUIState(selected_section_id=template.sections[0].id),
        )


class LastAction(BaseModel):
    """Most recent operation applied to a session."""
    type: str
    target: str | None = Field(
        default=None, description="Operation reverted or reapplied by undo/redo"
    )
    timestamp: str  # ISO format
