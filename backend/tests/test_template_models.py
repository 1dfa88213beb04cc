import pytest
from pydantic import ValidationError

from models.template_models import (
    AspectRatio,
    EditorState,
    ElementType,
    ImageElement,
    Section,
    SectionType,
    ShapeElement,
    Template,
    TemplateTheme,
    TextElement,
    VideoElement,
    create_default_element,
)


class TestTemplate:
    def test_requires_at_least_one_section(self):
        with pytest.raises(ValidationError):
            Template(sections=[])

    def test_rejects_duplicate_section_ids(self):
        with pytest.raises(ValidationError):
            Template(sections=[Section(id="s1"), Section(id="s1")])

    def test_rejects_duplicate_element_ids_across_sections(self):
        with pytest.raises(ValidationError):
            Template(
                sections=[
                    Section(id="s1", elements=[TextElement(id="e1")]),
                    Section(id="s2", elements=[TextElement(id="e1")]),
                ]
            )

    def test_total_duration_sums_sections(self):
        template = Template(
            sections=[Section(id="s1", duration=3), Section(id="s2", duration=4.5)]
        )

        assert template.total_duration() == 7.5

    def test_create_default(self):
        template = Template.create_default()

        assert template.name == "Untitled Template"
        assert template.aspect_ratio == AspectRatio.PORTRAIT
        assert isinstance(template.theme, TemplateTheme)
        assert len(template.sections) == 1
        assert template.sections[0].type == SectionType.INTRO.value
        assert template.sections[0].duration == 5.0
        assert template.sections[0].elements == []

    def test_section_of_element(self):
        element = ImageElement(id="e1")
        template = Template(
            sections=[Section(id="s1"), Section(id="s2", elements=[element])]
        )

        assert template.section_of_element("e1").id == "s2"
        assert template.section_of_element("missing") is None

    def test_elements_parsed_by_type(self):
        template = Template.model_validate(
            {
                "sections": [
                    {
                        "id": "s1",
                        "elements": [
                            {"type": "image", "id": "e1", "src": "a.png"},
                            {"type": "shape", "id": "e2", "shape": "ellipse"},
                        ],
                    }
                ]
            }
        )

        first, second = template.sections[0].elements
        assert isinstance(first, ImageElement)
        assert first.src == "a.png"
        assert isinstance(second, ShapeElement)
        assert second.shape.value == "ellipse"

    def test_unknown_element_type_rejected(self):
        with pytest.raises(ValidationError):
            Template.model_validate(
                {"sections": [{"elements": [{"type": "hologram"}]}]}
            )

    def test_json_round_trip_keeps_variants(self):
        template = Template(
            sections=[Section(id="s1", elements=[TextElement(content="hi"), VideoElement()])]
        )

        restored = Template.model_validate(template.model_dump(mode="json"))

        assert restored == template


class TestSection:
    def test_duration_must_be_positive(self):
        with pytest.raises(ValidationError):
            Section(duration=0)

    def test_type_must_be_non_empty(self):
        with pytest.raises(ValidationError):
            Section(type="")

    def test_open_type_accepted(self):
        assert Section(type="testimonial").type == "testimonial"

    @pytest.mark.parametrize(
        "section_type,duration",
        [("intro", 3.0), ("hook", 5.0), ("body", 10.0), ("callToAction", 4.0), ("outro", 3.0), ("custom", 5.0)],
    )
    def test_default_duration_by_type(self, section_type, duration):
        section = Section.create_default(section_type)

        assert section.duration == duration
        assert section.type == section_type
        assert section.background is not None

    def test_paint_order_uses_z_index_then_list_order(self):
        low = ShapeElement(id="low", z_index=0)
        first = TextElement(id="first", z_index=2)
        second = TextElement(id="second", z_index=2)
        section = Section(elements=[first, low, second])

        assert [e.id for e in section.paint_order()] == ["low", "first", "second"]


class TestElement:
    def test_rotation_normalised(self):
        assert TextElement(rotation=370).rotation == 10
        assert TextElement(rotation=-90).rotation == 270

    def test_geometry_bounds(self):
        with pytest.raises(ValidationError):
            TextElement(x=120)
        with pytest.raises(ValidationError):
            TextElement(width=0)

    def test_visibility_window_must_be_ordered(self):
        with pytest.raises(ValidationError):
            TextElement(visible_from=3, visible_to=2)

    def test_is_visible_at(self):
        element = TextElement(visible_from=1, visible_to=2)

        assert not element.is_visible_at(0.5)
        assert element.is_visible_at(1)
        assert not element.is_visible_at(2)
        assert not TextElement(hidden=True).is_visible_at(0)

    def test_to_pixels_resolves_centre_geometry(self):
        element = TextElement(x=50, y=50, width=50, height=20)
        width, height = AspectRatio.PORTRAIT.canvas_size

        box = element.to_pixels(width, height)

        assert box.width == 540
        assert box.height == 384
        assert box.left == 270
        assert box.top == 768

    @pytest.mark.parametrize("element_type", list(ElementType))
    def test_default_elements_are_centred_and_sized(self, element_type):
        element = create_default_element(element_type)

        assert element.type == element_type.value
        assert element.id
        assert (element.x, element.y) == (50.0, 50.0)
        assert element.width > 0
        assert element.height > 0

    def test_default_video_autoplays_in_intro(self):
        assert create_default_element(ElementType.VIDEO, "intro").autoplay is True
        assert create_default_element(ElementType.VIDEO, "body").autoplay is False

    def test_default_text_uses_theme_font(self):
        element = create_default_element(ElementType.TEXT, theme=TemplateTheme(font_family="Roboto"))

        assert element.style.font_family == "Roboto"


def test_initial_state_selects_first_section():
    template = Template(sections=[Section(id="s1"), Section(id="s2")])

    state = EditorState.initial(template)

    assert state.ui.selected_section_id == "s1"
    assert state.ui.selected_element_id is None
    assert state.ui.current_time == 0
    assert state.ui.is_playing is False
