"""
Tests for flattening style data into prompt text
"""
from types import SimpleNamespace
from stylestudio.models.prompt_builder import build_style_description, describe_style, humanize_key


def test_humanize_key():
    assert humanize_key("shadow_style") == "Shadow Style"
    assert humanize_key("lighting") == "Lighting"


def test_name_summary_and_palette_lead():
    style_data = {
        "lighting": "soft window light",
        "style_name": "Neo Pastel",
        "description": "Bold shapes on calm grounds",
        "color_palette": ["#111111", "#222222"],
    }

    assert build_style_description(style_data) == (
        "Neo Pastel. Bold shapes on calm grounds. Color Palette: #111111, #222222. Lighting: soft window light"
    )


def test_nested_mappings_and_empty_values():
    style_data = {
        "typography": {"font_styles": "geometric sans", "font_weights": ""},
        "texture": "",
        "motion_or_interaction": None,
        "shapes": ["circles", "", "pills"],
    }

    assert build_style_description(style_data) == (
        "Typography: Font Styles: geometric sans. Shapes: circles, pills"
    )


def test_palette_entries_with_hex():
    style_data = {"palette": [{"hex": "#FF0000", "name": "red"}, "#00FF00"]}

    assert build_style_description(style_data) == "Color Palette: #FF0000, #00FF00"


def test_non_mapping_input_never_raises():
    assert build_style_description(None) == ""
    assert build_style_description("watercolor wash") == "watercolor wash"
    assert build_style_description(["ink", "paper"]) == "ink, paper"
    assert build_style_description({}) == ""


def test_blank_keys_are_skipped():
    style_data = {"": "orphan", "__": "orphan", "lighting": {"": "orphan", "key": "rim"}}

    assert build_style_description(style_data) == "Lighting: Key: rim"


def test_mixed_value_types_render_the_same_every_time():
    style_data = {
        "style_name": 42,
        "color_palette": {"primary": "#fff"},
        "mood": ["calm", 3, None, True, {"x": 1}],
        "lighting": {"key": 1.5, "fill": None},
        "": "orphan",
    }

    first = build_style_description(style_data)

    assert first == "42. Color Palette: Primary: #fff. Mood: calm, 3, true, X: 1. Lighting: Key: 1.5"
    assert build_style_description(style_data) == first


def test_describe_style_prefers_structured_data():
    structured = SimpleNamespace(style_data={"style_name": "Ink"}, style_prompt="ignored")
    free_text = SimpleNamespace(style_data=None, style_prompt="  flat pastel  ")
    empty = SimpleNamespace(style_data={"texture": ""}, style_prompt="fallback")

    assert describe_style(structured) == "Ink"
    assert describe_style(free_text) == "flat pastel"
    assert describe_style(empty) == "fallback"
