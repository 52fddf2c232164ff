"""
Tests for image and edit prompt composition
"""
import pytest
from stylestudio.models.capabilities import PromptTooLongError
from stylestudio.models.prompt_builder import (
    EDIT_DIRECTIVE, ENHANCE_PROMPT, NO_TEXT_CLAUSE, TRANSPARENCY_CLAUSE,
    compose_edit_prompt, compose_prompt, concept_title, convert_concept_json_to_text, strip_code_fences
)


def test_concept_then_style():
    assert compose_prompt("flat pastel", "A cat", "dall-e-3") == "A cat. Style: flat pastel"


def test_empty_style_drops_style_segment():
    assert compose_prompt("", "A cat", "dall-e-3") == "A cat"
    assert compose_prompt("   ", "A cat", "dall-e-3", render_text=False) == "A cat" + NO_TEXT_CLAUSE


def test_transparency_clause_only_for_capable_model():
    assert compose_prompt("ink", "A cat", "gpt-image-1", transparency=True).endswith(TRANSPARENCY_CLAUSE)
    assert TRANSPARENCY_CLAUSE not in compose_prompt("ink", "A cat", "dall-e-3", transparency=True)


def test_no_text_clause_is_last():
    prompt = compose_prompt("ink", "A cat", "gpt-image-1", transparency=True, render_text=False)

    assert prompt == "A cat. Style: ink" + TRANSPARENCY_CLAUSE + NO_TEXT_CLAUSE


def test_only_style_is_truncated():
    prompt = compose_prompt("x" * 2000, "A cat", "dall-e-2")

    assert len(prompt) == 1000
    assert prompt.startswith("A cat. Style: x")
    assert prompt.endswith("...")


def test_truncation_keeps_trailing_clauses():
    prompt = compose_prompt("x" * 2000, "A cat", "dall-e-2", render_text=False)

    assert len(prompt) == 1000
    assert prompt.endswith("..." + NO_TEXT_CLAUSE)


def test_style_dropped_when_no_room_left():
    concept = "a" * 995

    assert compose_prompt("xyz", concept, "dall-e-2") == concept


def test_concept_over_ceiling_is_rejected():
    with pytest.raises(PromptTooLongError):
        compose_prompt("ink", "a" * 1001, "dall-e-2")


def test_edit_prompt_with_instruction():
    edit_prompt, full_prompt = compose_edit_prompt("  make the sky blue ", "gpt-image-1")

    assert edit_prompt == "make the sky blue"
    assert full_prompt == "make the sky blue" + EDIT_DIRECTIVE


def test_edit_prompt_without_instruction_enhances():
    edit_prompt, full_prompt = compose_edit_prompt(None, "gpt-image-1", transparency=True)

    assert edit_prompt == "enhance image quality and clarity"
    assert full_prompt == ENHANCE_PROMPT + TRANSPARENCY_CLAUSE


def test_edit_prompt_over_ceiling_is_rejected():
    with pytest.raises(PromptTooLongError):
        compose_edit_prompt("b" * 1000, "dall-e-2")


def test_concept_json_to_text():
    assert convert_concept_json_to_text("a plain idea") == "a plain idea"
    assert convert_concept_json_to_text('{"concepts": ["only one"]}') == "only one"
    assert convert_concept_json_to_text('{"subject": "a fox", "title": "Speed"}') == "a fox. Theme: Speed"


def test_concept_title_shapes():
    assert concept_title("plain") == "plain"
    assert concept_title({"concept": "A rocket"}) == "A rocket"
    assert concept_title({"visual_concept": "A", "core_graphic": "B"}) == "A | B"
    assert concept_title(None) == ""


def test_strip_code_fences():
    assert strip_code_fences("```json\n[1, 2]\n```") == "[1, 2]"
    assert strip_code_fences("  plain ") == "plain"
