"""
Prompt construction: style descriptions, image prompts, edit prompts and concept text
"""
import json
import random
import logging
from typing import Any, List, Mapping, Optional, Tuple
from stylestudio.models.capabilities import PromptTooLongError, get_capability, supports_transparency

logger = logging.getLogger(__name__)

NAME_KEYS = ("style_name", "name")
SUMMARY_KEYS = ("description", "summary")
PALETTE_KEYS = ("color_palette", "palette", "colors")

TRANSPARENCY_CLAUSE = ". Render only the image subject on a transparent background"
NO_TEXT_CLAUSE = ". NO TEXT"
TRUNCATION_MARKER = "..."

EDIT_DIRECTIVE = ". Keep all other details, composition, and style exactly the same. Only modify what is specifically requested."
ENHANCE_INSTRUCTION = "enhance image quality and clarity"
ENHANCE_PROMPT = "Enhance image quality and clarity while keeping all details, composition, and style exactly the same"


def humanize_key(key: Any) -> str:
    """style_name -> Style Name"""
    return " ".join(word[:1].upper() + word[1:] for word in str(key).replace("_", " ").split())


def _render_value(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, Mapping):
        return _render_mapping(value)
    if isinstance(value, (list, tuple)):
        return ", ".join(item for item in (_render_value(v) for v in value) if item)
    return str(value)


def _render_mapping(mapping: Mapping) -> str:
    parts = []
    for key, value in mapping.items():
        label = humanize_key(key)
        rendered = _render_value(value)
        if label and rendered:
            parts.append(f"{label}: {rendered}")
    return ", ".join(parts)


def _render_palette(palette: Any) -> str:
    if not isinstance(palette, (list, tuple)):
        return _render_value(palette)
    colors = []
    for entry in palette:
        if isinstance(entry, Mapping) and entry.get("hex"):
            colors.append(_render_value(entry["hex"]))
        else:
            colors.append(_render_value(entry))
    return ", ".join(color for color in colors if color)


def _first_present(style_data: Mapping, keys: Tuple[str, ...]) -> Optional[str]:
    for key in keys:
        if key in style_data and _render_value(style_data[key]):
            return key
    return None


def build_style_description(style_data: Any) -> str:
    """
    Flatten a style record into one descriptive string for image prompts
    Name, summary and palette come first; every other field follows in
    insertion order as "<Humanized Key>: <value>". Never raises.
    Args:
        style_data: Style attributes as returned by extraction or refinement
    Returns:
        Style description ("" when nothing renders)
    """
    if not isinstance(style_data, Mapping):
        return _render_value(style_data)

    parts: List[str] = []
    consumed = set()

    name_key = _first_present(style_data, NAME_KEYS)
    if name_key:
        parts.append(_render_value(style_data[name_key]))
        consumed.add(name_key)

    summary_key = _first_present(style_data, SUMMARY_KEYS)
    if summary_key:
        parts.append(_render_value(style_data[summary_key]))
        consumed.add(summary_key)

    palette_key = _first_present(style_data, PALETTE_KEYS)
    if palette_key:
        palette = _render_palette(style_data[palette_key])
        if palette:
            parts.append(f"Color Palette: {palette}")
        consumed.add(palette_key)

    for key, value in style_data.items():
        if key in consumed:
            continue
        label = humanize_key(key)
        rendered = _render_value(value)
        if label and rendered:
            parts.append(f"{label}: {rendered}")

    return ". ".join(parts)


def describe_style(style) -> str:
    """Description of a stored style: structured data when present, else its free-text prompt"""
    if style.style_data:
        description = build_style_description(style.style_data)
        if description:
            return description
    return (style.style_prompt or "").strip()


def compose_prompt(
    style_description: str,
    concept: str,
    model: str,
    transparency: bool = False,
    render_text: bool = True,
) -> str:
    """
    Compose the final image prompt "<concept>. Style: <style description>"
    Only the style description is ever shortened to fit the model's ceiling
    Raises:
        PromptTooLongError: if the concept and clauses alone do not fit
    """
    ceiling = get_capability(model).max_prompt_length
    concept = concept.strip()
    style_description = (style_description or "").strip()

    suffix = ""
    if transparency and supports_transparency(model):
        suffix += TRANSPARENCY_CLAUSE
    if not render_text:
        suffix += NO_TEXT_CLAUSE

    bare = f"{concept}{suffix}"
    if len(bare) > ceiling:
        raise PromptTooLongError(
            f"Concept is too long for {model}: {len(bare)} characters exceeds the {ceiling} character limit"
        )
    if not style_description:
        return bare

    head = f"{concept}. Style: "
    room = ceiling - len(head) - len(suffix)
    if len(style_description) > room:
        if room <= len(TRUNCATION_MARKER):
            logger.warning(f"No room left for the style description under the {ceiling} character limit")
            return bare
        original_length = len(style_description)
        style_description = style_description[:room - len(TRUNCATION_MARKER)].rstrip() + TRUNCATION_MARKER
        logger.info(f"Style description truncated from {original_length} to {len(style_description)} characters")
    return f"{head}{style_description}{suffix}"


def compose_edit_prompt(instruction: Optional[str], model: str, transparency: bool = False) -> Tuple[str, str]:
    """
    Build the prompt for an image edit
    Returns:
        (edit_prompt, full_prompt): the instruction as recorded on the image,
        and the prompt actually sent to the provider
    """
    instruction = (instruction or "").strip()
    if instruction:
        edit_prompt = instruction
        full_prompt = f"{instruction}{EDIT_DIRECTIVE}"
    else:
        edit_prompt = ENHANCE_INSTRUCTION
        full_prompt = ENHANCE_PROMPT

    if transparency and supports_transparency(model):
        full_prompt += TRANSPARENCY_CLAUSE

    ceiling = get_capability(model).max_prompt_length
    if len(full_prompt) > ceiling:
        raise PromptTooLongError(
            f"Edit instruction is too long for {model}: {len(full_prompt)} characters exceeds the {ceiling} character limit"
        )
    return edit_prompt, full_prompt


def concept_title(concept: Any) -> str:
    """Display string for a concept record"""
    if concept is None:
        return ""
    if isinstance(concept, str):
        return concept
    if isinstance(concept, Mapping):
        if "visual_concept" in concept and "core_graphic" in concept:
            return f"{_render_value(concept['visual_concept'])} | {_render_value(concept['core_graphic'])}"
        if "concept" in concept:
            return _render_value(concept["concept"])
        for value in concept.values():
            return _render_value(value)
        return ""
    return _render_value(concept)


def _composition_text(composition: Any) -> str:
    if not isinstance(composition, Mapping):
        return _render_value(composition)
    parts = []
    if composition.get("shot"):
        parts.append(f"{composition['shot']} shot")
    if composition.get("angle"):
        parts.append(f"{composition['angle']} angle")
    for key in ("focal_point", "framing", "depth"):
        if composition.get(key):
            parts.append(f"{key.replace('_', ' ')}: {_render_value(composition[key])}")
    return ", ".join(parts)


def convert_concept_json_to_text(text: str) -> str:
    """
    Turn a concept returned by the vision model into prompt-ready text
    A {"concepts": [...]} reply yields one of its entries; other JSON objects
    are rendered field by field; anything else is returned unchanged
    """
    try:
        parsed = json.loads(text)
    except (TypeError, ValueError):
        return text
    if not isinstance(parsed, dict):
        return text

    concepts = parsed.get("concepts")
    if isinstance(concepts, list) and concepts:
        selected = random.choice(concepts)
        logger.info(f"Selected concept {concepts.index(selected) + 1}/{len(concepts)}")
        return concept_title(selected)

    parts: List[str] = []
    for key in ("subject", "description", "message"):
        if parsed.get(key):
            parts.append(_render_value(parsed[key]))
            break

    title = parsed.get("title")
    if title and not any(str(title) in part for part in parts):
        parts.append(f"Theme: {_render_value(title)}")

    metaphor = parsed.get("metaphor")
    if metaphor and not any(str(metaphor).lower() in part.lower() for part in parts):
        parts.append(f"Visual metaphor: {_render_value(metaphor)}")

    if parsed.get("composition"):
        composition = _composition_text(parsed["composition"])
        if composition:
            parts.append(f"Composition - {composition}")

    constraints = parsed.get("constraints")
    if isinstance(constraints, Mapping):
        if isinstance(constraints.get("include"), list):
            parts.append("Must include: " + _render_value(constraints["include"]))
        if isinstance(constraints.get("avoid"), list):
            parts.append("Must avoid: " + _render_value(constraints["avoid"]))
        if constraints.get("required_elements"):
            parts.append("Required elements: " + _render_value(constraints["required_elements"]))

    handled = {"subject", "description", "message", "title", "metaphor", "composition", "constraints", "concept_version"}
    for key, value in parsed.items():
        if key in handled:
            continue
        rendered = _render_value(value)
        if rendered:
            parts.append(f"{key.replace('_', ' ')}: {rendered}")

    return ". ".join(parts) if parts else text


def strip_code_fences(text: str) -> str:
    """Remove markdown code fences around a model reply"""
    cleaned = (text or "").strip()
    cleaned = cleaned.replace("```json", "").replace("```JSON", "").replace("```", "")
    return cleaned.strip()
