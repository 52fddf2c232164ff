"""
VLM (Visual-Language Model) module for style extraction from reference images
"""
import json
from typing import Any, Dict
import logging
from stylestudio.config.settings import settings
from stylestudio.models.openai_client import get_client, message_text
from stylestudio.models.prompt_builder import strip_code_fences

logger = logging.getLogger(__name__)

EXTRACTION_SYSTEM_PROMPT = """You are a professional visual style analyst. You MUST respond with ONLY valid JSON that matches this exact structure:

{
  "style_name": "string - short descriptive name",
  "description": "string - detailed style analysis",
  "color_palette": ["#RRGGBB", "#RRGGBB", ...],
  "color_usage": "string - how colors are used",
  "lighting": "string - lighting characteristics",
  "shadow_style": "string - shadow treatment",
  "shapes": "string - shape characteristics",
  "shape_edges": "string - edge treatment",
  "symmetry_balance": "string - balance and symmetry",
  "line_quality": "string - line characteristics",
  "line_color_treatment": "string - line color approach",
  "texture": "string - texture details",
  "material_suggestion": "string - material qualities",
  "rendering_style": "string - rendering approach",
  "detail_level": "string - level of detail",
  "perspective": "string - perspective characteristics",
  "scale_relationships": "string - scale and proportions",
  "composition": "string - compositional elements",
  "visual_hierarchy": "string - hierarchy approach",
  "typography": {
    "font_styles": "string - font characteristics",
    "font_weights": "string - weight usage",
    "case_usage": "string - case treatment",
    "alignment": "string - text alignment",
    "letter_spacing": "string - spacing approach",
    "text_treatment": "string - text effects"
  },
  "ui_elements": {
    "corner_radius": "string - corner treatment",
    "icon_style": "string - icon characteristics",
    "button_style": "string - button treatment",
    "spacing_rhythm": "string - spacing patterns"
  },
  "motion_or_interaction": "string - motion qualities",
  "notable_visual_effects": "string - special effects"
}

Respond ONLY with valid JSON. No markdown, no explanations, no code blocks."""


def placeholder_style(raw_reply: str) -> Dict[str, Any]:
    """Style object returned when the extraction reply is not JSON"""
    def unparsed(what: str) -> str:
        return f"Unable to parse {what}"

    return {
        "style_name": "AI Extracted Style",
        "description": f"Style analysis: {raw_reply[:500]}",
        "color_palette": ["#000000", "#FFFFFF"],
        "color_usage": unparsed("color information"),
        "lighting": unparsed("lighting information"),
        "shadow_style": unparsed("shadow information"),
        "shapes": unparsed("shape information"),
        "shape_edges": unparsed("edge information"),
        "symmetry_balance": unparsed("balance information"),
        "line_quality": unparsed("line information"),
        "line_color_treatment": unparsed("line color information"),
        "texture": unparsed("texture information"),
        "material_suggestion": unparsed("material information"),
        "rendering_style": unparsed("rendering information"),
        "detail_level": unparsed("detail information"),
        "perspective": unparsed("perspective information"),
        "scale_relationships": unparsed("scale information"),
        "composition": unparsed("composition information"),
        "visual_hierarchy": unparsed("hierarchy information"),
        "typography": {
            "font_styles": unparsed("typography"),
            "font_weights": unparsed("weights"),
            "case_usage": unparsed("case usage"),
            "alignment": unparsed("alignment"),
            "letter_spacing": unparsed("spacing"),
            "text_treatment": unparsed("text treatment"),
        },
        "ui_elements": {
            "corner_radius": unparsed("corner radius"),
            "icon_style": unparsed("icon style"),
            "button_style": unparsed("button style"),
            "spacing_rhythm": unparsed("spacing rhythm"),
        },
        "motion_or_interaction": unparsed("motion information"),
        "notable_visual_effects": unparsed("effects information"),
    }


class VLMModule:
    """
    Visual-Language Model module for analysing reference images
    """
    def __init__(self, client=None, model: str = None):
        """
        Initialize VLM module
        Args:
            client: OpenAI async client (defaults to the shared client, created on first use)
            model: Vision-capable chat model (defaults to settings.OPENAI_CHAT_MODEL)
        """
        self.client = client
        self.model = model or settings.OPENAI_CHAT_MODEL

    async def _ask_about_image(self, image_url: str, prompt: str, system_prompt: str = None, max_tokens: int = 800) -> str:
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({
            "role": "user",
            "content": [
                {"type": "text", "text": prompt},
                {"type": "image_url", "image_url": {"url": image_url}},
            ],
        })
        client = self.client or get_client()
        response = await client.chat.completions.create(
            model=self.model,
            messages=messages,
            max_tokens=max_tokens,
        )
        reply = message_text(response)
        if not reply:
            raise ValueError("No response returned from the vision model")
        return reply

    async def extract_style(self, image_url: str, extraction_prompt: str) -> Dict[str, Any]:
        """
        Extract structured style data from a reference image
        Args:
            image_url: Reference image URL (remote or data URL)
            extraction_prompt: User extraction instructions
        Returns:
            Style data; the placeholder style when the reply is not a JSON object
        """
        reply = await self._ask_about_image(image_url, extraction_prompt, EXTRACTION_SYSTEM_PROMPT, max_tokens=2000)
        logger.info(f"Style extraction reply: {len(reply)} chars")
        try:
            style_data = json.loads(strip_code_fences(reply))
        except ValueError as e:
            logger.error(f"Failed to parse style analysis JSON: {e}")
            return placeholder_style(reply)
        if not isinstance(style_data, dict):
            logger.error("Style analysis is not a JSON object, using placeholder style")
            return placeholder_style(reply)
        logger.info(f"Extracted style with keys: {list(style_data)}")
        return style_data

    async def analyze_composition(self, image_url: str, composition_prompt: str) -> str:
        """Describe the composition of a reference image"""
        composition = await self._ask_about_image(image_url, composition_prompt)
        logger.info(f"Composition analysis: {composition[:100]}...")
        return composition

    async def generate_concept(self, image_url: str, concept_prompt: str) -> str:
        """
        Generate a concept from a reference image
        Returns:
            Cleaned JSON text when the reply parses, the raw reply otherwise
        """
        concept = await self._ask_about_image(image_url, concept_prompt)
        cleaned = strip_code_fences(concept)
        try:
            json.loads(cleaned)
        except ValueError:
            logger.info("Concept not in JSON format, using raw text")
            return concept
        return cleaned


vlm_module = VLMModule()
