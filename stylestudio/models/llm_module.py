"""
LLM (Large Language Model) module for marketing concepts and style refinement
"""
import json
from typing import Any, Dict, List, Optional, Tuple
import logging
from stylestudio.config.settings import settings
from stylestudio.models.openai_client import get_client, message_text
from stylestudio.models.prompt_builder import concept_title, strip_code_fences

logger = logging.getLogger(__name__)

DEFAULT_CONCEPT_SYSTEM_PROMPT = (
    "You are a creative marketing concept generator. Generate visual concepts "
    "based on the company context and marketing content provided."
)
DEFAULT_REVISION_SYSTEM_PROMPT = (
    "You are a creative marketing concept generator. Revise visual concepts based on user feedback."
)

OUTPUT_FORMAT_INSTRUCTIONS = """

IMPORTANT OUTPUT FORMAT:
Return ONLY a JSON array of strings. Each string should be a complete concept description.
Example format: ["Concept 1 description...", "Concept 2 description...", "Concept 3 description..."]
Do NOT wrap in an object with "concepts" key. Do NOT use markdown code blocks."""

LITERAL_GUIDANCE = "\n\nSTYLE: Use concrete, specific, literal descriptions. Focus on tangible visual elements and clear subjects. Avoid metaphors and abstract imagery."
METAPHORICAL_GUIDANCE = "\n\nSTYLE: Use creative metaphors, symbolic imagery, and abstract representations. Embrace poetic and conceptual language."
SIMPLE_GUIDANCE = "\n\nCOMPOSITION: Keep subjects simple and focused. Use single, clear focal points. Minimize elements and maintain visual clarity."
COMPLEX_GUIDANCE = "\n\nCOMPOSITION: Create multi-layered compositions with multiple elements. Combine various visual components to create rich, detailed scenes."

# Slider values within this distance of zero add no guidance
GUIDANCE_THRESHOLD = 0.3

REFINE_SYSTEM_PROMPT = """You are a professional visual style analyst. The user will provide you with a current style definition (in JSON format) and feedback for improvement.

Your task is to:
1. Carefully read the current style definition structure and user feedback
2. Make changes PROPORTIONAL to the instruction - subtle feedback gets subtle changes, dramatic feedback gets dramatic changes
3. Update ALL relevant fields that relate to the feedback (not just one field)
4. Maintain the EXACT SAME JSON structure and field names as the input
5. Only modify field VALUES - do not add or remove fields or change the structure

The "description" field MUST always be rewritten as 2-3 detailed sentences that incorporate the feedback.

Rules:
- Respond with ONLY valid JSON (no markdown, no code blocks, no explanations)
- Match the exact structure of the input styleData
- Update all relevant fields proportionally
- Keep nested objects and arrays intact"""

TEST_CONCEPTS_SYSTEM_PROMPT = """You write short visual concepts used to test an image style.
Each concept names one clear subject and scene that shows off the style. Vary subjects across the list.
Return ONLY a JSON array of strings. Do NOT use markdown code blocks."""


class ConceptParseError(ValueError):
    """Model reply is not a concept list"""


def normalize_concepts(parsed: Any) -> List[Dict[str, Any]]:
    """
    Normalize a parsed concept reply to a list of concept records
    Accepts a bare array or {"concepts": [...]}; strings become {"concept": s},
    mappings are kept, anything else becomes a numbered placeholder
    Raises:
        ConceptParseError: wrong shape or no concepts
    """
    if isinstance(parsed, list):
        raw_concepts = parsed
    elif isinstance(parsed, dict) and isinstance(parsed.get("concepts"), list):
        raw_concepts = parsed["concepts"]
    else:
        raise ConceptParseError('Response must be an array or an object with a "concepts" array property')

    concepts = []
    for index, concept in enumerate(raw_concepts):
        if isinstance(concept, str):
            concepts.append({"concept": concept})
        elif isinstance(concept, dict):
            concepts.append(concept)
        else:
            concepts.append({"concept": f"Concept {index + 1}"})

    if not concepts:
        raise ConceptParseError("Concepts array is empty")
    return concepts


def parse_concepts(text: str) -> List[Dict[str, Any]]:
    """Parse a model reply into concept records"""
    try:
        parsed = json.loads(strip_code_fences(text))
    except ValueError as e:
        raise ConceptParseError(f"Response is not valid JSON: {e}")
    return normalize_concepts(parsed)


def concept_guidance(literal_metaphorical: float, simple_complex: float) -> str:
    guidance = ""
    if literal_metaphorical < -GUIDANCE_THRESHOLD:
        guidance += LITERAL_GUIDANCE
    elif literal_metaphorical > GUIDANCE_THRESHOLD:
        guidance += METAPHORICAL_GUIDANCE
    if simple_complex < -GUIDANCE_THRESHOLD:
        guidance += SIMPLE_GUIDANCE
    elif simple_complex > GUIDANCE_THRESHOLD:
        guidance += COMPLEX_GUIDANCE
    return guidance


def _user_message(text: str, image_url: Optional[str] = None) -> Dict[str, Any]:
    if not image_url:
        return {"role": "user", "content": text}
    return {
        "role": "user",
        "content": [
            {"type": "text", "text": text},
            {"type": "image_url", "image_url": {"url": image_url}},
        ],
    }


class LLMModule:
    """
    Large Language Model module for concept lists and style refinement
    """
    def __init__(self, client=None, model: str = None):
        """
        Initialize LLM module
        Args:
            client: OpenAI async client (defaults to the shared client, created on first use)
            model: Chat model name (defaults to settings.OPENAI_CHAT_MODEL)
        """
        self.client = client
        self.model = model or settings.OPENAI_CHAT_MODEL

    async def _complete(self, messages: List[Dict[str, Any]], temperature: float = 0.7, max_tokens: int = 2000) -> str:
        client = self.client or get_client()
        response = await client.chat.completions.create(
            model=self.model,
            messages=messages,
            temperature=temperature,
            max_tokens=max_tokens,
        )
        return message_text(response)

    async def generate_concepts(
        self,
        company_name: str,
        marketing_content: str,
        quantity: int = 5,
        temperature: float = 0.7,
        literal_metaphorical: float = 0.0,
        simple_complex: float = 0.0,
        reference_image_url: Optional[str] = None,
        prompt_text: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """
        Generate a marketing concept list
        Raises:
            ConceptParseError: if the reply is not a concept list
        """
        system_prompt = (
            (prompt_text or DEFAULT_CONCEPT_SYSTEM_PROMPT)
            + concept_guidance(literal_metaphorical, simple_complex)
            + OUTPUT_FORMAT_INSTRUCTIONS
        )
        user_text = (
            f"Company: {company_name}\n\nMarketing Content:\n{marketing_content}\n\n"
            f"Generate {quantity} distinct visual marketing concepts that would effectively communicate this message."
        )
        if reference_image_url:
            user_text += "\n\nConsider the visual style and elements from the provided reference image."

        reply = await self._complete(
            [{"role": "system", "content": system_prompt}, _user_message(user_text, reference_image_url)],
            temperature=temperature,
        )
        try:
            concepts = parse_concepts(reply)
        except ConceptParseError:
            logger.error(f"Failed to parse concepts JSON: {reply[:500]}")
            raise
        logger.info(f"Generated {len(concepts)} concepts for {company_name}")
        return concepts

    async def revise_concepts(self, concept_list, feedback: str) -> Tuple[List[Dict[str, Any]], bool]:
        """
        Rewrite a whole concept list from feedback
        Args:
            concept_list: ConceptListRecord being revised
            feedback: User feedback
        Returns:
            (concepts, revised): the original concepts and False when the reply does not parse
        """
        system_prompt = (concept_list.prompt_text or DEFAULT_REVISION_SYSTEM_PROMPT) + OUTPUT_FORMAT_INSTRUCTIONS
        user_text = (
            f"Company: {concept_list.company_name}\n\nMarketing Content:\n{concept_list.marketing_content}\n\n"
            f"Current Concepts:\n{json.dumps(concept_list.concepts, indent=2)}\n\n"
            f"User Feedback:\n{feedback}\n\n"
            f"Revise ALL {len(concept_list.concepts)} concepts based on this feedback. "
            f"Return only a valid JSON array of strings, no markdown."
        )
        reply = await self._complete(
            [{"role": "system", "content": system_prompt}, _user_message(user_text, concept_list.reference_image_url)],
            temperature=0.8,
        )
        try:
            concepts = parse_concepts(reply)
        except ConceptParseError as e:
            logger.error(f"Failed to parse revised concepts, keeping original list: {e}")
            return concept_list.concepts, False

        if len(concepts) != len(concept_list.concepts):
            logger.warning(f"Concept count changed from {len(concept_list.concepts)} to {len(concepts)}")
        return concepts, True

    async def refine_style(self, style_data: Dict[str, Any], feedback: str) -> Tuple[Dict[str, Any], bool]:
        """
        Refine structured style data from feedback
        Returns:
            (style_data, refined): the original data and False when the reply is not a JSON object
        """
        user_text = (
            f"Current style definition:\n{json.dumps(style_data, indent=2)}\n\n"
            f"User feedback for refinement:\n{feedback}\n\n"
            f"Please provide the refined style definition in the same JSON format."
        )
        reply = await self._complete(
            [{"role": "system", "content": REFINE_SYSTEM_PROMPT}, {"role": "user", "content": user_text}],
            temperature=0.7,
        )
        try:
            refined = json.loads(strip_code_fences(reply))
        except ValueError:
            logger.error(f"Failed to parse refined style JSON: {reply[:500]}")
            return style_data, False
        if not isinstance(refined, dict):
            logger.error("Refined style is not a JSON object, keeping original")
            return style_data, False
        return refined, True

    async def generate_test_concepts(
        self,
        style_description: str,
        count: int,
        current: List[str],
    ) -> Tuple[List[str], bool]:
        """
        Generate fresh test concepts for a style
        Returns:
            (concepts, regenerated): the current concepts and False when the reply does not parse
        """
        user_text = (
            f"Style:\n{style_description}\n\n"
            f"Current test concepts:\n{json.dumps(current, indent=2)}\n\n"
            f"Write {count} new, different test concepts for this style."
        )
        reply = await self._complete(
            [{"role": "system", "content": TEST_CONCEPTS_SYSTEM_PROMPT}, {"role": "user", "content": user_text}],
            temperature=0.9,
            max_tokens=800,
        )
        try:
            concepts = parse_concepts(reply)
        except ConceptParseError as e:
            logger.error(f"Failed to parse test concepts, keeping current ones: {e}")
            return current, False

        texts = [title for title in (concept_title(c).strip() for c in concepts) if title]
        if not texts:
            return current, False
        return texts[:count], True


llm_module = LLMModule()
