"""
Image model capability table and request builder
Every image request (preview, batch generation, regeneration) is built here
"""
from dataclasses import dataclass, field
from typing import Any, Dict, Tuple
import logging

logger = logging.getLogger(__name__)

TRANSPARENCY_MODEL = "gpt-image-1"


class CapabilityError(ValueError):
    """Requested model/size/quality/operation combination is not allowed"""


class PromptTooLongError(CapabilityError):
    """Prompt cannot fit the model's prompt ceiling"""


@dataclass(frozen=True)
class ModelCapability:
    supports_quality: bool
    supported_sizes: Tuple[str, ...]
    supports_editing: bool
    supports_transparency: bool
    max_prompt_length: int
    # Provider quality values for our "standard" / "hd" levels
    quality_map: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "supportsQuality": self.supports_quality,
            "supportedSizes": list(self.supported_sizes),
            "supportsEditing": self.supports_editing,
            "supportsTransparency": self.supports_transparency,
            "maxPromptLength": self.max_prompt_length,
        }


MODEL_CAPABILITIES: Dict[str, ModelCapability] = {
    "dall-e-2": ModelCapability(
        supports_quality=False,
        supported_sizes=("1024x1024", "512x512", "256x256"),
        supports_editing=True,
        supports_transparency=False,
        max_prompt_length=1000,
    ),
    "dall-e-3": ModelCapability(
        supports_quality=True,
        supported_sizes=("1024x1024", "1792x1024", "1024x1792"),
        supports_editing=False,
        supports_transparency=False,
        max_prompt_length=4000,
        quality_map={"standard": "standard", "hd": "hd"},
    ),
    "gpt-image-1": ModelCapability(
        supports_quality=True,
        supported_sizes=("1024x1024", "1536x1024", "1024x1536"),
        supports_editing=True,
        supports_transparency=True,
        max_prompt_length=32000,
        quality_map={"standard": "medium", "hd": "high"},
    ),
}

QUALITY_LEVELS = ("standard", "hd")
OPERATIONS = ("generate", "edit")


def get_capability(model: str) -> ModelCapability:
    capability = MODEL_CAPABILITIES.get(model)
    if capability is None:
        raise CapabilityError(
            f"Unsupported model: {model}. Supported models: {', '.join(MODEL_CAPABILITIES)}"
        )
    return capability


def supports_transparency(model: str) -> bool:
    capability = MODEL_CAPABILITIES.get(model)
    return bool(capability and capability.supports_transparency)


def validate_request(model: str, size: str, quality: str = "standard", operation: str = "generate") -> ModelCapability:
    """
    Check a request against the capability table
    Args:
        model: Image model id
        size: Requested size, e.g. "1024x1024"
        quality: "standard" or "hd"
        operation: "generate" or "edit"
    Returns:
        The model's capability entry
    Raises:
        CapabilityError: if the combination is not supported
    """
    capability = get_capability(model)
    if operation not in OPERATIONS:
        raise CapabilityError(f"Unknown operation: {operation}")
    if quality not in QUALITY_LEVELS:
        raise CapabilityError(f"Unknown quality: {quality}. Use one of: {', '.join(QUALITY_LEVELS)}")
    if size not in capability.supported_sizes:
        raise CapabilityError(
            f"Model {model} does not support size {size}. "
            f"Supported sizes: {', '.join(capability.supported_sizes)}"
        )
    if quality == "hd" and not capability.supports_quality:
        raise CapabilityError(f"Model {model} does not support HD quality. Please select standard quality.")
    if operation == "edit" and not capability.supports_editing:
        raise CapabilityError(
            f"Model {model} does not support image editing. "
            f"Models with editing: {', '.join(m for m, c in MODEL_CAPABILITIES.items() if c.supports_editing)}"
        )
    return capability


def resolve_settings(generation_settings: Dict[str, Any]) -> Dict[str, Any]:
    """
    Apply the one silent correction: transparency on a model that cannot
    render it switches the request to the transparency-capable model
    """
    resolved = dict(generation_settings)
    model = resolved.get("model")
    if resolved.get("transparency") and not supports_transparency(model):
        logger.info(f"Transparency requested with {model}, switching to {TRANSPARENCY_MODEL}")
        resolved["model"] = TRANSPARENCY_MODEL
    return resolved


def build_image_request(
    model: str,
    operation: str,
    prompt: str,
    size: str = "1024x1024",
    quality: str = "standard",
    transparency: bool = False,
) -> Dict[str, Any]:
    """
    Build OpenAI Images API parameters for a generate or edit call
    Returns:
        Keyword arguments for images.generate / images.edit (without the image file)
    """
    capability = validate_request(model, size, quality, operation)
    if len(prompt) > capability.max_prompt_length:
        raise PromptTooLongError(
            f"Prompt is {len(prompt)} characters; {model} accepts at most {capability.max_prompt_length}"
        )

    params: Dict[str, Any] = {"model": model, "prompt": prompt, "n": 1, "size": size}
    if capability.supports_quality:
        params["quality"] = capability.quality_map[quality]
    if transparency:
        if capability.supports_transparency:
            params["background"] = "transparent"
        else:
            logger.warning(f"Transparency requested but model {model} does not support it")
    return params


def capabilities_summary() -> Dict[str, Dict[str, Any]]:
    return {model: capability.to_dict() for model, capability in MODEL_CAPABILITIES.items()}
