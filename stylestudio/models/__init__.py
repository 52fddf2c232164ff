from .vlm_module import VLMModule, vlm_module
from .llm_module import LLMModule, llm_module, ConceptParseError
from .image_module import ImageModule, image_module
from .capabilities import MODEL_CAPABILITIES, CapabilityError, PromptTooLongError
from .generation_runner import run_generation_job, run_regeneration_job
__all__ = [
    "VLMModule",
    "vlm_module",
    "LLMModule",
    "llm_module",
    "ConceptParseError",
    "ImageModule",
    "image_module",
    "MODEL_CAPABILITIES",
    "CapabilityError",
    "PromptTooLongError",
    "run_generation_job",
    "run_regeneration_job"
]
