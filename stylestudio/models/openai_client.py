"""
Shared OpenAI client for the chat and image modules
"""
import logging
import openai
from stylestudio.config.settings import settings

logger = logging.getLogger(__name__)

_client = None


def get_client() -> openai.AsyncOpenAI:
    """Get the async OpenAI client with API key validation"""
    global _client
    if _client is not None:
        return _client
    if not settings.OPENAI_API_KEY or settings.OPENAI_API_KEY == "your_api_key_here":
        raise ValueError("OpenAI API key not set. Please set OPENAI_API_KEY in .env file.")
    _client = openai.AsyncOpenAI(api_key=settings.OPENAI_API_KEY)
    logger.info("OpenAI client created successfully")
    return _client


def message_text(response) -> str:
    """Text content of the first choice of a chat completion"""
    choices = getattr(response, "choices", None) or []
    if not choices:
        return ""
    return (choices[0].message.content or "").strip()
