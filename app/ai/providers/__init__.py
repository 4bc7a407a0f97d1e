"""Provider implementations."""

from app.ai.providers.base import LanguageModel, ModelResponse
from app.ai.providers.openai_chat import OpenAIChatModel, build_script_model

__all__ = ["LanguageModel", "ModelResponse", "OpenAIChatModel", "build_script_model"]
