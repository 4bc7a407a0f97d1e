"""OpenAI chat-completions provider using the openai SDK."""

from __future__ import annotations

import logging

from openai import AsyncOpenAI

from app.ai.providers.base import LanguageModel, ModelResponse
from app.config import Settings

logger = logging.getLogger("app.ai.providers.openai_chat")


class OpenAIChatModel(LanguageModel):
  """Chat model client used for briefing scripts."""

  def __init__(self, name: str, api_key: str | None = None, base_url: str | None = None, client: AsyncOpenAI | None = None) -> None:
    self.name: str = name
    if client is not None:
      self._client = client
      return
    if not api_key:
      raise ValueError("OPENAI_API_KEY environment variable is required")
    # Retries are owned by the caller's RetryPolicy, not the SDK.
    self._client = AsyncOpenAI(api_key=api_key, base_url=base_url, max_retries=0)

  async def complete(self, messages: list[dict[str, str]], *, max_tokens: int, temperature: float) -> ModelResponse:
    """Generate a completion and normalize usage into prompt/completion tokens."""
    response = await self._client.chat.completions.create(model=self.name, messages=messages, max_tokens=max_tokens, temperature=temperature, top_p=1)

    choice = response.choices[0] if response.choices else None
    content = (choice.message.content if choice is not None else None) or ""
    finish_reason = choice.finish_reason if choice is not None else None
    usage = None
    if response.usage:
      usage = {"prompt_tokens": response.usage.prompt_tokens, "completion_tokens": response.usage.completion_tokens, "total_tokens": response.usage.total_tokens}

    logger.debug("OpenAI response model=%s finish_reason=%s usage=%s", response.model, finish_reason, usage)
    return ModelResponse(content=content, usage=usage, model=response.model, finish_reason=finish_reason)


def build_script_model(settings: Settings) -> OpenAIChatModel:
  """Create the script-writing model from settings."""
  return OpenAIChatModel(settings.script_model, api_key=settings.openai_api_key, base_url=settings.openai_base_url)
