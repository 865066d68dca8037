"""OpenAI chat-completions client implementing the completion-service contract."""

import logging
from typing import Optional, Sequence

from openai import AsyncOpenAI

from bookbot.config import settings
from bookbot.schemas.conversation_schema import ChatTurn

logger = logging.getLogger(__name__)


class CompletionError(Exception):
    """Raised when the model returns no usable text."""


class OpenAICompletionService:
    """Sends a system prompt plus the running history, returns the reply text."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        client: Optional[AsyncOpenAI] = None,
    ) -> None:
        self._client = client or AsyncOpenAI(
            api_key=api_key or settings.openai_api_key,
            timeout=settings.timeouts.ai_timeout_sec,
        )
        self._model = model or settings.model.llm_model
        self._temperature = (
            temperature if temperature is not None else settings.model.llm_temperature
        )
        self._max_tokens = max_tokens or settings.model.max_tokens

    async def chat(self, system_prompt: str, history: Sequence[ChatTurn]) -> str:
        messages = [{"role": "system", "content": system_prompt}]
        messages.extend({"role": t.role, "content": t.content} for t in history)

        logger.debug("Completion request: model=%s, turns=%d", self._model, len(history))
        response = await self._client.chat.completions.create(
            model=self._model,
            messages=messages,
            temperature=self._temperature,
            max_tokens=self._max_tokens,
        )

        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise CompletionError("Completion service returned an empty reply")
        return content
