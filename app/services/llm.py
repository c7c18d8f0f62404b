from __future__ import annotations

import logging
from abc import ABC, abstractmethod

from openai import OpenAI, OpenAIError

from app.core.errors import GenerationFailed

logger = logging.getLogger(__name__)


class LanguageModelProvider(ABC):

    @abstractmethod
    def complete(self, prompt: str, temperature: float) -> str:
        """
        Returns the text of a single completion for ``prompt``.
        Raises GenerationFailed when the provider cannot produce one.
        """
        pass


class OpenAIProvider(LanguageModelProvider):
    def __init__(self, api_key: str | None, model: str = "gpt-4o", timeout: float = 60.0):
        self.model = model
        self._api_key = api_key
        self._timeout = timeout
        self._client: OpenAI | None = None

    def _get_client(self) -> OpenAI:
        if not self._api_key:
            raise GenerationFailed("OpenAI API key is not configured")
        if self._client is None:
            self._client = OpenAI(api_key=self._api_key, timeout=self._timeout)
        return self._client

    def complete(self, prompt: str, temperature: float) -> str:
        client = self._get_client()
        try:
            response = client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": prompt}],
                temperature=temperature,
                n=1,
            )
        except OpenAIError as exc:
            logger.warning("llm_request_failed model=%s error=%s", self.model, exc)
            raise GenerationFailed(str(exc) or exc.__class__.__name__) from exc

        if not response.choices:
            raise GenerationFailed("Language model returned no choices")
        content = response.choices[0].message.content
        if not content or not content.strip():
            raise GenerationFailed("Language model returned an empty completion")
        return content.strip()
