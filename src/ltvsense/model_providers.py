"""
Model providers that answer a prompt with a JSON object
"""

import os
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass

from .exceptions import EnrichmentError, EnrichmentNotConfigured

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Completion:
    """Text of one model answer and the tokens it cost"""
    text: str
    input_tokens: int = 0
    output_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


class ModelProvider(ABC):
    """
    A backend asked for JSON output

    Each provider uses its backend's own JSON mode where one exists. The
    answer is still plain text; decoding and validation belong to the caller.
    """

    name = "base"

    @abstractmethod
    def complete_json(self, system: str, prompt: str, max_tokens: int, temperature: float) -> Completion:
        """
        Answer `prompt` under the `system` instructions

        Raises EnrichmentNotConfigured when the backend is unusable and
        EnrichmentError when a call fails or returns nothing
        """

    @abstractmethod
    def is_available(self) -> bool:
        """Check if provider is available and properly configured"""

    def _completion(self, text, input_tokens=0, output_tokens=0) -> Completion:
        text = (text or "").strip()
        if not text:
            raise EnrichmentError(f"{self.name} model returned an empty answer")
        return Completion(text, input_tokens or 0, output_tokens or 0)


class LocalModelProvider(ModelProvider):
    """
    Local GGUF model run by llama-cpp-python

    llama-cpp turns `response_format` into a grammar, so the sampled text is
    always a JSON object. See LLMManager for download and loading.
    """

    name = "local"

    def __init__(self, model_instance):
        self.model_instance = model_instance

    def complete_json(self, system: str, prompt: str, max_tokens: int, temperature: float) -> Completion:
        if self.model_instance is None:
            raise EnrichmentNotConfigured("Local model not loaded")

        try:
            response = self.model_instance.create_chat_completion(
                messages=[
                    {"role": "system", "content": system},
                    {"role": "user", "content": prompt},
                ],
                max_tokens=max_tokens,
                temperature=temperature,
                response_format={"type": "json_object"},
            )
        except Exception as e:
            raise EnrichmentError(f"Local inference failed: {e}") from e

        choices = response.get("choices") or []
        if not choices:
            raise EnrichmentError("local model returned no choices")

        usage = response.get("usage") or {}
        return self._completion(
            choices[0]["message"].get("content"),
            usage.get("prompt_tokens"),
            usage.get("completion_tokens"),
        )

    def is_available(self) -> bool:
        return self.model_instance is not None


class RemoteProvider(ModelProvider):
    """
    Hosted API whose key is read from `API_KEY_ENV`

    Without a key the provider still exists, but every call raises
    EnrichmentNotConfigured. SDK errors surface as EnrichmentError.
    """

    API_KEY_ENV = ""
    MODEL = ""

    def __init__(self):
        self.api_key = os.environ.get(self.API_KEY_ENV)
        self._client = self._create_client(self.api_key) if self.api_key else None

    @abstractmethod
    def _create_client(self, api_key: str):
        """SDK client for `api_key`"""

    @abstractmethod
    def _request(self, system: str, prompt: str, max_tokens: int, temperature: float) -> Completion:
        """One SDK call; may raise anything the SDK raises"""

    def complete_json(self, system: str, prompt: str, max_tokens: int, temperature: float) -> Completion:
        if self._client is None:
            raise EnrichmentNotConfigured(
                f"{self.name} API key not configured. Set {self.API_KEY_ENV} environment variable."
            )

        logger.debug(f"Calling {self.name} API ({self.MODEL})")
        try:
            return self._request(system, prompt, max_tokens, temperature)
        except EnrichmentError:
            raise
        except Exception as e:
            raise EnrichmentError(f"{self.name} API call failed: {e}") from e

    def is_available(self) -> bool:
        return self._client is not None


class AnthropicProvider(RemoteProvider):
    """
    Anthropic Messages API

    The API has no JSON mode, so the assistant turn is prefilled with "{"
    and the answer continues that object.
    """

    name = "anthropic"
    API_KEY_ENV = "LTVSENSE_ANTHROPIC_API_KEY"
    MODEL = "claude-opus-4-20250514"
    PREFILL = "{"

    def _create_client(self, api_key: str):
        import anthropic
        return anthropic.Anthropic(api_key=api_key)

    def _request(self, system: str, prompt: str, max_tokens: int, temperature: float) -> Completion:
        response = self._client.messages.create(
            model=self.MODEL,
            system=system,
            messages=[
                {"role": "user", "content": prompt},
                {"role": "assistant", "content": self.PREFILL},
            ],
            max_tokens=max_tokens,
            temperature=temperature,
        )

        text = response.content[0].text if response.content else ""
        return self._completion(
            self.PREFILL + text if text.strip() else "",
            response.usage.input_tokens,
            response.usage.output_tokens,
        )


class OpenAIProvider(RemoteProvider):
    """OpenAI Chat Completions API in JSON object mode"""

    name = "openai"
    API_KEY_ENV = "LTVSENSE_OPENAI_API_KEY"
    MODEL = "gpt-4o"

    def _create_client(self, api_key: str):
        import openai
        return openai.OpenAI(api_key=api_key)

    def _request(self, system: str, prompt: str, max_tokens: int, temperature: float) -> Completion:
        response = self._client.chat.completions.create(
            model=self.MODEL,
            messages=[
                {"role": "system", "content": system},
                {"role": "user", "content": prompt},
            ],
            max_tokens=max_tokens,
            temperature=temperature,
            response_format={"type": "json_object"},
        )

        return self._completion(
            response.choices[0].message.content,
            response.usage.prompt_tokens,
            response.usage.completion_tokens,
        )


REMOTE_PROVIDERS = {
    "anthropic": AnthropicProvider,
    "openai": OpenAIProvider,
}


def create_provider(model_id: str, model_instance=None) -> ModelProvider:
    """
    Provider for `model_id`: a key of REMOTE_PROVIDERS or a local model

    A local model needs its loaded Llama instance. A remote provider without
    an API key is returned anyway and logged as unusable.
    """
    provider_class = REMOTE_PROVIDERS.get(model_id)
    if provider_class is None:
        if model_instance is None:
            raise EnrichmentNotConfigured(f"Local model {model_id} is not loaded")
        return LocalModelProvider(model_instance)

    provider = provider_class()
    if not provider.is_available():
        logger.warning(f"{provider.name} provider has no API key; enrichment calls will fail")
    return provider
