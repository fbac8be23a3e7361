"""
Translation Client

Adapter sending one batch of source strings and a target language to the
configured language-model provider and returning the translated strings.

The client enforces the response *shape* (a JSON array of strings) but not
its length; the batch pipeline reconciles counts against the batch.
"""

from typing import Any, Dict, List, Optional

import httpx

from srt_translator.config import BUILTIN_PROVIDERS, get_prompt, load_config
from srt_translator.core.credentials import CredentialStore
from srt_translator.logger import get_logger
from srt_translator.ai.exceptions import (
    AuthOrRequestError,
    MalformedResponseError,
    MissingCredentialError,
)
from srt_translator.ai.providers import call_gemini_api, call_openai_compatible_api
from srt_translator.translation.utils import parse_translations_response

logger = get_logger(__name__)


class TranslationClient:
    """Async translation client for Gemini and OpenAI-compatible providers."""

    def __init__(
        self,
        credentials: CredentialStore,
        config: Optional[Dict[str, Any]] = None,
        provider_override: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.credentials = credentials
        self._provider_override = provider_override
        self._transport = transport
        self._http_client: Optional[httpx.AsyncClient] = None
        self.apply_config(config if config is not None else load_config())
        logger.info(f"Initialized translation client with provider: {self.provider}")

    def apply_config(self, config: Dict[str, Any]) -> None:
        """Switch to a new configuration; batches already sent keep the old one."""
        self.config = config
        provider = self._provider_override or config.get('ai_provider', 'gemini')
        if getattr(self, 'provider', provider) != provider:
            logger.info(f"Translation provider changed to: {provider}")
        self.provider = provider

    async def get_http_client(self) -> httpx.AsyncClient:
        """Get or create the shared HTTP client with connection pooling."""
        if self._http_client is None or self._http_client.is_closed:
            self._http_client = httpx.AsyncClient(
                transport=self._transport,
                limits=httpx.Limits(max_keepalive_connections=10, max_connections=20),
            )
        return self._http_client

    async def aclose(self) -> None:
        """Close the shared HTTP client."""
        if self._http_client is not None and not self._http_client.is_closed:
            await self._http_client.aclose()
        self._http_client = None

    def build_request(self, texts: List[str], target_language: str, model: str) -> Dict[str, Any]:
        """Build the provider-neutral wire request for one batch."""
        template = get_prompt('subtitle_translation_prompt')['prompt']
        return {
            "targetLanguage": target_language,
            "modelId": model,
            "instruction": template.format(target_language=target_language, text_count=len(texts)),
            "payload": list(texts),
        }

    async def translate(self, texts: List[str], target_language: str, model: str) -> List[str]:
        """
        Translate one ordered batch of strings.

        Args:
            texts: Source strings, order is significant
            target_language: Target language name (e.g. "Japanese")
            model: Model identifier

        Returns:
            Translated strings as returned by the model (length unchecked)

        Raises:
            MissingCredentialError: No API key stored
            RateLimitError, ServerFaultError, MalformedResponseError: transient failures
            AuthOrRequestError: fatal provider rejection
        """
        if not texts:
            return []

        api_key = self.credentials.get()
        if not api_key:
            raise MissingCredentialError()

        request = self.build_request(texts, target_language, model)
        http_client = await self.get_http_client()
        provider_config = self.config.get(self.provider, {}) or {}

        if self.provider == 'gemini':
            response_text = await call_gemini_api(http_client, request, provider_config, api_key)
        elif self.provider == 'openai':
            response_text = await call_openai_compatible_api(http_client, request, provider_config, api_key)
        elif self.provider not in BUILTIN_PROVIDERS and isinstance(self.config.get(self.provider), dict):
            response_text = await call_openai_compatible_api(
                http_client, request, provider_config, api_key,
                provider=f"Custom provider '{self.provider}'",
            )
        else:
            raise AuthOrRequestError(f"Unsupported AI provider: {self.provider}", code="ai_config_missing")

        logger.debug(f"  Output from AI (response):\n{response_text}")
        return self.parse_response(response_text)

    @staticmethod
    def parse_response(response_text: str) -> List[str]:
        """Parse response text into a list of strings or raise MalformedResponseError."""
        translations = parse_translations_response(response_text)
        if translations is None:
            raise MalformedResponseError(
                "Could not parse translations from response",
                details={"response": (response_text or "")[:300]},
            )
        if not all(isinstance(item, str) for item in translations):
            raise MalformedResponseError("Response array contains non-string elements")
        return translations

