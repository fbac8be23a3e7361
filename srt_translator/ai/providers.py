"""
AI Provider API Implementations

This module contains the API call implementations for each AI provider:
- Gemini (native generateContent with a JSON array response schema)
- OpenAI and custom providers (OpenAI-compatible chat completions)

Each function takes a shared httpx.AsyncClient, the wire request built by
TranslationClient, the provider config section and the API key, and returns
the raw text of the model's answer. HTTP and transport failures are mapped to
the typed errors the retry policy classifies.
"""

import json
from typing import Any, Dict

import httpx

from srt_translator.logger import get_logger
from srt_translator.ai.exceptions import (
    AuthOrRequestError,
    MalformedResponseError,
    RateLimitError,
    ServerFaultError,
)

logger = get_logger(__name__)

RATE_LIMIT_MARKERS = ("resource_exhausted", "quota", "rate limit", "too many requests")
SERVER_FAULT_STATUSES = (500, 502, 503, 504)
AUTH_STATUSES = (401, 403)


def get_httpx_timeout(timeout_config: Any) -> httpx.Timeout:
    """
    Convert timeout configuration to httpx.Timeout object.

    Args:
        timeout_config: Either a number (read timeout) or a dict with
            connect, write, read, pool keys

    Returns:
        httpx.Timeout object
    """
    if isinstance(timeout_config, dict):
        return httpx.Timeout(
            connect=timeout_config.get('connect', 10.0),
            write=timeout_config.get('write', 60.0),
            read=timeout_config.get('read', 120.0),
            pool=timeout_config.get('pool', 10.0),
        )
    timeout_value = float(timeout_config) if timeout_config else 120.0
    return httpx.Timeout(
        connect=10.0,
        write=60.0,
        read=timeout_value,
        pool=10.0,
    )


def _extract_error_text(response: httpx.Response) -> str:
    """Pull the provider's error message out of a failed response."""
    try:
        error_json = response.json()
    except ValueError:
        return response.text[:500] if response.text else "No details"

    if isinstance(error_json, dict) and "error" in error_json:
        error_detail = error_json["error"]
        if isinstance(error_detail, dict):
            message = error_detail.get("message", str(error_detail))
            status = error_detail.get("status")
            # Gemini puts RESOURCE_EXHAUSTED/UNAVAILABLE in "status"
            return f"{status}: {message}" if status else str(message)
        return str(error_detail)
    return str(error_json)[:500]


def handle_http_error(response: httpx.Response, provider: str):
    """Raise the typed error matching a non-2xx response."""
    status_code = response.status_code
    error_text = _extract_error_text(response)
    message = f"{provider} API error ({status_code}): {error_text}"
    details = {"provider": provider, "status_code": status_code}
    lowered = error_text.lower()

    if status_code in AUTH_STATUSES:
        raise AuthOrRequestError(message, code="unauthorized", details=details)
    if status_code == 429 or any(marker in lowered for marker in RATE_LIMIT_MARKERS):
        raise RateLimitError(message, details=details)
    if status_code in SERVER_FAULT_STATUSES:
        raise ServerFaultError(message, details=details)
    raise AuthOrRequestError(message, details=details)


async def _post_json(
    http_client: httpx.AsyncClient,
    provider: str,
    url: str,
    headers: Dict[str, str],
    body: Dict[str, Any],
    timeout: Any,
) -> Dict[str, Any]:
    """POST a JSON body and return the decoded JSON answer."""
    try:
        response = await http_client.post(
            url, headers=headers, json=body, timeout=get_httpx_timeout(timeout)
        )
    except httpx.TimeoutException as e:
        raise ServerFaultError(f"{provider} API request timeout", code="timeout") from e
    except httpx.RequestError as e:
        raise ServerFaultError(f"{provider} API request failed: {e}", code="transport_error") from e

    if not response.is_success:
        logger.error(f"{provider} API HTTP error: {response.status_code} - {response.text[:500]}")
        handle_http_error(response, provider)

    try:
        return response.json()
    except ValueError as e:
        raise MalformedResponseError(f"{provider} API returned non-JSON body") from e


async def call_gemini_api(
    http_client: httpx.AsyncClient,
    request: Dict[str, Any],
    provider_config: Dict[str, Any],
    api_key: str,
) -> str:
    """Call Gemini generateContent and return the response text."""
    model = request["modelId"]
    api_url = provider_config.get('api_url', 'https://generativelanguage.googleapis.com/v1beta/models')
    url = f"{api_url.rstrip('/')}/{model}:generateContent"

    headers = {
        "x-goog-api-key": api_key,
        "Content-Type": "application/json",
    }

    body = {
        "systemInstruction": {
            "parts": [{"text": request["instruction"]}]
        },
        "contents": [{
            "role": "user",
            "parts": [{"text": json.dumps(request["payload"], ensure_ascii=False)}]
        }],
        "generationConfig": {
            "responseMimeType": "application/json",
            "responseSchema": {
                "type": "ARRAY",
                "items": {"type": "STRING"},
            },
        },
    }

    logger.debug(f"  Calling Gemini API (model: {model}, {len(request['payload'])} strings)...")

    result = await _post_json(http_client, "Gemini", url, headers, body, provider_config.get('timeout', 120))

    candidates = result.get('candidates') or []
    if candidates:
        parts = (candidates[0].get('content') or {}).get('parts') or []
        if parts:
            return parts[0].get('text', '')

    block_reason = (result.get('promptFeedback') or {}).get('blockReason')
    if block_reason:
        raise AuthOrRequestError(f"Gemini blocked the request: {block_reason}", code="blocked")

    raise MalformedResponseError(f"Unexpected Gemini API response format: {str(result)[:300]}")


async def call_openai_compatible_api(
    http_client: httpx.AsyncClient,
    request: Dict[str, Any],
    provider_config: Dict[str, Any],
    api_key: str,
    provider: str = "OpenAI",
) -> str:
    """Call an OpenAI-compatible chat completions endpoint and return the content."""
    api_url = provider_config.get('api_url', '')
    if not api_url:
        raise AuthOrRequestError(f"{provider} API URL not configured", code="config_missing")

    headers = {
        "Authorization": f"Bearer {api_key}",
        "Content-Type": "application/json",
    }

    body = {
        "model": request["modelId"],
        "messages": [
            {"role": "system", "content": request["instruction"]},
            {"role": "user", "content": json.dumps(request["payload"], ensure_ascii=False)},
        ],
    }

    logger.debug(f"  Calling {provider} API (model: {request['modelId']}, url: {api_url})...")

    result = await _post_json(http_client, provider, api_url, headers, body, provider_config.get('timeout', 120))

    choices = result.get('choices') or []
    if choices and isinstance(choices[0].get('message'), dict):
        content = choices[0]['message'].get('content') or ''
        logger.debug(f"  Received {len(content)} chars from {provider}")
        return content

    raise MalformedResponseError(f"No content in {provider} response")
