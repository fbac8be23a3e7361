"""
AI Module

This module provides the translation client, its retry policy and the
error types they raise.
"""

from srt_translator.ai.exceptions import (
    TranslationError,
    RateLimitError,
    ServerFaultError,
    MalformedResponseError,
    AuthOrRequestError,
    RetryExhaustedError,
    MissingCredentialError,
)
from srt_translator.ai.client import TranslationClient
from srt_translator.ai.retry import RetryPolicy, categorize_error

__all__ = [
    'TranslationError',
    'RateLimitError',
    'ServerFaultError',
    'MalformedResponseError',
    'AuthOrRequestError',
    'RetryExhaustedError',
    'MissingCredentialError',
    'TranslationClient',
    'RetryPolicy',
    'categorize_error',
]
