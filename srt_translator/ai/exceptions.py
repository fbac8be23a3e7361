"""
AI Service Exceptions

This module contains exception classes for the translation client and the
retry policy. Separated to avoid circular imports between client.py,
providers.py and retry.py.

The subclasses split TranslationError into the classes the retry policy
distinguishes: transient failures (rate limit, server fault, malformed
response) and fatal ones (authorization or malformed request).
"""


class TranslationError(Exception):
    """Translation service error with optional code and details."""

    def __init__(self, message: str, code: str = None, details: dict = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}


class RateLimitError(TranslationError):
    """Provider signalled rate limiting or quota exhaustion."""

    def __init__(self, message: str, code: str = "rate_limited", details: dict = None):
        super().__init__(message, code=code, details=details)


class ServerFaultError(TranslationError):
    """Transient provider fault: overload, internal error or timeout."""

    def __init__(self, message: str, code: str = "server_error", details: dict = None):
        super().__init__(message, code=code, details=details)


class MalformedResponseError(TranslationError):
    """Response could not be parsed as an array of strings."""

    def __init__(self, message: str, code: str = "malformed_response", details: dict = None):
        super().__init__(message, code=code, details=details)


class AuthOrRequestError(TranslationError):
    """Authorization failure or a request the provider rejects. Never retried."""

    def __init__(self, message: str, code: str = "request_rejected", details: dict = None):
        super().__init__(message, code=code, details=details)


class RetryExhaustedError(TranslationError):
    """All attempts failed with retryable errors; carries the last message."""

    def __init__(self, message: str, code: str = "retries_exhausted", details: dict = None):
        super().__init__(message, code=code, details=details)


class MissingCredentialError(TranslationError):
    """No API key is stored."""

    def __init__(self, message: str = "Missing API Key.", code: str = "credential_missing", details: dict = None):
        super().__init__(message, code=code, details=details)
