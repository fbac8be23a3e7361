"""Web application package for the SRT translation queue."""

from typing import Optional

from flask import Flask

from srt_translator.config import initialize_app, load_config, get_queue_settings
from srt_translator.core.credentials import CredentialStore
from srt_translator.web.runtime import QueueRuntime


def build_runtime(credentials: CredentialStore) -> QueueRuntime:
    """Runtime whose QueueManager talks to the configured provider."""
    from srt_translator.ai.client import TranslationClient
    from srt_translator.jobs.scheduler import QueueManager

    config = load_config()

    def factory() -> QueueManager:
        client = TranslationClient(credentials, config)
        return QueueManager(client, credentials, get_queue_settings(config))

    return QueueRuntime(factory)


def create_app(
    runtime: Optional[QueueRuntime] = None,
    credentials: Optional[CredentialStore] = None,
) -> Flask:
    """Application factory for the web interface."""
    from .app import build_app  # Import here to avoid circular imports

    if credentials is None:
        initialize_app()
        credentials = CredentialStore()
    if runtime is None:
        runtime = build_runtime(credentials)
    runtime.start()

    return build_app(runtime, credentials)


__all__ = ["create_app", "build_runtime"]
