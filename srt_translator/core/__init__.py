"""
Core module - Persistence utilities

This module provides:
- database: sqlite key/value storage for app config
- credentials: storage of the provider API key
"""

from srt_translator.core.database import (
    DB_FILE,
    get_connection,
    initialize_database,
    get_app_config,
    set_app_config,
    delete_app_config,
    get_all_app_config,
)
from srt_translator.core.credentials import CredentialStore, MemoryCredentialStore

__all__ = [
    'DB_FILE',
    'get_connection',
    'initialize_database',
    'get_app_config',
    'set_app_config',
    'delete_app_config',
    'get_all_app_config',
    'CredentialStore',
    'MemoryCredentialStore',
]
