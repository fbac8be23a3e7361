"""Settings and credential API routes."""

from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict

from flask import Blueprint, current_app, jsonify, request

import srt_translator.config as config
from srt_translator.config import (
    BUILTIN_PROVIDERS,
    BUILTIN_PROVIDER_DISPLAY_NAMES,
    LANGUAGES,
    get_provider_models,
    is_known_provider,
)
from srt_translator.logger import get_logger, LOG_FILE, _clear_log_mode_cache

settings_bp = Blueprint("settings", __name__)
logger = get_logger(__name__)

LOG_MODES = ("off", "info", "debug")
EDITABLE_KEYS = ("ai_provider", "log_mode", "target_language", "queue")


def _credentials():
    return current_app.extensions["credential_store"]


@settings_bp.get("/")
def get_settings():
    """Return current configuration (without secrets) and selectable options."""
    try:
        current_config = config.load_config()
    except Exception as e:
        logger.error(f"Failed to retrieve settings: {e}")
        return jsonify({"error": "Failed to retrieve settings"}), 500

    return jsonify({
        "config": current_config,
        "queue": asdict(config.get_queue_settings(current_config)),
        "has_api_key": _credentials().has_credential(),
        "meta": {
            "languages": LANGUAGES,
            "models": get_provider_models(current_config),
            "builtin_providers": [
                {"id": p, "name": BUILTIN_PROVIDER_DISPLAY_NAMES[p]}
                for p in BUILTIN_PROVIDERS
            ],
        },
    })


@settings_bp.put("/")
def update_settings():
    """Update editable configuration keys.

    Provider, log mode and target language apply immediately; queue settings
    apply on restart.
    """
    data = request.get_json(silent=True)
    if not data or "config" not in data or not isinstance(data["config"], dict):
        return jsonify({"error": "Request body must contain a 'config' object"}), 400

    new_config: Dict[str, Any] = data["config"]
    current_config = config.load_config()
    validation_error = validate_config(new_config, current_config)
    if validation_error:
        return jsonify({"error": validation_error}), 400

    for key in EDITABLE_KEYS:
        if key not in new_config:
            continue
        if key == "queue":
            current_config["queue"].update(new_config["queue"])
        else:
            current_config[key] = new_config[key]

    try:
        config.save_config(current_config)
    except Exception as e:
        logger.error(f"Failed to save settings: {e}")
        return jsonify({"error": "Failed to save settings"}), 500

    if "log_mode" in new_config:
        _clear_log_mode_cache()

    if "ai_provider" in new_config:
        runtime = current_app.extensions["queue_runtime"]
        runtime.call(runtime.manager.apply_config, current_config)

    logger.info("Settings updated")
    return jsonify({"config": current_config})


@settings_bp.put("/credential")
def save_credential():
    """Store the provider API key."""
    data = request.get_json(silent=True) or {}
    api_key = data.get("api_key")
    if not isinstance(api_key, str) or not api_key.strip():
        return jsonify({"error": "api_key is required", "code": "credential_missing"}), 400
    _credentials().set(api_key)
    return jsonify({"has_api_key": True})


@settings_bp.delete("/credential")
def clear_credential():
    """Forget the API key and reset the queue (all jobs and log entries)."""
    _credentials().clear()
    runtime = current_app.extensions["queue_runtime"]
    runtime.call(runtime.manager.reset)
    return jsonify({"has_api_key": False})


@settings_bp.delete("/logs")
def clear_log_file():
    """Truncate the application log file."""
    try:
        if LOG_FILE.exists():
            LOG_FILE.write_text("")
        return jsonify({"cleared": True})
    except OSError as e:
        logger.error(f"Failed to clear log file: {e}")
        return jsonify({"error": "Failed to clear log file"}), 500


def validate_config(config_dict: Dict[str, Any], current_config: Dict[str, Any] = None) -> str | None:
    """Return an error message if the config update is invalid.

    Args:
        config_dict: Submitted keys
        current_config: Stored configuration, used to recognise custom providers
    """
    log_mode = config_dict.get("log_mode")
    if log_mode is not None and log_mode not in LOG_MODES:
        return f"log_mode must be one of {', '.join(LOG_MODES)}"

    target_language = config_dict.get("target_language")
    if target_language is not None and (not isinstance(target_language, str) or not target_language.strip()):
        return "target_language must be a non-empty string"

    provider = config_dict.get("ai_provider")
    if provider is not None and not is_known_provider(provider, current_config):
        return f"Unknown ai_provider: {provider!r}"

    queue = config_dict.get("queue")
    if queue is not None:
        if not isinstance(queue, dict):
            return "queue must be an object"
        for key in ("batch_size", "concurrency_limit", "max_retries"):
            value = queue.get(key)
            if value is not None and (not isinstance(value, int) or isinstance(value, bool) or value < 1):
                return f"queue.{key} must be an integer >= 1"
        for key in ("base_delay", "jitter"):
            value = queue.get(key)
            if value is not None and (not isinstance(value, (int, float)) or isinstance(value, bool) or value < 0):
                return f"queue.{key} must be a number >= 0"

    return None
