import copy
import json
from dataclasses import dataclass
from typing import Dict, Any, List, Optional

from srt_translator.core import database as db
from srt_translator.logger import get_logger

logger = get_logger(__name__)

# Queue configuration constants
DEFAULT_BATCH_SIZE = 50  # Lines per request; smaller batches avoid truncation and 429s
DEFAULT_CONCURRENCY_LIMIT = 2
DEFAULT_MAX_RETRIES = 5
DEFAULT_BASE_DELAY = 1.0  # Seconds
DEFAULT_JITTER = 1.0  # Seconds

DEFAULT_TARGET_LANGUAGE = "Simplified Chinese"
DEFAULT_MODEL = "gemini-3-pro-preview"

# Provider configuration constants
BUILTIN_PROVIDERS = ["gemini", "openai"]

# Top-level dict sections that are not provider configurations
NON_PROVIDER_SECTIONS = ("queue",)

BUILTIN_PROVIDER_DISPLAY_NAMES = {
    "gemini": "Gemini",
    "openai": "OpenAI",
}

LANGUAGES = [
    "Simplified Chinese",
    "Traditional Chinese",
    "English",
    "Japanese",
    "Korean",
    "Spanish",
    "French",
    "German",
    "Italian",
    "Russian",
    "Portuguese",
    "Vietnamese",
    "Thai",
    "Indonesian",
]

MODELS = [
    {"id": "gemini-3-pro-preview", "name": "Gemini 3 Pro (Best Quality)"},
    {"id": "gemini-3-flash-preview", "name": "Gemini 3 Flash (Fast)"},
]

# Default prompts
DEFAULT_PROMPTS = {
    "subtitle_translation_prompt": {
        "version": "1.0",
        "description": "System instruction for subtitle batch translation",
        "prompt": """You are a professional subtitle translator.
Translate the following array of subtitle texts into {target_language}.
Detect the source language automatically.
Maintain the nuance, tone, and brevity suitable for subtitles.
Return ONLY a JSON array of strings corresponding strictly to the input order.
Do not merge lines. The output array length must match the input array length ({text_count})."""
    }
}

# Default configuration templates
DEFAULT_CONFIG = {
    "ai_provider": "gemini",
    "gemini": {
        "models": [model["id"] for model in MODELS],  # First is default
        "timeout": 120,
        "api_url": "https://generativelanguage.googleapis.com/v1beta/models",
    },
    "openai": {
        "models": ["gpt-4o-mini", "gpt-4o"],
        "timeout": 120,
        "api_url": "https://api.openai.com/v1/chat/completions",
    },
    "queue": {
        "batch_size": DEFAULT_BATCH_SIZE,
        "concurrency_limit": DEFAULT_CONCURRENCY_LIMIT,
        "max_retries": DEFAULT_MAX_RETRIES,
        "base_delay": DEFAULT_BASE_DELAY,
        "jitter": DEFAULT_JITTER,
    },
    "target_language": DEFAULT_TARGET_LANGUAGE,
    "log_mode": "off",
}


@dataclass(frozen=True)
class QueueSettings:
    """Scheduling and retry knobs read from the ``queue`` config section."""
    batch_size: int = DEFAULT_BATCH_SIZE
    concurrency_limit: int = DEFAULT_CONCURRENCY_LIMIT
    max_retries: int = DEFAULT_MAX_RETRIES
    base_delay: float = DEFAULT_BASE_DELAY
    jitter: float = DEFAULT_JITTER


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Return a copy of base with override merged in (dicts merged recursively)."""
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def initialize_app():
    """
    Initialize the application.
    Creates the database and stores the default configuration on first run.
    """
    logger.info("Initializing application...")

    db.initialize_database()
    logger.info("Database initialized")

    try:
        existing_config = db.get_app_config('config')
        if not existing_config:
            logger.info("No config in database, initializing default config")
            save_config(DEFAULT_CONFIG)
        else:
            logger.debug("Config already exists in database")
    except Exception as e:
        logger.error(f"Failed to check/initialize config in database: {e}")
        logger.warning("Application will use in-memory default configuration")

    logger.info("Application initialization complete")


def load_config() -> Dict[str, Any]:
    """Load the configuration from database, merged over the defaults."""
    try:
        config_json = db.get_app_config('config')
    except Exception as e:
        logger.error(f"Failed to load config from database: {e}")
        logger.warning("Using default configuration")
        return copy.deepcopy(DEFAULT_CONFIG)

    if not config_json:
        logger.debug("No config in database, using defaults")
        return copy.deepcopy(DEFAULT_CONFIG)

    try:
        stored = json.loads(config_json)
    except json.JSONDecodeError as e:
        logger.error(f"Failed to parse config from database: {e}")
        logger.warning("Using default configuration")
        return copy.deepcopy(DEFAULT_CONFIG)

    if not isinstance(stored, dict):
        logger.warning("Stored configuration is not an object, using defaults")
        return copy.deepcopy(DEFAULT_CONFIG)

    logger.debug("Configuration loaded from database")
    return _deep_merge(DEFAULT_CONFIG, stored)


def save_config(config: Dict[str, Any]):
    """Save the configuration to database."""
    try:
        config_json = json.dumps(config, ensure_ascii=False)
        db.set_app_config('config', config_json)
        logger.info("Configuration saved to database")
    except Exception as e:
        logger.error(f"Failed to save config to database: {e}")
        raise


def get_queue_settings(config: Optional[Dict[str, Any]] = None) -> QueueSettings:
    """Build QueueSettings from the ``queue`` section, clamping invalid values."""
    if config is None:
        config = load_config()
    section = config.get('queue', {}) or {}

    def _number(key, default, cast, minimum):
        try:
            value = cast(section.get(key, default))
        except (TypeError, ValueError):
            logger.warning(f"Invalid queue setting {key}={section.get(key)!r}, using {default}")
            return default
        if value < minimum:
            logger.warning(f"Queue setting {key}={value} below {minimum}, clamping")
            return minimum
        return value

    return QueueSettings(
        batch_size=_number('batch_size', DEFAULT_BATCH_SIZE, int, 1),
        concurrency_limit=_number('concurrency_limit', DEFAULT_CONCURRENCY_LIMIT, int, 1),
        max_retries=_number('max_retries', DEFAULT_MAX_RETRIES, int, 1),
        base_delay=_number('base_delay', DEFAULT_BASE_DELAY, float, 0.0),
        jitter=_number('jitter', DEFAULT_JITTER, float, 0.0),
    )


def is_known_provider(provider: Any, config: Optional[Dict[str, Any]] = None) -> bool:
    """True for a builtin provider or a custom one with its own config section."""
    if not isinstance(provider, str) or not provider:
        return False
    if provider in BUILTIN_PROVIDERS:
        return True
    if provider in NON_PROVIDER_SECTIONS:
        return False
    return isinstance((config or {}).get(provider), dict)


def get_provider_models(config: Optional[Dict[str, Any]] = None) -> List[Dict[str, str]]:
    """Selectable models of the configured provider, first one is the default."""
    if config is None:
        config = load_config()
    provider = config.get('ai_provider', 'gemini')
    if provider == 'gemini':
        known = {model["id"]: model["name"] for model in MODELS}
    else:
        known = {}
    section = config.get(provider)
    model_ids = section.get('models') if isinstance(section, dict) else None
    if not model_ids:
        model_ids = [model["id"] for model in MODELS] if provider == 'gemini' else []
    return [{"id": model_id, "name": known.get(model_id, model_id)} for model_id in model_ids]


def get_default_model(config: Optional[Dict[str, Any]] = None) -> str:
    """First model of the configured provider."""
    models = get_provider_models(config)
    return models[0]["id"] if models else DEFAULT_MODEL


def load_prompts() -> Dict[str, Any]:
    """Load the prompts from default configuration.

    Prompts are hardcoded in the codebase and never saved to database.
    """
    return copy.deepcopy(DEFAULT_PROMPTS)


def get_prompt(prompt_name: str = "subtitle_translation_prompt") -> Dict[str, Any]:
    """Get a specific prompt by name."""
    prompts = load_prompts()
    return prompts.get(prompt_name, DEFAULT_PROMPTS["subtitle_translation_prompt"])


def factory_reset():
    """
    Perform a factory reset.
    WARNING: This deletes the stored configuration and API key.
    """
    logger.warning("Performing factory reset...")

    if db.DB_FILE.exists():
        db.DB_FILE.unlink()
        logger.info("Database deleted")

    initialize_app()
    logger.info("Factory reset complete")
