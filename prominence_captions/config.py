"""Configuration constants, language mappings, and .env loading.

WHY: Centralizes every tunable of the pipeline (buffer window, trimming
budget, default thresholds, server address) so they are easy to find,
update, and override without touching the alignment logic.

HOW: python-dotenv loads the .env file on import. Constants are defined
as module-level values read from the environment with typed helpers.
load_settings() turns them into the SessionSettings value that a
CaptionSession owns.

RULES:
- LANGUAGE_MAP maps ISO 639-1 → BCP-47 recognizer locales
- Full locale codes ("en-GB") pass through normalize_language unchanged
- Numeric variables that fail to parse raise ValueError naming the variable
- All defaults can be overridden via environment variables
"""

from __future__ import annotations

import os

from dotenv import load_dotenv

from prominence_captions.core.ir import SensitivityThresholds, SessionSettings

# Load .env from the project root (where the script is run from)
load_dotenv()


def _env_float(name: str, default: float) -> float:
    """Read a float environment variable, failing loudly on garbage."""
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(
            "Environment variable {} must be a number, got {!r}".format(name, raw)
        ) from None


def _env_int(name: str, default: int) -> int:
    """Read an integer environment variable, failing loudly on garbage."""
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(
            "Environment variable {} must be an integer, got {!r}".format(name, raw)
        ) from None


# ---------------------------------------------------------------------------
# Language mapping: ISO 639-1 → BCP-47 recognizer locale
# ---------------------------------------------------------------------------

LANGUAGE_MAP: dict[str, str] = {
    "en": "en-US",
    "de": "de-DE",
    "fr": "fr-FR",
    "es": "es-ES",
    "it": "it-IT",
    "nl": "nl-NL",
    "sv": "sv-SE",
    "pt": "pt-BR",
    "ja": "ja-JP",
    "ko": "ko-KR",
    "zh": "zh-CN",
}

# Locales offered by the language selector, in display order
SUPPORTED_LANGUAGES = tuple(LANGUAGE_MAP.values())


def normalize_language(code: str) -> str:
    """Map a short language code to the recognizer locale.

    Known ISO 639-1 codes map to their BCP-47 locale. Anything that
    already looks like a locale (contains "-") passes through, as do
    unknown codes, so a recognizer can still reject them itself.
    """
    code = code.strip()
    if "-" in code:
        return code
    return LANGUAGE_MAP.get(code.lower(), code)


# ---------------------------------------------------------------------------
# Pipeline defaults
# ---------------------------------------------------------------------------

CAPTION_LANGUAGE = normalize_language(os.getenv("CAPTION_LANGUAGE", "en-US"))
CAPTION_BASE_SIZE = _env_int("CAPTION_BASE_SIZE", 24)
BUFFER_WINDOW_MS = _env_float("BUFFER_WINDOW_MS", 3000.0)
LOOKBACK_CAP_MS = _env_float("LOOKBACK_CAP_MS", 2000.0)
MAX_FINAL_WORDS = _env_int("MAX_FINAL_WORDS", 20)
DEFAULT_SMALL_MAX = _env_float("DEFAULT_SMALL_MAX", 0.35)
DEFAULT_NORMAL_MAX = _env_float("DEFAULT_NORMAL_MAX", 0.65)

# ---------------------------------------------------------------------------
# Remote recognizer and proxy server
# ---------------------------------------------------------------------------

RECOGNIZER_URL = os.getenv("RECOGNIZER_URL", "ws://localhost:3001")
RECOGNIZER_SAMPLE_RATE = _env_int("RECOGNIZER_SAMPLE_RATE", 16000)
RECOGNIZER_BACKEND = os.getenv("RECOGNIZER_BACKEND", "google").strip().lower()
SERVER_HOST = os.getenv("SERVER_HOST", "0.0.0.0")
SERVER_PORT = _env_int("SERVER_PORT", 3001)

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()


def load_settings() -> SessionSettings:
    """Build the SessionSettings value from the environment defaults.

    RULES:
    - Threshold defaults are validated by SensitivityThresholds itself
    - Returns a fresh value on each call; sessions never share settings
    """
    defaults = SensitivityThresholds(
        small_max=DEFAULT_SMALL_MAX,
        normal_max=DEFAULT_NORMAL_MAX,
    )
    return SessionSettings(
        language=CAPTION_LANGUAGE,
        base_size=CAPTION_BASE_SIZE,
        buffer_window_ms=BUFFER_WINDOW_MS,
        lookback_cap_ms=LOOKBACK_CAP_MS,
        max_final_words=MAX_FINAL_WORDS,
        thresholds=defaults,
        default_thresholds=defaults,
    )
