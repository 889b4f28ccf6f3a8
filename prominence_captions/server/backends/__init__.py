"""Recognition backend registry.

BACKENDS maps the RECOGNIZER_BACKEND setting to backend classes.
create_backend() returns None, rather than raising, when the backend is
disabled or cannot be initialized: the server still starts and answers
every start request with an error message.
"""

from __future__ import annotations

import logging
from typing import Optional

from prominence_captions.server.backends.base import RecognitionBackend
from prominence_captions.server.backends.google import GoogleSpeechBackend

logger = logging.getLogger(__name__)

DISABLED_BACKEND = "none"

BACKENDS: dict[str, type[RecognitionBackend]] = {
    "google": GoogleSpeechBackend,
}


def create_backend(name: str) -> Optional[RecognitionBackend]:
    """Instantiate the named backend.

    Raises:
        ValueError: If name is neither a registered backend nor "none".
    """
    key = name.strip().lower()
    if key in ("", DISABLED_BACKEND):
        logger.info("Speech backend disabled")
        return None

    backend_cls = BACKENDS.get(key)
    if backend_cls is None:
        raise ValueError(
            "Unknown recognizer backend {!r}. Available: {}".format(
                name, ", ".join(sorted(BACKENDS) + [DISABLED_BACKEND])
            )
        )

    try:
        backend = backend_cls()
    except Exception as exc:
        logger.error("Failed to initialize %s speech backend: %s", key, exc)
        logger.error("Make sure GOOGLE_APPLICATION_CREDENTIALS is set")
        return None

    logger.info("%s initialized", backend.name)
    return backend
