"""Best-effort redaction of secrets from diagnostic payloads.

Used on the outbound completion request before it is handed back to callers.
Patterns cover known key shapes only.
"""

from __future__ import annotations

import re
from typing import Any

REDACTED = "[REDACTED]"

OPENAI_KEY_PATTERN = re.compile(r"sk-[a-zA-Z0-9_-]{20,}")
JWT_PATTERN = re.compile(r"eyJ[a-zA-Z0-9_-]+\.[a-zA-Z0-9_-]+\.[a-zA-Z0-9_-]+")
SUPABASE_URL_PATTERN = re.compile(
    r"https://([a-zA-Z0-9-]+\.)?supabase\.co(/[a-zA-Z0-9_-]*)*", re.IGNORECASE
)

# Suffix match: catches access_token, openaiApiKey, client_secret but leaves
# counters such as max_output_tokens alone.
SECRET_KEY_PATTERN = re.compile(
    r"(api[_-]?key|authorization|secret|password|token|"
    r"supabase[_-]?url|anon[_-]?key)$",
    re.IGNORECASE,
)


def redact_string(value: str) -> str:
    """Replace secret-shaped substrings in a single string."""
    value = OPENAI_KEY_PATTERN.sub(REDACTED, value)
    value = JWT_PATTERN.sub(REDACTED, value)
    return SUPABASE_URL_PATTERN.sub(REDACTED, value)


def is_secret_key(key: Any) -> bool:
    """Whether an object key names a secret whose value is always dropped."""
    return isinstance(key, str) and SECRET_KEY_PATTERN.search(key) is not None


def redact(value: Any) -> Any:
    """Return a deep copy of ``value`` with secrets replaced by ``[REDACTED]``.

    Strings are scanned for API keys, JWT-like tokens and hosted store URLs.
    Mapping entries whose key looks like a credential name are replaced
    outright, whatever their value. The input is never mutated.

    Args:
        value: Any JSON-like structure (dicts, lists, tuples, scalars).

    Returns:
        A new, redacted structure.
    """
    if isinstance(value, str):
        return redact_string(value)
    if isinstance(value, dict):
        return {
            k: (REDACTED if is_secret_key(k) else redact(v)) for k, v in value.items()
        }
    if isinstance(value, (list, tuple)):
        return [redact(v) for v in value]
    return value
