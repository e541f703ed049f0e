from __future__ import annotations

import hashlib
import re
from typing import Any, Dict

EMAIL_RE = re.compile(r"[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}")
# Phone-like numbers with separators; digits embedded in ids or dates do not count.
PHONE_RE = re.compile(r"(?<![\w-])\+?\d[\d\s().-]{8,}\d(?![\w-])")
# Apify tokens travel in query strings (?token=... / &token=...).
TOKEN_QUERY_RE = re.compile(r"(token=)[^&\s\"']+", re.IGNORECASE)
APIFY_TOKEN_RE = re.compile(r"\bapify_api_[A-Za-z0-9]{16,}\b")

# Keys whose values must never be logged verbatim.
SECRET_FIELDS = {
    "token",
    "credential",
    "api_key",
    "apify_token",
    "apify_api_token",
    "authorization",
    "service_role_key",
}

MAX_LOGGED_STRING = 500


def _hash_token(text: str) -> str:
    digest = hashlib.sha256(text.encode("utf-8")).hexdigest()[:12]
    return f"[HASH:{digest}]"


def redact_secrets(text: str) -> str:
    """Hide API tokens embedded in URLs or free text."""
    if not text:
        return text
    cleaned = TOKEN_QUERY_RE.sub(r"\1<TOKEN_HIDDEN>", text)
    return APIFY_TOKEN_RE.sub("<TOKEN_HIDDEN>", cleaned)


def scrub_text(text: str) -> str:
    """Redact secrets and hash obvious PII tokens (listing agents' e-mails and phones)."""
    if not text:
        return text

    def _replace(match: re.Match, label: str) -> str:
        token = match.group(0)
        return f"[{label}_{_hash_token(token)}]"

    scrubbed = redact_secrets(text)
    scrubbed = EMAIL_RE.sub(lambda m: _replace(m, "EMAIL"), scrubbed)
    scrubbed = PHONE_RE.sub(lambda m: _replace(m, "PHONE"), scrubbed)
    return scrubbed


def _is_secret_key(key: str) -> bool:
    lowered = key.lower()
    if lowered in SECRET_FIELDS:
        return True
    return lowered.endswith("_token") or lowered.endswith("_secret")


def _scrub_collection(value: Any) -> Any:
    if isinstance(value, dict):
        return sanitize_log_payload(value)
    if isinstance(value, list):
        return [scrub_value(item) for item in value]
    if isinstance(value, tuple):
        return tuple(scrub_value(item) for item in value)
    return value


def scrub_value(value: Any) -> Any:
    """Scrub a generic value before logging."""
    if isinstance(value, str):
        cleaned = scrub_text(value)
        if len(cleaned) > MAX_LOGGED_STRING:
            return _hash_token(cleaned)
        return cleaned
    if isinstance(value, (dict, list, tuple)):
        return _scrub_collection(value)
    return value


def sanitize_log_payload(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Strip secrets and hash PII-heavy fields from a log payload."""
    if not isinstance(payload, dict):
        return {}

    cleaned: Dict[str, Any] = {}
    for key, value in payload.items():
        if value is None:
            cleaned[key] = value
            continue
        if _is_secret_key(str(key)):
            cleaned[key] = "<REDACTED>"
            continue
        cleaned[key] = scrub_value(value)
    return cleaned
