"""Secret redaction helpers for logging and URL safety."""

from __future__ import annotations

import logging
import re
import traceback
from typing import Iterable
from urllib.parse import parse_qsl, quote_plus, urlsplit, urlunsplit

SENSITIVE_QUERY_KEYS = frozenset(
    {
        "apikey",
        "api-key",
        "token",
        "access-token",
        "key",
        "secret",
        "password",
        "session",
        "auth",
    }
)
_SENSITIVE_KEY_PATTERN = r"(?:apikey|api_key|token|access_token|key|secret|password|passwd|session|auth)"
_URL_PATTERN = re.compile(r"(?i)https?://[^\s\"'<>]+")
_KV_SECRET_PATTERN = re.compile(
    rf"(?i)(\b{_SENSITIVE_KEY_PATTERN}\b[ \t]*[=:][ \t]*)([^&\s,;\"'<>]+)"
)

_FILTER_LOGGERS = (
    "",
    "uvicorn",
    "uvicorn.error",
    "uvicorn.access",
    "pagesnap",
)


def _is_sensitive_query_key(key: str) -> bool:
    return key.strip().lower().replace("_", "-") in SENSITIVE_QUERY_KEYS


def redact_url(url: str) -> str:
    """Mask the userinfo password and sensitive query values, keep host/path visible."""
    if not url:
        return url
    try:
        parsed = urlsplit(url)
    except ValueError:
        return url

    netloc = parsed.netloc
    changed = False
    if "@" in netloc:
        userinfo, _, host = netloc.rpartition("@")
        if ":" in userinfo:
            user = userinfo.split(":", 1)[0]
            netloc = f"{user}:***@{host}"
            changed = True

    query = parsed.query
    if query:
        pairs = parse_qsl(query, keep_blank_values=True)
        if any(_is_sensitive_query_key(key) for key, _ in pairs):
            query = "&".join(
                f"{quote_plus(key)}={'***' if _is_sensitive_query_key(key) else quote_plus(value)}"
                for key, value in pairs
            )
            changed = True

    if not changed:
        return url
    return urlunsplit((parsed.scheme, netloc, parsed.path, query, parsed.fragment))


def redact_text(value: str | None, secrets: Iterable[str] = ()) -> str | None:
    """Redact known secret values and common secret formats from log text."""
    if value is None:
        return None
    text = str(value)

    for secret in secrets:
        if secret:
            text = text.replace(secret, "***")
    text = _URL_PATTERN.sub(lambda match: redact_url(match.group(0)), text)
    text = _KV_SECRET_PATTERN.sub(r"\1***", text)
    return text


class SecretRedactionFilter(logging.Filter):
    """Logging filter that redacts secrets before records are emitted."""

    def __init__(self, secrets: Iterable[str] = ()) -> None:
        super().__init__()
        self._secrets = tuple(secret for secret in secrets if secret)

    def filter(self, record: logging.LogRecord) -> bool:
        try:
            message = record.getMessage()
        except Exception:
            message = str(record.msg)

        record.msg = redact_text(message, self._secrets) or ""
        record.args = ()
        if record.exc_info:
            exc_text = "".join(traceback.format_exception(*record.exc_info))
            record.exc_text = redact_text(exc_text, self._secrets)
        return True


def _ensure_filter(logger: logging.Logger, redaction_filter: SecretRedactionFilter) -> None:
    logger.filters = [f for f in logger.filters if not isinstance(f, SecretRedactionFilter)]
    logger.addFilter(redaction_filter)
    for handler in logger.handlers:
        handler.filters = [f for f in handler.filters if not isinstance(f, SecretRedactionFilter)]
        handler.addFilter(redaction_filter)


def install_log_redaction(secrets: Iterable[str] = ()) -> None:
    """Install process-wide log redaction, masking the given literal secrets too."""
    redaction_filter = SecretRedactionFilter(secrets)
    for logger_name in _FILTER_LOGGERS:
        _ensure_filter(logging.getLogger(logger_name), redaction_filter)
