"""Structured logging configuration with request IDs and secret redaction."""

import logging
import re
import sys
from contextvars import ContextVar
from typing import Any
from uuid import uuid4

import orjson
import structlog
from structlog.processors import CallsiteParameter

# Context variables for request tracking
request_id_var: ContextVar[str] = ContextVar("request_id", default="")
account_var: ContextVar[str] = ContextVar("account", default="")

HANDLER_NAME = "reaper"


class SecretRedactor:
    """Redact credentials from log messages."""

    # Patterns for provider credentials
    API_KEY_PATTERN = re.compile(r"\b(sk-|sk-ant-|xai-|api[_-]?key[\s=:]+)[\w-]{20,}\b", re.IGNORECASE)
    GITHUB_TOKEN_PATTERN = re.compile(r"\bgh[oupsr]_[A-Za-z0-9]{20,}\b")
    BEARER_PATTERN = re.compile(r"\bBearer\s+[\w\-.~+/]{16,}=*", re.IGNORECASE)
    JWT_PATTERN = re.compile(r"\beyJ[A-Za-z0-9-_]+\.[A-Za-z0-9-_]+\.[A-Za-z0-9-_]+\b")

    @classmethod
    def redact(cls, value: Any) -> Any:
        """Redact secrets from value."""
        if not isinstance(value, str):
            return value

        value = cls.JWT_PATTERN.sub("[JWT_REDACTED]", value)
        value = cls.BEARER_PATTERN.sub("Bearer [TOKEN_REDACTED]", value)
        value = cls.GITHUB_TOKEN_PATTERN.sub("[TOKEN_REDACTED]", value)
        value = cls.API_KEY_PATTERN.sub("[API_KEY_REDACTED]", value)

        return value


def add_context_vars(logger, method_name, event_dict):
    """Add context variables to log events."""
    if request_id := request_id_var.get():
        event_dict["request_id"] = request_id
    if account := account_var.get():
        event_dict["account"] = account
    return event_dict


def redact_sensitive_data(logger, method_name, event_dict):
    """Redact credentials from logs."""
    for key, value in event_dict.items():
        if key in ("timestamp", "level", "logger", "request_id"):
            continue
        if isinstance(value, str):
            event_dict[key] = SecretRedactor.redact(value)
        elif isinstance(value, dict):
            event_dict[key] = {k: SecretRedactor.redact(v) for k, v in value.items()}

    return event_dict


def _orjson_dumps(obj: Any, **kwargs: Any) -> str:
    # ProcessorFormatter hands the rendered event to logging, which wants str
    return orjson.dumps(obj, **kwargs).decode("utf-8")


def setup_logging(
    level: str | None = None,
    format: str | None = None,
    redact_secrets: bool = True,
) -> None:
    """Configure structured logging over the standard library."""
    if level is None or format is None:
        from reaper.config import get_settings

        settings = get_settings()
        level = level or settings.log_level
        format = format or settings.log_format

    # Shared by structlog events and plain stdlib records
    shared_processors = [
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        add_context_vars,
    ]

    if redact_secrets:
        shared_processors.append(redact_sensitive_data)

    shared_processors.extend(
        [
            structlog.processors.StackInfoRenderer(),
            structlog.processors.CallsiteParameterAdder(
                parameters=[
                    CallsiteParameter.FILENAME,
                    CallsiteParameter.FUNC_NAME,
                    CallsiteParameter.LINENO,
                ]
            ),
        ]
    )

    if format == "json":
        renderer = structlog.processors.JSONRenderer(serializer=_orjson_dumps)
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    # Library modules log through stdlib logging; route them through the same chain.
    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=[structlog.stdlib.ExtraAdder(), *shared_processors],
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.ExceptionRenderer(),
            renderer,
        ],
    )

    # Logs go to stderr so command output on stdout stays clean
    handler = logging.StreamHandler(sys.stderr)
    handler.set_name(HANDLER_NAME)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    for existing in list(root_logger.handlers):
        if existing.get_name() == HANDLER_NAME:
            root_logger.removeHandler(existing)
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, level.upper()))

    # Suppress noisy loggers
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)


class RequestContext:
    """Context manager for request-scoped logging."""

    def __init__(self, request_id: str | None = None, account: str | None = None):
        self.request_id = request_id or str(uuid4())
        self.account = account
        self._tokens = []

    def __enter__(self):
        self._tokens.append((request_id_var, request_id_var.set(self.request_id)))
        if self.account:
            self._tokens.append((account_var, account_var.set(self.account)))
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        for var, token in reversed(self._tokens):
            var.reset(token)
        self._tokens.clear()
        return False
