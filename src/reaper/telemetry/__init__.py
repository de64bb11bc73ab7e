"""Telemetry module for logging."""

from .logger import RequestContext, SecretRedactor, get_logger, request_id_var, setup_logging

__all__ = ["RequestContext", "SecretRedactor", "get_logger", "request_id_var", "setup_logging"]
