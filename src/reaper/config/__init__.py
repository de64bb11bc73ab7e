"""Configuration module"""
from .settings import Settings, get_settings, parse_priorities

__all__ = ["Settings", "get_settings", "parse_priorities"]
