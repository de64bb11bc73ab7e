"""reaper: route chat completions across AI providers with health tracking and failover."""

__version__ = "0.1.0"
