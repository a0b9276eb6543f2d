"""Configuration package exports."""

from .models import ApiConfig, HarvestConfig, RetryPolicy, ScheduleConfig, StoreConfig
from .loader import ConfigLocator, ConfigRepository

__all__ = [
    "ApiConfig",
    "ConfigLocator",
    "ConfigRepository",
    "HarvestConfig",
    "RetryPolicy",
    "ScheduleConfig",
    "StoreConfig",
]
