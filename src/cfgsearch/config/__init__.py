from .loader import load_data, load_search_config
from .models import (
    CacheConfig,
    ChainConfig,
    CommandServiceConfig,
    HttpServiceConfig,
    ParamRule,
    RateLimitConfig,
    RetryConfig,
    ScoringConfig,
    SearchConfig,
    SearchOptions,
    ServiceConfig,
)

__all__ = [
    "CacheConfig",
    "ChainConfig",
    "CommandServiceConfig",
    "HttpServiceConfig",
    "ParamRule",
    "RateLimitConfig",
    "RetryConfig",
    "ScoringConfig",
    "SearchConfig",
    "SearchOptions",
    "ServiceConfig",
    "load_data",
    "load_search_config",
]
