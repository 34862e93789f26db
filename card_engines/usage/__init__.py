from card_engines.usage.counter import (
    InMemoryUsageCounter,
    RedisUsageCounter,
    UsageCounter,
    create_usage_counter,
    record_usage,
)

__all__ = [
    "UsageCounter",
    "InMemoryUsageCounter",
    "RedisUsageCounter",
    "create_usage_counter",
    "record_usage",
]
