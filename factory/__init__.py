"""Factory package - Dependency injection for provider-agnostic code"""

from .client_factory import (
    create_bar_feed,
    create_bar_store,
    create_event_publisher,
)

__all__ = [
    "create_bar_store",
    "create_event_publisher",
    "create_bar_feed",
]
