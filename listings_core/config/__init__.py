"""Configuration module for the marketplace listing core."""

from .settings import (
    APP_CONFIG,
    AppSettings,
    StoreConfig,
    ListingConfig,
    RetryConfig,
    ViewTrackingConfig,
    get_app_settings,
)

__all__ = [
    'APP_CONFIG',
    'AppSettings',
    'StoreConfig',
    'ListingConfig',
    'RetryConfig',
    'ViewTrackingConfig',
    'get_app_settings',
]
