"""Configuration module for the IdP attribute service."""
from .settings import AppConfig, load_settings

__all__ = ["AppConfig", "load_settings"]
