"""Config settings – environment-based configuration."""
from mp_payloads.config.settings.base import Settings
from mp_payloads.config.settings.loaders import DotenvSettingsLoader, EnvSettingsLoader, SettingsLoader

__all__ = ["DotenvSettingsLoader", "EnvSettingsLoader", "Settings", "SettingsLoader"]
