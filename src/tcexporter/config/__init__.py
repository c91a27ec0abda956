from .models import DEFAULT_CONFIG_PATH, Config, LogConfig
from .manager import ConfigManager

__all__ = ["DEFAULT_CONFIG_PATH", "Config", "LogConfig", "ConfigManager"]
