from .config import Config, initialize_config
from .logger import setup_logging

g_config = initialize_config()

__all__ = ["Config", "g_config", "initialize_config", "setup_logging"]
