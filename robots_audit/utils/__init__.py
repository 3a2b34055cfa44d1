"""
Utility modules for the robots audit.
"""

from .config import Config, ConfigManager, load_config

__all__ = ['Config', 'ConfigManager', 'load_config']
