# Configuration package
"""
Configuration handling utilities.

Modules:
- system_config: EngineConfig dataclass and JSON loading
"""

from .system_config import EngineConfig, load_engine_config, DEFAULT_ENGINE_CONFIG

__all__ = [
    'EngineConfig',
    'load_engine_config',
    'DEFAULT_ENGINE_CONFIG',
]
