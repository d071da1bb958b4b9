"""Configuration loading for ContractLoom."""

from .config_loader import get_config_path, get_config_value, load_config
from .settings import PipelineSettings

__all__ = ["get_config_path", "get_config_value", "load_config", "PipelineSettings"]
