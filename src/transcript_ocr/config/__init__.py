"""
Configuration system with Pydantic models and validation.

Provides configuration management with type safety, validation,
and support for multiple configuration formats.
"""

from .models import (
    Config,
    ImageConfig,
    DetectionConfig,
    RowSegmentationConfig,
    FilterConfig,
    RecognitionConfig,
    GpaRules,
    SortConfig,
    SortDirection,
    LoggingConfig,
    LogLevel,
)
from .loader import (
    load_config,
    load_config_from_dict,
    save_config,
    get_default_config,
    validate_config_file,
    substitute_env_vars,
    apply_env_overrides,
)

__all__ = [
    # Configuration models
    "Config",
    "ImageConfig",
    "DetectionConfig",
    "RowSegmentationConfig",
    "FilterConfig",
    "RecognitionConfig",
    "GpaRules",
    "SortConfig",
    "SortDirection",
    "LoggingConfig",
    "LogLevel",
    # Configuration loading
    "load_config",
    "load_config_from_dict",
    "save_config",
    "get_default_config",
    "validate_config_file",
    "substitute_env_vars",
    "apply_env_overrides",
]
