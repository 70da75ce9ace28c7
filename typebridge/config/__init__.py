from .loader import CONFIG_ENV_VAR, DEFAULT_CONFIG_TEMPLATE, PROJECT_CONFIG, load_config
from .models import (
    BatchConfig,
    ConversionConfig,
    GraphQLConfig,
    OpenApiConfig,
    SureTypeConfig,
    TypeBridgeConfig,
    TypeScriptConfig,
)

__all__ = [
    "BatchConfig",
    "CONFIG_ENV_VAR",
    "ConversionConfig",
    "DEFAULT_CONFIG_TEMPLATE",
    "GraphQLConfig",
    "PROJECT_CONFIG",
    "OpenApiConfig",
    "SureTypeConfig",
    "TypeBridgeConfig",
    "TypeScriptConfig",
    "load_config",
]
