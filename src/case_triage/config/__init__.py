"""Pipeline configuration: YAML models, loading and component factories."""

from .factories import (
    create_capability,
    create_oracle,
    create_store,
    create_strategies,
    create_strategy,
)
from .loader import load_pipeline_config, resolve_env
from .models import (
    AddressesConfig,
    AgentConfig,
    HandlerConfig,
    HttpConfig,
    LlmConfig,
    PipelineConfig,
    SchemaConfig,
    StoreConfig,
    ToolConfig,
)

__all__ = [
    "AddressesConfig",
    "AgentConfig",
    "HandlerConfig",
    "HttpConfig",
    "LlmConfig",
    "PipelineConfig",
    "SchemaConfig",
    "StoreConfig",
    "ToolConfig",
    "create_capability",
    "create_oracle",
    "create_store",
    "create_strategies",
    "create_strategy",
    "load_pipeline_config",
    "resolve_env",
]
