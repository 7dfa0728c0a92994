from __future__ import annotations

import os
from typing import Dict, List, Optional

import yaml
from pydantic import BaseModel, Field

from .constants import (
    CONFIG_ENV_VAR,
    DATABASE_URL_ENV_VARS,
    DEFAULT_CATALOG_PATHS,
    DEFAULT_CONFIG_FILE,
    DEFAULT_LLM_MODEL,
    DEFAULT_TOOL_MAX_RETRIES,
    DEFAULT_TOOL_TIMEOUT,
    LLM_MODEL_ENV_VAR,
    TOOLS_ENDPOINT_ENV_VAR,
)


class LLMConfig(BaseModel):
    """Configuration for LLM-call steps."""

    default_model: str = DEFAULT_LLM_MODEL
    system_prompt: Optional[str] = None


class ToolsConfig(BaseModel):
    """Configuration for tool-call steps."""

    endpoint: Optional[str] = None
    timeout: float = Field(default=DEFAULT_TOOL_TIMEOUT, gt=0)
    max_retries: int = Field(default=DEFAULT_TOOL_MAX_RETRIES, ge=0)
    headers: Dict[str, str] = Field(default_factory=dict)


class CatalogConfig(BaseModel):
    """Where workflow definitions are loaded from."""

    paths: List[str] = Field(default_factory=lambda: list(DEFAULT_CATALOG_PATHS))


class StepwrightConfig(BaseModel):
    """Top-level configuration model."""

    llm: LLMConfig = Field(default_factory=LLMConfig)
    tools: ToolsConfig = Field(default_factory=ToolsConfig)
    catalog: CatalogConfig = Field(default_factory=CatalogConfig)
    database_url: Optional[str] = None


def load_config(path: Optional[str] = None) -> StepwrightConfig:
    """Load configuration from YAML file.

    Args:
        path: Optional path to config file. Falls back to STEPWRIGHT_CONFIG env
            variable or 'stepwright.yaml' in the current directory.
    """

    config_path = path or os.getenv(CONFIG_ENV_VAR, DEFAULT_CONFIG_FILE)
    if os.path.exists(config_path):
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
        config = StepwrightConfig(**data)
    else:
        config = StepwrightConfig()

    env_db_url = next(
        (os.getenv(name) for name in DATABASE_URL_ENV_VARS if os.getenv(name)), None
    )
    if env_db_url:
        config.database_url = env_db_url
    if env_model := os.getenv(LLM_MODEL_ENV_VAR):
        config.llm.default_model = env_model
    if env_endpoint := os.getenv(TOOLS_ENDPOINT_ENV_VAR):
        config.tools.endpoint = env_endpoint
    return config
