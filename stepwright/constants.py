"""Shared constants for stepwright."""

DEFAULT_CONFIG_FILE = "stepwright.yaml"
CONFIG_ENV_VAR = "STEPWRIGHT_CONFIG"
DATABASE_URL_ENV_VARS = ("STEPWRIGHT_DATABASE_URL", "DATABASE_URL")
LLM_MODEL_ENV_VAR = "STEPWRIGHT_LLM_MODEL"
TOOLS_ENDPOINT_ENV_VAR = "STEPWRIGHT_TOOLS_ENDPOINT"

DEFAULT_LLM_MODEL = "openai:gpt-4o-mini"
DEFAULT_TOOL_TIMEOUT = 30.0
DEFAULT_TOOL_MAX_RETRIES = 2
DEFAULT_CATALOG_PATHS = ("workflows",)

# Placeholder name that always resolves to the execution's user query.
QUERY_REF = "query"
QUERY_REF_ALIASES = ("userQuery",)

DEFAULT_TRANSCRIPT_OUTPUT_CHARS = 2000
DEFAULT_EXECUTION_LIST_LIMIT = 50
