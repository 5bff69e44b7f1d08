"""Client configuration loader.

Loads defaults from the packaged defaults.toml, overlays the user's
~/.llmcli/config.toml, then applies environment overrides.
"""

from __future__ import annotations

import logging
import os
import tomllib
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

from llmcli.keys import LLMCLI_HOME

logger = logging.getLogger(__name__)

# Default config directory relative to the llmcli package
_CONFIG_DIR = Path(__file__).parent / "config"
USER_CONFIG_FILE = LLMCLI_HOME / "config.toml"

# Environment variable -> ClientConfig field
_ENV_OVERRIDES: dict[str, str] = {
    "LLM_API_URL": "api_url",
    "LLM_MODEL": "model",
    "LLM_LOG_DB": "log_db_path",
}


class ClientConfig(BaseModel):
    """Settings for one invocation of the client."""

    api_url: str = Field(
        default="https://api.openai.com/v1/chat/completions",
        description="Chat-completion endpoint",
    )
    model: str = Field(default="gpt-3.5-turbo", description="Default model")
    gpt4_model: str = Field(default="gpt-4", description="Model selected by --gpt4")
    log_db_path: str = Field(
        default="~/.local/share/llm/log.db", description="SQLite log database",
    )
    log: bool = Field(default=True, description="Persist exchanges to the log database")
    timeout: float | None = Field(
        default=None, gt=0, description="HTTP timeout in seconds (None waits forever)",
    )

    @property
    def resolved_db_path(self) -> Path:
        return Path(self.log_db_path).expanduser()


def _read_client_section(path: Path) -> dict:
    with open(path, "rb") as f:
        raw = tomllib.load(f)
    section = raw.get("client", {})
    if not isinstance(section, dict):
        raise ValueError(f"[client] must be a table in {path}")
    return section


def load_config(
    config_path: Path | None = None,
    user_config_path: Path | None = None,
) -> ClientConfig:
    """Build the ClientConfig for this invocation.

    Args:
        config_path: Path to the defaults file. Defaults to
            llmcli/config/defaults.toml.
        user_config_path: Optional user overrides. Defaults to
            ~/.llmcli/config.toml; skipped when absent.

    Returns:
        ClientConfig with defaults, user overrides and env overrides applied.

    Raises:
        FileNotFoundError: If the defaults file does not exist.
        ValueError: If either file has an invalid structure or values.
    """
    path = config_path or _CONFIG_DIR / "defaults.toml"
    if not path.exists():
        raise FileNotFoundError(f"Client config not found: {path}")

    values = _read_client_section(path)

    user_path = user_config_path or USER_CONFIG_FILE
    if user_path.is_file():
        values.update(_read_client_section(user_path))
        logger.debug("Applied user config from %s", user_path)

    for env_var, field_name in _ENV_OVERRIDES.items():
        if os.environ.get(env_var):
            values[field_name] = os.environ[env_var]

    try:
        return ClientConfig(**values)
    except ValidationError as e:
        raise ValueError(f"Invalid client config: {e}") from e
