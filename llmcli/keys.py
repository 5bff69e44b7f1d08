"""API key lookup for llmcli.

Keys are resolved with this priority:
  1. OPENAI_API_KEY in the environment (which may have been filled from
     ~/.llmcli/keys.env or .env in the current directory)
  2. ~/.openai-api-key.txt
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from llmcli.errors import MissingCredentialError

logger = logging.getLogger(__name__)

# Directory for user-level llmcli configuration
LLMCLI_HOME = Path.home() / ".llmcli"
KEYS_FILE = LLMCLI_HOME / "keys.env"

API_KEY_ENV = "OPENAI_API_KEY"
ORGANIZATION_ENV = "OPENAI_API_ORG"
KEY_FILE_NAME = ".openai-api-key.txt"


def load_keys_env() -> None:
    """Load variables from ~/.llmcli/keys.env and .env into os.environ.

    Existing env vars are NOT overwritten, and the user-level file is
    read before the project-level one.
    """
    for env_file in (KEYS_FILE, Path.cwd() / ".env"):
        if env_file.is_file():
            _load_env_file(env_file)


def _load_env_file(path: Path) -> None:
    """Parse a simple KEY=VALUE .env file and set vars that aren't already set."""
    try:
        for line in path.read_text(encoding="utf-8").splitlines():
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            if "=" not in line:
                continue
            key, _, value = line.partition("=")
            key = key.strip()
            value = value.strip().strip("'\"")
            if key and not os.environ.get(key):
                os.environ[key] = value
                logger.debug("Loaded %s from %s", key, path)
    except OSError:
        logger.debug("Could not read %s", path)


def get_api_key(home: Path | None = None) -> str:
    """Return the API key from the environment or ~/.openai-api-key.txt.

    Raises:
        MissingCredentialError: If neither source provides a key.
    """
    key = os.environ.get(API_KEY_ENV, "")
    if key:
        return key

    key_path = (home or Path.home()) / KEY_FILE_NAME
    if key_path.is_file():
        key = key_path.read_text(encoding="utf-8").strip()
        if key:
            logger.debug("Using API key from %s", key_path)
            return key

    raise MissingCredentialError(
        "There is no OpenAI API key detected. To proceed, either configure "
        f"the {API_KEY_ENV} environment variable or generate a "
        f"~/{KEY_FILE_NAME} file."
    )


def get_organization() -> str | None:
    """Return the OpenAI organization id, if one is configured."""
    return os.environ.get(ORGANIZATION_ENV) or None
