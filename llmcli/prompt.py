"""Prompt assembly: file interpolation, system prompts, message lists."""

from __future__ import annotations

import re
from datetime import date
from pathlib import Path

from llmcli.errors import MissingFileError
from llmcli.schemas.messages import ChatMessage, Role

CODE_SYSTEM_PROMPT = (
    "You are an expert code generating tool. Return just the code, with no "
    "explanation\nor context. The code has to be well commented."
)

DEFAULT_SYSTEM_PROMPT = (
    "You are ChatGPT, a large language model trained by OpenAI. Answer as "
    "concisely as possible. Knowledge cutoff: 2021-09-01. Current date: {today}"
)

# {{f ./path}} or {{ f ./path }}
_FILE_REF_RE = re.compile(r"\{\{ ?f([^}]+)\}\}")


def expand_prompt(prompt: str) -> str:
    """Replace each ``{{f path}}`` reference with that file's contents.

    Raises:
        MissingFileError: If a referenced file does not exist.
    """

    def _substitute(match: re.Match) -> str:
        file_path = match.group(1).strip()
        path = Path(file_path)
        if not path.is_file():
            raise MissingFileError(file_path)
        return path.read_text(encoding="utf-8").strip()

    return _FILE_REF_RE.sub(_substitute, prompt)


def resolve_system_prompt(
    code: bool = False,
    system: str | None = None,
    today: date | None = None,
) -> str:
    """Pick the system prompt for --code, --system, or the default."""
    if code and system:
        raise ValueError("Can't use --code and --system together")
    if code:
        return CODE_SYSTEM_PROMPT
    if system:
        return system
    return DEFAULT_SYSTEM_PROMPT.format(today=(today or date.today()).isoformat())


def build_messages(system: str, prompt: str) -> list[ChatMessage]:
    return [
        ChatMessage(role=Role.SYSTEM, content=system),
        ChatMessage(role=Role.USER, content=prompt),
    ]


def unwrap_markdown(content: str) -> str:
    """Strip a leading ``` fence line and a trailing ``` line."""
    lines = content.split("\n")
    if lines and lines[0].strip().startswith("```"):
        lines.pop(0)
    if lines and lines[-1].strip() == "```":
        lines.pop()
    return "\n".join(lines)
