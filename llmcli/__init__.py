"""llmcli: chat-completion prompts from the terminal."""

__version__ = "0.1.0"
