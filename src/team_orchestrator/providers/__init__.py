"""Chat-completion service implementations."""

from .openai_compat import OpenAICompatibleChatService

__all__ = ["OpenAICompatibleChatService"]
