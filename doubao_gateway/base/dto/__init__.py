"""DTO validation package for the gateway."""

from .completion_request import CompletionRequestDTO, ContentPartDTO, MessageDTO, Role

__all__ = ["Role", "ContentPartDTO", "MessageDTO", "CompletionRequestDTO"]
