"""LLM abstraction layer — litellm streaming folded into turn results."""

from stepwise.llm.message import (
    ActionRequest,
    ContentPart,
    Message,
    TextPart,
    TokenUsage,
    ToolCallPart,
)
from stepwise.llm.provider import (
    ChatProvider,
    GenerationConstraints,
    LiteLLMProvider,
    ProviderConfig,
    create_provider,
)
from stepwise.llm.streaming import GenerateResult, generate

__all__ = [
    "ActionRequest",
    "ContentPart",
    "Message",
    "TextPart",
    "TokenUsage",
    "ToolCallPart",
    "ChatProvider",
    "GenerationConstraints",
    "LiteLLMProvider",
    "ProviderConfig",
    "create_provider",
    "GenerateResult",
    "generate",
]
