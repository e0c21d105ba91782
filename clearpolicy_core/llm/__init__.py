from clearpolicy_core.llm.clients import (
    AnthropicCompletionClient,
    CompletionClient,
    GeminiCompletionClient,
    OpenAICompletionClient,
    build_completion_client,
    parse_json_payload,
)

__all__ = [
    "AnthropicCompletionClient",
    "CompletionClient",
    "GeminiCompletionClient",
    "OpenAICompletionClient",
    "build_completion_client",
    "parse_json_payload",
]
