# ClearPolicy Core Library
# Main entry point: from clearpolicy_core.synthesis import PolicySynthesizer

from .config import load_config, get_api_keys

from .exceptions import (
    ClearPolicyError,
    CompletionError,
    LLMResponseError,
    CompletionUnavailableError,
    ValidationError,
    InvalidQueryError,
    APIKeyMissingError,
)

from .models import (
    Citation,
    SummaryLike,
    KnownSummary,
    SummaryRequest,
    Answer,
    AnswerSections,
    AnswerSource,
    LocalImpact,
    DisambiguationResult,
    ClarifyingQuestion,
    FollowUpAnswer,
    PolicyRecord,
    Resolution,
    PresentationCard,
    PresentationSection,
    PresentationSource,
)

from .reading import simplify, simplify_summary, READING_LEVELS
from .evidence import source_ratio_from
from .disambiguation import QueryDisambiguator, disambiguate, is_specific_query
from .known_summaries import match_known_summary
from .presentation import answer_to_card, answer_to_sections
from .synthesis import PolicySynthesizer

from .utils import (
    CostTracker,
    LLMUsage,
    log_llm_cost,
    get_cost_summary,
    reset_cost_tracker,
    estimate_tokens,
)

__all__ = [
    # Main entry points
    "PolicySynthesizer",
    "simplify",
    "simplify_summary",
    "source_ratio_from",
    "disambiguate",
    "QueryDisambiguator",
    "is_specific_query",
    "match_known_summary",
    "answer_to_card",
    "answer_to_sections",
    "READING_LEVELS",
    "load_config",
    "get_api_keys",
    # Errors
    "ClearPolicyError",
    "CompletionError",
    "LLMResponseError",
    "CompletionUnavailableError",
    "ValidationError",
    "InvalidQueryError",
    "APIKeyMissingError",
    # Models
    "Citation",
    "SummaryLike",
    "KnownSummary",
    "SummaryRequest",
    "Answer",
    "AnswerSections",
    "AnswerSource",
    "LocalImpact",
    "DisambiguationResult",
    "ClarifyingQuestion",
    "FollowUpAnswer",
    "PolicyRecord",
    "Resolution",
    "PresentationCard",
    "PresentationSection",
    "PresentationSource",
    # Utils
    "CostTracker",
    "LLMUsage",
    "log_llm_cost",
    "get_cost_summary",
    "reset_cost_tracker",
    "estimate_tokens",
]
