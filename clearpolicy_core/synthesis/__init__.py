from .answers import (
    answer_from_completion,
    answer_from_known,
    answer_from_record,
    stub_answer,
    summary_from_answer,
)
from .extraction import pick_policy_sentence, pros_cons_from, stakeholders_from, summarize_record
from .levels import regenerate_sections, rewrite_card_for_level
from .resolvers import (
    AnswerResolver,
    CompletionResolver,
    KnownSummaryResolver,
    LiveRecordResolver,
    PolicyQuery,
    stub_resolution,
)
from .synthesizer import PolicySynthesizer, validate_query

__all__ = [
    # Synthesizer
    "PolicySynthesizer",
    "validate_query",
    # Resolvers
    "AnswerResolver",
    "KnownSummaryResolver",
    "LiveRecordResolver",
    "CompletionResolver",
    "PolicyQuery",
    "stub_resolution",
    # Answer builders
    "answer_from_known",
    "answer_from_record",
    "answer_from_completion",
    "stub_answer",
    "summary_from_answer",
    # Live-record extraction
    "pick_policy_sentence",
    "stakeholders_from",
    "pros_cons_from",
    "summarize_record",
    # Level rewrites
    "regenerate_sections",
    "rewrite_card_for_level",
]
