from clearpolicy_core.evidence.claims import (
    AnnotatedClaim,
    EvidenceMatch,
    annotate_claims,
    dedupe_citations,
    find_best_evidence,
    match_claim_to_quote,
    split_into_claims,
)
from clearpolicy_core.evidence.coverage import (
    coverage_count,
    covered_locations,
    is_genuine,
    source_ratio_from,
    with_coverage,
)

__all__ = [
    "AnnotatedClaim",
    "EvidenceMatch",
    "annotate_claims",
    "coverage_count",
    "covered_locations",
    "dedupe_citations",
    "find_best_evidence",
    "is_genuine",
    "match_claim_to_quote",
    "source_ratio_from",
    "split_into_claims",
    "with_coverage",
]
