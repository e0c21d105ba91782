"""
Sentence selection over official registry records.

Builds a cited SummaryLike from a PolicyRecord using keyword scoring and
keyword-to-stakeholder / keyword-to-argument tables. Nothing here writes
new facts: every section is either a selected and trimmed sentence from
the record, a field from the record, or a fixed table phrase licensed by a
keyword match.
"""
import re
from typing import Iterable, Optional

from clearpolicy_core.evidence.coverage import with_coverage
from clearpolicy_core.models import Citation, PolicyRecord, SummaryLike

FIRST_SENTENCE_CHARS = 220
MAX_QUOTE_CHARS = 600
SIMILAR_QUOTE_RATIO = 0.8
MAX_ACTION_QUOTES = 4
ELLIPSIS = "…"

_SENTENCE_SPLIT = re.compile(r"(?<=[.!?])\s+")
_WHITESPACE = re.compile(r"\s+")

# (pattern, weight); each pattern counts once per sentence
POLICY_SIGNALS: tuple[tuple[re.Pattern, int], ...] = (
    (re.compile(r"\b(?:require|prohibit|allow|authori[sz]e|ban|fund|create|establish|amend|repeal)", re.IGNORECASE), 3),
    (re.compile(r"\b(?:program|agency|department|committee|report|disclosure)", re.IGNORECASE), 2),
    (re.compile(r"\b(?:effective|until|penalt|fine|fee|appropriat)", re.IGNORECASE), 1),
)

STAKEHOLDER_TABLE: tuple[tuple[re.Pattern, tuple[str, ...]], ...] = (
    (re.compile(r"school|education|student", re.IGNORECASE), ("students", "schools", "teachers")),
    (re.compile(r"voter|election|ballot|campaign", re.IGNORECASE), ("voters", "campaigns", "election officials")),
    (re.compile(r"tax|revenue|budget", re.IGNORECASE), ("taxpayers", "state agencies", "local governments")),
    (re.compile(r"health|medic", re.IGNORECASE), ("patients", "providers")),
    (re.compile(r"business|employer|worker|labor", re.IGNORECASE), ("businesses", "workers", "employers")),
    (re.compile(r"advertis", re.IGNORECASE), ("advertisers", "media platforms")),
    (re.compile(r"environment|climate|water|energy|wildlife", re.IGNORECASE), ("environmental agencies", "local communities")),
    (re.compile(r"criminal|penal|probation|parole|correction", re.IGNORECASE), ("people in the justice system", "law enforcement")),
    (re.compile(r"housing|tenant|landlord|zoning", re.IGNORECASE), ("tenants", "landlords", "local governments")),
)
GENERIC_STAKEHOLDERS = "groups mentioned in the measure"

ARGUMENT_TABLE: tuple[tuple[re.Pattern, str, str], ...] = (
    (
        re.compile(r"campaign|advertis|disclosure|transparen", re.IGNORECASE),
        "Improves transparency and disclosure for the public.",
        "May add compliance steps or costs for organizations.",
    ),
    (
        re.compile(r"crime|penal|sentenc|drug", re.IGNORECASE),
        "Adjusts penalties with the goal of fairness or safety.",
        "Could affect deterrence or incarceration rates.",
    ),
    (
        re.compile(r"budget|tax|revenue", re.IGNORECASE),
        "Clarifies fiscal rules and budgeting.",
        "May reduce flexibility or impact programs.",
    ),
)
DEFAULT_ARGUMENTS = (
    "Clarifies rules in the affected topic.",
    "Could require new processes or resources.",
)

_ACT_PREFIX = re.compile(r"^an act to\s+", re.IGNORECASE)
_RELATING_SUFFIX = re.compile(r",\s*relating to\b.*$", re.IGNORECASE | re.DOTALL)
_RESOLUTION_PREFIX = re.compile(r"^(?:a|an)\s+(?:concurrent\s+|joint\s+)?resolution\s+", re.IGNORECASE)


def _normalize(text: Optional[str]) -> str:
    return _WHITESPACE.sub(" ", text or "").strip()


def split_sentences(text: str) -> list[str]:
    return [s.strip() for s in _SENTENCE_SPLIT.split(_normalize(text)) if s.strip()]


def _cap(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[: limit - 1].rstrip() + ELLIPSIS


def first_sentence(text: str, limit: int = FIRST_SENTENCE_CHARS) -> str:
    sentences = split_sentences(text)
    return _cap(sentences[0], limit) if sentences else ""


def policy_density(sentence: str) -> int:
    return sum(weight for pattern, weight in POLICY_SIGNALS if pattern.search(sentence))


def pick_policy_sentence(text: str, exclude: Iterable[str] = ()) -> str:
    """The most policy-dense sentence; ties keep the earliest one."""
    excluded = {_normalize(e) for e in exclude}
    candidates = [s for s in split_sentences(text) if s not in excluded]
    if not candidates:
        return ""
    best = candidates[0]
    best_score = policy_density(best)
    for sentence in candidates[1:]:
        score = policy_density(sentence)
        if score > best_score:
            best, best_score = sentence, score
    return _cap(best, FIRST_SENTENCE_CHARS)


def stakeholders_from(text: str, subjects: Iterable[str] = ()) -> list[str]:
    subjects = [s for s in subjects if s]
    corpus = " ".join([text or ""] + subjects)
    groups: list[str] = []
    for pattern, names in STAKEHOLDER_TABLE:
        if pattern.search(corpus):
            groups.extend(n for n in names if n not in groups)
    if not groups and subjects:
        groups.append(GENERIC_STAKEHOLDERS)
    return groups


def pros_cons_from(text: str) -> tuple[list[str], list[str]]:
    for pattern, pro, con in ARGUMENT_TABLE:
        if pattern.search(text or ""):
            return [pro], [con]
    return [DEFAULT_ARGUMENTS[0]], [DEFAULT_ARGUMENTS[1]]


def clean_impact_clause(clause: str) -> str:
    """'An act to amend ..., relating to X.' -> 'amend ...'"""
    text = _RELATING_SUFFIX.sub("", _ACT_PREFIX.sub("", _normalize(clause)))
    return text.rstrip(" .;,")


def _sentence_case(text: str) -> str:
    text = text.strip()
    if not text:
        return ""
    text = text[0].upper() + text[1:]
    return text if text[-1] in ".!?" else text + "."


def _join(names: list[str]) -> str:
    if len(names) <= 2:
        return " and ".join(names)
    return ", ".join(names[:-1]) + ", and " + names[-1]


def _is_similar(a: str, b: str) -> bool:
    a, b = a.lower(), b.lower()
    shorter, longer = (a, b) if len(a) <= len(b) else (b, a)
    if not shorter or shorter not in longer:
        return False
    return len(shorter) / len(longer) > SIMILAR_QUOTE_RATIO


class EvidenceCollector:
    """Accumulates located quotes, skipping near-duplicates."""

    def __init__(self, source_name: str, url: str):
        self.source_name = source_name
        self.url = url
        self.citations: list[Citation] = []

    def add(self, quote: Optional[str], location: str):
        quote = _normalize(quote)
        if not quote:
            return
        if any(_is_similar(quote, c.quote.rstrip(ELLIPSIS)) for c in self.citations):
            return
        self.citations.append(Citation(
            quote=_cap(quote, MAX_QUOTE_CHARS),
            source_name=self.source_name,
            url=self.url,
            location=location,
        ))


def _who_affected(record: PolicyRecord, corpus: str) -> str:
    groups = stakeholders_from(corpus, record.subjects)
    if groups and groups != [GENERIC_STAKEHOLDERS]:
        return f"It affects {_join(groups)}."
    if record.subjects:
        return f"Groups involved: {', '.join(record.subjects[:5])}."
    return ""


def _state_sections(record: PolicyRecord, evidence: EvidenceCollector) -> tuple[str, str]:
    clause = clean_impact_clause(record.impact_clause)
    abstract_sentence = pick_policy_sentence(record.abstract)

    if clause:
        tldr = _sentence_case(clause)
    elif abstract_sentence:
        tldr = abstract_sentence
    elif record.actions:
        tldr = first_sentence(record.actions[0])
    elif record.latest_action:
        tldr = first_sentence(record.latest_action)
    elif record.subjects:
        tldr = f"{record.title}. Relates to {', '.join(record.subjects[:3])}."
    else:
        tldr = _sentence_case(record.title)

    if clause:
        what = f"It would {clause}."
    elif abstract_sentence and abstract_sentence != tldr:
        what = abstract_sentence
    elif record.latest_action:
        what = f"Latest action: {record.latest_action}"
    else:
        what = ""

    evidence.add(record.impact_clause, "tldr")
    evidence.add(record.abstract, "what" if clause else "tldr")
    evidence.add(record.latest_action, "what")
    evidence.add(record.title, "tldr")
    return tldr, what


def _federal_sections(record: PolicyRecord, evidence: EvidenceCollector) -> tuple[str, str]:
    summary_text = record.summary or record.abstract
    if record.is_resolution:
        chamber = "Senate" if record.identifier.upper().startswith("S") else "House"
        cleaned_title = _RESOLUTION_PREFIX.sub("", record.title).rstrip(" .")
        tldr = f"Recognizes or expresses the sense of the {chamber} on {cleaned_title}."
        what = f"Expresses the {chamber}'s position: {cleaned_title}."
    else:
        tldr = pick_policy_sentence(summary_text) or _sentence_case(record.title)
        what = pick_policy_sentence(summary_text, exclude=[tldr])
        if not what and record.latest_action:
            what = f"Latest action: {record.latest_action}"

    evidence.add(summary_text, "tldr")
    evidence.add(record.latest_action, "what")
    evidence.add(record.title, "tldr")
    if record.policy_area:
        evidence.add(f"Policy area: {record.policy_area}", "who")
    return tldr, what


def summarize_record(record: PolicyRecord) -> SummaryLike:
    """
    Build a cited five-section summary from a registry record.

    Citations carry section locations so the coverage score reflects which
    sections the record's own text backs. Pros and cons come from fixed
    tables and are never cited.
    """
    evidence = EvidenceCollector(f"{record.source}: {record.identifier}", record.url)
    if record.is_federal:
        tldr, what = _federal_sections(record, evidence)
    else:
        tldr, what = _state_sections(record, evidence)

    if record.subjects:
        evidence.add(f"Subjects: {', '.join(record.subjects)}", "who")
    for action in record.actions[:MAX_ACTION_QUOTES]:
        evidence.add(action, "what")

    corpus = " ".join([record.title, record.abstract, record.summary, record.impact_clause, record.policy_area])
    pros, cons = pros_cons_from(" ".join([corpus] + record.subjects))

    return with_coverage(SummaryLike(
        tldr=tldr,
        what_it_does=what,
        who_affected=_who_affected(record, corpus),
        pros="\n".join(pros),
        cons="\n".join(cons),
        citations=evidence.citations,
    ))


def record_category(record: PolicyRecord) -> str:
    return record.policy_area or (record.subjects[0] if record.subjects else "General")
