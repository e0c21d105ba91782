"""
Deterministic reading-level transform.

Level "12" is the canonical text with terminal punctuation guaranteed. Levels
"8" and "5" run the same pipeline, parameterized by a LevelProfile record:

    whitespace/parenthetical cleanup -> plain-term table -> sentence split
    -> clause shortening -> sentence/word caps -> analogy -> character ceiling

Adding a level means adding a profile, not a code path. No randomness, no
network calls.
"""
import re
from dataclasses import dataclass, field
from typing import Optional, Pattern

from clearpolicy_core.evidence.coverage import with_coverage
from clearpolicy_core.models import SummaryLike

READING_LEVELS: tuple[str, ...] = ("5", "8", "12")

# Inputs this short only get vocabulary/clause simplification, never length caps
SHORT_INPUT_CHARS = 40

_WHITESPACE = re.compile(r"\s+")
_PARENTHETICAL = re.compile(r"\s*\([^()]*\)")
_SENTENCE_SPLIT = re.compile(r"(?<=[.!?])\s+")
_CLAUSE_BREAK = re.compile(r"\s*[;:]\s*")
_SUBORDINATORS = re.compile(r",\s*which\b|,\s*that\b|\s+because\b", re.IGNORECASE)
_TERMINAL = re.compile(r"[.!?][\"')\]]*$")
_TRAILING_JUNK = re.compile(r"[\s,;:\-]+$")


def _term(pattern: str, replacement: str) -> tuple[Pattern[str], str]:
    return re.compile(rf"\b{pattern}\b", re.IGNORECASE), replacement


PLAIN_TERMS: tuple[tuple[Pattern[str], str], ...] = (
    _term("utilize", "use"),
    _term("prior to", "before"),
    _term("subsequent", "later"),
    _term("approximately", "about"),
    _term("commence", "start"),
    _term("advertisements", "ads"),
    _term("advertising", "ads"),
    _term("regulations", "rules"),
    _term("regulation", "rule"),
    _term("provisions", "rules"),
    _term("provision", "rule"),
    _term("legislation", "law"),
    _term("legislative", "law"),
    _term("authorized", "allowed"),
    _term("authorize", "allow"),
    _term("requires", "needs"),
    _term("require", "need"),
    _term("prohibits", "bans"),
    _term("prohibit", "ban"),
    _term("penalties", "punishments"),
    _term("penalty", "punishment"),
    _term("electorate", "voters"),
    _term("pursuant to", "under"),
    _term("notwithstanding", "despite"),
    _term("shall", "will"),
)

ANALOGIES: tuple[tuple[Pattern[str], str], ...] = (
    (re.compile(r"budget|tax|revenue", re.IGNORECASE),
     "It is like a family budget: rules for how money can be used."),
    (re.compile(r"advertis|disclos", re.IGNORECASE),
     "Think of a label on a product: this adds labels to ads so people know who paid."),
    (re.compile(r"theft|crime|penal|sentenc", re.IGNORECASE),
     "It is like changing school rules about consequences to make them more fair."),
    (re.compile(r"water|energy|environment", re.IGNORECASE),
     "This is like house rules to save water and power, but for the state."),
)


@dataclass(frozen=True)
class LevelProfile:
    """Per-level parameters for the shared simplification pipeline."""
    level: str
    terms: tuple[tuple[Pattern[str], str], ...] = ()
    clause_threshold: Optional[int] = None
    split_subordinators: bool = False
    max_sentences: Optional[int] = None
    max_words_per_sentence: Optional[int] = None
    word_ratio: Optional[float] = None
    min_words: int = 1
    char_ratio: Optional[float] = None
    analogies: tuple[tuple[Pattern[str], str], ...] = field(default=())

    @property
    def is_canonical(self) -> bool:
        return not self.terms and self.word_ratio is None and self.char_ratio is None


LEVEL_PROFILES: dict[str, LevelProfile] = {
    "12": LevelProfile(level="12"),
    "8": LevelProfile(
        level="8",
        terms=PLAIN_TERMS,
        clause_threshold=140,
        word_ratio=0.8,
        min_words=3,
        char_ratio=0.9,
    ),
    "5": LevelProfile(
        level="5",
        terms=PLAIN_TERMS,
        clause_threshold=80,
        split_subordinators=True,
        max_sentences=2,
        max_words_per_sentence=12,
        word_ratio=0.6,
        min_words=3,
        char_ratio=0.7,
        analogies=ANALOGIES,
    ),
}


def ensure_terminal(text: str) -> str:
    """Strip dangling clause punctuation and end with '.', unless already terminated."""
    text = text.strip()
    if not text or _TERMINAL.search(text):
        return text
    trimmed = _TRAILING_JUNK.sub("", text)
    if not trimmed:
        return text + "."
    if _TERMINAL.search(trimmed):
        return trimmed
    return trimmed + "."


def canonical_terminal(text: str) -> str:
    """End with '.' unless already terminated; nothing else is removed."""
    text = text.strip()
    if not text or _TERMINAL.search(text):
        return text
    return text + "."


def _match_case(original: str, replacement: str) -> str:
    if original.isupper() and len(original) > 1:
        return replacement.upper()
    if original[:1].isupper():
        return replacement[:1].upper() + replacement[1:]
    return replacement


def replace_terms(text: str, terms: tuple[tuple[Pattern[str], str], ...]) -> str:
    for pattern, replacement in terms:
        text = pattern.sub(lambda m, r=replacement: _match_case(m.group(0), r), text)
    return text


def _capitalize(sentence: str) -> str:
    return sentence[:1].upper() + sentence[1:] if sentence else sentence


def _split_sentences(text: str) -> list[str]:
    return [s.strip() for s in _SENTENCE_SPLIT.split(text) if s.strip()]


def _shorten_clauses(sentence: str, threshold: int) -> list[str]:
    if len(sentence) <= threshold:
        return [sentence]
    parts = [p.strip() for p in _CLAUSE_BREAK.split(sentence) if p.strip()]
    return [ensure_terminal(_capitalize(p)) for p in parts]


def _truncate_words(sentence: str, max_words: int) -> str:
    words = sentence.split()
    if len(words) <= max_words:
        return sentence
    kept = " ".join(words[:max_words])
    # Prefer ending on a clause boundary when one falls in the back half
    boundary = max(kept.rfind(";"), kept.rfind(":"))
    if boundary > len(kept) // 2:
        kept = kept[:boundary]
    return ensure_terminal(kept)


def _cap_total_words(sentences: list[str], max_words: int) -> list[str]:
    capped: list[str] = []
    remaining = max_words
    for sentence in sentences:
        if remaining <= 0:
            break
        count = len(sentence.split())
        if count <= remaining:
            capped.append(sentence)
            remaining -= count
        else:
            capped.append(_truncate_words(sentence, remaining))
            remaining = 0
    return capped


def _fit_chars(text: str, limit: int) -> str:
    """Cut at a word boundary so the terminated result is at most `limit` chars."""
    text = ensure_terminal(text)
    if len(text) <= limit:
        return text
    words = text.split()
    kept: list[str] = []
    for word in words:
        candidate = " ".join(kept + [word])
        if len(ensure_terminal(candidate)) > limit:
            break
        kept.append(word)
    if not kept:
        return ensure_terminal(words[0][:max(limit - 1, 1)])
    return ensure_terminal(" ".join(kept))


def _pick_analogy(text: str, profile: LevelProfile) -> Optional[str]:
    for pattern, analogy in profile.analogies:
        if pattern.search(text):
            return analogy
    return None


def _simplify_sentences(text: str, profile: LevelProfile) -> list[str]:
    work = _WHITESPACE.sub(" ", text).strip()
    work = _PARENTHETICAL.sub("", work).strip()
    work = replace_terms(work, profile.terms)
    if profile.split_subordinators:
        work = _SUBORDINATORS.sub(". ", work)

    sentences: list[str] = []
    for sentence in _split_sentences(work):
        if profile.clause_threshold is not None:
            sentences.extend(_shorten_clauses(sentence, profile.clause_threshold))
        else:
            sentences.append(sentence)
    return [_capitalize(s) for s in sentences if s.strip(" .!?")]


def _transform(text: str, profile: LevelProfile) -> str:
    original = text.strip()
    sentences = _simplify_sentences(original, profile)
    if not sentences:
        sentences = [original]

    if len(original) <= SHORT_INPUT_CHARS:
        return ensure_terminal(" ".join(ensure_terminal(s) for s in sentences))

    if profile.max_sentences is not None:
        sentences = sentences[:profile.max_sentences]
    if profile.max_words_per_sentence is not None:
        sentences = [_truncate_words(s, profile.max_words_per_sentence) for s in sentences]
    if profile.word_ratio is not None:
        word_budget = max(profile.min_words, int(len(original.split()) * profile.word_ratio))
        sentences = _cap_total_words(sentences, word_budget)

    body = " ".join(ensure_terminal(s) for s in sentences)
    ceiling = int(len(original) * profile.char_ratio) if profile.char_ratio else len(original) - 1

    analogy = _pick_analogy(original, profile)
    if analogy and len(body) + 1 + len(analogy) <= ceiling:
        body = f"{body} {analogy}"

    if len(body) >= len(original):
        words = body.split()
        if len(words) > 1:
            body = ensure_terminal(" ".join(words[:-1]))

    return _fit_chars(body, min(ceiling, len(original) - 1))


def simplify(text: str, level: str) -> str:
    """
    Rewrite prose for a target reading level ("5", "8" or "12").

    Empty input comes back unchanged. Any other input yields non-empty text
    ending in terminal punctuation; levels "5" and "8" are strictly shorter
    than inputs longer than SHORT_INPUT_CHARS.

    Raises:
        ValueError: Unknown reading level
    """
    profile = LEVEL_PROFILES.get(str(level))
    if profile is None:
        raise ValueError(f"Unknown reading level: {level!r} (expected one of {READING_LEVELS})")
    if not text or not text.strip():
        return text
    if profile.is_canonical:
        return canonical_terminal(text)
    out = _transform(text, profile)
    if len(text) > SHORT_INPUT_CHARS and len(out) >= len(text):
        out = _fit_chars(out, len(text) - 1)
    return out


def _simplify_lines(text: str, level: str) -> str:
    lines = [line.strip().lstrip("-*• ").strip() for line in text.splitlines()]
    return "\n".join(simplify(line, level) for line in lines if line)


def simplify_summary(summary: SummaryLike, level: str) -> SummaryLike:
    """
    Derive a level view from a higher-level summary.

    Returns a new SummaryLike; citations carry over unchanged and the coverage
    score is recomputed against the rewritten sections.
    """
    fields = {
        "tldr": simplify(summary.tldr, level),
        "what_it_does": _simplify_lines(summary.what_it_does, level),
        "who_affected": simplify(summary.who_affected, level),
        "pros": _simplify_lines(summary.pros, level),
        "cons": _simplify_lines(summary.cons, level),
    }
    return with_coverage(summary.model_copy(update=fields))
