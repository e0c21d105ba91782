"""
Data models for the ClearPolicy answer pipeline.

Design Decisions:
- Pydantic BaseModel for runtime validation and JSON serialization
- Every model is frozen: level views and presentation cards are derived as new
  values, never by mutating a shared summary
- snake_case in Python, camelCase on the wire (model_dump(by_alias=True))
- Citation.location ties a quote to the canonical summary slot it supports;
  the coverage score is computed from those locations
"""
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

PLACEHOLDER_URL = "https://example.com"

ReadingLevel = Literal["5", "8", "12"]
SectionLocation = Literal["tldr", "what", "who", "pros", "cons"]
GovernmentLevel = Literal["Federal", "State", "Local"]
SourceType = Literal["Federal", "State", "Local", "Web"]
SourceKind = Literal["federal_bill", "state_bill", "local_government", "web_search"]
Confidence = Literal["verified", "inferred"]
ResolutionTier = Literal["known", "live", "completion", "stub"]

CANONICAL_LOCATIONS: tuple[str, ...] = ("tldr", "what", "who", "pros", "cons")


class _FrozenModel(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )


class Citation(_FrozenModel):
    """Quoted evidence from a source. Placeholder URLs never count as evidence."""
    quote: str
    source_name: str
    url: str = ""
    location: Optional[SectionLocation] = None

    @property
    def is_genuine(self) -> bool:
        url = self.url.strip().rstrip("/").lower()
        return bool(url) and url != PLACEHOLDER_URL


class SummaryLike(_FrozenModel):
    """Five canonical sections plus the citations that back them."""
    tldr: str = ""
    what_it_does: str = ""
    who_affected: str = ""
    pros: str = ""
    cons: str = ""
    source_ratio: float = Field(default=0.0, ge=0.0, le=1.0)
    citations: List[Citation] = Field(default_factory=list)
    source_count: Optional[int] = Field(default=None, ge=0)

    def section_texts(self) -> List[str]:
        """Sections in canonical order: tldr, what, who, pros, cons."""
        return [self.tldr, self.what_it_does, self.who_affected, self.pros, self.cons]


class LevelContent(_FrozenModel):
    tldr: str
    what_it_does: str
    who_affected: str
    pros: List[str] = Field(default_factory=list)
    cons: List[str] = Field(default_factory=list)


class KnownSummary(_FrozenModel):
    """
    Curated, hand-verified summary of a widely searched measure.

    Level "12" is authoritative; levels "5" and "8" are curated simplifications.
    """
    key: str
    title: str
    jurisdiction: str
    level: GovernmentLevel
    category: str = "General"
    year: Optional[str] = None
    identifiers: List[str] = Field(default_factory=list)
    aliases: List[str] = Field(default_factory=list)
    citations: List[Citation] = Field(..., min_length=1)
    levels: Dict[ReadingLevel, LevelContent]

    @field_validator("levels")
    @classmethod
    def validate_levels(cls, v):
        missing = {"5", "8", "12"} - set(v)
        if missing:
            raise ValueError(f"Known summary missing levels: {sorted(missing)}")
        return v

    @property
    def authoritative(self) -> LevelContent:
        return self.levels["12"]


class SummaryRequest(_FrozenModel):
    title: str
    content: str = ""
    subjects: List[str] = Field(default_factory=list)
    identifier: Optional[str] = None
    type: Literal["bill", "proposition"] = "bill"
    year: Optional[str] = None

    @field_validator("year", mode="before")
    @classmethod
    def coerce_year(cls, v):
        if v is None or v == "":
            return None
        return str(v)


class AnswerSource(_FrozenModel):
    id: int = Field(..., ge=1)
    title: str
    url: str
    domain: str = ""
    type: SourceType = "Web"
    verified: bool = False


class LocalImpact(_FrozenModel):
    zip_code: str
    location: str = ""
    content: str


class AnswerSections(_FrozenModel):
    summary: Optional[str] = None
    key_provisions: Optional[List[str]] = None
    local_impact: Optional[LocalImpact] = None
    arguments_for: Optional[List[str]] = None
    arguments_against: Optional[List[str]] = None

    def is_empty(self) -> bool:
        return not any([
            self.summary and self.summary.strip(),
            self.key_provisions,
            self.local_impact and self.local_impact.content.strip(),
            self.arguments_for,
            self.arguments_against,
        ])


class Answer(_FrozenModel):
    """Structured response to a user query. Always carries at least one source."""
    policy_id: str
    policy_name: str
    level: GovernmentLevel = "State"
    category: str = "General"
    full_text_summary: str = ""
    sections: AnswerSections = Field(default_factory=AnswerSections)
    sources: List[AnswerSource] = Field(..., min_length=1)


class ClarifyingQuestion(_FrozenModel):
    question: str
    options: List[str] = Field(..., min_length=2, max_length=4)


class DisambiguationResult(_FrozenModel):
    needs_clarification: bool
    questions: Optional[List[ClarifyingQuestion]] = Field(default=None, max_length=2)
    refined_query: Optional[str] = None


class ConversationTurn(_FrozenModel):
    role: Literal["user", "assistant"]
    content: str


class FollowUpAnswer(_FrozenModel):
    answer: Answer
    suggestions: List[str] = Field(..., min_length=1, max_length=3)


class PolicyRecord(_FrozenModel):
    """Normalized bill/measure record from an official registry."""
    source: str
    jurisdiction: str
    identifier: str
    title: str
    abstract: str = ""
    summary: str = ""
    latest_action: str = ""
    impact_clause: str = ""
    subjects: List[str] = Field(default_factory=list)
    policy_area: str = ""
    actions: List[str] = Field(default_factory=list)
    url: str = ""
    year: Optional[str] = None
    is_resolution: bool = False

    @property
    def is_federal(self) -> bool:
        return self.jurisdiction.upper() == "US"


class Resolution(_FrozenModel):
    """Answer plus the tier that produced it and, when available, its cited summary."""
    answer: Answer
    tier: ResolutionTier
    summary: Optional[SummaryLike] = None
    known_key: Optional[str] = None


class PresentationSection(_FrozenModel):
    heading: str
    content: str
    citations: List[int] = Field(default_factory=list)
    confidence: Confidence = "verified"


class PresentationSource(_FrozenModel):
    id: int = Field(..., ge=1)
    type: SourceKind
    title: str
    url: str
    publisher: str = ""
    verified: bool = False


class PresentationCard(_FrozenModel):
    heading: str
    sections: List[PresentationSection] = Field(default_factory=list)
    sources: List[PresentationSource] = Field(default_factory=list)
