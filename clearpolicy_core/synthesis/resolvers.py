"""
Answer resolvers, tried in precedence order by the synthesizer.

Each resolver either produces a Resolution or returns None to let the next
tier try. Order is data: the synthesizer walks a list, so a known summary
can never be overridden by a live record or a completion.
"""
import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Awaitable, Iterable, Optional

from clearpolicy_core.api.congress import CongressRegistry
from clearpolicy_core.api.openstates import OpenStatesRegistry
from clearpolicy_core.disambiguation import is_policy_query
from clearpolicy_core.instruments import (
    InstrumentRef,
    detect_state,
    extract_year,
    parse_instrument_refs,
)
from clearpolicy_core.known_summaries import known_level_summary, match_known_summary
from clearpolicy_core.llm.clients import CompletionClient
from clearpolicy_core.llm.prompts import (
    GENERAL_ANSWER_SCHEMA,
    GENERAL_SYSTEM_PROMPT,
    POLICY_ANSWER_SCHEMA,
    POLICY_SYSTEM_PROMPT,
    build_general_prompt,
    build_policy_prompt,
)
from clearpolicy_core.models import Answer, KnownSummary, PolicyRecord, Resolution, SummaryRequest
from clearpolicy_core.synthesis.answers import (
    answer_from_completion,
    answer_from_general,
    answer_from_known,
    answer_from_record,
    stub_answer,
    summary_from_answer,
)
from clearpolicy_core.synthesis.extraction import summarize_record

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PolicyQuery:
    """A validated query plus the structure parsed out of it."""
    text: str
    zip_code: Optional[str] = None

    @property
    def refs(self) -> list[InstrumentRef]:
        return parse_instrument_refs(self.text)

    @property
    def year(self) -> Optional[str]:
        return extract_year(self.text)

    @property
    def state(self) -> Optional[str]:
        return detect_state(self.text)


class AnswerResolver(ABC):
    name: str = "resolver"

    @abstractmethod
    async def resolve(self, query: PolicyQuery) -> Optional[Resolution]:
        """Return a Resolution, or None to fall through to the next tier."""


class KnownSummaryResolver(AnswerResolver):
    name = "known"

    def __init__(self, table: Optional[Iterable[KnownSummary]] = None):
        self.table = tuple(table) if table is not None else None

    async def resolve(self, query: PolicyQuery) -> Optional[Resolution]:
        entry = match_known_summary(SummaryRequest(title=query.text, year=query.year), self.table)
        if entry is None:
            return None
        return Resolution(
            answer=answer_from_known(entry),
            tier="known",
            summary=known_level_summary(entry, "12"),
            known_key=entry.key,
        )


async def _guarded(lookup: Awaitable[Optional[PolicyRecord]], label: str) -> Optional[PolicyRecord]:
    try:
        return await lookup
    except Exception as e:
        logger.warning("%s lookup failed: %s", label, e)
        return None


async def _no_record() -> Optional[PolicyRecord]:
    return None


class LiveRecordResolver(AnswerResolver):
    """
    Official registry lookup for queries that name a specific instrument.

    Federal references query Congress.gov and Open States ("us") together;
    Congress.gov wins when both answer. State references query Open States
    in the named state, or the default jurisdiction.
    """

    name = "live"

    def __init__(
        self,
        congress: Optional[CongressRegistry] = None,
        openstates: Optional[OpenStatesRegistry] = None,
        default_jurisdiction: str = "ca",
    ):
        self.congress = congress
        self.openstates = openstates
        self.default_jurisdiction = default_jurisdiction

    async def _fetch(self, ref: InstrumentRef, query: PolicyQuery) -> Optional[PolicyRecord]:
        if ref.is_federal:
            federal = self.congress.lookup(ref, query.year) if self.congress else _no_record()
            mirror = self.openstates.find(ref, "us") if self.openstates else _no_record()
            congress_record, openstates_record = await asyncio.gather(
                _guarded(federal, "Congress.gov"),
                _guarded(mirror, "Open States (us)"),
            )
            return congress_record or openstates_record

        if self.openstates is None:
            return None
        jurisdiction = (query.state or self.default_jurisdiction).lower()
        return await _guarded(self.openstates.find(ref, jurisdiction), f"Open States ({jurisdiction})")

    async def resolve(self, query: PolicyQuery) -> Optional[Resolution]:
        refs = query.refs
        if not refs or (self.congress is None and self.openstates is None):
            return None

        record = await self._fetch(refs[0], query)
        if record is None:
            return None

        summary = summarize_record(record)
        return Resolution(answer=answer_from_record(record, summary), tier="live", summary=summary)


class CompletionResolver(AnswerResolver):
    """
    Completion-service answer.

    Queries with no policy signal get a general-knowledge prompt first; if
    that fails for any reason the policy prompt is used instead.
    """

    name = "completion"

    def __init__(self, completion_client: Optional[CompletionClient] = None):
        self.completion_client = completion_client

    async def _general_answer(self, query: PolicyQuery) -> Answer:
        payload = await self.completion_client.complete_json(
            GENERAL_SYSTEM_PROMPT,
            build_general_prompt(query.text),
            schema=GENERAL_ANSWER_SCHEMA,
            temperature=0.3,
        )
        return answer_from_general(payload, query.text)

    async def resolve(self, query: PolicyQuery) -> Optional[Resolution]:
        if self.completion_client is None:
            return None

        if not is_policy_query(query.text):
            try:
                answer = await self._general_answer(query)
                return Resolution(answer=answer, tier="completion", summary=summary_from_answer(answer))
            except Exception as e:
                logger.warning("General answer failed; falling back to policy prompt: %s", e)

        payload = await self.completion_client.complete_json(
            POLICY_SYSTEM_PROMPT,
            build_policy_prompt(query.text, query.zip_code),
            schema=POLICY_ANSWER_SCHEMA,
            temperature=0.3,
        )
        answer = answer_from_completion(payload, query.text, query.zip_code)
        return Resolution(answer=answer, tier="completion", summary=summary_from_answer(answer))


def stub_resolution(query: str, zip_code: Optional[str] = None) -> Resolution:
    answer = stub_answer(query, zip_code)
    return Resolution(answer=answer, tier="stub", summary=summary_from_answer(answer))


def default_resolvers(
    completion_client: Optional[CompletionClient] = None,
    congress: Optional[CongressRegistry] = None,
    openstates: Optional[OpenStatesRegistry] = None,
    default_jurisdiction: str = "ca",
) -> list[AnswerResolver]:
    return [
        KnownSummaryResolver(),
        LiveRecordResolver(congress, openstates, default_jurisdiction),
        CompletionResolver(completion_client),
    ]
