"""
Query disambiguation.

A zero-network fast path recognizes queries that are already specific
(a year, a bill identifier, a long question, a state plus a measure word,
or an interrogative opener). Anything else goes to the completion service,
when one is configured, under a strict JSON contract. Every failure mode
degrades to "no clarification needed" with the query passed through, so
disambiguation can never block a search.
"""
import asyncio
import logging
import re
from typing import Any, Optional

from jsonschema import ValidationError as SchemaValidationError
from jsonschema import validate

from clearpolicy_core.instruments import contains_year, detect_state, parse_instrument_refs
from clearpolicy_core.llm.clients import CompletionClient
from clearpolicy_core.llm.prompts import CLARIFY_RESPONSE_SCHEMA, CLARIFY_SYSTEM_PROMPT
from clearpolicy_core.models import ClarifyingQuestion, DisambiguationResult

logger = logging.getLogger(__name__)

MAX_QUESTIONS = 2
MIN_OPTIONS = 2
MAX_OPTIONS = 4
LONG_QUESTION_CHARS = 50

_MEASURE_WORD = re.compile(r"\b(?:prop|proposition|bill|measure)\b", re.IGNORECASE)
_INTERROGATIVE = re.compile(
    r"^(?:what is|explain|how does|why|who|when|arguments|pros and cons)",
    re.IGNORECASE,
)

_POLICY_SIGNALS = re.compile(
    r"\b(?:bill|act|law|legislation|statute|regulation|ordinance|amendment|proposition|prop|measure"
    r"|ballot|vote|policy|policies|zoning|tax|tariff|healthcare|medicaid|medicare|social\s+security"
    r"|immigration|housing|education|criminal\s+justice|gun\s+control|climate|environment|epa|fda"
    r"|sec\s+|fcc|irs|congress|senate|representative|governor|mayor|scotus|supreme\s+court"
    r"|executive\s+order|ab\s*\d|sb\s*\d|hr\s*\d|hb\s*\d|h\.?r\.?\s*\d)\b",
    re.IGNORECASE,
)


def is_policy_query(query: str) -> bool:
    """True when the query mentions legislation, government or a policy area."""
    return bool(_POLICY_SIGNALS.search(query or ""))


def is_specific_query(query: str) -> bool:
    """True when the query can be searched as-is without asking the user anything."""
    q = (query or "").strip()
    if not q:
        return False
    if contains_year(q):
        return True
    if any(ref.kind == "bill" for ref in parse_instrument_refs(q)):
        return True
    if len(q) > LONG_QUESTION_CHARS and q.endswith("?"):
        return True
    if detect_state(q) and _MEASURE_WORD.search(q):
        return True
    return bool(_INTERROGATIVE.match(q))


def _passthrough(query: str) -> DisambiguationResult:
    return DisambiguationResult(needs_clarification=False, refined_query=query)


def _clean_questions(raw_questions: list[dict[str, Any]]) -> list[ClarifyingQuestion]:
    questions: list[ClarifyingQuestion] = []
    for raw in raw_questions:
        text = raw["question"].strip()
        options: list[str] = []
        for option in raw["options"]:
            option = option.strip()
            if option and option.lower() not in (o.lower() for o in options):
                options.append(option)
        options = options[:MAX_OPTIONS]
        if text and len(options) >= MIN_OPTIONS:
            questions.append(ClarifyingQuestion(question=text, options=options))
        if len(questions) == MAX_QUESTIONS:
            break
    return questions


class QueryDisambiguator:
    """
    Decide whether a free-text query needs clarifying questions.

    Args:
        completion_client: Injected completion service, or None when unavailable
        timeout: Overall budget in seconds for the completion call
    """

    def __init__(self, completion_client: Optional[CompletionClient] = None, timeout: float = 8.0):
        self.completion_client = completion_client
        self.timeout = timeout

    async def disambiguate(self, query: str) -> DisambiguationResult:
        trimmed = (query or "").strip()
        if not trimmed:
            return _passthrough(query or "")
        if is_specific_query(trimmed):
            return _passthrough(trimmed)
        if self.completion_client is None:
            return _passthrough(trimmed)

        try:
            payload = await asyncio.wait_for(
                self.completion_client.complete_json(
                    CLARIFY_SYSTEM_PROMPT,
                    trimmed,
                    schema=CLARIFY_RESPONSE_SCHEMA,
                    temperature=0.1,
                    max_tokens=300,
                ),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            logger.warning("Clarification timed out after %.1fs; passing query through", self.timeout)
            return _passthrough(trimmed)
        except Exception as e:
            logger.warning("Clarification failed; passing query through: %s", e)
            return _passthrough(trimmed)

        return self._interpret(payload, trimmed)

    def _interpret(self, payload: dict[str, Any], trimmed: str) -> DisambiguationResult:
        payload = {k: v for k, v in payload.items() if v is not None}
        try:
            validate(instance=payload, schema=CLARIFY_RESPONSE_SCHEMA)
        except SchemaValidationError as e:
            logger.warning("Clarification response failed schema validation: %s", e.message)
            return _passthrough(trimmed)

        if payload["needs_clarification"]:
            questions = _clean_questions(payload.get("questions", []))
            if questions:
                return DisambiguationResult(needs_clarification=True, questions=questions)
            logger.info("Clarification requested without usable questions; passing query through")

        refined = payload.get("refined_query", "")
        return _passthrough(refined.strip() if refined.strip() else trimmed)


async def disambiguate(
    query: str,
    completion_client: Optional[CompletionClient] = None,
    timeout: float = 8.0,
) -> DisambiguationResult:
    return await QueryDisambiguator(completion_client, timeout=timeout).disambiguate(query)
