"""
Multi-source answer synthesis.

PolicySynthesizer walks an ordered list of resolvers (known summary, live
registry record, completion service) and returns the first Resolution any
of them produces. A resolver that raises is logged and treated as a miss.
When every tier misses, a clearly marked stub is returned, so callers always
receive a well-formed Answer. Only invalid input raises.
"""
import asyncio
import logging
import re
from typing import Any, Iterable, Optional, Union

from clearpolicy_core.api.congress import CongressRegistry
from clearpolicy_core.api.openstates import OpenStatesRegistry
from clearpolicy_core.config import get_api_keys, load_config
from clearpolicy_core.db.store import ConversationStore
from clearpolicy_core.exceptions import InvalidQueryError
from clearpolicy_core.known_summaries import known_level_summary, known_summary_by_key
from clearpolicy_core.llm.clients import CompletionClient, build_completion_client
from clearpolicy_core.llm.prompts import FOLLOW_UP_SCHEMA, FOLLOW_UP_SYSTEM_PROMPT, build_follow_up_prompt
from clearpolicy_core.models import Answer, ConversationTurn, FollowUpAnswer, Resolution, SummaryLike
from clearpolicy_core.reading import READING_LEVELS, simplify_summary
from clearpolicy_core.synthesis.answers import follow_up_from_completion, stub_follow_up, summary_from_answer
from clearpolicy_core.synthesis.resolvers import (
    AnswerResolver,
    PolicyQuery,
    default_resolvers,
    stub_resolution,
)

logger = logging.getLogger(__name__)

ZIP_PATTERN = re.compile(r"^\d{5}(?:-\d{4})?$")
MAX_HISTORY_TURNS = 6
MAX_TURN_CHARS = 200


def validate_query(query: Any, zip_code: Optional[str] = None) -> tuple[str, Optional[str]]:
    """
    Reject unusable input before any upstream call.

    Returns:
        (trimmed query, trimmed ZIP or None)

    Raises:
        InvalidQueryError: Empty query, or a ZIP that is not 5 or 5+4 digits
    """
    if not isinstance(query, str) or not query.strip():
        raise InvalidQueryError("query", "Query must not be empty")
    if zip_code is None:
        return query.strip(), None
    if not isinstance(zip_code, str):
        raise InvalidQueryError("zip_code", "ZIP code must be a string")
    zip_code = zip_code.strip()
    if not zip_code:
        return query.strip(), None
    if not ZIP_PATTERN.match(zip_code):
        raise InvalidQueryError("zip_code", "ZIP code must be 5 digits or ZIP+4 (12345-6789)")
    return query.strip(), zip_code


def _coerce_history(history: Iterable[Union[ConversationTurn, dict[str, Any]]]) -> list[ConversationTurn]:
    return [
        turn if isinstance(turn, ConversationTurn) else ConversationTurn.model_validate(turn)
        for turn in history or []
    ]


class PolicySynthesizer:
    """
    Resolve queries to Answers through ordered resolver tiers.

    Args:
        completion_client: Completion service, or None when unavailable
        congress: Federal registry client, or None
        openstates: State registry client, or None
        store: Conversation store for background persistence, or None
        resolvers: Explicit resolver order (default: known, live, completion)
        default_jurisdiction: State searched when a query names none
    """

    def __init__(
        self,
        completion_client: Optional[CompletionClient] = None,
        congress: Optional[CongressRegistry] = None,
        openstates: Optional[OpenStatesRegistry] = None,
        store: Optional[ConversationStore] = None,
        resolvers: Optional[Iterable[AnswerResolver]] = None,
        default_jurisdiction: str = "ca",
    ):
        self.completion_client = completion_client
        self.store = store
        if resolvers is None:
            resolvers = default_resolvers(completion_client, congress, openstates, default_jurisdiction)
        self.resolvers: list[AnswerResolver] = list(resolvers)
        self._pending: set[asyncio.Task] = set()

    @classmethod
    def from_config(
        cls,
        config: Optional[dict[str, Any]] = None,
        api_keys: Optional[dict[str, str]] = None,
    ) -> "PolicySynthesizer":
        config = config or load_config()
        api_keys = get_api_keys() if api_keys is None else api_keys
        registries = config.get("registries", {})
        timeout = float(registries.get("timeout", 15.0))

        congress = None
        congress_settings = registries.get("congress", {})
        if congress_settings.get("enabled", True) and api_keys.get("congress"):
            congress = CongressRegistry(
                api_keys["congress"],
                congress_number=str(congress_settings.get("congress_number", "119")),
                timeout=timeout,
            )

        openstates = None
        openstates_settings = registries.get("openstates", {})
        default_jurisdiction = openstates_settings.get("default_jurisdiction", "ca")
        if openstates_settings.get("enabled", True) and api_keys.get("openstates"):
            openstates = OpenStatesRegistry(
                api_keys["openstates"],
                default_jurisdiction=default_jurisdiction,
                timeout=timeout,
            )

        storage = config.get("storage", {})
        store = ConversationStore(storage.get("db_path", "clearpolicy.db")) if storage.get("enabled") else None

        return cls(
            completion_client=build_completion_client(config, api_keys),
            congress=congress,
            openstates=openstates,
            store=store,
            default_jurisdiction=default_jurisdiction,
        )

    async def resolve(self, query: str, zip_code: Optional[str] = None) -> Resolution:
        """
        Raises:
            InvalidQueryError: Empty query or malformed ZIP
        """
        text, zip_code = validate_query(query, zip_code)
        policy_query = PolicyQuery(text=text, zip_code=zip_code)

        for resolver in self.resolvers:
            try:
                resolution = await resolver.resolve(policy_query)
            except Exception as e:
                logger.warning("%s tier failed; falling through: %s", resolver.name, e)
                continue
            if resolution is not None:
                logger.info("Answer resolved by %s tier (%s)", resolution.tier, resolution.answer.policy_id)
                self._persist(text, resolution.answer)
                return resolution

        logger.warning("No tier resolved the query; returning stub answer")
        resolution = stub_resolution(text, zip_code)
        self._persist(text, resolution.answer)
        return resolution

    async def generate_policy_answer(self, query: str, zip_code: Optional[str] = None) -> Answer:
        resolution = await self.resolve(query, zip_code)
        return resolution.answer

    async def generate_follow_up_answer(
        self,
        message: str,
        history: Iterable[Union[ConversationTurn, dict[str, Any]]] = (),
        persona: Optional[str] = None,
    ) -> FollowUpAnswer:
        """
        Answer a follow-up question using the last few conversation turns.

        Raises:
            InvalidQueryError: Empty message
        """
        if not isinstance(message, str) or not message.strip():
            raise InvalidQueryError("message", "Follow-up message must not be empty")
        if self.completion_client is None:
            return stub_follow_up()

        prompt = build_follow_up_prompt(
            message.strip(),
            _coerce_history(history),
            persona=persona,
            max_turns=MAX_HISTORY_TURNS,
            max_turn_chars=MAX_TURN_CHARS,
        )
        try:
            payload = await self.completion_client.complete_json(
                FOLLOW_UP_SYSTEM_PROMPT,
                prompt,
                schema=FOLLOW_UP_SCHEMA,
                temperature=0.3,
            )
            return follow_up_from_completion(payload)
        except Exception as e:
            logger.warning("Follow-up completion failed; returning stub: %s", e)
            return stub_follow_up()

    def summary_for_level(self, resolution: Resolution, level: str = "12") -> SummaryLike:
        """
        One reading-level view of a resolution.

        Level 12 is the resolution's own summary. Curated entries serve their
        curated level content; everything else is derived from level 12.
        """
        if level not in READING_LEVELS:
            raise InvalidQueryError("level", f"Reading level must be one of {', '.join(READING_LEVELS)}")

        if resolution.known_key:
            entry = known_summary_by_key(resolution.known_key)
            if entry is not None:
                return known_level_summary(entry, level)

        base = resolution.summary or summary_from_answer(resolution.answer)
        if level == "12":
            return base
        return simplify_summary(base, level)

    def _persist(self, query: str, answer: Answer):
        if self.store is None:
            return
        task = asyncio.create_task(self._save_turn(query, answer))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _save_turn(self, query: str, answer: Answer):
        try:
            await asyncio.to_thread(self.store.save_answer_turn, query, answer)
        except Exception as e:
            logger.warning("Failed to persist conversation turn: %s", e)

    async def wait_for_pending_saves(self):
        """Let background saves finish (used before process exit and in tests)."""
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)
