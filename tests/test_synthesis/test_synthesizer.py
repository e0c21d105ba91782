# tests/test_synthesis/test_synthesizer.py
"""
Tests for the tiered synthesizer.

Tier order is known summary, live registry record, completion service,
stub. Each tier that misses or raises falls through; only invalid input
raises to the caller.
"""
import copy
import sqlite3
from unittest.mock import AsyncMock, MagicMock

import pytest

from clearpolicy_core.config import DEFAULT_CONFIG
from clearpolicy_core.db.store import ConversationStore
from clearpolicy_core.exceptions import InvalidQueryError
from clearpolicy_core.known_summaries import known_level_summary, known_summary_by_key
from clearpolicy_core.llm.prompts import FOLLOW_UP_SCHEMA, GENERAL_ANSWER_SCHEMA, POLICY_ANSWER_SCHEMA
from clearpolicy_core.models import ConversationTurn
from clearpolicy_core.synthesis.answers import FALLBACK_SUGGESTIONS, STUB_MARKER
from clearpolicy_core.synthesis.resolvers import (
    AnswerResolver,
    CompletionResolver,
    KnownSummaryResolver,
    LiveRecordResolver,
    PolicyQuery,
)
from clearpolicy_core.synthesis.synthesizer import PolicySynthesizer, validate_query


class ExplodingResolver(AnswerResolver):
    name = "exploding"

    async def resolve(self, query):
        raise RuntimeError("registry exploded")


def _registry(method, result=None, side_effect=None):
    registry = MagicMock()
    setattr(registry, method, AsyncMock(return_value=result, side_effect=side_effect))
    return registry


# =============================================================================
# INPUT VALIDATION
# =============================================================================

class TestValidateQuery:
    @pytest.mark.parametrize("query", ["", "   ", None, 42])
    def test_empty_query_rejected(self, query):
        with pytest.raises(InvalidQueryError) as exc_info:
            validate_query(query)
        assert exc_info.value.field == "query"

    @pytest.mark.parametrize("zip_code", ["9410", "941034", "abcde", "94103-12", 94103])
    def test_bad_zip_rejected(self, zip_code):
        with pytest.raises(InvalidQueryError) as exc_info:
            validate_query("rent control", zip_code)
        assert exc_info.value.field == "zip_code"
        assert exc_info.value.to_dict()["error"] == "invalid_query"

    def test_valid_inputs_trimmed(self):
        assert validate_query("  rent control ", " 94103-1234 ") == ("rent control", "94103-1234")
        assert validate_query("rent control", "  ") == ("rent control", None)

    @pytest.mark.asyncio
    async def test_synthesizer_rejects_before_any_tier(self, scripted_client):
        client = scripted_client([])
        with pytest.raises(InvalidQueryError):
            await PolicySynthesizer(completion_client=client).resolve("rent control", "123")
        assert client.calls == []


# =============================================================================
# TIER PRECEDENCE
# =============================================================================

class TestKnownTier:
    @pytest.mark.asyncio
    async def test_known_summary_wins_over_completion(self, scripted_client, policy_payload):
        client = scripted_client([policy_payload])
        openstates = _registry("find")
        synthesizer = PolicySynthesizer(completion_client=client, openstates=openstates)

        resolution = await synthesizer.resolve("What is Prop 47?")

        entry = known_summary_by_key("ca-prop-47-2014")
        assert resolution.tier == "known"
        assert resolution.known_key == "ca-prop-47-2014"
        assert [s.url for s in resolution.answer.sources] == [c.url for c in entry.citations]
        assert resolution.summary == known_level_summary(entry, "12")
        assert client.calls == []
        openstates.find.assert_not_called()

    @pytest.mark.asyncio
    async def test_known_resolver_uses_query_year(self):
        resolver = KnownSummaryResolver()
        resolution = await resolver.resolve(PolicyQuery(text="prop 50 2016"))
        assert resolution.known_key == "ca-prop-50-2016"


class TestLiveTier:
    @pytest.mark.asyncio
    async def test_state_bill_searched_in_default_jurisdiction(self, sample_state_record):
        openstates = _registry("find", sample_state_record)
        resolver = LiveRecordResolver(openstates=openstates, default_jurisdiction="CA")

        resolution = await resolver.resolve(PolicyQuery(text="AB 1234 school meals"))

        assert resolution.tier == "live"
        assert resolution.answer.policy_id == "live-ca-ab-1234"
        assert resolution.summary.source_ratio > 0
        ref, jurisdiction = openstates.find.call_args.args
        assert ref.label == "AB 1234"
        assert jurisdiction == "ca"

    @pytest.mark.asyncio
    async def test_named_state_is_searched(self, sample_state_record):
        openstates = _registry("find", sample_state_record)
        await LiveRecordResolver(openstates=openstates).resolve(PolicyQuery(text="Texas HB 1234"))
        assert openstates.find.call_args.args[1] == "tx"

    @pytest.mark.asyncio
    async def test_federal_prefers_congress(self, sample_federal_record, sample_state_record):
        congress = _registry("lookup", sample_federal_record)
        openstates = _registry("find", sample_state_record)

        resolution = await LiveRecordResolver(congress, openstates).resolve(PolicyQuery(text="H.R. 50 in 2025"))

        assert resolution.answer.level == "Federal"
        assert congress.lookup.call_args.args[1] == "2025"
        assert openstates.find.call_args.args[1] == "us"

    @pytest.mark.asyncio
    async def test_federal_falls_back_to_open_states(self, sample_federal_record):
        congress = _registry("lookup", side_effect=RuntimeError("timeout"))
        openstates = _registry("find", sample_federal_record)

        resolution = await LiveRecordResolver(congress, openstates).resolve(PolicyQuery(text="H.R. 50"))
        assert resolution.tier == "live"

    @pytest.mark.asyncio
    async def test_no_instrument_reference_skips_registries(self):
        openstates = _registry("find")
        assert await LiveRecordResolver(openstates=openstates).resolve(PolicyQuery(text="rent control")) is None
        openstates.find.assert_not_called()

    @pytest.mark.asyncio
    async def test_registry_miss_falls_through_to_completion(self, scripted_client, policy_payload):
        openstates = _registry("find", None)
        synthesizer = PolicySynthesizer(completion_client=scripted_client([policy_payload]), openstates=openstates)

        resolution = await synthesizer.resolve("AB 9999 rent caps")

        assert resolution.tier == "completion"
        openstates.find.assert_awaited_once()


class TestCompletionTier:
    @pytest.mark.asyncio
    async def test_completion_answer(self, scripted_client, policy_payload):
        client = scripted_client([policy_payload])
        resolution = await PolicySynthesizer(completion_client=client).resolve("rent control law", "94103")

        assert resolution.tier == "completion"
        assert resolution.answer.policy_name == "California Rent Stabilization"
        [call] = client.calls
        assert call["schema"] == POLICY_ANSWER_SCHEMA
        assert "94103" in call["prompt"]
        assert "rent control" in call["prompt"]

    @pytest.mark.asyncio
    async def test_general_question_uses_general_prompt(self, scripted_client):
        client = scripted_client([{
            "title": "Mona Lisa",
            "category": "Art",
            "answer": "Leonardo da Vinci painted the Mona Lisa in the early 1500s.",
            "keyFacts": ["Painted around 1503", "  ", 5],
            "sources": [{"title": "Louvre", "url": "https://www.louvre.fr/en"}],
        }])
        resolution = await PolicySynthesizer(completion_client=client).resolve("who painted the mona lisa")

        assert resolution.tier == "completion"
        answer = resolution.answer
        assert answer.policy_name == "Mona Lisa"
        assert answer.category == "Art"
        assert answer.sections.summary == answer.full_text_summary
        assert answer.sections.key_provisions == ["Painted around 1503"]
        assert answer.sources[0].domain == "louvre.fr"
        assert answer.sources[0].verified is False
        [call] = client.calls
        assert call["schema"] == GENERAL_ANSWER_SCHEMA

    @pytest.mark.asyncio
    @pytest.mark.parametrize("general_response", ["not json at all", {"title": "No answer text"}])
    async def test_general_failure_falls_back_to_policy_prompt(self, scripted_client, policy_payload, general_response):
        client = scripted_client([general_response, policy_payload])
        resolution = await PolicySynthesizer(completion_client=client).resolve("who painted the mona lisa")

        assert resolution.tier == "completion"
        assert resolution.answer.policy_name == "California Rent Stabilization"
        assert [c["schema"] for c in client.calls] == [GENERAL_ANSWER_SCHEMA, POLICY_ANSWER_SCHEMA]

    @pytest.mark.asyncio
    async def test_resolver_exception_is_a_miss(self, scripted_client, policy_payload):
        resolvers = [ExplodingResolver(), CompletionResolver(scripted_client([policy_payload]))]
        resolution = await PolicySynthesizer(resolvers=resolvers).resolve("rent control law")
        assert resolution.tier == "completion"

    @pytest.mark.asyncio
    async def test_unusable_payload_falls_to_stub(self, scripted_client):
        resolution = await PolicySynthesizer(completion_client=scripted_client([{}])).resolve("rent control law")
        assert resolution.tier == "stub"


class TestStubTier:
    @pytest.mark.asyncio
    async def test_no_services_configured(self):
        answer = await PolicySynthesizer().generate_policy_answer("rent control", "94103")

        assert answer.policy_name.startswith(STUB_MARKER)
        assert answer.sections.local_impact.zip_code == "94103"
        assert answer.sources[0].verified is False

    @pytest.mark.asyncio
    async def test_failing_completion(self, failing_client):
        resolution = await PolicySynthesizer(completion_client=failing_client).resolve("rent control")
        assert resolution.tier == "stub"
        assert resolution.summary.source_ratio == 0.0


# =============================================================================
# FOLLOW-UPS
# =============================================================================

class TestFollowUp:
    @pytest.mark.asyncio
    async def test_follow_up_uses_recent_history(self, scripted_client):
        client = scripted_client([{
            "policyName": "Renters",
            "fullTextSummary": "Covered renters get capped increases.",
            "suggestions": ["What units are exempt?"],
        }])
        history = [{"role": "user" if i % 2 == 0 else "assistant", "content": f"turn-{i} " + "x" * 300} for i in range(8)]
        history.append(ConversationTurn(role="user", content="turn-8"))

        follow_up = await PolicySynthesizer(completion_client=client).generate_follow_up_answer(
            "How does this affect renters?", history, persona="renter"
        )

        assert follow_up.answer.full_text_summary == "Covered renters get capped increases."
        assert follow_up.suggestions == ["What units are exempt?"]
        [call] = client.calls
        assert call["schema"] == FOLLOW_UP_SCHEMA
        assert "turn-2" not in call["prompt"]
        assert "turn-3" in call["prompt"]
        assert "x" * 250 not in call["prompt"]
        assert "renter perspective" in call["prompt"]

    @pytest.mark.asyncio
    async def test_empty_message_rejected(self):
        with pytest.raises(InvalidQueryError) as exc_info:
            await PolicySynthesizer().generate_follow_up_answer("  ")
        assert exc_info.value.field == "message"

    @pytest.mark.asyncio
    async def test_no_client_returns_stub(self):
        follow_up = await PolicySynthesizer().generate_follow_up_answer("What about renters?")
        assert follow_up.suggestions == FALLBACK_SUGGESTIONS

    @pytest.mark.asyncio
    async def test_failure_returns_stub(self, failing_client):
        follow_up = await PolicySynthesizer(completion_client=failing_client).generate_follow_up_answer("What about renters?")
        assert follow_up.answer.policy_name.startswith(STUB_MARKER)


# =============================================================================
# READING LEVELS
# =============================================================================

class TestSummaryForLevel:
    @pytest.mark.asyncio
    async def test_known_entry_serves_curated_level(self):
        synthesizer = PolicySynthesizer()
        resolution = await synthesizer.resolve("Prop 17")

        entry = known_summary_by_key("ca-prop-17-2020")
        level_5 = synthesizer.summary_for_level(resolution, "5")
        assert level_5.tldr == entry.levels["5"].tldr
        assert level_5.citations == entry.citations

    @pytest.mark.asyncio
    async def test_derived_levels_for_completion(self, scripted_client, policy_payload):
        synthesizer = PolicySynthesizer(completion_client=scripted_client([policy_payload]))
        resolution = await synthesizer.resolve("rent control law")

        assert synthesizer.summary_for_level(resolution, "12") == resolution.summary
        level_8 = synthesizer.summary_for_level(resolution, "8")
        assert level_8 is not resolution.summary
        assert level_8.citations == resolution.summary.citations

    @pytest.mark.asyncio
    async def test_invalid_level(self):
        synthesizer = PolicySynthesizer()
        resolution = await synthesizer.resolve("rent control")
        with pytest.raises(InvalidQueryError):
            synthesizer.summary_for_level(resolution, "3")


# =============================================================================
# PERSISTENCE
# =============================================================================

class TestPersistence:
    @pytest.mark.asyncio
    async def test_answer_saved_in_background(self, tmp_db_path):
        store = ConversationStore(tmp_db_path)
        synthesizer = PolicySynthesizer(store=store)

        answer = await synthesizer.generate_policy_answer("Prop 47")
        await synthesizer.wait_for_pending_saves()

        conn = sqlite3.connect(tmp_db_path)
        try:
            [(conversation_id, policy_name)] = conn.execute(
                "SELECT conversation_id, policy_name FROM conversations"
            ).fetchall()
        finally:
            conn.close()
        assert policy_name == answer.policy_name
        assert len(store.list_messages(conversation_id)) == 2

    @pytest.mark.asyncio
    async def test_persistence_failure_is_swallowed(self):
        store = MagicMock()
        store.save_answer_turn.side_effect = sqlite3.OperationalError("database is locked")
        synthesizer = PolicySynthesizer(store=store)

        answer = await synthesizer.generate_policy_answer("rent control")
        await synthesizer.wait_for_pending_saves()

        assert answer.policy_name.startswith(STUB_MARKER)
        store.save_answer_turn.assert_called_once()


# =============================================================================
# CONFIGURATION
# =============================================================================

class TestFromConfig:
    def test_without_keys_everything_is_optional(self):
        synthesizer = PolicySynthesizer.from_config(copy.deepcopy(DEFAULT_CONFIG), api_keys={})

        assert synthesizer.completion_client is None
        assert synthesizer.store is None
        live = next(r for r in synthesizer.resolvers if isinstance(r, LiveRecordResolver))
        assert live.congress is None and live.openstates is None

    def test_registries_built_from_keys(self, tmp_db_path):
        config = copy.deepcopy(DEFAULT_CONFIG)
        config["registries"]["openstates"]["default_jurisdiction"] = "ny"
        config["storage"] = {"enabled": True, "db_path": tmp_db_path}

        synthesizer = PolicySynthesizer.from_config(config, api_keys={"congress": "c-key", "openstates": "o-key"})

        live = next(r for r in synthesizer.resolvers if isinstance(r, LiveRecordResolver))
        assert live.congress.congress_number == "119"
        assert live.openstates.default_jurisdiction == "ny"
        assert live.default_jurisdiction == "ny"
        assert isinstance(synthesizer.store, ConversationStore)

    def test_disabled_registry_not_built(self):
        config = copy.deepcopy(DEFAULT_CONFIG)
        config["registries"]["congress"]["enabled"] = False

        synthesizer = PolicySynthesizer.from_config(config, api_keys={"congress": "c-key"})
        live = next(r for r in synthesizer.resolvers if isinstance(r, LiveRecordResolver))
        assert live.congress is None
