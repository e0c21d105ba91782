"""
Pytest fixtures and configuration.

Following TDD principles:
- Fixtures provide real-world-like test data
- Mocks used only when unavoidable (completion service, registries)
- No test touches the network; registries run on httpx.MockTransport
"""
import json
from typing import Any

import pytest
from dotenv import load_dotenv

from clearpolicy_core.llm.clients import CompletionClient
from clearpolicy_core.models import (
    Answer,
    AnswerSections,
    AnswerSource,
    Citation,
    LocalImpact,
    PolicyRecord,
    SummaryLike,
)

load_dotenv()


# =============================================================================
# COMPLETION SERVICE FAKES
# =============================================================================

class ScriptedCompletionClient(CompletionClient):
    """
    Completion client that replays scripted responses.

    Each entry is either raw text (returned as the provider's output) or an
    exception instance (raised from the provider call). The real retry,
    parsing and cost-logging logic in CompletionClient runs unchanged.
    """

    provider = "scripted"

    def __init__(self, responses: list[Any], **kwargs):
        kwargs.setdefault("base_delay", 0.0)
        kwargs.setdefault("max_retries", 1)
        super().__init__(model="scripted-model", **kwargs)
        self.client = object()
        self.responses = list(responses)
        self.calls: list[dict[str, Any]] = []

    async def _complete(self, system, prompt, schema, temperature, max_tokens) -> str:
        self.calls.append({
            "system": system,
            "prompt": prompt,
            "schema": schema,
            "temperature": temperature,
            "max_tokens": max_tokens,
        })
        if not self.responses:
            raise RuntimeError("No scripted response left")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        if isinstance(response, (dict, list)):
            return json.dumps(response)
        return response


@pytest.fixture
def scripted_client():
    """Factory: scripted_client([payload, ...], **client_kwargs)."""
    def _make(responses: list[Any], **kwargs) -> ScriptedCompletionClient:
        return ScriptedCompletionClient(responses, **kwargs)
    return _make


@pytest.fixture
def failing_client() -> ScriptedCompletionClient:
    """Client whose every call fails with a provider error."""
    return ScriptedCompletionClient([RuntimeError("provider down")] * 5)


# =============================================================================
# SAMPLE DATA FIXTURES
# =============================================================================

@pytest.fixture
def policy_payload() -> dict[str, Any]:
    """Well-formed completion payload for a policy answer."""
    return {
        "policyName": "California Rent Stabilization",
        "level": "State",
        "category": "Housing",
        "fullTextSummary": "Rent stabilization limits annual rent increases for covered units.",
        "sections": {
            "summary": "Limits annual rent increases for covered units [1].",
            "keyProvisions": ["Caps increases at 5% plus inflation [1]", "Applies to buildings over 15 years old [2]"],
            "argumentsFor": ["Keeps tenants housed"],
            "argumentsAgainst": ["May reduce new construction"],
        },
        "sources": [
            {"title": "AB 1482 text", "url": "https://leginfo.legislature.ca.gov/ab1482", "type": "State"},
            {"title": "LAO overview", "url": "https://lao.ca.gov/rent", "type": "Think tank"},
        ],
    }


@pytest.fixture
def sample_state_record() -> PolicyRecord:
    """Open States style record for a California bill."""
    return PolicyRecord(
        source="Open States",
        jurisdiction="CA",
        identifier="AB 1234",
        title="School nutrition programs",
        abstract=(
            "This bill concerns school meals. It would require the State Department of Education "
            "to establish a grant program for school districts that fund healthy breakfast options. "
            "The bill also makes technical changes."
        ),
        latest_action="Referred to Committee on Education.",
        subjects=["Education", "Nutrition"],
        actions=["Introduced", "Read first time", "Referred to Committee on Education."],
        url="https://leginfo.legislature.ca.gov/faces/billNavClient.xhtml?bill_id=202520260AB1234",
        year="2025",
    )


@pytest.fixture
def sample_federal_record() -> PolicyRecord:
    """Congress.gov style record for a federal bill."""
    return PolicyRecord(
        source="Congress.gov",
        jurisdiction="US",
        identifier="H.R. 50",
        title="Voting Access Improvement Act",
        abstract="This bill requires states to offer early voting for at least 14 days before a federal election.",
        summary="This bill requires states to offer early voting for at least 14 days before a federal election.",
        latest_action="Referred to the House Committee on House Administration.",
        subjects=["Elections, voting, political campaign regulation"],
        policy_area="Government Operations and Politics",
        url="https://www.congress.gov/bill/119th-congress/house-bill/50",
        year="2025",
    )


@pytest.fixture
def sample_answer() -> Answer:
    """Answer with all sections populated and non-sequential source ids."""
    return Answer(
        policy_id="policy-test",
        policy_name="Clean Water Funding Act",
        level="State",
        category="Environment",
        full_text_summary="Funds water infrastructure upgrades.",
        sections=AnswerSections(
            summary="Funds water infrastructure upgrades [3].",
            key_provisions=["Creates a $2B bond [3]", "Prioritizes rural districts [7]"],
            local_impact=LocalImpact(zip_code="94103", location="San Francisco, CA", content="Two local plants qualify [7]."),
            arguments_for=["Modernizes aging pipes"],
            arguments_against=["Adds to state debt [9]"],
        ),
        sources=[
            AnswerSource(id=3, title="Bill text", url="https://leginfo.ca.gov/sb1", domain="leginfo.ca.gov", type="State", verified=True),
            AnswerSource(id=7, title="Local news", url="https://news.example.org/a", domain="news.example.org", type="Web"),
        ],
    )


@pytest.fixture
def located_summary() -> SummaryLike:
    """Summary with genuine citations on tldr and what, a placeholder on who."""
    return SummaryLike(
        tldr="Restores voting rights to people on parole.",
        what_it_does="Amends the state constitution.",
        who_affected="People on parole.",
        pros="Supports reintegration.",
        cons="Some want full sentence completion first.",
        citations=[
            Citation(quote="restores the right to vote", source_name="Ballotpedia", url="https://ballotpedia.org/p17", location="tldr"),
            Citation(quote="amends the California Constitution", source_name="LAO", url="https://lao.ca.gov/p17", location="what"),
            Citation(quote="50,000 people on parole", source_name="Placeholder", url="https://example.com", location="who"),
        ],
    )


@pytest.fixture
def tmp_db_path(tmp_path) -> str:
    return str(tmp_path / "clearpolicy_test.db")
