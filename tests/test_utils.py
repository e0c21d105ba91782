# tests/test_utils.py
"""
Tests for URL helpers and LLM cost tracking.
"""
import pytest

from clearpolicy_core import utils


@pytest.fixture(autouse=True)
def fresh_tracker():
    utils.reset_cost_tracker()
    yield
    utils.reset_cost_tracker()


@pytest.mark.parametrize("url,domain", [
    ("https://www.congress.gov/bill/119th-congress/house-bill/50", "congress.gov"),
    ("https://lao.ca.gov/ballot/2014/prop47", "lao.ca.gov"),
    ("not a url", ""),
    ("", ""),
])
def test_domain_from_url(url, domain):
    assert utils.domain_from_url(url) == domain


def test_estimate_tokens():
    assert utils.estimate_tokens("") == 0
    assert utils.estimate_tokens("x" * 40) == 10


def test_log_llm_cost_accumulates_by_model():
    utils.log_llm_cost("gpt-4o-mini", "p" * 4000, "r" * 400)
    utils.log_llm_cost("gpt-4o-mini", "p" * 4000, "r" * 400)
    utils.log_llm_cost("unpriced-model", "p" * 4000, "")

    summary = utils.get_cost_summary()

    assert summary["total_calls"] == 3
    assert summary["total_input_tokens"] == 3000
    assert summary["total_output_tokens"] == 200
    assert summary["by_model"]["gpt-4o-mini"]["calls"] == 2
    # unpriced models fall back to the default rate
    assert summary["by_model"]["unpriced-model"]["cost"] == pytest.approx(0.01)
    assert summary["estimated_cost_usd"] == pytest.approx(0.01 + 2 * (0.00015 + 0.0001 * 0.6), abs=1e-4)


def test_reset_cost_tracker():
    utils.log_llm_cost("gpt-4o", "prompt", "response")
    utils.reset_cost_tracker()
    assert utils.get_cost_summary()["total_calls"] == 0
