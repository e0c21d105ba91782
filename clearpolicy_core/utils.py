from dataclasses import dataclass, field
from datetime import datetime
from urllib.parse import urlparse


def domain_from_url(url: str) -> str:
    """Hostname without a leading 'www.'; empty string when the URL has none."""
    try:
        host = urlparse(url or "").hostname or ""
    except ValueError:
        return ""
    return host[4:] if host.startswith("www.") else host


# =============================================================================
# LLM COST TRACKING
# =============================================================================

# USD per 1K tokens
LLM_COSTS = {
    "gpt-4o-mini": {"input": 0.00015, "output": 0.0006},
    "gpt-4o": {"input": 0.0025, "output": 0.01},
    "gemini-2.5-flash": {"input": 0.0003, "output": 0.0025},
    "claude-sonnet-4-5": {"input": 0.003, "output": 0.015},
}


@dataclass
class LLMUsage:
    """Track LLM usage per call."""
    model: str
    input_tokens: int
    output_tokens: int
    timestamp: datetime = field(default_factory=datetime.now)

    @property
    def estimated_cost(self) -> float:
        costs = LLM_COSTS.get(self.model, {"input": 0.01, "output": 0.03})
        input_cost = (self.input_tokens / 1000) * costs["input"]
        output_cost = (self.output_tokens / 1000) * costs["output"]
        return input_cost + output_cost


@dataclass
class CostTracker:
    """Accumulate LLM costs across a session."""
    usages: list = field(default_factory=list)

    def add(self, model: str, input_tokens: int, output_tokens: int) -> LLMUsage:
        usage = LLMUsage(model=model, input_tokens=input_tokens, output_tokens=output_tokens)
        self.usages.append(usage)
        return usage

    @property
    def total_cost(self) -> float:
        return sum(u.estimated_cost for u in self.usages)

    def summary(self) -> dict:
        by_model: dict = {}
        for u in self.usages:
            entry = by_model.setdefault(u.model, {"calls": 0, "input_tokens": 0, "output_tokens": 0, "cost": 0.0})
            entry["calls"] += 1
            entry["input_tokens"] += u.input_tokens
            entry["output_tokens"] += u.output_tokens
            entry["cost"] += u.estimated_cost
        return {
            "total_calls": len(self.usages),
            "total_input_tokens": sum(u.input_tokens for u in self.usages),
            "total_output_tokens": sum(u.output_tokens for u in self.usages),
            "estimated_cost_usd": round(self.total_cost, 4),
            "by_model": by_model,
        }


def estimate_tokens(text: str) -> int:
    """
    Rough token count estimation (4 chars ≈ 1 token for English).
    """
    if not text:
        return 0
    return len(text) // 4


# Global cost tracker instance
cost_tracker = CostTracker()


def log_llm_cost(model: str, prompt: str, response_text: str) -> LLMUsage:
    return cost_tracker.add(model, estimate_tokens(prompt), estimate_tokens(response_text))


def get_cost_summary() -> dict:
    return cost_tracker.summary()


def reset_cost_tracker():
    global cost_tracker
    cost_tracker = CostTracker()
