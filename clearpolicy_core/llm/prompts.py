"""
Prompts and response schemas for the completion service.

The schemas are OpenAPI-subset JSON Schema: Gemini takes them directly as
response_schema, OpenAI/Anthropic receive them as instructions, and the
clarification schema is enforced locally with jsonschema. Completion output
is never trusted: every field is validated again where it is consumed.
"""
import json
from typing import Iterable, Optional

from clearpolicy_core.models import ConversationTurn

SOURCE_TYPES = ["Federal", "State", "Local", "Web"]
GOVERNMENT_LEVELS = ["Federal", "State", "Local"]

_STRING_LIST = {"type": "array", "items": {"type": "string"}}

POLICY_ANSWER_SCHEMA = {
    "type": "object",
    "properties": {
        "policyName": {"type": "string"},
        "level": {"type": "string", "enum": GOVERNMENT_LEVELS},
        "category": {"type": "string"},
        "fullTextSummary": {"type": "string"},
        "sections": {
            "type": "object",
            "properties": {
                "summary": {"type": "string"},
                "keyProvisions": _STRING_LIST,
                "localImpact": {
                    "type": "object",
                    "properties": {
                        "zipCode": {"type": "string"},
                        "location": {"type": "string"},
                        "content": {"type": "string"},
                    },
                },
                "argumentsFor": _STRING_LIST,
                "argumentsAgainst": _STRING_LIST,
            },
        },
        "sources": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "title": {"type": "string"},
                    "url": {"type": "string"},
                    "domain": {"type": "string"},
                    "type": {"type": "string", "enum": SOURCE_TYPES},
                },
                "required": ["title", "url"],
            },
        },
    },
    "required": ["policyName", "fullTextSummary", "sections", "sources"],
}

GENERAL_ANSWER_SCHEMA = {
    "type": "object",
    "properties": {
        "title": {"type": "string"},
        "category": {"type": "string"},
        "answer": {"type": "string"},
        "keyFacts": _STRING_LIST,
        "sources": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "title": {"type": "string"},
                    "url": {"type": "string"},
                    "domain": {"type": "string"},
                },
                "required": ["title", "url"],
            },
        },
    },
    "required": ["title", "answer"],
}

FOLLOW_UP_SCHEMA = {
    "type": "object",
    "properties": {
        "policyName": {"type": "string"},
        "fullTextSummary": {"type": "string"},
        "sections": POLICY_ANSWER_SCHEMA["properties"]["sections"],
        "suggestions": _STRING_LIST,
    },
    "required": ["fullTextSummary", "suggestions"],
}

CLARIFY_RESPONSE_SCHEMA = {
    "type": "object",
    "properties": {
        "needs_clarification": {"type": "boolean"},
        "questions": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "question": {"type": "string"},
                    "options": _STRING_LIST,
                },
                "required": ["question", "options"],
            },
        },
        # Null values are dropped before validation
        "refined_query": {"type": "string", "nullable": True},
    },
    "required": ["needs_clarification"],
}

REWRITE_SCHEMA = {
    "type": "object",
    "properties": {
        "sections": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "heading": {"type": "string"},
                    "content": {"type": "string"},
                },
                "required": ["heading", "content"],
            },
        },
    },
    "required": ["sections"],
}


POLICY_SYSTEM_PROMPT = (
    "You are a non-partisan policy explainer. Return only valid JSON with the exact keys "
    "requested. No markdown or extra text."
)

GENERAL_SYSTEM_PROMPT = (
    "You are a knowledgeable assistant. Answer general questions clearly and factually. "
    "Return only valid JSON."
)

FOLLOW_UP_SYSTEM_PROMPT = "You are a non-partisan policy explainer. Return only valid JSON."

REWRITE_SYSTEM_PROMPT = (
    "You are a skilled editor who adapts policy content for different reading levels while "
    "preserving accuracy and completeness. Return only valid JSON."
)

CLARIFY_SYSTEM_PROMPT = """You are a query disambiguation assistant for a policy research engine called ClearPolicy.

Your job: determine if a user's query is specific enough to search, or if it needs clarification.

Queries that NEED clarification:
- "prop 50": which state? which year? (many states have propositions)
- "healthcare bill": which one? federal or state?
- "immigration": too broad, what aspect?
- "SB 1234": which state? which session?

Queries that DON'T need clarification:
- "California Prop 36 2024"
- "What is the Inflation Reduction Act?"
- "Explain F-1 visa work restrictions"
- "Arguments for and against rent control"
- Any full question with enough context

Respond with valid JSON only:
{
  "needs_clarification": true/false,
  "questions": [
    {"question": "Which state's Proposition 50 do you mean?", "options": ["California", "Other state"]},
    {"question": "Which year?", "options": ["2016", "2025", "I'm not sure"]}
  ],
  "refined_query": null
}

If needs_clarification is false, set refined_query to the user's query (possibly slightly cleaned up).
If needs_clarification is true, provide 1-2 questions with 2-4 options each. Keep options concise.
Maximum 2 questions."""

LEVEL_REWRITE_INSTRUCTIONS = {
    "5": (
        "Rewrite at a 5th-grade reading level. Use short, simple sentences. Replace jargon with "
        "everyday words. Use analogies a child would understand. Keep each section to 2-3 sentences max."
    ),
    "12": (
        "Rewrite at a 12th-grade / college-prep reading level. Add technical detail, nuance, and "
        "specificity. Use precise terminology with brief explanations where helpful. Aim for 4-8 "
        "sentences per section."
    ),
}


def build_policy_prompt(query: str, zip_code: Optional[str] = None) -> str:
    zip_hint = (
        f" The user is in ZIP code {zip_code}; include brief local relevance if applicable."
        if zip_code else ""
    )
    shape = json.dumps(POLICY_ANSWER_SCHEMA["properties"], indent=2)
    return f"""You are a non-partisan civic education assistant. The user asked: "{query}".{zip_hint}

Provide a clear, neutral policy overview in plain English. Return ONLY valid JSON whose keys follow this schema:
{shape}

Rules:
- "fullTextSummary" is 2-4 specific, factual sentences.
- "keyProvisions", "argumentsFor" and "argumentsAgainst" are short bullet strings.
- Include 2-4 real sources with full URLs. Never invent URLs.
- If no ZIP code was given, omit "localImpact"."""


def build_general_prompt(query: str) -> str:
    shape = json.dumps(GENERAL_ANSWER_SCHEMA["properties"], indent=2)
    return f"""The user asked: "{query}"

This is a general knowledge question (not specifically about policy or legislation).
Provide a helpful, factual, and concise answer. Return ONLY valid JSON whose keys follow this schema:
{shape}

Rules:
- "answer" is a clear, thorough 2-5 sentence answer to the question.
- "keyFacts" holds up to 3 short facts.
- Be factual. If unsure about something, say so.
- Include 1-3 real sources with full URLs where applicable. Never invent URLs."""


def build_follow_up_prompt(
    message: str,
    history: Iterable[ConversationTurn],
    persona: Optional[str] = None,
    max_turns: int = 6,
    max_turn_chars: int = 200,
) -> str:
    recent = list(history)[-max_turns:]
    history_block = "\n".join(f"{turn.role}: {turn.content[:max_turn_chars]}" for turn in recent)
    persona_hint = (
        f" Tailor the answer for a {persona} perspective."
        if persona and persona != "general" else ""
    )
    return f"""You are a non-partisan civic education assistant. The user is asking a follow-up question in the context of an existing policy conversation.

Previous context (recent messages):
{history_block or "(none)"}

Follow-up question: "{message}"{persona_hint}

Return ONLY valid JSON (no markdown):
{{
  "policyName": "Short heading for this follow-up",
  "fullTextSummary": "2-4 sentences answering the follow-up. Be specific and neutral.",
  "sections": {{
    "summary": "Same or slightly expanded.",
    "keyProvisions": ["Point 1", "Point 2"],
    "argumentsFor": ["Pro 1"],
    "argumentsAgainst": ["Con 1"]
  }},
  "suggestions": ["Suggested follow-up question 1", "Suggested follow-up question 2", "Suggested follow-up question 3"]
}}"""


def build_rewrite_prompt(title: str, sections: Iterable[tuple[str, str]], level: str) -> str:
    sections_block = "\n\n".join(
        f'[Section {i}: "{heading}"]\n{content}'
        for i, (heading, content) in enumerate(sections, start=1)
    )
    focus = (
        "Simplify vocabulary and sentence structure. Use analogies. Keep it concise but complete."
        if level == "5"
        else "Add depth, technical precision, and analytical context. Make it richer, not just longer."
    )
    return f"""You are rewriting a policy analysis about "{title}" at a different reading level.

{LEVEL_REWRITE_INSTRUCTIONS[level]}

Here are the original sections to rewrite:

{sections_block}

Return ONLY valid JSON (no markdown, no code fence):
{{"sections": [{{"heading": "Original heading (keep the same heading text)", "content": "Rewritten content"}}]}}

Critical rules:
- Preserve ALL factual information: data, dates, numbers, and key details.
- Keep the same number of sections and the same heading text for each.
- {focus}
- Do NOT add disclaimers or meta-commentary about the rewriting itself.
- Preserve any citation markers like [1], [2] exactly as they appear."""
