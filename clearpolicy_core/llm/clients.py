"""
Completion service clients.

One async interface, CompletionClient.complete_json(), over three providers:
- OpenAI: JSON mode via response_format
- Gemini: response_schema enforcement, first non-thought text part
- Anthropic: schema passed as instructions

Clients are constructed explicitly and injected into the synthesizer and
disambiguator. build_completion_client() returns None when the provider key
is absent, so "service unavailable" is a value callers can test for rather
than hidden global state.

Failure contract:
- Malformed JSON / non-object payload -> LLMResponseError
- Timeout or provider error after retries -> CompletionUnavailableError
- Client built without a key -> APIKeyMissingError (not retried)
"""
import asyncio
import json
import logging
import re
from abc import ABC, abstractmethod
from typing import Any, Optional

import anthropic
import openai
from google import genai

from clearpolicy_core.config import DEFAULT_CONFIG, get_api_keys
from clearpolicy_core.exceptions import APIKeyMissingError, CompletionUnavailableError, LLMResponseError
from clearpolicy_core.utils import log_llm_cost

logger = logging.getLogger(__name__)

_FENCED_JSON = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL | re.IGNORECASE)


def parse_json_payload(text: Optional[str]) -> dict[str, Any]:
    """
    Parse a completion into a JSON object.

    Accepts raw JSON or a ```json fenced block. When the provider concatenates
    objects ({...}{...}) only the first is kept.
    """
    if not text or not text.strip():
        raise LLMResponseError("Empty completion response")

    cleaned = text.strip()
    fenced = _FENCED_JSON.match(cleaned)
    if fenced:
        cleaned = fenced.group(1)

    try:
        payload = json.loads(cleaned)
    except json.JSONDecodeError:
        try:
            payload, _ = json.JSONDecoder().raw_decode(cleaned)
        except json.JSONDecodeError as e:
            raise LLMResponseError(f"Completion returned invalid JSON: {e}") from e

    if not isinstance(payload, dict):
        raise LLMResponseError(f"Completion returned {type(payload).__name__}, expected a JSON object")
    return payload


def extract_first_text_part(response: Any) -> str:
    """Extract first non-thought text part (handles Gemini thinking mode)."""
    candidates = getattr(response, "candidates", None)
    if not candidates:
        raise LLMResponseError("Gemini response has no candidates")
    content = candidates[0].content
    if not content or not content.parts:
        raise LLMResponseError("Gemini response candidate has no content")
    for part in content.parts:
        if getattr(part, "thought", False) is True:
            continue  # Skip encrypted reasoning traces
        if part.text and part.text.strip():
            return part.text
    raise LLMResponseError("No text part in Gemini response")


class CompletionClient(ABC):
    """Base for JSON-returning completion clients with retry and timeout."""

    provider: str = ""

    def __init__(
        self,
        model: str,
        timeout: float = 20.0,
        max_retries: int = 2,
        base_delay: float = 1.0,
        debug: bool = False,
    ):
        self.model = model
        self.timeout = timeout
        self.max_retries = max(1, int(max_retries))
        self.base_delay = base_delay
        self.debug = debug
        self.client: Any = None

    def _ensure_client(self) -> Any:
        """Ensure the provider client is available, raise if not."""
        if self.client is None:
            raise APIKeyMissingError(
                f"{self.__class__.__name__} requires an API key. "
                "Pass api_key to the constructor or set it in the environment."
            )
        return self.client

    @abstractmethod
    async def _complete(
        self,
        system: str,
        prompt: str,
        schema: Optional[dict[str, Any]],
        temperature: float,
        max_tokens: Optional[int],
    ) -> str:
        """Return raw completion text from the provider."""
        pass

    async def complete_json(
        self,
        system: str,
        prompt: str,
        schema: Optional[dict[str, Any]] = None,
        temperature: float = 0.3,
        max_tokens: Optional[int] = None,
    ) -> dict[str, Any]:
        """
        Run one completion and parse it as a JSON object.

        Retries transient failures (timeouts, provider errors, malformed JSON)
        with exponential backoff. Callers must still validate the fields.

        Raises:
            LLMResponseError: Final attempt returned unusable JSON
            CompletionUnavailableError: Final attempt timed out or errored
        """
        last_error: Optional[Exception] = None

        for attempt in range(self.max_retries):
            try:
                text = await asyncio.wait_for(
                    self._complete(system, prompt, schema, temperature, max_tokens),
                    timeout=self.timeout,
                )
                if self.debug:
                    logger.debug("Raw %s response: %s", self.model, (text or "")[:500])
                payload = parse_json_payload(text)
                log_llm_cost(self.model, system + prompt, text)
                return payload
            except APIKeyMissingError:
                raise
            except LLMResponseError as e:
                last_error = e
                logger.warning("%s returned unusable JSON (attempt %d/%d): %s",
                               self.provider, attempt + 1, self.max_retries, e)
            except asyncio.TimeoutError as e:
                last_error = e
                logger.warning("%s completion timed out after %.1fs (attempt %d/%d)",
                               self.provider, self.timeout, attempt + 1, self.max_retries)
            except Exception as e:
                last_error = e
                logger.warning("%s completion failed (attempt %d/%d): %s",
                               self.provider, attempt + 1, self.max_retries, e)

            if attempt < self.max_retries - 1:
                await asyncio.sleep(self.base_delay * (2 ** attempt))

        if isinstance(last_error, LLMResponseError):
            raise last_error
        raise CompletionUnavailableError(
            f"{self.provider} completion failed after {self.max_retries} attempts: {last_error}"
        ) from last_error


def _system_with_schema(system: str, schema: Optional[dict[str, Any]]) -> str:
    if not schema:
        return system
    return f"{system}\n\nThe JSON must match this schema:\n{json.dumps(schema)}"


class OpenAICompletionClient(CompletionClient):
    """OpenAI chat completions in JSON mode."""

    provider = "openai"

    def __init__(self, api_key: str, model: str = "gpt-4o-mini", client: Any = None, **kwargs):
        super().__init__(model, **kwargs)
        self.client = client or (openai.AsyncOpenAI(api_key=api_key) if api_key else None)

    async def _complete(self, system, prompt, schema, temperature, max_tokens) -> str:
        extra = {"max_tokens": max_tokens} if max_tokens else {}
        response = await self._ensure_client().chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": _system_with_schema(system, schema)},
                {"role": "user", "content": prompt},
            ],
            response_format={"type": "json_object"},
            temperature=temperature,
            **extra,
        )
        return response.choices[0].message.content or ""


class GeminiCompletionClient(CompletionClient):
    """
    Gemini with structured output via response_schema.

    response_mime_type + response_schema keeps thinking text out of the JSON.
    """

    provider = "gemini"

    def __init__(
        self,
        api_key: str,
        model: str = "gemini-2.5-flash",
        max_output_tokens: int = 4096,
        client: Any = None,
        **kwargs,
    ):
        super().__init__(model, **kwargs)
        self.max_output_tokens = max_output_tokens
        self.client = client or (genai.Client(api_key=api_key) if api_key else None)

    async def _complete(self, system, prompt, schema, temperature, max_tokens) -> str:
        config: dict[str, Any] = {
            "system_instruction": system,
            "temperature": temperature,
            "max_output_tokens": max_tokens or self.max_output_tokens,
            "response_mime_type": "application/json",
        }
        if schema:
            config["response_schema"] = schema
        response = await self._ensure_client().aio.models.generate_content(
            model=self.model,
            contents=prompt,
            config=config,
        )
        return extract_first_text_part(response)


class AnthropicCompletionClient(CompletionClient):
    """Anthropic messages API; JSON shape is enforced through the system prompt."""

    provider = "anthropic"

    def __init__(
        self,
        api_key: str,
        model: str = "claude-sonnet-4-5",
        max_tokens: int = 2048,
        client: Any = None,
        **kwargs,
    ):
        super().__init__(model, **kwargs)
        self.max_tokens = max_tokens
        self.client = client or (anthropic.AsyncAnthropic(api_key=api_key) if api_key else None)

    async def _complete(self, system, prompt, schema, temperature, max_tokens) -> str:
        message = await self._ensure_client().messages.create(
            model=self.model,
            max_tokens=max_tokens or self.max_tokens,
            temperature=temperature,
            system=_system_with_schema(system, schema),
            messages=[{"role": "user", "content": prompt}],
        )
        return "".join(
            block.text for block in message.content if getattr(block, "type", None) == "text"
        )


PROVIDERS: dict[str, tuple[type[CompletionClient], str]] = {
    "openai": (OpenAICompletionClient, "openai"),
    "gemini": (GeminiCompletionClient, "google"),
    "anthropic": (AnthropicCompletionClient, "anthropic"),
}

# Per-provider config keys forwarded to the client constructor
PROVIDER_SETTINGS: dict[str, frozenset[str]] = {
    "openai": frozenset({"model"}),
    "gemini": frozenset({"model", "max_output_tokens"}),
    "anthropic": frozenset({"model", "max_tokens"}),
}


def build_completion_client(
    config: Optional[dict[str, Any]] = None,
    api_keys: Optional[dict[str, str]] = None,
) -> Optional[CompletionClient]:
    """
    Build the configured completion client, or None when it cannot be used.

    Args:
        config: Loaded configuration (default: DEFAULT_CONFIG)
        api_keys: Provider keys (default: read from environment)

    Returns:
        CompletionClient, or None if the provider is unknown or its key is missing
    """
    config = config or DEFAULT_CONFIG
    api_keys = get_api_keys() if api_keys is None else api_keys
    llm = config.get("llm", {})
    provider = str(llm.get("provider", "openai")).lower()

    if provider not in PROVIDERS:
        logger.warning("Unknown LLM provider %r; completion service disabled", provider)
        return None

    client_cls, key_name = PROVIDERS[provider]
    api_key = api_keys.get(key_name, "")
    if not api_key:
        logger.info("No %s API key configured; completion service disabled", provider)
        return None

    retry = llm.get("retry", {})
    settings = {k: v for k, v in llm.get(provider, {}).items() if k in PROVIDER_SETTINGS[provider]}
    return client_cls(
        api_key=api_key,
        timeout=float(llm.get("timeout", 20.0)),
        max_retries=int(retry.get("max_retries", 2)),
        base_delay=float(retry.get("base_delay", 1.0)),
        debug=bool(config.get("debug", {}).get("llm_responses", False)),
        **settings,
    )
