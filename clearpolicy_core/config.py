import copy
import os
from typing import Any

import yaml
from rich.console import Console

console = Console()

DEFAULT_CONFIG: dict[str, Any] = {
    "llm": {
        "provider": "openai",
        "openai": {"model": "gpt-4o-mini"},
        "gemini": {"model": "gemini-2.5-flash", "max_output_tokens": 4096},
        "anthropic": {"model": "claude-sonnet-4-5", "max_tokens": 2048},
        "timeout": 20.0,
        "retry": {"max_retries": 2, "base_delay": 1.0},
    },
    "registries": {
        "congress": {"enabled": True, "congress_number": "119"},
        "openstates": {"enabled": True, "default_jurisdiction": "ca"},
        "timeout": 15.0,
    },
    "disambiguation": {"timeout": 8.0},
    "storage": {"enabled": False, "db_path": "clearpolicy.db"},
    "debug": {"llm_responses": False},
}

# Values copied verbatim from .env.example are treated as unset
PLACEHOLDER_KEY_PREFIXES: tuple[str, ...] = ("your_", "changeme", "<")


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config(config_path: str = "config.yaml") -> dict[str, Any]:
    """
    From config.yaml, layered over DEFAULT_CONFIG.

    Args:
        config_path: Path to config file (default: config.yaml)

    Returns:
        Configuration dictionary
    """
    try:
        with open(config_path, "r") as f:
            loaded = yaml.safe_load(f) or {}
    except FileNotFoundError:
        console.print(f"[yellow]Warning: {config_path} not found. Using default config.[/yellow]")
        return copy.deepcopy(DEFAULT_CONFIG)
    except yaml.YAMLError as e:
        console.print(f"[red]Error: could not parse {config_path} ({e}). Using default config.[/red]")
        return copy.deepcopy(DEFAULT_CONFIG)

    if not isinstance(loaded, dict):
        console.print(f"[red]Error: {config_path} must contain a mapping. Using default config.[/red]")
        return copy.deepcopy(DEFAULT_CONFIG)
    return _deep_merge(DEFAULT_CONFIG, loaded)


def _read_key(name: str) -> str:
    value = os.getenv(name, "").strip()
    if value.lower().startswith(PLACEHOLDER_KEY_PREFIXES):
        return ""
    return value


def get_api_keys() -> dict[str, str]:
    return {
        "openai": _read_key("OPENAI_API_KEY"),
        "google": _read_key("GOOGLE_API_KEY"),
        "anthropic": _read_key("ANTHROPIC_API_KEY"),
        "congress": _read_key("CONGRESS_API_KEY"),
        "openstates": _read_key("OPENSTATES_API_KEY"),
    }
