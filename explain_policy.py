#!/usr/bin/env python3
# explain_policy.py
"""
CLI for the ClearPolicy answer pipeline.

Usage:
    python explain_policy.py "California Proposition 47"
    python explain_policy.py "AB 5 gig workers" --zip 94103 --level 5

Output:
    - Console panel with the answer, its source coverage and numbered sources
    - Optional JSON file with the answer, the level summary and the presentation card

Design:
    - Step 1 (optional, --clarify): ask clarifying questions for vague queries
    - Step 2: resolve through known summary -> live registry -> completion -> stub
    - Step 3: derive the requested reading level from the level-12 summary
"""
import argparse
import asyncio
import json
import logging
import sys

from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler
from rich.prompt import Prompt

from clearpolicy_core.config import load_config
from clearpolicy_core.disambiguation import QueryDisambiguator
from clearpolicy_core.exceptions import InvalidQueryError
from clearpolicy_core.presentation import answer_to_card
from clearpolicy_core.reading import READING_LEVELS
from clearpolicy_core.reports.display import display_answer
from clearpolicy_core.synthesis.synthesizer import PolicySynthesizer
from clearpolicy_core.utils import get_cost_summary

load_dotenv()
console = Console()


async def clarify(query: str, synthesizer: PolicySynthesizer, timeout: float) -> str:
    """Ask the user any clarifying questions and fold the answers into the query."""
    disambiguator = QueryDisambiguator(synthesizer.completion_client, timeout=timeout)
    result = await disambiguator.disambiguate(query)
    if not result.needs_clarification:
        return result.refined_query or query

    choices = []
    for question in result.questions or []:
        console.print(f"\n[bold]{question.question}[/bold]")
        for i, option in enumerate(question.options, start=1):
            console.print(f"  {i}. {option}")
        picked = Prompt.ask("Choose", choices=[str(i) for i in range(1, len(question.options) + 1)], default="1")
        choices.append(question.options[int(picked) - 1])
    return " ".join([query] + choices)


async def run(args: argparse.Namespace) -> int:
    config = load_config(args.config)
    synthesizer = PolicySynthesizer.from_config(config)

    query = args.query
    if args.clarify:
        query = await clarify(query, synthesizer, float(config["disambiguation"]["timeout"]))

    try:
        resolution = await synthesizer.resolve(query, args.zip)
    except InvalidQueryError as e:
        console.print(f"[red]Invalid input ({e.field}): {e.reason}[/red]")
        return 2

    summary = synthesizer.summary_for_level(resolution, args.level)
    console.print(f"[dim]Resolved via {resolution.tier} tier[/dim]")
    display_answer(resolution.answer, summary, level=args.level)

    if args.json:
        output_data = {
            "tier": resolution.tier,
            "answer": resolution.answer.model_dump(by_alias=True),
            "summary": summary.model_dump(by_alias=True),
            "level": args.level,
            "card": answer_to_card(resolution.answer).model_dump(by_alias=True),
        }
        with open(args.json, "w", encoding="utf-8") as f:
            json.dump(output_data, f, indent=2)
        console.print(f"\n[green]✓ Results saved to {args.json}[/green]")

    await synthesizer.wait_for_pending_saves()

    costs = get_cost_summary()
    if costs["total_calls"]:
        console.print(f"[dim]LLM calls: {costs['total_calls']} · est. cost ${costs['estimated_cost_usd']:.4f}[/dim]")
    return 0


def main():
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Explain a bill, proposition or policy question in plain English",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    python explain_policy.py "California Proposition 47"
    python explain_policy.py "H.R. 50" --level 8 --json hr50.json
    python explain_policy.py "rent control" --clarify --zip 94103
        """
    )
    parser.add_argument("query", help="Bill, measure or policy question")
    parser.add_argument("--zip", help="ZIP code for local context (12345 or 12345-6789)")
    parser.add_argument("--level", choices=READING_LEVELS, default="12", help="Reading level (default: 12)")
    parser.add_argument("--clarify", action="store_true", help="Ask clarifying questions for vague queries")
    parser.add_argument("--json", help="Write the result to this JSON file")
    parser.add_argument("--config", default="config.yaml", help="Config file path")
    parser.add_argument("--debug", action="store_true", help="Debug logging")

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
    )

    sys.exit(asyncio.run(run(args)))


if __name__ == "__main__":
    main()
