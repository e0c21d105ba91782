from typing import Optional

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel

from clearpolicy_core.models import Answer, SummaryLike
from clearpolicy_core.presentation import answer_to_card

console = Console()


def coverage_color(ratio: float) -> str:
    if ratio >= 0.8:
        return "green"
    if ratio >= 0.4:
        return "yellow"
    return "red"


def display_answer(answer: Answer, summary: Optional[SummaryLike] = None, level: str = "12") -> None:
    """
    Display an answer in the console as a rich panel.

    Sections come from the presentation card, so numbering matches what an
    API consumer sees. When a summary is given, its five sections are shown
    at the requested reading level along with the coverage score.

    Color Coding:
        - Coverage >= 80%: GREEN panel border
        - Coverage 40-79%: YELLOW panel border
        - Coverage < 40% (or no summary): RED panel border
    """
    card = answer_to_card(answer)

    metadata_lines = [
        f"[cyan]Level:[/cyan] {escape(answer.level)}",
        f"[cyan]Category:[/cyan] {escape(answer.category)}",
        f"[cyan]Policy ID:[/cyan] {escape(answer.policy_id)}",
    ]

    content = f"""
[bold]{escape(card.heading)}[/bold]

{chr(10).join(metadata_lines)}"""

    if summary is not None:
        color = coverage_color(summary.source_ratio)
        content += f"""

[bold {color}]Source coverage: {summary.source_ratio:.0%} ({summary.source_count or 0}/5 sections cited)[/bold {color}]
[cyan]Reading level:[/cyan] grade {level}

[bold]TL;DR:[/bold] {escape(summary.tldr)}
[bold]What it does:[/bold] {escape(summary.what_it_does)}
[bold]Who is affected:[/bold] {escape(summary.who_affected)}
[bold green]Pros:[/bold green] {escape(summary.pros)}
[bold red]Cons:[/bold red] {escape(summary.cons)}"""
    else:
        color = "red"
        for section in card.sections:
            tag = "[green]verified[/green]" if section.confidence == "verified" else "[yellow]inferred[/yellow]"
            content += f"\n\n[bold]{escape(section.heading)}[/bold] ({tag})\n{escape(section.content)}"

    content += "\n\n[bold cyan]Sources:[/bold cyan]"
    for source in card.sources:
        mark = "[green]✓[/green]" if source.verified else "[red]unverified[/red]"
        content += f"\n  [{source.id}] {escape(source.title)} ({escape(source.publisher or 'source')}) {mark}\n      {escape(source.url)}"

    console.print(Panel(content, border_style=color, expand=False))
