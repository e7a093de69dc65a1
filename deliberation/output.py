"""Rich console output and markdown transcript export."""

import logging
import re
from datetime import datetime
from pathlib import Path

from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.rule import Rule
from rich.text import Text

from deliberation.models import AskResult, Round, RoundResponse

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)


def _slug(text: str, max_len: int = 40) -> str:
    """Convert text to a filename-safe slug."""
    slug = re.sub(r"[^\w\s-]", "", text.lower())
    slug = re.sub(r"[\s_-]+", "-", slug).strip("-")
    return slug[:max_len]


def _response_preview(response: RoundResponse, words: int = 50) -> str:
    """Return first N words of a response, or its error."""
    if not response.ok:
        return f"[Error - {response.error}]"
    all_words = response.content.split()
    preview = " ".join(all_words[:words])
    if len(all_words) > words:
        preview += "..."
    return preview


def _round_label(rnd: Round) -> str:
    return "Panel" if rnd.kind == "panel" else f"Roundtable {rnd.number - 1}"


def print_round_summary(rnd: Round) -> None:
    """Print a brief summary of one round to the console."""
    console.print(Rule(f"[bold cyan]Round {rnd.number}: {_round_label(rnd)}[/bold cyan]"))
    for resp in rnd.responses:
        console.print(
            Panel(
                _response_preview(resp),
                title=f"[bold]{resp.display_name}[/bold] ({resp.agent_id})",
                border_style="dim" if resp.ok else "red",
            )
        )


def print_answer(result: AskResult, duration_sec: float | None = None) -> None:
    """Print the final answer to the console using Rich markdown."""
    console.print(Rule("[bold green]Answer[/bold green]"))
    meta = f"Mode: {result.mode.value}"
    if result.transcript is not None:
        meta += f" | Rounds: {len(result.transcript)}"
    if duration_sec is not None:
        meta += f" | Duration: {duration_sec:.1f}s"
    if result.routing is not None:
        meta += f" | Type: {result.routing.question_type} | Complexity: {result.routing.complexity}/5"
    console.print(Text(meta, style="dim"))
    console.print(Markdown(result.answer))


def save_to_file(question: str, result: AskResult, output_dir: Path) -> Path:
    """Save the answer and, when present, the full transcript as markdown.

    Returns:
        Path to the saved file.
    """
    output_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    filepath = output_dir / f"{timestamp}_{_slug(question)}.md"

    lines: list[str] = [
        f"# Panel Answer: {question[:80]}",
        "",
        f"**Date:** {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}",
        f"**Mode:** {result.mode.value}",
    ]
    if result.routing is not None:
        lines.append(
            f"**Routing:** {result.routing.question_type}, complexity {result.routing.complexity}/5"
        )
    lines += ["", "---", ""]

    for rnd in result.transcript or []:
        lines.append(f"## Round {rnd.number}: {_round_label(rnd)}")
        lines.append("")
        for resp in rnd.responses:
            lines.append(f"### {resp.display_name}")
            lines.append("")
            lines.append(resp.content if resp.ok else f"*[Error - {resp.error}]*")
            lines.append("")

    lines += ["## Answer", "", result.answer, ""]

    filepath.write_text("\n".join(lines), encoding="utf-8")
    logger.info("Answer saved to: %s", filepath)
    return filepath
