"""Click CLI: config loading, provider selection, and one question through the panel."""

import asyncio
import logging
import sys
import time
from pathlib import Path

import click
from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler

from config.config_loader import AppConfig, load_config
from deliberation.errors import ConfigurationError, SynthesisError
from deliberation.healthcheck import HealthResult, run_health_checks
from deliberation.models import Agent, AskOptions, Mode
from deliberation.orchestrator import Orchestrator
from deliberation.output import print_answer, print_round_summary, save_to_file
from deliberation.providers.anthropic import AnthropicProvider
from deliberation.providers.base import ProviderError, TextCapability
from deliberation.providers.gemini import GeminiProvider
from deliberation.providers.openai_provider import OpenAIProvider
from deliberation.providers.xai import XAIProvider
from deliberation.routing import KeywordClassifier

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)

PROVIDER_CLASSES: dict[str, type[TextCapability]] = {
    "anthropic": AnthropicProvider,
    "openai": OpenAIProvider,
    "google-genai": GeminiProvider,
    "xai": XAIProvider,
}


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
    )


def _build_all_providers(config: AppConfig) -> dict[str, TextCapability]:
    """Build all available providers. Returns dict keyed by model name."""
    providers: dict[str, TextCapability] = {}
    for name in sorted(config.available_providers):
        model_cfg = config.models[name]
        if model_cfg.sdk not in PROVIDER_CLASSES:
            logger.warning("Model '%s' uses unknown sdk '%s', skipping", name, model_cfg.sdk)
            continue
        try:
            providers[name] = PROVIDER_CLASSES[model_cfg.sdk](model_cfg)
        except Exception as exc:
            logger.warning("Failed to instantiate provider '%s': %s", name, exc)
    return providers


def _make_resolver(providers: dict[str, TextCapability]):
    def resolve(name: str) -> TextCapability:
        if name not in providers:
            raise ProviderError(name, "not available (missing API key or failed health check)")
        return providers[name]

    return resolve


def _select_agents(
    config: AppConfig,
    providers: dict[str, TextCapability],
    agents_arg: str | None,
) -> list[Agent]:
    """Panel agents: --agents ids if given, else every configured agent except the quick agent.

    Agents whose capability is unavailable are dropped.
    """
    if agents_arg:
        wanted = [a.strip() for a in agents_arg.split(",") if a.strip()]
        unknown = [a for a in wanted if config.agent(a) is None]
        if unknown:
            raise click.BadParameter(f"Unknown agent(s): {', '.join(unknown)}", param_hint="--agents")
        selected = [config.agent(a) for a in wanted]
    else:
        selected = [a for a in config.agents if a.id != config.defaults.quick_agent]

    panel: list[Agent] = []
    for agent in selected:
        if agent.capability in providers:
            panel.append(agent)
        else:
            logger.warning("Agent '%s' dropped: capability '%s' unavailable", agent.id, agent.capability)
    return panel


def _pick_synthesizer(providers: dict[str, TextCapability], preferred: str) -> str:
    """Preferred synthesizer if available, else the first available provider."""
    if preferred in providers:
        return preferred
    fallback = next(iter(providers))
    logger.warning("Synthesizer '%s' unavailable, using '%s'", preferred, fallback)
    return fallback


def _check_and_filter_providers(all_providers: dict[str, TextCapability]) -> dict[str, TextCapability]:
    """Run health checks, print results, and ask user what to do on failures.

    Returns the filtered dict of working providers. Exits if the user
    declines to continue or no providers pass.
    """
    console.print("\n[bold]Checking providers...[/bold]")
    results: dict[str, HealthResult] = asyncio.run(run_health_checks(all_providers))

    failed_names: list[str] = []
    for name in sorted(results):
        check = results[name]
        if check.ok:
            console.print(f"  [green]OK  [/green] {name} [dim]({check.model}, {check.latency_sec:.1f}s)[/dim]")
        else:
            short_err = check.error.splitlines()[0][:120] if check.error else "unknown error"
            console.print(f"  [red]FAIL[/red] {name}: {short_err}")
            failed_names.append(name)

    if not failed_names:
        console.print()
        return all_providers

    working = {n: p for n, p in all_providers.items() if n not in failed_names}

    if not working:
        console.print("\n[bold red]Error:[/bold red] No providers passed the health check.")
        sys.exit(1)

    console.print(f"\n[yellow]{len(failed_names)} provider(s) failed:[/yellow] {', '.join(failed_names)}")
    console.print(f"Working providers: {', '.join(sorted(working))}")

    if not click.confirm("Continue with working providers only?", default=True):
        sys.exit(0)

    console.print()
    return working


def build_orchestrator(config: AppConfig, providers: dict[str, TextCapability], synthesizer: str) -> Orchestrator:
    quick_agent = None
    if config.defaults.quick_agent:
        quick_agent = config.agent(config.defaults.quick_agent)
        if quick_agent is not None and quick_agent.capability not in providers:
            logger.warning("Quick agent '%s' unavailable, quick mode uses the first panel agent", quick_agent.id)
            quick_agent = None
    return Orchestrator(
        resolve=_make_resolver(providers),
        synthesizer=synthesizer,
        prompts=config.prompts,
        classifier=KeywordClassifier(recommended_agent=config.defaults.quick_agent),
        quick_agent=quick_agent,
        agent_timeout_sec=config.defaults.agent_timeout_sec,
        default_council_rounds=config.defaults.council_rounds,
        max_roundtables=config.defaults.max_roundtables,
    )


async def _run_single(
    question: str,
    orchestrator: Orchestrator,
    agents: list[Agent],
    options: AskOptions,
    stream: bool,
    save_dir: Path | None,
) -> None:
    start = time.monotonic()

    if stream:
        async for chunk in orchestrator.ask_stream(question, agents, options):
            console.print(chunk, end="", markup=False, highlight=False, soft_wrap=True)
        console.print()
        console.print(f"[dim]Duration: {time.monotonic() - start:.1f}s[/dim]")
        if save_dir is not None:
            logger.warning("--save is ignored with --stream")
        return

    with console.status("Consulting the panel..."):
        result = await orchestrator.ask(question, agents, options)

    for rnd in result.transcript or []:
        print_round_summary(rnd)
    print_answer(result, duration_sec=time.monotonic() - start)

    if save_dir is not None:
        saved = save_to_file(question, result, save_dir)
        console.print(f"\n[dim]Saved to: {saved}[/dim]")


@click.command()
@click.argument("question", required=False)
@click.option("--file", "question_file", type=click.Path(exists=True), help="Read question from a file")
@click.option("--mode", type=click.Choice([m.value for m in Mode]), default=None,
              help="Response depth (default: from config, or routed when config leaves it empty)")
@click.option("--context-file", type=click.Path(exists=True), default=None,
              help="Text file injected as private user context")
@click.option("--agents", "agents_arg", default=None, help="Comma-separated agent ids for the panel")
@click.option("--synthesizer", default=None, help="Which model synthesizes (default: from config)")
@click.option("--rounds", "council_rounds", default=None, type=int, help="Roundtables for council mode")
@click.option("--auto-adjust/--no-auto-adjust", default=None,
              help="Let question routing downgrade or upgrade the chosen mode")
@click.option("--transcript", "show_transcript", is_flag=True, help="Show every round, not just the answer")
@click.option("--stream", is_flag=True, help="Stream the final answer as it is generated")
@click.option("--save", is_flag=True, help="Write the answer and transcript to markdown")
@click.option("--output-dir", type=click.Path(file_okay=False), default=None,
              help="Where --save writes (default: output_dir from config)")
@click.option("--verbose", is_flag=True, help="Enable DEBUG-level logging")
@click.option("--skip-health-check", is_flag=True, default=False,
              help="Skip the API connectivity check at startup")
def main(
    question: str | None,
    question_file: str | None,
    mode: str | None,
    context_file: str | None,
    agents_arg: str | None,
    synthesizer: str | None,
    council_rounds: int | None,
    auto_adjust: bool | None,
    show_transcript: bool,
    stream: bool,
    save: bool,
    output_dir: str | None,
    verbose: bool,
    skip_health_check: bool,
) -> None:
    """Panel deliberation -- ask several agents, get one answer.

    \b
    Examples:
      python -m deliberation.cli "What is the capital of France?" --mode quick
      python -m deliberation.cli "Should I take the job offer?" --transcript
      python -m deliberation.cli --file question.md --mode contemplate --stream
      python -m deliberation.cli "Monorepo or polyrepo?" --mode council --rounds 3
    """
    load_dotenv()
    _setup_logging(verbose)

    try:
        config = load_config()
    except FileNotFoundError as exc:
        console.print(f"[bold red]Config error:[/bold red] {exc}")
        sys.exit(1)

    if question_file:
        question_text = Path(question_file).read_text(encoding="utf-8").strip()
    elif question:
        question_text = question
    else:
        console.print("[bold red]Error:[/bold red] Provide a QUESTION argument or --file.")
        sys.exit(1)

    context = Path(context_file).read_text(encoding="utf-8").strip() if context_file else None

    all_providers = _build_all_providers(config)
    if not all_providers:
        console.print("[bold red]Error:[/bold red] No providers available. Check API keys in .env.")
        sys.exit(1)

    if not skip_health_check:
        all_providers = _check_and_filter_providers(all_providers)

    agents = _select_agents(config, all_providers, agents_arg)
    effective_synthesizer = _pick_synthesizer(all_providers, synthesizer or config.defaults.synthesizer)
    orchestrator = build_orchestrator(config, all_providers, effective_synthesizer)

    save_dir = None
    if save:
        save_dir = Path(output_dir) if output_dir else config.defaults.output_dir

    options = AskOptions(
        context=context,
        mode=mode or config.defaults.mode or None,
        include_transcript=show_transcript or save,
        council_rounds=council_rounds,
        auto_adjust=config.defaults.auto_adjust if auto_adjust is None else auto_adjust,
    )

    try:
        asyncio.run(
            _run_single(
                question_text,
                orchestrator,
                agents,
                options,
                stream=stream,
                save_dir=save_dir,
            )
        )
    except ConfigurationError as exc:
        console.print(f"[bold red]Error:[/bold red] {exc}")
        sys.exit(1)
    except SynthesisError as exc:
        console.print(f"[bold red]Synthesis failed:[/bold red] {exc}")
        sys.exit(2)


if __name__ == "__main__":
    main()
