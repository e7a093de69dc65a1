"""Load settings.yaml into typed dataclasses. Checks API keys at startup."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from deliberation.models import Agent

logger = logging.getLogger(__name__)

_SETTINGS_PATH = Path(__file__).parent / "settings.yaml"


@dataclass
class ModelConfig:
    name: str
    sdk: str
    model: str
    api_key_env: str
    timeout_sec: int
    max_tokens: int
    base_url: str | None = None
    temperature: float | None = None


@dataclass
class PromptsConfig:
    quick_persona: str
    synthesizer_persona: str
    roundtable_instruction: str
    synthesis_standard: str
    synthesis_deep: str
    context_header: str = "Context for this question (private to the user):"


@dataclass
class DefaultsConfig:
    mode: str
    synthesizer: str
    quick_agent: str | None = None
    council_rounds: int = 2
    max_roundtables: int = 5
    agent_timeout_sec: float | None = None
    auto_adjust: bool = False
    output_dir: Path = Path("./output")


@dataclass
class AppConfig:
    defaults: DefaultsConfig
    models: dict[str, ModelConfig]
    prompts: PromptsConfig
    agents: list[Agent] = field(default_factory=list)
    available_providers: set[str] = field(default_factory=set)

    def agent(self, agent_id: str) -> Agent | None:
        return next((a for a in self.agents if a.id == agent_id), None)


def _load_agents(raw_agents: list[dict]) -> list[Agent]:
    agents: list[Agent] = []
    for entry in raw_agents:
        agents.append(
            Agent(
                id=str(entry["id"]),
                display_name=str(entry.get("display_name", entry["id"])),
                capability=str(entry["capability"]),
                persona=str(entry.get("persona", "")).strip(),
            )
        )
    return agents


def load_config(settings_path: Path = _SETTINGS_PATH) -> AppConfig:
    """Load and validate configuration from settings.yaml.

    Raises FileNotFoundError if settings file missing.
    Logs missing API keys but does not raise; callers check
    available_providers.
    """
    if not settings_path.exists():
        raise FileNotFoundError(f"Settings file not found: {settings_path}")

    with settings_path.open("r", encoding="utf-8") as f:
        raw = yaml.safe_load(f)

    defaults_raw = raw["defaults"]
    timeout_raw = defaults_raw.get("agent_timeout_sec")
    defaults = DefaultsConfig(
        mode=str(defaults_raw.get("mode") or ""),
        synthesizer=str(defaults_raw["synthesizer"]),
        quick_agent=defaults_raw.get("quick_agent"),
        council_rounds=int(defaults_raw.get("council_rounds", 2)),
        max_roundtables=int(defaults_raw.get("max_roundtables", 5)),
        agent_timeout_sec=float(timeout_raw) if timeout_raw is not None else None,
        auto_adjust=bool(defaults_raw.get("auto_adjust", False)),
        output_dir=Path(defaults_raw.get("output_dir", "./output")),
    )

    prompts_raw = raw["prompts"]
    prompts = PromptsConfig(
        quick_persona=prompts_raw["quick_persona"].strip(),
        synthesizer_persona=prompts_raw["synthesizer_persona"].strip(),
        roundtable_instruction=prompts_raw["roundtable_instruction"].strip(),
        synthesis_standard=prompts_raw["synthesis_standard"].strip(),
        synthesis_deep=prompts_raw["synthesis_deep"].strip(),
        context_header=prompts_raw.get("context_header", PromptsConfig.context_header).strip(),
    )

    models: dict[str, ModelConfig] = {}
    available_providers: set[str] = set()

    for provider_name, model_raw in raw["models"].items():
        temperature = model_raw.get("temperature")
        model_cfg = ModelConfig(
            name=provider_name,
            sdk=model_raw["sdk"],
            model=model_raw["model"],
            api_key_env=model_raw["api_key_env"],
            timeout_sec=int(model_raw["timeout_sec"]),
            max_tokens=int(model_raw["max_tokens"]),
            base_url=model_raw.get("base_url"),
            temperature=float(temperature) if temperature is not None else None,
        )
        models[provider_name] = model_cfg

        api_key = os.environ.get(model_raw["api_key_env"], "").strip()
        if api_key:
            available_providers.add(provider_name)
            logger.info("Provider available: %s", provider_name)
        else:
            logger.info(
                "Provider skipped (no API key): %s, set %s in .env",
                provider_name,
                model_raw["api_key_env"],
            )

    agents = _load_agents(raw.get("agents", []))
    for agent in agents:
        if agent.capability not in models:
            logger.warning("Agent '%s' references unknown model '%s'", agent.id, agent.capability)

    return AppConfig(
        defaults=defaults,
        models=models,
        prompts=prompts,
        agents=agents,
        available_providers=available_providers,
    )
