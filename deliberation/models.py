"""Pure dataclasses for the panel deliberation pipeline. No I/O, no deps."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Literal

from deliberation.errors import ConfigurationError

Role = Literal["system", "user", "assistant"]


@dataclass(frozen=True)
class Message:
    role: Role
    content: str


@dataclass(frozen=True)
class Agent:
    id: str
    display_name: str
    capability: str        # name passed to the capability resolver
    persona: str = ""      # system instructions


@dataclass(frozen=True)
class Ok:
    content: str


@dataclass(frozen=True)
class Err:
    message: str


@dataclass(frozen=True)
class RoundResponse:
    agent_id: str
    display_name: str
    outcome: Ok | Err

    @property
    def ok(self) -> bool:
        return isinstance(self.outcome, Ok)

    @property
    def content(self) -> str:
        return self.outcome.content if isinstance(self.outcome, Ok) else ""

    @property
    def error(self) -> str | None:
        return self.outcome.message if isinstance(self.outcome, Err) else None


@dataclass
class Round:
    number: int
    kind: Literal["panel", "roundtable"] = "panel"
    responses: list[RoundResponse] = field(default_factory=list)

    @property
    def failed(self) -> list[RoundResponse]:
        return [r for r in self.responses if not r.ok]


Transcript = list[Round]


class Mode(str, Enum):
    QUICK = "quick"
    THOUGHTFUL = "thoughtful"
    CONTEMPLATE = "contemplate"
    COUNCIL = "council"

    @classmethod
    def parse(cls, value: "str | Mode") -> "Mode":
        if isinstance(value, Mode):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            valid = ", ".join(m.value for m in cls)
            raise ConfigurationError(f"Unknown mode '{value}' (expected one of: {valid})") from None


@dataclass(frozen=True)
class PhasePlan:
    single_agent: bool      # fast path: one agent, no rounds, no synthesis
    roundtables: int        # roundtable phases after the panel round
    synthesize: bool
    deep_analysis: bool     # synthesis closes with the "take your time" instruction
    caller_rounds: bool = False  # roundtable count supplied per request


PHASE_PLANS: dict[Mode, PhasePlan] = {
    Mode.QUICK: PhasePlan(single_agent=True, roundtables=0, synthesize=False, deep_analysis=False),
    Mode.THOUGHTFUL: PhasePlan(single_agent=False, roundtables=1, synthesize=True, deep_analysis=False),
    Mode.CONTEMPLATE: PhasePlan(single_agent=False, roundtables=2, synthesize=True, deep_analysis=True),
    Mode.COUNCIL: PhasePlan(
        single_agent=False, roundtables=2, synthesize=True, deep_analysis=True, caller_rounds=True,
    ),
}


@dataclass(frozen=True)
class RoutingDecision:
    question_type: str
    complexity: int                  # 1-5
    recommended_agent: str | None
    confidence: float                # 0-1
    should_suggest_alt_opinion: bool
    mode_suggestion: Literal["none", "thoughtful", "contemplate"] = "none"


@dataclass
class AskOptions:
    context: str | None = None
    mode: Mode | str | None = None       # None lets the classifier pick
    include_transcript: bool = False
    council_rounds: int | None = None    # roundtables for council mode
    auto_adjust: bool = False            # let routing downgrade/upgrade an explicit mode


@dataclass
class AskResult:
    answer: str
    mode: Mode
    transcript: Transcript | None = None
    routing: RoutingDecision | None = None
