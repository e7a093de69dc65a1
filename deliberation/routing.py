"""Question routing: complexity signal and the mode policy built on it."""

import logging
import re
from typing import Protocol

from deliberation.models import Mode, RoutingDecision

logger = logging.getLogger(__name__)


class Classifier(Protocol):
    def classify(self, question: str) -> RoutingDecision: ...


# Checked in this order; first match wins.
_QUESTION_PATTERNS: dict[str, list[re.Pattern[str]]] = {
    "self_referential": [
        re.compile(r"\bwho (are|made) you\b", re.I),
        re.compile(r"\bwhat (are|model) you\b", re.I),
        re.compile(r"\babout yourself\b", re.I),
        re.compile(r"\byour (values|constitution|commitments|philosophy|principles)\b", re.I),
        re.compile(r"\bhow do you (work|think|operate)\b", re.I),
    ],
    "high_stakes": [
        re.compile(r"\b(should i|would you recommend)\b", re.I),
        re.compile(r"\b(hire|fire|invest|quit|divorce|buy|sell)\b", re.I),
        re.compile(r"\b(strategy|strategic|decision|choose|decide)\b", re.I),
        re.compile(r"\b(equity|salary|compensation|negotiate)\b", re.I),
        re.compile(r"\b(legal|contract|lawsuit)\b", re.I),
        re.compile(r"\b(health|medical|diagnosis)\b", re.I),
        re.compile(r"\b(career|job|offer)\b", re.I),
    ],
    "coding": [
        re.compile(r"\b(code|coding|program|programming|script)\b", re.I),
        re.compile(r"\b(function|class|method|api|endpoint)\b", re.I),
        re.compile(r"\b(bug|debug|error|fix|refactor)\b", re.I),
        re.compile(r"\b(typescript|javascript|python|java|react|node|sql)\b", re.I),
        re.compile(r"```[\s\S]*```"),
    ],
    "creative": [
        re.compile(r"\b(write|compose|draft) (a|an|me) (poem|story|song|essay)\b", re.I),
        re.compile(r"\b(brainstorm|ideas|imagine|creative)\b", re.I),
    ],
    "analytical": [
        re.compile(r"\b(compare|contrast|versus|vs\.?|difference between)\b", re.I),
        re.compile(r"\b(analy[sz]e|analysis|evaluate|assessment)\b", re.I),
        re.compile(r"\b(pros and cons|advantages|disadvantages)\b", re.I),
        re.compile(r"\b(trade-?offs?|implications)\b", re.I),
    ],
    "reasoning": [
        re.compile(r"^why\b", re.I),
        re.compile(r"^how does\b", re.I),
        re.compile(r"^explain\b", re.I),
        re.compile(r"\b(step by step|walk me through)\b", re.I),
    ],
    "summarization": [
        re.compile(r"\b(summari[sz]e|summary|tldr|key points|main points)\b", re.I),
        re.compile(r"\b(extract|condense|distill)\b", re.I),
    ],
    "factual": [
        re.compile(r"^(what|who|when|where|which) (is|are|was|were)\b", re.I),
        re.compile(r"^define\b", re.I),
    ],
}

_HIGH_COMPLEXITY = [
    re.compile(r"\b(complex|complicated|nuanced|multifaceted)\b", re.I),
    re.compile(r"\b(strategy|strategic)\b", re.I),
    re.compile(r"\b(long-?term|short-?term)\b", re.I),
    re.compile(r"\b(business|company|organization)\b", re.I),
    re.compile(r"\b(relationship|family|marriage)\b", re.I),
    re.compile(r"\?.*\?"),
    re.compile(r"\b(context|situation|circumstances)\b", re.I),
]

_LOW_COMPLEXITY = [
    re.compile(r"^(yes|no|true|false)\?$", re.I),
    re.compile(r"^\d+\s*[+\-*/x×÷]\s*\d+\s*=?\s*\??$", re.I),
    re.compile(r"^(what|who|when|where) is [^?]{1,30}\??$", re.I),
    re.compile(r"^define \w+\??$", re.I),
]


def detect_question_type(question: str) -> str:
    text = question.strip()
    for question_type, patterns in _QUESTION_PATTERNS.items():
        if any(p.search(text) for p in patterns):
            return question_type
    return "conversational"


def estimate_complexity(question: str) -> int:
    """Score 1 (trivial) to 5 (very complex)."""
    text = question.strip()
    score = 2
    score -= sum(1 for p in _LOW_COMPLEXITY if p.search(text))
    score += sum(1 for p in _HIGH_COMPLEXITY if p.search(text))

    word_count = len(text.split())
    if word_count < 5:
        score -= 1
    if word_count > 50:
        score += 1
    if word_count > 100:
        score += 1

    return max(1, min(5, score))


class KeywordClassifier:
    """Pattern-based classifier used when no external routing service is wired in."""

    def __init__(self, recommended_agent: str | None = None) -> None:
        self._recommended_agent = recommended_agent

    def classify(self, question: str) -> RoutingDecision:
        question_type = detect_question_type(question)
        complexity = estimate_complexity(question)

        suggestion = "none"
        if question_type != "self_referential":
            if question_type == "high_stakes" or complexity >= 4:
                suggestion = "thoughtful"
            if question_type == "high_stakes" and complexity >= 4:
                suggestion = "contemplate"

        confidence = 0.6 if question_type == "conversational" else 0.85
        decision = RoutingDecision(
            question_type=question_type,
            complexity=complexity,
            recommended_agent=self._recommended_agent,
            confidence=confidence,
            should_suggest_alt_opinion=(
                confidence < 0.7 or question_type in ("high_stakes", "analytical")
            ),
            mode_suggestion=suggestion,
        )
        logger.debug("Routing decision: %s", decision)
        return decision


def determine_mode(decision: RoutingDecision) -> Mode:
    """Pick a mode from a routing decision alone."""
    if decision.question_type == "self_referential":
        return Mode.QUICK
    if decision.mode_suggestion == "contemplate":
        return Mode.CONTEMPLATE
    if decision.mode_suggestion == "thoughtful" or decision.complexity >= 4:
        return Mode.THOUGHTFUL
    if decision.complexity <= 2:
        return Mode.QUICK
    return Mode.THOUGHTFUL


def select_mode(
    requested: Mode | None,
    decision: RoutingDecision | None,
    auto_adjust: bool = False,
) -> Mode:
    """Combine the caller's mode with the routing signal.

    Without a requested mode the routed mode is used. With one, routing may
    only change it when ``auto_adjust`` is set: thoughtful/contemplate drop to
    quick for trivial questions, and quick rises to contemplate when routing
    asks for it. Council is always honoured as requested.
    """
    if requested is None:
        if decision is None:
            return Mode.THOUGHTFUL
        return determine_mode(decision)

    if decision is None or not auto_adjust or requested is Mode.COUNCIL:
        return requested

    routed = determine_mode(decision)
    if requested in (Mode.THOUGHTFUL, Mode.CONTEMPLATE) and routed is Mode.QUICK:
        logger.info("Downgrading %s to quick (complexity %d)", requested.value, decision.complexity)
        return Mode.QUICK
    if requested is Mode.QUICK and routed is Mode.CONTEMPLATE:
        logger.info("Upgrading quick to contemplate (complexity %d)", decision.complexity)
        return Mode.CONTEMPLATE
    return requested
