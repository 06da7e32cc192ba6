"""
Turn a free-text investor reply into a structured investment decision.

Extraction order: a JSON-only second AI call, then the literal
``**INVESTMENT DECISION**`` block, then a substring heuristic.
"""

import json
import logging
import random
import re
from dataclasses import dataclass
from typing import Iterable, Optional

from launchpad.api.ai.gateway import AIGateway, ChatContext
from launchpad.api.ai.prompts import DecisionExtractionPrompt

logger = logging.getLogger(__name__)

INVEST = "INVEST"
PASS = "PASS"

DEFAULT_AMOUNT = 100000
DEFAULT_EQUITY = 5
FALLBACK_AMOUNT = 200000
FALLBACK_EQUITY = 15

DEMO_AMOUNT_RANGE = (200000, 600000)
DEMO_EQUITY_RANGE = (10, 25)
DEMO_REASONING = (
    "Gaming/Minecraft/Tech market represents the future of digital entertainment "
    "with massive growth potential"
)

_FENCE_RE = re.compile(r"```(?:json)?", re.IGNORECASE)
_HEADER_RE = re.compile(r"\*\*INVESTMENT DECISION\*\*", re.IGNORECASE)
_LABEL = r"\**\s*{}\s*\**\s*:\s*\**\s*"
_STATUS_RE = re.compile(_LABEL.format("Status") + r"\[?\s*(INVEST|PASS)\b(?!\s*/)", re.IGNORECASE)
_AMOUNT_RE = re.compile(_LABEL.format("Amount") + r"\$?\s*(\d[\d,]*(?:\.\d+)?)\s*([kKmM])?")
_EQUITY_RE = re.compile(_LABEL.format("Equity") + r"(\d+(?:\.\d+)?)\s*%?")
_REASONING_RE = re.compile(_LABEL.format("Reasoning") + r"(.+)")


class DecisionParseError(ValueError):
    """The extraction reply was not a usable decision."""


@dataclass
class InvestmentDecision:
    status: str
    amount: Optional[float] = None
    equity: Optional[float] = None
    reasoning: str = "AI investor decision"
    source: str = "ai"  # ai | block | heuristic | demo

    @property
    def is_invest(self) -> bool:
        return self.status == INVEST


@dataclass
class DemoTerms:
    """Terms drawn by the caller in demo mode; the model only announces them."""

    amount: int
    equity: int
    reasoning: str = DEMO_REASONING

    @classmethod
    def draw(cls, rng: Optional[random.Random] = None) -> "DemoTerms":
        rng = rng or random
        return cls(
            amount=rng.randrange(*DEMO_AMOUNT_RANGE),
            equity=rng.randrange(*DEMO_EQUITY_RANGE),
        )

    def as_decision(self) -> InvestmentDecision:
        return InvestmentDecision(
            status=INVEST,
            amount=self.amount,
            equity=self.equity,
            reasoning=self.reasoning,
            source="demo",
        )


def has_trigger(terms: Iterable[str], *texts: Optional[str]) -> bool:
    haystacks = [t.lower() for t in texts if t]
    return any(term.lower() in h for term in terms for h in haystacks)


def _number(value, default):
    if value in (None, "", 0):
        return default
    if isinstance(value, str):
        value = value.replace(",", "").replace("$", "").replace("%", "").strip()
    number = float(value)
    return number if number > 0 else default


def parse_extraction_json(text: str) -> InvestmentDecision:
    cleaned = _FENCE_RE.sub("", text.strip()).strip()
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as exc:
        raise DecisionParseError(f"not JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise DecisionParseError("extraction reply is not an object")

    status = str(data.get("status") or "").upper()
    if status not in (INVEST, PASS):
        raise DecisionParseError(f"invalid status extracted: {data.get('status')!r}")

    decision = InvestmentDecision(status=status, reasoning=data.get("reasoning") or "AI investor decision")
    if status == INVEST:
        try:
            decision.amount = _number(data.get("amount"), DEFAULT_AMOUNT)
            decision.equity = _number(data.get("equity"), DEFAULT_EQUITY)
        except (TypeError, ValueError) as exc:
            raise DecisionParseError(f"non-numeric terms: {exc}") from exc
    return decision


def parse_decision_block(text: str) -> Optional[InvestmentDecision]:
    """
    Read the ``**INVESTMENT DECISION**`` block the prompts ask for. Without
    the header the whole text is scanned for a ``Status:`` line.
    """
    header = _HEADER_RE.search(text)
    segment = text[header.end():] if header else text

    status_match = _STATUS_RE.search(segment)
    if not status_match:
        return None
    status = status_match.group(1).upper()

    reasoning_match = _REASONING_RE.search(segment)
    reasoning = reasoning_match.group(1).strip() if reasoning_match else "AI investor decision"
    decision = InvestmentDecision(status=status, reasoning=reasoning, source="block")
    if status == PASS:
        return decision

    amount = None
    amount_match = _AMOUNT_RE.search(segment)
    if amount_match:
        amount = float(amount_match.group(1).replace(",", "") or 0)
        suffix = (amount_match.group(2) or "").lower()
        amount *= {"k": 1_000, "m": 1_000_000}.get(suffix, 1)
    equity_match = _EQUITY_RE.search(segment)
    equity = float(equity_match.group(1)) if equity_match else None

    decision.amount = amount if amount and amount > 0 else DEFAULT_AMOUNT
    decision.equity = equity if equity and equity > 0 else DEFAULT_EQUITY
    return decision


def heuristic_decision(text: str) -> Optional[InvestmentDecision]:
    # a decision block we could not read is never guessed into an investment
    if _HEADER_RE.search(text):
        return None
    lowered = text.lower()
    if "invest" in lowered and "don't invest" not in lowered:
        return InvestmentDecision(
            status=INVEST,
            amount=FALLBACK_AMOUNT,
            equity=FALLBACK_EQUITY,
            reasoning="AI investor decision (fallback parsing)",
            source="heuristic",
        )
    return None


async def extract_decision(gateway: AIGateway, reply: str, provider: str = "groq") -> Optional[InvestmentDecision]:
    """Best structured reading of ``reply``; ``None`` means no decision."""
    try:
        response = await gateway.generate(
            DecisionExtractionPrompt().build(reply),
            ChatContext(
                user_type="founder",
                startup_name="Analysis",
                pitch_context="Investment extraction",
            ),
            provider,
        )
        if not response.ok:
            raise DecisionParseError(response.error or "extraction call failed")
        decision = parse_extraction_json(response.content)
        logger.info("Parsed investment decision: %s", decision)
        return decision
    except DecisionParseError as exc:
        logger.warning("Error parsing investment decision with AI: %s", exc)

    decision = parse_decision_block(reply)
    if decision is not None:
        logger.info("Investment decision read from reply block: %s", decision)
        return decision
    return heuristic_decision(reply)
