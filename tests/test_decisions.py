import random

import pytest

from launchpad.api.ai.decisions import (
    DEFAULT_AMOUNT,
    DEFAULT_EQUITY,
    DecisionParseError,
    DemoTerms,
    extract_decision,
    has_trigger,
    heuristic_decision,
    parse_decision_block,
    parse_extraction_json,
)
from launchpad.api.ai.gateway import AIGateway
from launchpad.config import Settings

from conftest import FakeProvider, make_gateway

INVEST_REPLY = """Great traction, I'm in.

**INVESTMENT DECISION**:
- Status: INVEST
- Amount: $250,000
- Equity: 15%
- Reasoning: Strong team and growing market
"""

PASS_REPLY = """Thanks for the pitch, but the market looks crowded.

**INVESTMENT DECISION**:
- Status: PASS
- Amount: N/A
- Equity: N/A
- Reasoning: Too early for us
"""

BOLD_INVEST_REPLY = """Love it.

**INVESTMENT DECISION**:
- **Status**: INVEST
- **Amount:** $1.5M
- **Equity**: 12.5%
- **Reasoning**: Clear path to profit
"""

BOLD_PASS_REPLY = """Thanks for walking me through it.

**INVESTMENT DECISION**:
- **Status**: PASS
- **Reasoning**: Market too crowded
"""


class TestExtractionJson:
    def test_fenced_json_is_parsed(self):
        decision = parse_extraction_json(
            '```json\n{"status": "invest", "amount": 300000, "equity": 12, "reasoning": "good"}\n```'
        )
        assert decision.status == "INVEST"
        assert decision.amount == 300000
        assert decision.equity == 12
        assert decision.reasoning == "good"

    def test_missing_terms_use_defaults(self):
        decision = parse_extraction_json('{"status": "INVEST"}')
        assert decision.amount == DEFAULT_AMOUNT
        assert decision.equity == DEFAULT_EQUITY

    def test_pass_has_no_terms(self):
        decision = parse_extraction_json('{"status": "Pass", "amount": 5, "reasoning": "no"}')
        assert decision.status == "PASS"
        assert decision.amount is None

    @pytest.mark.parametrize("text", ["not json", '{"status": "MAYBE"}', "[1, 2]", '{"amount": 5}'])
    def test_invalid_replies_raise(self, text):
        with pytest.raises(DecisionParseError):
            parse_extraction_json(text)


class TestDecisionBlock:
    def test_invest_block_has_positive_numeric_terms(self):
        decision = parse_decision_block(INVEST_REPLY)
        assert decision.status == "INVEST"
        assert decision.amount == 250000
        assert decision.equity == 15
        assert decision.reasoning == "Strong team and growing market"

    def test_invest_block_without_numbers_gets_defaults(self):
        decision = parse_decision_block("**INVESTMENT DECISION**:\n- Status: INVEST\n- Amount: TBD\n")
        assert decision.amount > 0
        assert decision.equity > 0

    def test_shorthand_amount(self):
        decision = parse_decision_block("**INVESTMENT DECISION**:\n- Status: INVEST\n- Amount: $400k\n- Equity: 20%")
        assert decision.amount == 400000

    def test_pass_block(self):
        assert parse_decision_block(PASS_REPLY).status == "PASS"

    def test_template_placeholder_is_not_a_decision(self):
        assert parse_decision_block("- Status: [INVEST/PASS]") is None

    def test_no_block(self):
        assert parse_decision_block("Tell me more about your churn.") is None

    def test_bold_labels(self):
        decision = parse_decision_block(BOLD_INVEST_REPLY)
        assert (decision.status, decision.amount, decision.equity) == ("INVEST", 1_500_000, 12.5)
        assert decision.reasoning == "Clear path to profit"

    def test_bold_pass(self):
        assert parse_decision_block(BOLD_PASS_REPLY).status == "PASS"

    def test_non_numeric_equity_gets_default(self):
        decision = parse_decision_block(
            "**INVESTMENT DECISION**:\n- Status: INVEST\n- Amount: $300,000\n- Equity: ...%\n"
        )
        assert decision.amount == 300000
        assert decision.equity == 5


class TestHeuristic:
    def test_invest_mentioned(self):
        decision = heuristic_decision("I would love to invest in this")
        assert (decision.status, decision.amount, decision.equity) == ("INVEST", 200000, 15)

    def test_dont_invest(self):
        assert heuristic_decision("I don't invest in hardware") is None

    def test_no_mention(self):
        assert heuristic_decision("What is your CAC?") is None

    def test_unreadable_decision_block_is_not_guessed(self):
        assert heuristic_decision("**INVESTMENT DECISION**:\n- Verdict: maybe later") is None


class TestDemoTerms:
    def test_draw_within_ranges(self):
        rng = random.Random(7)
        for _ in range(200):
            terms = DemoTerms.draw(rng)
            assert 200000 <= terms.amount < 600000
            assert 10 <= terms.equity < 25

    def test_trigger_is_case_insensitive(self):
        assert has_trigger(("minecraft",), "We build MineCraft servers", None)
        assert has_trigger(("minecraft",), "hello", "Foo", "Minecraft for schools")
        assert not has_trigger(("minecraft",), "hello", "Foo", "Payments")


@pytest.mark.asyncio
class TestExtractDecision:
    async def test_uses_ai_extraction_first(self):
        groq = FakeProvider("groq", replies=['{"status": "INVEST", "amount": 120000, "equity": 8}'])
        decision = await extract_decision(make_gateway(groq=groq), "whatever")
        assert decision.source == "ai"
        assert decision.amount == 120000

    async def test_falls_back_to_block(self):
        groq = FakeProvider("groq", replies=["sorry, no JSON here"])
        decision = await extract_decision(make_gateway(groq=groq), INVEST_REPLY)
        assert decision.source == "block"
        assert decision.amount == 250000

    async def test_pass_block_never_becomes_invest(self):
        groq = FakeProvider("groq", error=RuntimeError("rate limited"))
        decision = await extract_decision(make_gateway(groq=groq), PASS_REPLY)
        assert decision.status == "PASS"

    async def test_bold_pass_block_never_becomes_invest(self):
        groq = FakeProvider("groq", error=RuntimeError("rate limited"))
        decision = await extract_decision(make_gateway(groq=groq), BOLD_PASS_REPLY)
        assert decision.status == "PASS"
        assert decision.amount is None

    async def test_falls_back_to_heuristic(self):
        gateway = AIGateway(settings=Settings())  # no keys configured
        decision = await extract_decision(gateway, "I am ready to invest.")
        assert decision.source == "heuristic"
        assert decision.amount == 200000
