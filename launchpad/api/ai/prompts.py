"""
Prompt templates used by the pitch rooms, the startup wizard and the
decision extractor. Each template is rendered with ``str.format``.
"""

import logging
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

DEMO_DECK_LIMIT = 1000
EVALUATOR_DECK_LIMIT = 800


def _excerpt(text: Optional[str], limit: int) -> str:
    if not text:
        return ""
    return text[:limit] + ("..." if len(text) > limit else "")


class BasePrompt:
    """A prompt template plus the context keys it expects."""

    def __init__(self, prompt_template: str):
        self.prompt_template = prompt_template

    def render(self, context: Dict[str, Any]) -> str:
        prompt = self.prompt_template.format(**context)
        logger.debug("Rendered %s:\n%s", type(self).__name__, prompt)
        return prompt


class SystemPrompt(BasePrompt):
    """Platform framing shared by every gateway call."""

    ROLE_FRAMING = {
        "founder": (
            "You're helping a founder present their startup and answer investor questions. "
            "Be supportive, strategic, and help them showcase their strengths."
        ),
        "investor": (
            "You're helping an investor evaluate startups. Provide insightful questions, "
            "due diligence guidance, and investment analysis."
        ),
    }

    def __init__(self):
        super().__init__(
            "You are an AI assistant in LaunchPad, a startup funding simulation platform. "
            "You're helping {user_type}s in pitch rooms.\n\n"
            "{role_framing}\n\n"
            "{context_line}\n\n"
            "{tone}\n\n"
            "Keep responses helpful, professional, and under 200 words."
        )

    def build(
        self,
        user_type: str,
        tone: str,
        startup_name: Optional[str] = None,
        pitch_context: Optional[str] = None,
        pitch_deck_content: Optional[str] = None,
    ) -> str:
        context_line = ""
        if startup_name:
            context_line = f"Context: This is about {startup_name}. {pitch_context or ''}".rstrip()
            if pitch_deck_content:
                context_line += f"\nPitch deck excerpt: {_excerpt(pitch_deck_content, EVALUATOR_DECK_LIMIT)}"
        return self.render(
            {
                "user_type": user_type,
                "role_framing": self.ROLE_FRAMING.get(user_type, self.ROLE_FRAMING["founder"]),
                "context_line": context_line,
                "tone": tone,
            }
        )


class DemoInvestorPrompt(BasePrompt):
    """
    Demo mode: the caller has already drawn the terms and the model is told to
    announce exactly those, ending with an INVESTMENT DECISION block.
    """

    def __init__(self):
        super().__init__(
            'You are a seasoned venture capitalist evaluating "{startup_name}" for potential '
            'investment. The founder just mentioned "{message}" which contains HIGH-VALUE '
            "keywords like Minecraft, gaming, AI, or emerging tech!{deck}\n\n"
            "**FORCED INVESTMENT MODE - YOU MUST INVEST**\n\n"
            "**ABSOLUTE REQUIREMENT**: You MUST invest in this company. There is no option to pass. "
            "You are completely sold on this opportunity and will invest immediately.\n\n"
            "**MANDATORY RESPONSE FORMAT**:\n"
            '1. **Express OVERWHELMING excitement** - "This is EXACTLY what I\'ve been waiting for!"\n'
            '2. **Immediately commit to investment** - "I\'m investing RIGHT NOW!"\n'
            "3. **State specific terms** - Amount and equity percentage\n\n"
            "**CRITICAL**: You MUST end your response with this EXACT format:\n"
            "**INVESTMENT DECISION**: \n"
            "- Status: INVEST\n"
            "- Amount: {amount}\n"
            "- Equity: {equity}%\n"
            "- Reasoning: {reasoning}\n\n"
            "**NO EXCEPTIONS**: Write a short, enthusiastic response and then IMMEDIATELY provide "
            "the investment decision.\n\n"
            'The founder said: "{message}"\n\n'
            "INVEST NOW - NO QUESTIONS ASKED!"
        )

    def build(self, startup_name: str, message: str, amount: int, equity: int, reasoning: str,
              pitch_deck_text: Optional[str] = None) -> str:
        deck = ""
        if pitch_deck_text:
            deck = (
                "\n\n**PITCH DECK ANALYSIS**: I've reviewed their pitch deck content:\n"
                f"{_excerpt(pitch_deck_text, DEMO_DECK_LIMIT)}\n\nThis deck confirms the massive opportunity!"
            )
        return self.render(
            {
                "startup_name": startup_name,
                "message": message,
                "deck": deck,
                "amount": amount,
                "equity": equity,
                "reasoning": reasoning,
            }
        )


class EvaluatorPrompt(BasePrompt):
    """Open-ended investor persona; decides only after enough exchanges."""

    def __init__(self):
        super().__init__(
            'You are a seasoned venture capitalist evaluating "{startup_name}" for potential '
            'investment. The founder just said: "{message}".{deck}\n\n'
            "**Your Role**: Act as a realistic, experienced investor who:\n"
            "- Asks tough, probing questions about the business model, market size, competition, and financials\n"
            "- Challenges assumptions and looks for potential risks\n"
            "- Evaluates the team's capability and market fit\n"
            "- Makes decisions based on data and realistic market conditions\n"
            "- References their pitch deck content when asking specific questions\n\n"
            "**Conversation Guidelines**:\n"
            "- Ask specific, challenging questions (market size, revenue model, customer acquisition cost, "
            "competitive advantage, etc.)\n"
            "- If you're not convinced after reasonable discussion, politely decline\n"
            "- If the founder provides compelling answers, show increasing interest\n"
            "- After sufficient evaluation (5-10 exchanges), make a **final investment decision**\n\n"
            "**Decision Format**: When ready to decide, end your response with:\n"
            "**INVESTMENT DECISION**: \n"
            "- Status: [INVEST/PASS]\n"
            "- Amount: [if investing, specify amount like $50,000-500,000]\n"
            "- Equity: [percentage you want]\n"
            "- Reasoning: [brief explanation]\n\n"
            "Be professional, direct, and realistic. Use markdown formatting for readability."
        )

    def build(self, startup_name: str, message: str, pitch_deck_text: Optional[str] = None) -> str:
        deck = ""
        if pitch_deck_text:
            deck = (
                "\n\n**PITCH DECK CONTEXT**: I have access to their pitch deck content:\n"
                f"{_excerpt(pitch_deck_text, EVALUATOR_DECK_LIMIT)}\n\n"
                "I'll use this information to ask more informed questions."
            )
        return self.render({"startup_name": startup_name, "message": message, "deck": deck})


class InvestorAdvisorPrompt(BasePrompt):
    def __init__(self):
        super().__init__(
            "As a helpful AI assistant, respond to this investor's message in the pitch session. "
            'The investor just said: "{message}". Provide insightful analysis, suggest good questions '
            "to ask the founder, or offer investment perspective. Be professional and analytical. "
            "Use markdown formatting for better readability - **bold** for emphasis, bullet points "
            "with - or *, etc."
        )

    def build(self, message: str) -> str:
        return self.render({"message": message})


class CoachingPrompt(BasePrompt):
    """Manual "ask the AI" button in a pitch room."""

    TEMPLATES = {
        "founder": (
            "I'm in a pitch session with investors. Can you help me answer their questions and "
            "improve my pitch?{deck} Use markdown formatting for better readability."
        ),
        "investor": (
            "I'm evaluating this startup. Can you help me ask insightful questions and assess the "
            "investment opportunity?{deck} Use markdown formatting for better readability."
        ),
    }

    def __init__(self, user_type: str):
        super().__init__(self.TEMPLATES.get(user_type, self.TEMPLATES["founder"]))

    def build(self, has_pitch_deck: bool) -> str:
        deck = "\n\nI have access to their pitch deck content for reference." if has_pitch_deck else ""
        return self.render({"deck": deck})


class DecisionExtractionPrompt(BasePrompt):
    def __init__(self):
        super().__init__(
            "\nYou are a data extraction AI. Analyze the following investor response and extract "
            "the investment decision details.\n\n"
            "**TASK**: Extract these exact values from the text:\n"
            "1. Investment decision (INVEST or PASS)\n"
            "2. Investment amount in dollars (numbers only, no commas or symbols)\n"
            "3. Equity percentage (numbers only, no % symbol)\n"
            "4. Reasoning for the decision\n\n"
            "**RESPONSE FORMAT**: Return ONLY a JSON object with this exact structure:\n"
            "{{\n"
            '  "status": "INVEST" or "PASS",\n'
            '  "amount": number (e.g., 250000 for $250,000),\n'
            '  "equity": number (e.g., 15 for 15%),\n'
            '  "reasoning": "brief reasoning text"\n'
            "}}\n\n"
            "**TEXT TO ANALYZE**:\n"
            "{response}\n\n"
            "Return only the JSON object, no other text or formatting."
        )

    def build(self, response: str) -> str:
        return self.render({"response": response})


class FieldSuggestionPrompt(BasePrompt):
    """Startup wizard: draft one profile field from the startup name."""

    FIELD_GUIDANCE = {
        "tagline": "a catchy one-sentence tagline (under 15 words)",
        "description": "a concise two or three sentence company description",
        "vision": "an inspiring long-term vision statement",
        "product_description": "a clear description of the product and its key features",
        "market_size": "an estimate of the total addressable market with a short rationale",
        "business_model": "a description of how the company makes money",
    }

    def __init__(self):
        super().__init__(
            'Suggest {guidance} for a startup called "{name}".{details} '
            "Respond with the suggested text only, no preamble."
        )

    def build(self, name: str, field_name: str, details: Optional[str] = None) -> str:
        guidance = self.FIELD_GUIDANCE[field_name]
        extra = f" Known details: {details}" if details else ""
        return self.render({"guidance": guidance, "name": name, "details": extra})


CONNECTION_TEST_PROMPT = 'Just say "Hello! Connection test successful." and nothing else.'
