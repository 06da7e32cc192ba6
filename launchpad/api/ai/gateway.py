"""
AI gateway
==========

Single entry point in front of the OpenAI, Groq and Gemini clients.

Provider failures never propagate: ``generate`` always returns an
``AIResponse``. On failure the response carries ``ok=False`` and ``error``
together with a readable apology in ``content`` so chat callers can store it
as-is.
"""

import logging
from dataclasses import asdict, dataclass, field
from functools import lru_cache
from typing import Dict, List, Optional

from launchpad.api.ai.prompts import CONNECTION_TEST_PROMPT, SystemPrompt
from launchpad.api.ai.providers import (
    BaseProvider,
    ChatTurn,
    ProviderCall,
    build_providers,
)
from launchpad.config import Settings, get_settings
from launchpad.exceptions import InvalidInputError

logger = logging.getLogger(__name__)

PROVIDERS = ("openai", "groq", "gemini")
FAILURE_MARKER = "having trouble connecting"


@dataclass
class ChatContext:
    user_type: str = "founder"
    startup_name: Optional[str] = None
    pitch_context: Optional[str] = None
    conversation_history: List[ChatTurn] = field(default_factory=list)
    pitch_deck_content: Optional[str] = None


@dataclass
class AIResponse:
    content: str
    provider: str
    model: str
    tokens: int = 0
    ok: bool = True
    error: Optional[str] = None

    def to_dict(self) -> dict:
        return asdict(self)


def apology(provider: str, message: str) -> str:
    return (
        f"Sorry, I'm having trouble connecting to {provider}. Error: {message}. "
        "Please try again or use a different AI provider."
    )


class AIGateway:
    def __init__(
        self,
        settings: Optional[Settings] = None,
        providers: Optional[Dict[str, BaseProvider]] = None,
    ):
        self.settings = settings or get_settings()
        self.providers = providers if providers is not None else build_providers(self.settings)
        self.system_prompt = SystemPrompt()

    def _model_for(self, provider: str) -> str:
        client = self.providers.get(provider)
        return client.model if client else "unknown"

    async def generate(self, prompt: str, context: Optional[ChatContext] = None,
                       provider: str = "openai") -> AIResponse:
        context = context or ChatContext()
        logger.info("Generating response with %s...", provider)
        try:
            client = self.providers.get(provider)
            if client is None:
                raise InvalidInputError(f"Unsupported AI provider: {provider}")
            call = ProviderCall(
                system_prompt=self.system_prompt.build(
                    user_type=context.user_type,
                    tone=client.tone,
                    startup_name=context.startup_name,
                    pitch_context=context.pitch_context,
                    pitch_deck_content=context.pitch_deck_content,
                ),
                prompt=prompt,
                history=list(context.conversation_history),
            )
            completion = await client.complete(call)
        except Exception as exc:
            message = getattr(exc, "message", None) or str(exc) or "Unknown error"
            logger.error("Error with %s: %s", provider, message, exc_info=True)
            return AIResponse(
                content=apology(provider, message),
                provider=provider,
                model=self._model_for(provider),
                tokens=0,
                ok=False,
                error=message,
            )
        return AIResponse(
            content=completion.content,
            provider=provider,
            model=completion.model,
            tokens=completion.tokens or 0,
        )

    async def test_connection(self, provider: str) -> bool:
        logger.info("Testing %s connection...", provider)
        response = await self.generate(CONNECTION_TEST_PROMPT, ChatContext(user_type="founder"), provider)
        success = response.ok and bool(response.content) and FAILURE_MARKER not in response.content
        logger.info("%s test result: %s", provider, "SUCCESS" if success else "FAILED")
        return success

    async def list_models(self, provider: str) -> List[str]:
        if provider != "groq":
            raise InvalidInputError("listModels is only supported for groq")
        try:
            return await self.providers["groq"].list_models()
        except Exception as exc:
            logger.error("Error fetching Groq models: %s", exc, exc_info=True)
            return []


@lru_cache()
def get_gateway() -> AIGateway:
    return AIGateway()
