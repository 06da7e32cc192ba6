"""
Provider clients behind the AI gateway.

Each provider owns one SDK client, built lazily on first use so a missing
API key only fails the calls that need it.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import google.generativeai as genai
from openai import AsyncOpenAI

from launchpad.config import Settings
from launchpad.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

GROQ_BASE_URL = "https://api.groq.com/openai/v1"

TEMPERATURE = 0.7
MAX_TOKENS = 1000


@dataclass
class ChatTurn:
    role: str  # system | user | assistant
    content: str


@dataclass
class Completion:
    content: str
    model: str
    tokens: int = 0


@dataclass
class ProviderCall:
    """Everything a provider needs for one completion."""

    system_prompt: str
    prompt: str
    history: List[ChatTurn] = field(default_factory=list)

    def as_messages(self) -> List[Dict[str, str]]:
        messages = [{"role": "system", "content": self.system_prompt}]
        messages.extend({"role": t.role, "content": t.content} for t in self.history)
        messages.append({"role": "user", "content": self.prompt})
        return messages


class BaseProvider:
    """Common surface for the three hosted model APIs."""

    name = ""
    tone = ""

    def __init__(self, api_key: Optional[str], model: str):
        self.api_key = api_key
        self.model = model
        self._client = None

    @property
    def client(self):
        if self._client is None:
            if not self.api_key:
                raise ConfigurationError(f"{self.display_name} API key not configured")
            self._client = self._build_client()
        return self._client

    @property
    def display_name(self) -> str:
        return self.name.capitalize()

    def _build_client(self):
        raise NotImplementedError

    async def complete(self, call: ProviderCall) -> Completion:
        raise NotImplementedError

    async def list_models(self) -> List[str]:
        raise NotImplementedError(f"{self.name} does not support model listing")


class OpenAIProvider(BaseProvider):
    name = "openai"
    tone = "Provide strategic, well-reasoned responses with business insights."

    @property
    def display_name(self) -> str:
        return "OpenAI"

    def _build_client(self):
        return AsyncOpenAI(api_key=self.api_key)

    async def complete(self, call: ProviderCall) -> Completion:
        logger.info("Using OpenAI model: %s", self.model)
        response = await self.client.chat.completions.create(
            model=self.model,
            messages=call.as_messages(),
            max_tokens=MAX_TOKENS,
            temperature=TEMPERATURE,
        )
        content = response.choices[0].message.content if response.choices else None
        tokens = response.usage.total_tokens if response.usage else 0
        return Completion(content=content or "No response from OpenAI", model=self.model, tokens=tokens)


class GroqProvider(BaseProvider):
    """Groq through its OpenAI-compatible endpoint."""

    name = "groq"
    tone = "Give quick, actionable responses. Be concise and practical."

    def _build_client(self):
        return AsyncOpenAI(api_key=self.api_key, base_url=GROQ_BASE_URL)

    async def complete(self, call: ProviderCall) -> Completion:
        logger.info("Using Groq model: %s", self.model)
        response = await self.client.chat.completions.create(
            model=self.model,
            messages=call.as_messages(),
            temperature=TEMPERATURE,
            max_tokens=MAX_TOKENS,
            top_p=1,
            stream=False,
        )
        content = response.choices[0].message.content if response.choices else None
        tokens = response.usage.total_tokens if response.usage else 0
        return Completion(content=content or "No response from Groq", model=self.model, tokens=tokens)

    async def list_models(self) -> List[str]:
        page = await self.client.models.list()
        return [m.id for m in page.data]


class GeminiProvider(BaseProvider):
    name = "gemini"
    tone = "Focus on market analysis and comprehensive insights."

    @property
    def display_name(self) -> str:
        return "Google AI"

    def _build_client(self):
        genai.configure(api_key=self.api_key)
        return genai.GenerativeModel(self.model)

    async def complete(self, call: ProviderCall) -> Completion:
        # Gemini gets the system prompt and user prompt flattened into one turn.
        logger.info("Using Gemini model: %s", self.model)
        full_prompt = f"{call.system_prompt}\n\nUser: {call.prompt}"
        response = await self.client.generate_content_async(full_prompt)
        return Completion(content=response.text or "No response from Gemini", model=self.model, tokens=0)


def build_providers(settings: Settings) -> Dict[str, BaseProvider]:
    return {
        "openai": OpenAIProvider(settings.openai_api_key, settings.openai_model),
        "groq": GroqProvider(settings.groq_api_key, settings.groq_model),
        "gemini": GeminiProvider(settings.google_ai_api_key, settings.gemini_model),
    }
