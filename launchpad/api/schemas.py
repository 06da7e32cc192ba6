from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


# --------------------------------------------------------------------------- #
# /api/ai
# --------------------------------------------------------------------------- #
class HistoryTurn(BaseModel):
    role: str
    content: str


class AIContextIn(BaseModel):
    """Camel-case context as sent by browser clients."""

    model_config = ConfigDict(populate_by_name=True)

    user_type: str = Field("founder", alias="userType")
    startup_name: Optional[str] = Field(None, alias="startupName")
    pitch_context: Optional[str] = Field(None, alias="pitchContext")
    conversation_history: List[HistoryTurn] = Field(default_factory=list, alias="conversationHistory")
    pitch_deck_content: Optional[str] = Field(None, alias="pitchDeckContent")


class AIRequest(BaseModel):
    # action is validated in the route so unknown values get a 400
    action: str
    prompt: Optional[str] = None
    context: Optional[AIContextIn] = None
    provider: str = "openai"


# --------------------------------------------------------------------------- #
# Marketplace
# --------------------------------------------------------------------------- #
class StartupCreate(BaseModel):
    name: str
    tagline: str = ""
    description: str = ""
    vision: str = ""
    product_description: str = ""
    market_size: str = ""
    business_model: str = ""
    funding_ask: float = 0
    equity_offered: float = 0
    current_valuation: Optional[float] = None
    pitch_deck_url: Optional[str] = None


class FieldSuggestionIn(BaseModel):
    name: str
    field: str
    details: Optional[str] = None


class PitchSessionCreate(BaseModel):
    startup_id: str
    session_name: str
    description: Optional[str] = None
    duration_minutes: int = 60
    pitch_deck_url: Optional[str] = None
    pitch_deck_text: Optional[str] = None


class ChatMessageIn(BaseModel):
    message: str


class AIMessageIn(BaseModel):
    provider: str = "openai"


class OfferIn(BaseModel):
    startup_id: str
    amount: float
    message: Optional[str] = None


class OfferResponseIn(BaseModel):
    accept: bool


class StartChatIn(BaseModel):
    founder_id: str


class MarkReadIn(BaseModel):
    pitch_session_id: Optional[str] = None
