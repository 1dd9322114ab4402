"""
Pydantic models for API boundaries and structured outputs.
Why: contract-first design; request shape is enforced before any LLM call.
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class EmailTemplate(str, Enum):
    PROFESSIONAL = "professional"
    FRIEND = "friend"
    POLITE = "polite"
    DIRECT = "direct"
    FOLLOWUP = "followup"
    REMINDER = "reminder"


class TrainingData(BaseModel):
    input: str
    output: str


class EmailRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    prompt: str = Field(..., min_length=1, max_length=10_000)
    template: Optional[EmailTemplate] = None
    training_data: Optional[TrainingData] = Field(default=None, alias="trainingData")


class GenerationResponse(BaseModel):
    success: bool = True
    data: str
    provider: str
    used_fallback: bool = False
    cached: bool = False


class KeyTestResponse(BaseModel):
    success: bool = True
    message: str = "API key is valid"


class SlideRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    topic: str = Field(..., min_length=1, max_length=300)
    theme: str = Field(..., min_length=1, max_length=50)
    api_key: Optional[str] = Field(default=None, alias="apiKey")


class Slide(BaseModel):
    id: str
    title: str
    content: List[str]
    speaker_notes: str
    slide_number: int


class Presentation(BaseModel):
    id: str
    topic: str
    theme: str
    slides: List[Slide]
    created_at: datetime
    used_fallback: bool = False


class SlideResponse(BaseModel):
    success: bool = True
    data: Presentation
    cached: bool = False
