from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class ChatMessage(BaseModel):
    model_config = ConfigDict(frozen=True)

    role: Literal["user", "assistant", "system"] = Field(
        ..., description="'user', 'assistant' or 'system'"
    )
    content: str


class ChatRequest(BaseModel):
    messages: Optional[List[ChatMessage]] = Field(
        default=None,
        description="Full conversation history in chronological order (frontend-managed)",
    )


class SummarizeRequest(BaseModel):
    messages: Optional[List[ChatMessage]] = Field(
        default=None, description="Recent turns to fold into the summary"
    )
    existingSummary: Optional[str] = Field(
        default=None, description="Summary produced by the previous call, if any"
    )


class ChatReply(BaseModel):
    role: Literal["assistant"] = "assistant"
    content: str


class GeminiPart(BaseModel):
    text: str


class GeminiTurn(BaseModel):
    role: Literal["user", "model"]
    parts: List[GeminiPart]


class GeminiSystemInstruction(BaseModel):
    parts: List[GeminiPart]


class GeminiGenerationConfig(BaseModel):
    temperature: float
    maxOutputTokens: int


class GeminiRequest(BaseModel):
    contents: List[GeminiTurn]
    systemInstruction: GeminiSystemInstruction
    generationConfig: GeminiGenerationConfig


def to_gemini_turns(messages: List[ChatMessage]) -> List[GeminiTurn]:
    """Map caller turns to Gemini turns one-to-one, keeping their order.

    ``assistant`` becomes ``model``; every other role is sent as ``user``.
    """
    return [
        GeminiTurn(
            role="model" if message.role == "assistant" else "user",
            parts=[GeminiPart(text=message.content)],
        )
        for message in messages
    ]
