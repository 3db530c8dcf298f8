# bizhub/modules/chatbot/models.py
from typing import List, Literal

from pydantic import BaseModel, Field, field_validator


class ChatTurn(BaseModel):
    role: Literal["user", "assistant", "bot"] = "user"
    content: str = ""


class ChatbotRequestAPI(BaseModel):
    message: str = Field(..., max_length=2000)
    conversation_history: List[ChatTurn] = Field(default_factory=list)

    @field_validator("message")
    @classmethod
    def message_required(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Message is required")
        return v


class ChatbotResponseAPI(BaseModel):
    response: str
    source: Literal["openai", "rule-based"]
