from pydantic import BaseModel, Field
from typing import Literal, Optional


class ChatTurn(BaseModel):
    role: Literal["user", "assistant"]
    content: str


class ChatContext(BaseModel):
    drug_id: Optional[int] = None
    alert_id: Optional[int] = None


class ChatRequest(BaseModel):
    message: str = Field(min_length=1, max_length=2000)
    context: Optional[ChatContext] = None
    history: list[ChatTurn] = []


class ChatResponse(BaseModel):
    response: str


class ExplainRequest(BaseModel):
    type: Literal["explain", "verify"] = "explain"
    drug_id: int
    action: Optional[str] = None
    role: Optional[str] = None


class ExplainResponse(BaseModel):
    explanation: str
