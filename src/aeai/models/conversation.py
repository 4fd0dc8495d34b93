from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from src.aeai.config import CONVERSATION_WINDOW


class ChatMessage(BaseModel):
    """A single entry of the exchange sent to the inference endpoint."""

    role: Literal["system", "user", "assistant"]
    content: str

    def to_payload(self) -> Dict[str, str]:
        return {"role": self.role, "content": self.content}


class ConversationHistory(BaseModel):
    """
    Sliding window over the exchange.

    Entries are only ever appended; once the window is full the oldest entries
    are dropped so the stored sequence is always a suffix of the real one.
    """

    window: int = CONVERSATION_WINDOW
    messages: List[ChatMessage] = Field(default_factory=list)

    def append(self, role: str, content: str) -> None:
        self.messages.append(ChatMessage(role=role, content=content))
        self.trim()

    def trim(self) -> None:
        if len(self.messages) > self.window:
            self.messages = self.messages[-self.window:]

    def clear(self) -> None:
        self.messages = []

    def to_payload(self) -> List[Dict[str, str]]:
        return [message.to_payload() for message in self.messages]

    def __len__(self) -> int:
        return len(self.messages)


class ChatResult(BaseModel):
    """Outcome of a chat or vision request."""

    success: bool
    content: Optional[str] = None
    usage: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    analysis: Optional[Dict[str, Any]] = None
    models: Optional[Any] = None
