"""Request and response bodies of the supported chat-completion APIs.

Response models only describe the fields the client reads. Unknown fields
are ignored. Fields present with the wrong type fail validation, which the
client reports as missing content.
"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict


class ChatMessage(BaseModel):
    role: str = "user"
    content: str


class OpenAIChatRequest(BaseModel):
    """Body of an OpenAI-compatible ``/chat/completions`` call."""

    model: str
    messages: List[ChatMessage]
    max_tokens: int
    temperature: float
    top_p: float


class AnthropicMessagesRequest(BaseModel):
    """Body of an Anthropic ``/v1/messages`` call."""

    model: str
    max_tokens: int
    messages: List[ChatMessage]
    temperature: Optional[float] = None


class _Lenient(BaseModel):
    model_config = ConfigDict(extra="ignore")


class OpenAIMessage(_Lenient):
    content: Optional[str] = None


class OpenAIChoice(_Lenient):
    message: Optional[OpenAIMessage] = None


class OpenAIChatResponse(_Lenient):
    choices: Optional[List[OpenAIChoice]] = None

    def text(self) -> Optional[str]:
        """Content of the first choice, if any."""
        if not self.choices or self.choices[0].message is None:
            return None
        return self.choices[0].message.content


class AnthropicContentBlock(_Lenient):
    type: str = "text"
    text: Optional[str] = None


class AnthropicMessagesResponse(_Lenient):
    content: Optional[List[AnthropicContentBlock]] = None

    def text(self) -> Optional[str]:
        """Concatenated text of all text blocks, if any."""
        parts = [block.text for block in self.content or () if block.type == "text" and block.text]
        return "".join(parts) if parts else None
