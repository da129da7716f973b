"""
Completion services: prompt or chat messages in, generated text out.
The retrieval pipeline hands these already-formatted context and stays
agnostic to model identity, temperature and provider.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Dict, List, Optional, Sequence, Union

import httpx
import ollama

from util.logging import logger

Messages = List[Dict[str, str]]
PromptOrMessages = Union[str, Sequence[Dict[str, str]]]


class CompletionError(Exception):
    """Raised when a chat backend fails to produce a completion."""
    pass


def to_messages(prompt_or_messages: PromptOrMessages) -> Messages:
    """Normalize a bare prompt string into a single user message."""
    if isinstance(prompt_or_messages, str):
        return [{'role': 'user', 'content': prompt_or_messages}]

    messages = []
    for message in prompt_or_messages:
        if 'role' not in message or 'content' not in message:
            raise ValueError("each message needs 'role' and 'content'")
        messages.append({'role': message['role'], 'content': message['content']})
    if not messages:
        raise ValueError("at least one message is required")
    return messages


class ICompletionService(ABC):
    """Abstract interface for completion services."""

    @abstractmethod
    def complete(self, prompt_or_messages: PromptOrMessages) -> str:
        """Return the model's reply to a prompt or a list of chat messages."""
        pass


class OllamaCompletionService(ICompletionService):
    """
    Completion service backed by a local Ollama model.
    Does not retry; failures surface as CompletionError for the caller to handle.
    """

    def __init__(self, model_name: str, temperature: float = 0.0, client: Optional[ollama.Client] = None):
        self.model_name = model_name
        self.temperature = temperature
        self._client = client

    @property
    def client(self) -> ollama.Client:
        if self._client is None:
            self._client = ollama.Client()
        return self._client

    def complete(self, prompt_or_messages: PromptOrMessages) -> str:
        messages = to_messages(prompt_or_messages)
        start_time = datetime.now()

        try:
            response = self.client.chat(
                model=self.model_name,
                messages=messages,
                options={'temperature': self.temperature}
            )
        except ollama.ResponseError as e:
            raise CompletionError(f"Ollama model error: {e.error}") from e
        except (ConnectionError, OSError) as e:
            raise CompletionError(f"Ollama unavailable: {e}") from e
        except httpx.TimeoutException as e:
            raise CompletionError(f"Ollama timed out: {e}") from e

        processing_time = int((datetime.now() - start_time).total_seconds() * 1000)
        content = response['message']['content'] or ''

        logger.log_operation("completion.ollama", "success", {
            "model": self.model_name,
            "messages": len(messages),
            "processing_time_ms": processing_time,
            "response_length": len(content)
        })
        return content


class MockCompletionService(ICompletionService):
    """
    Deterministic completion service for tests and offline development.
    Returns a canned reply if one is given, otherwise echoes the last user message.
    """

    def __init__(self, reply: Optional[str] = None, model_name: str = "mock-model"):
        self.reply = reply
        self.model_name = model_name
        self.calls: List[Messages] = []

    def complete(self, prompt_or_messages: PromptOrMessages) -> str:
        messages = to_messages(prompt_or_messages)
        self.calls.append(messages)

        if self.reply is not None:
            return self.reply

        question = next(
            (m['content'] for m in reversed(messages) if m['role'] == 'user'), ''
        )
        return f"[{self.model_name}] {question}"
