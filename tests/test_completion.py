"""
Tests for completion services.
"""

from unittest.mock import MagicMock

import httpx
import ollama
import pytest

from src.agents.completion import (
    CompletionError,
    ICompletionService,
    MockCompletionService,
    OllamaCompletionService,
    to_messages,
)


def test_prompt_string_becomes_user_message():
    assert to_messages("What is RAG?") == [{'role': 'user', 'content': 'What is RAG?'}]


def test_messages_pass_through():
    messages = [
        {'role': 'system', 'content': 'context'},
        {'role': 'user', 'content': 'question', 'name': 'ignored'},
    ]

    assert to_messages(messages) == [
        {'role': 'system', 'content': 'context'},
        {'role': 'user', 'content': 'question'},
    ]


@pytest.mark.parametrize("bad", [[], [{'role': 'user'}]])
def test_invalid_messages(bad):
    with pytest.raises(ValueError):
        to_messages(bad)


class TestMockCompletionService:
    def test_interface(self):
        assert isinstance(MockCompletionService(), ICompletionService)

    def test_echoes_last_user_message(self):
        service = MockCompletionService()

        reply = service.complete([
            {'role': 'system', 'content': 'ctx'},
            {'role': 'user', 'content': 'how many?'},
        ])

        assert reply == "[mock-model] how many?"
        assert len(service.calls) == 1

    def test_canned_reply(self):
        service = MockCompletionService(reply="42")

        assert service.complete("anything") == "42"
        assert service.calls == [[{'role': 'user', 'content': 'anything'}]]


class TestOllamaCompletionService:
    @pytest.fixture
    def client(self):
        client = MagicMock()
        client.chat.return_value = {'message': {'role': 'assistant', 'content': 'Paris.'}}
        return client

    def test_complete(self, client):
        service = OllamaCompletionService("llama3.2:latest", temperature=0.0, client=client)

        reply = service.complete("Capital of France?")

        assert reply == "Paris."
        client.chat.assert_called_once_with(
            model="llama3.2:latest",
            messages=[{'role': 'user', 'content': 'Capital of France?'}],
            options={'temperature': 0.0}
        )

    def test_empty_content(self, client):
        client.chat.return_value = {'message': {'role': 'assistant', 'content': None}}

        assert OllamaCompletionService("m", client=client).complete("hi") == ""

    def test_response_error_becomes_completion_error(self, client):
        client.chat.side_effect = ollama.ResponseError("model 'm' not found", 404)

        with pytest.raises(CompletionError, match="not found"):
            OllamaCompletionService("m", client=client).complete("hi")

    def test_connection_error_becomes_completion_error(self, client):
        client.chat.side_effect = ConnectionError("Failed to connect to Ollama")

        with pytest.raises(CompletionError, match="unavailable"):
            OllamaCompletionService("m", client=client).complete("hi")

    def test_timeout_becomes_completion_error(self, client):
        client.chat.side_effect = httpx.ReadTimeout("timed out")

        with pytest.raises(CompletionError, match="timed out"):
            OllamaCompletionService("m", client=client).complete("hi")

    def test_other_errors_propagate(self, client):
        client.chat.side_effect = KeyError("unexpected")

        with pytest.raises(KeyError):
            OllamaCompletionService("m", client=client).complete("hi")
