"""
Unit tests for the OpenAI chat adapter and story mentor.
"""
from types import SimpleNamespace

import httpx
import pytest
from openai import APIConnectionError

from agents import ChatAgent
from agents.chat_agent import SYSTEM_PROMPT
from utils.errors import AdapterContractViolation, TransientNetworkFailure, ValidationError


class FakeCompletions:
    def __init__(self, content="Tell me about your main character.", error=None):
        self.content = content
        self.error = error
        self.calls = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def _client(completions):
    return SimpleNamespace(chat=SimpleNamespace(completions=completions))


class TestReply:

    def test_first_message_gets_system_prompt(self):
        completions = FakeCompletions()
        reply = ChatAgent(client=_client(completions)).reply([{"role": "user", "content": "Hi"}])

        assert reply == "Tell me about your main character."
        call = completions.calls[0]
        assert call["messages"][0] == {"role": "system", "content": SYSTEM_PROMPT}
        assert call["model"] == "gpt-4"
        assert call["max_tokens"] == 500
        assert "response_format" not in call

    def test_follow_up_is_sent_as_is(self):
        completions = FakeCompletions()
        history = [
            {"role": "user", "content": "Hi"},
            {"role": "assistant", "content": "What genre?"},
            {"role": "user", "content": "Horror"},
        ]
        ChatAgent(client=_client(completions)).reply(history)
        assert completions.calls[0]["messages"] == history

    def test_empty_messages(self):
        completions = FakeCompletions()
        with pytest.raises(ValidationError):
            ChatAgent(client=_client(completions)).reply([])
        assert completions.calls == []


class TestComplete:

    def test_json_mode(self):
        completions = FakeCompletions(content="{}")
        ChatAgent(client=_client(completions)).complete(
            [{"role": "user", "content": "x"}], model="gpt-4o", json_mode=True
        )
        assert completions.calls[0]["response_format"] == {"type": "json_object"}
        assert completions.calls[0]["model"] == "gpt-4o"

    def test_empty_content(self):
        agent = ChatAgent(client=_client(FakeCompletions(content="")))
        with pytest.raises(AdapterContractViolation):
            agent.complete([{"role": "user", "content": "x"}])

    def test_connection_error(self):
        error = APIConnectionError(request=httpx.Request("POST", "https://api.openai.com/v1/chat/completions"))
        agent = ChatAgent(client=_client(FakeCompletions(error=error)))
        with pytest.raises(TransientNetworkFailure):
            agent.complete([{"role": "user", "content": "x"}])
