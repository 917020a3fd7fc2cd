from types import SimpleNamespace

import httpx
import pytest
from openai import APIConnectionError

from actions import ai


@pytest.fixture(autouse=True)
def no_client(monkeypatch):
    monkeypatch.setattr(ai, "openai_client", None)


def test_fallback_picks_reply_by_keywords(client):
    code = client.post("/api/ai/answer", json={"question": "How do I write code for a loop?"}).json()
    assert "```javascript" in code["reply"]
    assert code["note"] == ai.FALLBACK_NOTE

    explain = client.post("/api/ai/answer", json={"question": "What is a closure"}).json()
    assert explain["reply"].startswith('The concept of "What is a closure"')

    plain = client.post("/api/ai/answer", json={"question": "Hello there"}).json()
    assert plain["reply"] == 'I\'d be happy to help with your question about "Hello there".'


def test_empty_question_is_rejected(client):
    assert client.post("/api/ai/answer", json={"question": ""}).status_code == 422


class _Completions:
    def __init__(self, reply=None, error=None):
        self.reply, self.error, self.calls = reply, error, []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error:
            raise self.error
        message = SimpleNamespace(content=f"  {self.reply}  ")
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def fake_client(completions):
    return SimpleNamespace(chat=SimpleNamespace(completions=completions))


def test_uses_openai_when_configured(client, monkeypatch):
    completions = _Completions(reply="Use a list comprehension.")
    monkeypatch.setattr(ai, "openai_client", fake_client(completions))

    body = client.post("/api/ai/answer", json={"question": "How to map in python?"}).json()
    assert body == {"reply": "Use a list comprehension."}
    assert completions.calls[0]["messages"][-1] == {"role": "user", "content": "How to map in python?"}


def test_client_errors_fall_back(client, monkeypatch):
    error = APIConnectionError(request=httpx.Request("POST", "https://api.openai.com/v1/chat/completions"))
    monkeypatch.setattr(ai, "openai_client", fake_client(_Completions(error=error)))

    body = client.post("/api/ai/answer", json={"question": "explain recursion"}).json()
    assert body["note"] == ai.FALLBACK_NOTE
