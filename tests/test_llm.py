from types import SimpleNamespace

import pytest

from contract_intake.core.errors import CompletionServiceError
from contract_intake.core.llm import GroqChatModel, GroqCompletionService, build_completion_service


class FakeCompletions:
    def __init__(self, content=None, error=None):
        self.content = content
        self.error = error
        self.requests = []

    def create(self, **request):
        self.requests.append(request)
        if self.error:
            raise self.error
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def fake_client(completions):
    return SimpleNamespace(chat=SimpleNamespace(completions=completions))


def test_completion_service_requests_json():
    completions = FakeCompletions(content='{"vendor": null}')
    model = GroqChatModel(client=fake_client(completions), api_key="test-key", model_name="test-model")

    content = GroqCompletionService(model).complete("Extract the vendor")

    assert content == '{"vendor": null}'
    request = completions.requests[0]
    assert request["model"] == "test-model"
    assert request["response_format"] == {"type": "json_object"}
    assert request["messages"] == [{"role": "user", "content": "Extract the vendor"}]


def test_completion_service_wraps_errors():
    completions = FakeCompletions(error=RuntimeError("503 from upstream"))
    model = GroqChatModel(client=fake_client(completions), api_key="test-key")

    with pytest.raises(CompletionServiceError, match="503 from upstream"):
        GroqCompletionService(model).complete("Extract the vendor")


def test_no_service_without_api_key(intake_settings):
    assert build_completion_service(intake_settings) is None
