import pytest

from launchpad.api.ai.gateway import FAILURE_MARKER, AIGateway, ChatContext
from launchpad.api.ai.providers import ChatTurn, ProviderCall, build_providers
from launchpad.config import Settings
from launchpad.exceptions import InvalidInputError

from conftest import FakeProvider, make_gateway


@pytest.mark.asyncio
class TestGenerate:
    async def test_success(self):
        gateway = make_gateway(openai=FakeProvider("openai", default="Hi founder"))
        response = await gateway.generate("Hello", ChatContext(startup_name="Foo"), "openai")
        assert response.ok
        assert response.content == "Hi founder"
        assert response.model == "openai-test-model"
        assert response.tokens == 42

    async def test_missing_key_returns_apology(self):
        gateway = AIGateway(settings=Settings())
        response = await gateway.generate("Hello", provider="groq")

        assert response.ok is False
        assert FAILURE_MARKER in response.content
        assert response.error == "Groq API key not configured"
        assert response.tokens == 0

    async def test_unknown_provider_returns_apology(self):
        response = await make_gateway().generate("Hello", provider="claude")
        assert response.ok is False
        assert "Unsupported AI provider: claude" in response.content
        assert response.model == "unknown"

    async def test_provider_exception_is_contained(self):
        gemini = FakeProvider("gemini", error=RuntimeError("boom"))
        response = await make_gateway(gemini=gemini).generate("Hello", provider="gemini")
        assert response.ok is False
        assert "boom" in response.content

    async def test_system_prompt_carries_context_and_tone(self):
        groq = FakeProvider("groq")
        groq.tone = "Be concise."
        context = ChatContext(
            user_type="investor",
            startup_name="Foo",
            pitch_context="Seed round",
            conversation_history=[ChatTurn("user", "earlier")],
            pitch_deck_content="Slide 1",
        )
        await make_gateway(groq=groq).generate("Now", context, "groq")

        call = groq.calls[0]
        assert "helping investors" in call.system_prompt
        assert "This is about Foo. Seed round" in call.system_prompt
        assert "Pitch deck excerpt: Slide 1" in call.system_prompt
        assert call.system_prompt.rstrip().endswith("under 200 words.")
        assert "Be concise." in call.system_prompt
        assert [m["role"] for m in call.as_messages()] == ["system", "user", "user"]


@pytest.mark.asyncio
class TestConnectionAndModels:
    async def test_connection(self):
        assert await make_gateway().test_connection("openai") is True
        assert await AIGateway(settings=Settings()).test_connection("openai") is False

    async def test_list_models_groq_only(self):
        gateway = make_gateway()
        assert await gateway.list_models("groq") == ["llama3-8b-8192", "mixtral-8x7b-32768"]
        with pytest.raises(InvalidInputError):
            await gateway.list_models("openai")

    async def test_list_models_failure_is_empty(self):
        class Broken(FakeProvider):
            async def list_models(self):
                raise RuntimeError("no network")

        assert await make_gateway(groq=Broken("groq")).list_models("groq") == []


def test_messages_order():
    call = ProviderCall("sys", "now", [ChatTurn("assistant", "a"), ChatTurn("user", "b")])
    assert call.as_messages() == [
        {"role": "system", "content": "sys"},
        {"role": "assistant", "content": "a"},
        {"role": "user", "content": "b"},
        {"role": "user", "content": "now"},
    ]


def test_build_providers_uses_settings():
    providers = build_providers(Settings(groq_api_key="k", groq_model="llama3-70b-8192"))
    assert set(providers) == {"openai", "groq", "gemini"}
    assert providers["groq"].model == "llama3-70b-8192"


class TestAIRoute:
    def test_generate(self, client):
        res = client.post(
            "/api/ai",
            json={
                "action": "generate",
                "provider": "openai",
                "prompt": "Hello",
                "context": {"userType": "founder", "startupName": "Foo"},
            },
        )
        assert res.status_code == 200
        assert res.json()["content"] == "ok"
        assert res.json()["ok"] is True

    def test_generate_without_key_still_200(self, client):
        from launchpad.api.ai.gateway import get_gateway
        from launchpad.main import app

        app.dependency_overrides[get_gateway] = lambda: AIGateway(settings=Settings())
        res = client.post("/api/ai", json={"action": "generate", "provider": "gemini", "prompt": "Hi"})

        assert res.status_code == 200
        assert FAILURE_MARKER in res.json()["content"]
        assert res.json()["ok"] is False

    def test_test_action(self, client):
        res = client.post("/api/ai", json={"action": "test", "provider": "groq"})
        assert res.status_code == 200
        assert res.json() == {"success": True}

    def test_list_models(self, client):
        res = client.post("/api/ai", json={"action": "listModels", "provider": "groq"})
        assert res.status_code == 200
        assert "mixtral-8x7b-32768" in res.json()["models"]

    def test_list_models_other_provider(self, client):
        res = client.post("/api/ai", json={"action": "listModels", "provider": "openai"})
        assert res.status_code == 400
        assert "error" in res.json()

    def test_invalid_action(self, client):
        res = client.post("/api/ai", json={"action": "explode", "provider": "openai"})
        assert res.status_code == 400
        assert res.json() == {"error": "Invalid action"}

    def test_generate_requires_prompt(self, client):
        res = client.post("/api/ai", json={"action": "generate", "provider": "openai"})
        assert res.status_code == 400
