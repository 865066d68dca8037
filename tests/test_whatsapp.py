"""Tests for the WhatsApp messenger and the OpenAI completion client."""

import json
from types import SimpleNamespace

import httpx
import pytest

from bookbot.schemas.conversation_schema import ChatTurn
from bookbot.schemas.message_schema import ButtonOption, ListRow
from bookbot.services.completion import CompletionError, OpenAICompletionService
from bookbot.services.whatsapp import MAX_RETRIES, MessengerError, WhatsAppMessenger


def make_messenger(handler):
    return WhatsAppMessenger(
        base_url="https://graph.test",
        api_version="v21.0",
        transport=httpx.MockTransport(handler),
        backoff_seconds=0,
    )


class TestWhatsAppMessenger:
    @pytest.mark.asyncio
    async def test_text_payload_and_auth(self, tenant):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"messages": [{"id": "wamid.1"}]})

        messenger = make_messenger(handler)
        await messenger.send_text(tenant, "+447700900123", "Hello")
        await messenger.aclose()

        request = seen[0]
        assert request.url.path == f"/v21.0/{tenant.whatsapp_phone_number_id}/messages"
        assert request.headers["Authorization"] == "Bearer test-token"
        body = json.loads(request.content)
        assert body == {
            "messaging_product": "whatsapp",
            "to": "+447700900123",
            "type": "text",
            "text": {"body": "Hello"},
        }

    @pytest.mark.asyncio
    async def test_button_ids_preserved(self, tenant):
        payloads = []

        def handler(request):
            payloads.append(json.loads(request.content))
            return httpx.Response(200, json={})

        messenger = make_messenger(handler)
        await messenger.send_buttons(
            tenant, "x", "Confirm?", [ButtonOption(id="confirm_yes", title="Yes")]
        )
        buttons = payloads[0]["interactive"]["action"]["buttons"]
        assert buttons == [{"type": "reply", "reply": {"id": "confirm_yes", "title": "Yes"}}]

    @pytest.mark.asyncio
    async def test_list_rows(self, tenant):
        payloads = []

        def handler(request):
            payloads.append(json.loads(request.content))
            return httpx.Response(200, json={})

        messenger = make_messenger(handler)
        await messenger.send_list(
            tenant, "x", "Pick", "Pick a slot", [ListRow(id="slot_0", title="Today 2:00pm")]
        )
        action = payloads[0]["interactive"]["action"]
        assert action["button"] == "Pick a slot"
        assert action["sections"][0]["rows"] == [
            {"id": "slot_0", "title": "Today 2:00pm", "description": ""}
        ]

    @pytest.mark.asyncio
    async def test_server_errors_retried(self, tenant):
        attempts = []

        def handler(request):
            attempts.append(request)
            if len(attempts) < 3:
                return httpx.Response(503, text="busy")
            return httpx.Response(200, json={"ok": True})

        await make_messenger(handler).send_text(tenant, "x", "hi")
        assert len(attempts) == 3

    @pytest.mark.asyncio
    async def test_gives_up_after_max_retries(self, tenant):
        attempts = []

        def handler(request):
            attempts.append(request)
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(MessengerError, match="after 3 retries"):
            await make_messenger(handler).send_text(tenant, "x", "hi")
        assert len(attempts) == MAX_RETRIES

    @pytest.mark.asyncio
    async def test_client_error_not_retried(self, tenant):
        attempts = []

        def handler(request):
            attempts.append(request)
            return httpx.Response(401, text="bad token")

        with pytest.raises(MessengerError) as excinfo:
            await make_messenger(handler).send_text(tenant, "x", "hi")
        assert excinfo.value.status_code == 401
        assert len(attempts) == 1


class FakeCompletions:
    def __init__(self, content):
        self.content = content
        self.kwargs = None

    async def create(self, **kwargs):
        self.kwargs = kwargs
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


class TestOpenAICompletionService:
    @pytest.mark.asyncio
    async def test_history_mapped_after_system_prompt(self):
        completions = FakeCompletions("Sure thing")
        client = SimpleNamespace(chat=SimpleNamespace(completions=completions))
        service = OpenAICompletionService(client=client, model="gpt-test")

        reply = await service.chat(
            "be nice",
            [ChatTurn(role="user", content="hi"), ChatTurn(role="assistant", content="hello")],
        )
        assert reply == "Sure thing"
        assert completions.kwargs["model"] == "gpt-test"
        assert completions.kwargs["messages"] == [
            {"role": "system", "content": "be nice"},
            {"role": "user", "content": "hi"},
            {"role": "assistant", "content": "hello"},
        ]

    @pytest.mark.asyncio
    async def test_empty_reply_raises(self):
        client = SimpleNamespace(chat=SimpleNamespace(completions=FakeCompletions(None)))
        with pytest.raises(CompletionError):
            await OpenAICompletionService(client=client).chat("x", [])
