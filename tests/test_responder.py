import anyio
import pytest

from conftest import FakeBot
from d2bot.responder import Responder


class SlowBot(FakeBot):
    async def send_message(self, chat_id, text, reply_to_message_id=None, entities=None):
        await anyio.sleep(5)
        return await super().send_message(chat_id, text, reply_to_message_id, entities)

    async def send_chat_action(self, chat_id, action="typing"):
        await anyio.sleep(5)
        return True


@pytest.mark.anyio
async def test_long_text_is_chunked(fake_bot: FakeBot) -> None:
    responder = Responder(fake_bot)
    text = "\n".join(f"line {i}: " + "x" * 80 for i in range(100))

    assert await responder.send_text(42, text, reply_to=7) is True

    sent = fake_bot.sent("send_message")
    assert len(sent) > 1
    assert "".join(m["text"] for m in sent) == text
    assert all(m["reply_to_message_id"] == 7 for m in sent)
    assert all(len(m["text"]) <= 4096 for m in sent)


@pytest.mark.anyio
async def test_send_failure_is_reported_not_raised(fake_bot: FakeBot) -> None:
    fake_bot.fail.add("send_document")
    responder = Responder(fake_bot)
    assert await responder.send_document(42, b"png", reply_to=7) is False


@pytest.mark.anyio
async def test_reaction_failure_is_reported_not_raised(fake_bot: FakeBot) -> None:
    fake_bot.fail.add("set_message_reaction")
    responder = Responder(fake_bot)
    assert await responder.set_reaction(42, 7, "\U0001f44c") is False


@pytest.mark.anyio
async def test_send_timeout() -> None:
    responder = Responder(SlowBot(), request_timeout_s=0.05)
    with anyio.fail_after(2):
        assert await responder.send_text(42, "hello") is False


@pytest.mark.anyio
async def test_typing_timeout_is_ignored() -> None:
    responder = Responder(SlowBot(), action_timeout_s=0.05)
    with anyio.fail_after(2):
        await responder.send_typing(42)


@pytest.mark.anyio
async def test_markdown_sends_entities(fake_bot: FakeBot) -> None:
    responder = Responder(fake_bot)
    await responder.send_markdown(42, "see [docs](https://example.com/docs)")

    [message] = fake_bot.sent("send_message")
    assert message["text"] == "see docs"
    [entity] = message["entities"]
    assert entity["type"] == "text_link"
    assert (entity["offset"], entity["length"]) == (4, 4)
    assert entity["url"] == "https://example.com/docs"
