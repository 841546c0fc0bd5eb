import pytest

from tutor_core.domain.exceptions import DeliveryError
from tutor_core.domain.models import ConversationContext
from tutor_core.prompts import build_tutor_prompt
from tutor_core.providers.transport import StreamingTransport, split_into_fragments

from tutor_core.tests.fakes import FakeGenerativeClient, config_error, network_error, no_sleep


CTX = ConversationContext(subject="Mathematics", chapter="Calculus", topic="1.2")


def make_transport(client, sleep=no_sleep):
    return StreamingTransport(client, word_delay=0.05, sleep=sleep)


@pytest.mark.asyncio
async def test_stream_fragments_delivered_in_order():
    fragments = ["A ", "derivative ", "measures rate of change."]
    client = FakeGenerativeClient(stream=fragments)
    received = []
    await make_transport(client).send("What is a derivative?", CTX, received.append)
    assert received == fragments
    assert client.generate_calls == 0


@pytest.mark.asyncio
async def test_prompt_embeds_context_and_message():
    client = FakeGenerativeClient(stream=["x"])
    await make_transport(client).send("What is {x}?", CTX, lambda _: None)
    prompt = client.prompts[0]
    assert "Mathematics" in prompt
    assert "Calculus" in prompt
    assert "1.2" in prompt
    assert '"What is {x}?"' in prompt
    assert prompt == build_tutor_prompt("What is {x}?", CTX)


@pytest.mark.asyncio
async def test_fallback_after_stream_fails_immediately():
    client = FakeGenerativeClient(stream_error=network_error(), full_text="Rate of change.")
    delays = []

    async def record_sleep(delay):
        delays.append(delay)

    received = []
    await make_transport(client, sleep=record_sleep).send("q", CTX, received.append)
    assert received == ["Rate", " of", " change."]
    assert "".join(received) == "Rate of change."
    assert delays == [0.05, 0.05]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "text",
    ["one", "two  spaces", " leading", "trailing ", "line\nbreak and\n\nparagraph", ""],
)
async def test_fallback_reconstruction_is_exact(text):
    client = FakeGenerativeClient(stream_error=RuntimeError("boom"), full_text=text)
    received = []
    await make_transport(client).send("q", CTX, received.append)
    assert "".join(received) == text


def test_split_into_fragments():
    assert split_into_fragments("Rate of change.") == ["Rate", " of", " change."]
    assert split_into_fragments("") == []
    assert split_into_fragments(" a") == [" a"]


@pytest.mark.asyncio
async def test_mid_stream_failure_restarts_before_replay():
    client = FakeGenerativeClient(stream=["Par", "tial", network_error()], full_text="Full answer")
    received = []
    restarts = []
    await make_transport(client).send("q", CTX, received.append, on_restart=lambda: restarts.append(len(received)))
    assert restarts == [2]
    assert received == ["Par", "tial", "Full", " answer"]


class ClosedBeforeFallbackClient(FakeGenerativeClient):
    async def generate(self, prompt):
        self.closed_at_fallback = self.stream_closed
        return await super().generate(prompt)


@pytest.mark.asyncio
async def test_stream_closed_when_fragment_callback_raises():
    client = ClosedBeforeFallbackClient(stream=["one", "two", "three"], full_text="recovered answer")
    received = []

    def on_fragment(fragment):
        if not received:
            received.append(None)
            raise RuntimeError("view rejected fragment")
        received.append(fragment)

    await make_transport(client).send("q", CTX, on_fragment)
    assert client.closed_at_fallback is True
    assert client.generate_calls == 1
    assert received[1:] == ["recovered", " answer"]


@pytest.mark.asyncio
async def test_no_restart_when_nothing_was_delivered():
    client = FakeGenerativeClient(stream_error=network_error(), full_text="ok")
    restarts = []
    await make_transport(client).send("q", CTX, lambda _: None, on_restart=lambda: restarts.append(1))
    assert restarts == []


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "error, kind",
    [
        (network_error(), "network"),
        (config_error(), "configuration"),
        (RuntimeError("QUIC_PROTOCOL_ERROR"), "network"),
        (ValueError("something odd"), "unknown"),
    ],
)
async def test_terminal_failure_is_classified(error, kind):
    client = FakeGenerativeClient(stream_error=RuntimeError("stream broke"), generate_error=error)
    with pytest.raises(DeliveryError) as exc:
        await make_transport(client).send("q", CTX, lambda _: None)
    assert exc.value.kind == kind
    assert exc.value.cause is error
    assert exc.value.message


@pytest.mark.asyncio
async def test_unknown_failure_message_carries_cause_text():
    client = FakeGenerativeClient(stream_error=RuntimeError("x"), generate_error=ValueError("something odd"))
    with pytest.raises(DeliveryError) as exc:
        await make_transport(client).send("q", CTX, lambda _: None)
    assert exc.value.message == "something odd"
