import asyncio
import json
from typing import Any

import httpx
import respx

from callrelay.bus.events import ChatEvent, ChatText
from callrelay.channels.dlive import DLiveChannel
from callrelay.channels.graphql import STREAM_MESSAGE_SUBSCRIPTION, query_hash
from callrelay.config.schema import DeliveryConfig, DLiveConfig, ReconnectConfig
from callrelay.delivery.client import CallDeliveryClient
from callrelay.relay.dispatcher import CallDispatcher

ACK = json.dumps({"type": "connection_ack"})
KA = json.dumps({"type": "ka"})


def data_frame(content: str, name: str = "Alice") -> str:
    return json.dumps({
        "id": "1",
        "type": "data",
        "payload": {"data": {"streamMessageReceived": [{
            "type": "Message",
            "__typename": "ChatText",
            "content": content,
            "sender": {"displayname": name},
        }]}},
    })


class FakeSocket:
    """按顺序产生帧的假 WebSocket；帧为异常实例时抛出。"""

    def __init__(self, frames: list[Any]):
        self.frames = list(frames)
        self.sent: list[dict[str, Any]] = []
        self.closed = False

    async def send(self, data: str) -> None:
        self.sent.append(json.loads(data))

    async def close(self) -> None:
        self.closed = True

    def __aiter__(self):
        return self._iter()

    async def _iter(self):
        for frame in self.frames:
            if isinstance(frame, Exception):
                raise frame
            yield frame


class _Session:
    def __init__(self, ws: FakeSocket):
        self.ws = ws

    async def __aenter__(self) -> FakeSocket:
        return self.ws

    async def __aexit__(self, *exc) -> bool:
        return False


class FakeConnect:
    """依次返回预设会话；用完后停止通道。"""

    def __init__(self, *sockets: FakeSocket):
        self.sockets = list(sockets)
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.channel: DLiveChannel | None = None

    def __call__(self, url: str, **kwargs: Any) -> _Session:
        self.calls.append((url, kwargs))
        if not self.sockets:
            self.channel._running = False
            raise ConnectionRefusedError("no more sessions")
        return _Session(self.sockets.pop(0))


def make_channel(connect: FakeConnect, on_event, delay_s: float = 0) -> DLiveChannel:
    channel = DLiveChannel(
        DLiveConfig(channel="Alice"),
        "alice01",
        on_event,
        reconnect=ReconnectConfig(delay_s=delay_s),
        connect=connect,
    )
    connect.channel = channel
    return channel


class Recorder:
    def __init__(self):
        self.events: list[ChatEvent] = []

    async def __call__(self, event: ChatEvent) -> None:
        self.events.append(event)


# 测试握手：connection_init 后跟携带主播和持久化查询的 start 帧
async def test_handshake_frames() -> None:
    ws = FakeSocket([ACK])
    connect = FakeConnect(ws)
    channel = make_channel(connect, Recorder())

    await channel.start()

    url, kwargs = connect.calls[0]
    assert url == "wss://graphigostream.prd.dlive.tv/"
    assert kwargs["subprotocols"] == ["graphql-ws"]
    assert ws.sent[0] == {"type": "connection_init", "payload": {}}
    start = ws.sent[1]
    assert start["type"] == "start"
    assert start["id"] == "1"
    assert start["payload"]["variables"] == {"streamer": "alice01", "viewer": ""}
    assert start["payload"]["operationName"] == "StreamMessageSubscription"
    assert start["payload"]["query"] == STREAM_MESSAGE_SUBSCRIPTION
    assert start["payload"]["extensions"]["persistedQuery"] == {
        "version": 1,
        "sha256Hash": query_hash(STREAM_MESSAGE_SUBSCRIPTION),
    }


# 测试 connection_ack 和 ka 帧不会调用处理器
async def test_keepalive_frames_are_ignored() -> None:
    recorder = Recorder()
    connect = FakeConnect(FakeSocket([ACK, KA, KA]))

    await make_channel(connect, recorder).start()

    assert recorder.events == []


# 测试数据帧被解码并交给处理器，格式错误的帧被丢弃
async def test_data_frames_are_dispatched_and_bad_frames_dropped() -> None:
    recorder = Recorder()
    connect = FakeConnect(FakeSocket([ACK, "not json", "[1, 2]", data_frame('!call "intro"'), KA]))

    await make_channel(connect, recorder).start()

    assert len(recorder.events) == 1
    event = recorder.events[0]
    assert isinstance(event, ChatText)
    assert event.content == '!call "intro"'
    assert event.sender.name == "Alice"


# 测试一帧中有多个事件时只处理第一个
async def test_only_first_event_of_frame_is_dispatched() -> None:
    frame = json.dumps({"id": "1", "type": "data", "payload": {"data": {"streamMessageReceived": [
        {"__typename": "ChatText", "content": "!call first", "sender": {"displayname": "Alice"}},
        {"__typename": "ChatText", "content": "!call second", "sender": {"displayname": "Bob"}},
    ]}}})
    recorder = Recorder()
    connect = FakeConnect(FakeSocket([ACK, frame]))

    await make_channel(connect, recorder).start()

    assert [e.content for e in recorder.events] == ["!call first"]
    assert recorder.events[0].sender.name == "Alice"


# 测试连接立即关闭后会重新连接，且关闭前的帧不会被重复处理
async def test_reconnects_after_close_without_reprocessing() -> None:
    recorder = Recorder()
    first = FakeSocket([ACK, data_frame("!call one")])
    second = FakeSocket([ACK])
    connect = FakeConnect(first, second)

    await make_channel(connect, recorder).start()

    assert len(connect.calls) == 3
    assert [e.content for e in recorder.events] == ["!call one"]
    assert second.sent[1]["id"] == "2"
    assert second.sent[1]["payload"]["variables"]["streamer"] == "alice01"


# 测试套接字错误后会重新连接
async def test_reconnects_after_socket_error() -> None:
    recorder = Recorder()
    connect = FakeConnect(
        FakeSocket([ACK, ConnectionResetError("reset")]),
        FakeSocket([ACK, data_frame("!call two")]),
    )
    channel = make_channel(connect, recorder)

    await channel.start()

    assert channel.sessions == 3
    assert [e.content for e in recorder.events] == ["!call two"]


# 测试 complete 帧结束当前会话
async def test_complete_frame_ends_session() -> None:
    recorder = Recorder()
    connect = FakeConnect(
        FakeSocket([ACK, json.dumps({"id": "1", "type": "complete"}), data_frame("!call late")]),
    )

    await make_channel(connect, recorder).start()

    assert recorder.events == []
    assert len(connect.calls) == 2


# 测试处理器异常不会终止会话
async def test_handler_errors_do_not_kill_session() -> None:
    seen: list[str] = []

    async def flaky(event: ChatEvent) -> None:
        seen.append(event.content)
        if event.content == "!call bad":
            raise ValueError("boom")

    connect = FakeConnect(FakeSocket([ACK, data_frame("!call bad"), data_frame("!call good")]))

    await make_channel(connect, flaky).start()

    assert seen == ["!call bad", "!call good"]
    assert len(connect.calls) == 2


# 测试 stop() 会打断重连等待
async def test_stop_interrupts_reconnect_wait() -> None:
    connect = FakeConnect(FakeSocket([]))
    channel = make_channel(connect, Recorder(), delay_s=30)

    task = asyncio.create_task(channel.start())
    for _ in range(100):
        if connect.calls:
            break
        await asyncio.sleep(0)
    await channel.stop()
    await asyncio.wait_for(task, timeout=2)

    assert len(connect.calls) == 1
    assert not channel.is_running


# 端到端：数据帧 -> 分发器 -> POST 到 calls 端点
async def test_end_to_end_frame_to_delivery() -> None:
    frame = json.dumps({"payload": {"data": {"streamMessageReceived": [{
        "type": "Message",
        "__typename": "ChatText",
        "content": '!call "intro"',
        "sender": {"displayname": "Alice"},
    }]}}})
    outcomes = []

    delivery = CallDeliveryClient(DeliveryConfig(base_url="https://calls.example"))
    dispatcher = CallDispatcher(delivery)

    async def handle(event: ChatEvent) -> None:
        outcomes.append(await dispatcher.handle(event))

    connect = FakeConnect(FakeSocket([ACK, KA, frame]))

    with respx.mock as mock:
        post = mock.post("https://calls.example/api/calls").mock(return_value=httpx.Response(200))
        await make_channel(connect, handle).start()
        await delivery.close()

    assert post.call_count == 1
    assert json.loads(post.calls.last.request.content) == {"slot": "intro", "user": "Alice"}
    assert len(outcomes) == 1
    assert outcomes[0].ok
    assert outcomes[0].fallback is False
