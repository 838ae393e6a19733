"""使用 graphql-ws 订阅的 DLive 聊天通道实现。"""

import asyncio
import json
from typing import Any, Callable

import httpx
import websockets
from loguru import logger

from callrelay.bus.events import OutboundMessage, parse_chat_event
from callrelay.bus.queue import MessageBus
from callrelay.channels.base import BaseChannel, EventHandler
from callrelay.channels.graphql import send_chat_message, subscription_start_frame
from callrelay.config.schema import DLiveConfig, ReconnectConfig

SUBPROTOCOL = "graphql-ws"
ORIGIN = "https://dlive.tv"


class DLiveChannel(BaseChannel):
    """
    订阅单个主播聊天室的 DLive 通道。

    每次连接都是一个完整的新会话：connection_init，然后用新的订阅 id
    发送 start 帧。连接关闭或出错后按重连策略等待，再重新订阅。
    重连次数不设上限，直到 stop() 被调用。
    """

    name = "dlive"

    def __init__(
        self,
        config: DLiveConfig,
        streamer: str,
        on_event: EventHandler,
        reconnect: ReconnectConfig | None = None,
        bus: MessageBus | None = None,
        connect: Callable[..., Any] | None = None,
    ):
        super().__init__(config, on_event, bus)
        self.config: DLiveConfig = config
        self.streamer = streamer
        self.reconnect = reconnect or ReconnectConfig()
        self._connect = connect or websockets.connect
        self._ws = None
        self._http: httpx.AsyncClient | None = None
        self._stop_event = asyncio.Event()
        self._sessions = 0
        self._attempt = 0

    @property
    def sessions(self) -> int:
        """已开启的会话数量（含首次连接）。"""
        return self._sessions

    async def start(self) -> None:
        """连接并保持订阅，直到 stop() 被调用。"""
        self._running = True
        self._stop_event.clear()

        while self._running:
            self._sessions += 1
            subscription_id = str(self._sessions)
            try:
                logger.info(f"正在连接到 DLive 聊天 #{self.streamer}...")
                async with self._connect(
                    self.config.stream_url,
                    subprotocols=[SUBPROTOCOL],
                    origin=ORIGIN,
                ) as ws:
                    self._ws = ws
                    await self._subscribe(ws, subscription_id)
                    await self._session_loop(ws)
                logger.info("DLive 连接已关闭")
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.warning(f"DLive 连接错误：{e}")
            finally:
                self._ws = None

            if self._running:
                self._attempt += 1
                delay = self.reconnect.delay_for(self._attempt)
                logger.info(f"{delay:g} 秒后重新连接...")
                await self._wait(delay)

    async def stop(self) -> None:
        """停止 DLive 通道。"""
        self._running = False
        self._stop_event.set()

        if self._ws:
            await self._ws.close()
            self._ws = None
        if self._http:
            await self._http.aclose()
            self._http = None

    async def send(self, msg: OutboundMessage) -> None:
        """以认证用户身份在聊天室中发送通知。"""
        if not self.config.auth_key:
            logger.warning("未配置 DLIVE_AUTH_KEY，无法发送聊天消息")
            return
        if not self.config.announce:
            logger.debug(f"聊天通知已禁用：{msg.content}")
            return

        if self._http is None:
            self._http = httpx.AsyncClient(timeout=10.0)
        try:
            await send_chat_message(
                msg.chat_id or self.streamer,
                msg.content,
                self.config.auth_key,
                self.config.api_url,
                self._http,
            )
        except Exception as e:
            logger.error(f"发送 DLive 聊天消息时出错：{e}")

    async def _wait(self, delay: float) -> None:
        """等待重连延迟；stop() 会立即打断等待。"""
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=delay)
        except asyncio.TimeoutError:
            pass

    async def _subscribe(self, ws: Any, subscription_id: str) -> None:
        """发送 connection_init 和 start 帧。"""
        await ws.send(json.dumps({"type": "connection_init", "payload": {}}))
        await ws.send(json.dumps(subscription_start_frame(subscription_id, self.streamer)))
        logger.debug(f"已发送订阅 {subscription_id}（streamer={self.streamer}）")

    async def _session_loop(self, ws: Any) -> None:
        """主读取循环：解码帧并按顺序分发事件。"""
        async for raw in ws:
            if not self._running:
                break

            try:
                data = json.loads(raw)
            except (json.JSONDecodeError, UnicodeDecodeError):
                logger.warning(f"来自 DLive 的无效 JSON：{raw[:100]!r}")
                continue
            if not isinstance(data, dict):
                logger.warning(f"来自 DLive 的意外帧：{raw[:100]!r}")
                continue

            msg_type = data.get("type")

            if msg_type == "connection_ack":
                self._attempt = 0
                logger.info(f"已连接到 DLive 聊天 #{self.streamer}")
            elif msg_type == "ka":
                continue
            elif msg_type in ("connection_error", "error"):
                logger.warning(f"DLive 订阅错误：{data.get('payload')}")
            elif msg_type == "complete":
                # 服务端结束了订阅，重新连接
                logger.info("DLive 订阅已结束")
                break
            else:
                payload = data.get("payload")
                if isinstance(payload, dict):
                    await self._handle_payload(payload)

    async def _handle_payload(self, payload: dict[str, Any]) -> None:
        """处理订阅数据负载。"""
        errors = payload.get("errors")
        if errors:
            logger.warning(f"DLive GraphQL 错误：{errors}")

        data = payload.get("data") or {}
        messages = data.get("streamMessageReceived") if isinstance(data, dict) else None
        if not messages:
            return
        if not isinstance(messages, list):
            messages = [messages]
        if len(messages) > 1:
            logger.debug(f"帧中有 {len(messages)} 个事件，仅处理第一个")

        first = messages[0]
        if not isinstance(first, dict):
            logger.warning(f"无法识别的事件：{first!r}")
            return

        await self._handle_event(parse_chat_event(first))
