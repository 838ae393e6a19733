"""出站聊天通知总线。"""

import asyncio
from typing import Callable, Awaitable

from loguru import logger

from callrelay.bus.events import OutboundMessage

Sender = Callable[[OutboundMessage], Awaitable[None]]


class MessageBus:
    """
    分发器发布的聊天通知在此排队，由后台任务交给对应通道发送。

    聊天事件本身不经过这里，它们在读取循环中按顺序直接处理；
    通知发送较慢时也不会拖住事件处理。
    """

    def __init__(self):
        self._notices: asyncio.Queue[OutboundMessage] = asyncio.Queue()
        self._senders: dict[str, Sender] = {}
        self._running = False

    def subscribe_outbound(self, channel: str, sender: Sender) -> None:
        """登记某个通道的发送函数（每个通道一个）。"""
        self._senders[channel] = sender

    async def publish_outbound(self, msg: OutboundMessage) -> None:
        """发布一条发往聊天通道的通知。"""
        await self._notices.put(msg)

    async def dispatch_outbound(self) -> None:
        """
        把排队的通知交给已登记的通道，直到 stop() 被调用。
        将此作为后台任务运行。
        """
        self._running = True
        while self._running:
            try:
                msg = await asyncio.wait_for(self._notices.get(), timeout=1.0)
            except asyncio.TimeoutError:
                continue

            sender = self._senders.get(msg.channel)
            if sender is None:
                logger.warning(f"通道 {msg.channel} 没有发送者，丢弃通知：{msg.content}")
                continue
            try:
                await sender(msg)
            except Exception as e:
                logger.error(f"向 {msg.channel} 发送通知时出错：{e}")

    def stop(self) -> None:
        """停止分发循环。"""
        self._running = False
