"""直播聊天平台的基类通道接口。"""

from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable

from loguru import logger

from callrelay.bus.events import ChatEvent, OutboundMessage
from callrelay.bus.queue import MessageBus

EventHandler = Callable[[ChatEvent], Awaitable[Any]]


class BaseChannel(ABC):
    """
    聊天通道实现的抽象基类。

    通道负责与平台保持连接，把解码后的聊天事件逐个交给
    事件处理器，并在配置了消息总线时接收出站通知。
    """

    name: str = "base"

    def __init__(self, config: Any, on_event: EventHandler, bus: MessageBus | None = None):
        """
        初始化通道。

        参数:
            config: 通道特定的配置。
            on_event: 每个解码后的聊天事件都会等待此处理器完成。
            bus: 可选的出站通知总线。
        """
        self.config = config
        self.on_event = on_event
        self.bus = bus
        self._running = False

        if bus is not None:
            bus.subscribe_outbound(self.name, self.send)

    @abstractmethod
    async def start(self) -> None:
        """
        启动通道并开始监听消息。

        这应该是一个长时间运行的异步任务，需要：
        1. 连接到聊天平台
        2. 监听传入消息
        3. 通过 _handle_event() 将事件交给处理器
        """
        pass

    @abstractmethod
    async def stop(self) -> None:
        """停止通道并清理资源。"""
        pass

    @abstractmethod
    async def send(self, msg: OutboundMessage) -> None:
        """
        通过此通道发送消息。

        参数:
            msg: 要发送的消息。
        """
        pass

    async def _handle_event(self, event: ChatEvent) -> None:
        """调用事件处理器；处理器的异常只记录，不影响读取循环。"""
        try:
            await self.on_event(event)
        except Exception as e:
            logger.error(f"处理 {event.kind} 事件 {event.id or '?'} 时出错：{e}")

    @property
    def is_running(self) -> bool:
        """检查通道是否正在运行。"""
        return self._running
