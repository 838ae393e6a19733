"""事件分发器：将 !call 聊天命令转发到 calls 端点。"""

from loguru import logger

from callrelay.bus.events import ChatEvent, ChatText, OutboundMessage
from callrelay.bus.queue import MessageBus
from callrelay.delivery.client import CallDeliveryClient, DeliveryOutcome
from callrelay.relay.parser import parse_call_command

SUCCESS_NOTICE = "✅ Call added for \"{slot}\" by {user} ({mode})."
FAILURE_NOTICE = "❌ Could not add the call (\"{slot}\")."


class CallDispatcher:
    """
    处理通道解码出的每个聊天事件。

    只关心 ChatText：解析 !call 命令，投递 slot，记录结果，
    并在有消息总线时把结果作为聊天通知发布出去。
    事件逐个处理，每个命令只投递一次。
    """

    def __init__(
        self,
        delivery: CallDeliveryClient,
        bus: MessageBus | None = None,
        channel: str = "dlive",
        chat_id: str = "",
    ):
        self.delivery = delivery
        self.bus = bus
        self.channel = channel
        self.chat_id = chat_id

    async def handle(self, event: ChatEvent) -> DeliveryOutcome | None:
        """
        处理单个聊天事件。

        参数：
            event：解码后的聊天事件。

        返回：
            发生投递时返回 DeliveryOutcome，否则返回 None。
        """
        if not isinstance(event, ChatText):
            return None

        slot = None
        user = event.sender.name
        try:
            slot = parse_call_command(event.content.strip())
            if not slot:
                return None

            logger.info(f"收到来自 {user} 的 call：{slot!r}")
            outcome = await self.delivery.send(slot, user)

            if outcome.ok:
                logger.info(f"已为 {user} 添加 call {slot!r}（{outcome.mode}，状态 {outcome.status}）")
                await self._notify(SUCCESS_NOTICE.format(slot=slot, user=user, mode=outcome.mode))
            else:
                logger.error(f"无法为 {user} 添加 call {slot!r}：{outcome.error}")
                await self._notify(FAILURE_NOTICE.format(slot=slot))
            return outcome
        except Exception as e:
            logger.error(f"处理来自 {user} 的 ChatText 时出错（slot={slot!r}）：{e}")
            return None

    async def _notify(self, content: str) -> None:
        """把通知放到出站总线上。"""
        if self.bus is None:
            return
        await self.bus.publish_outbound(OutboundMessage(
            channel=self.channel,
            chat_id=self.chat_id,
            content=content,
        ))
