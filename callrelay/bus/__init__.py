"""聊天事件类型和出站通知总线。"""

from callrelay.bus.events import ChatEvent, ChatSender, ChatText, OutboundMessage, parse_chat_event
from callrelay.bus.queue import MessageBus

__all__ = ["MessageBus", "ChatEvent", "ChatSender", "ChatText", "OutboundMessage", "parse_chat_event"]
