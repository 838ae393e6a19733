"""聊天事件和出站消息的类型。"""

from dataclasses import dataclass, field
from typing import Any, Union

UNKNOWN_SENDER = "unknown"


@dataclass
class ChatSender:
    """聊天事件的发送者。"""

    id: str = ""
    username: str = ""  # 内部句柄
    displayname: str = ""  # 显示名称

    @property
    def name(self) -> str:
        """显示名称，回退到句柄，再回退到 "unknown"。"""
        return self.displayname or self.username or UNKNOWN_SENDER

    @classmethod
    def from_payload(cls, data: Any) -> "ChatSender":
        if not isinstance(data, dict):
            return cls()
        return cls(
            id=str(data.get("id") or ""),
            username=str(data.get("username") or ""),
            displayname=str(data.get("displayname") or ""),
        )


@dataclass
class ChatText:
    """普通聊天文本消息。"""

    id: str
    sender: ChatSender
    content: str = ""
    created_at: str | None = None  # 毫秒时间戳字符串
    emojis: list[int] = field(default_factory=list)
    kind: str = "ChatText"


@dataclass
class ChatGift:
    """礼物事件。"""

    id: str
    sender: ChatSender
    gift: str = ""
    amount: int = 0
    kind: str = "ChatGift"


@dataclass
class ChatFollow:
    """关注事件。"""

    id: str
    sender: ChatSender
    kind: str = "ChatFollow"


@dataclass
class ChatSubscription:
    """订阅事件。"""

    id: str
    sender: ChatSender
    month: int = 0
    kind: str = "ChatSubscription"


@dataclass
class ChatHost:
    """转播（host）事件。"""

    id: str
    sender: ChatSender
    viewer: int = 0
    kind: str = "ChatHost"


@dataclass
class ChatUnknown:
    """未识别的事件类型，保留原始负载。"""

    id: str
    sender: ChatSender
    kind: str = ""
    raw: dict[str, Any] = field(default_factory=dict)


ChatEvent = Union[ChatText, ChatGift, ChatFollow, ChatSubscription, ChatHost, ChatUnknown]


def _as_int(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def parse_chat_event(data: dict[str, Any]) -> ChatEvent:
    """
    将 streamMessageReceived 中的单个事件解码为 ChatEvent。

    按 __typename 区分事件类型。未知类型映射到 ChatUnknown，
    永远不会引发解码错误。

    参数：
        data：事件的 JSON 对象。

    返回：
        对应的 ChatEvent 变体。
    """
    kind = str(data.get("__typename") or data.get("type") or "")
    event_id = str(data.get("id") or "")
    sender = ChatSender.from_payload(data.get("sender"))

    if kind == "ChatText":
        emojis = data.get("emojis") or []
        return ChatText(
            id=event_id,
            sender=sender,
            content=str(data.get("content") or ""),
            created_at=data.get("createdAt"),
            emojis=[_as_int(e) for e in emojis] if isinstance(emojis, list) else [],
        )
    if kind == "ChatGift":
        return ChatGift(
            id=event_id,
            sender=sender,
            gift=str(data.get("gift") or ""),
            amount=_as_int(data.get("amount")),
        )
    if kind == "ChatFollow":
        return ChatFollow(id=event_id, sender=sender)
    if kind == "ChatSubscription":
        return ChatSubscription(id=event_id, sender=sender, month=_as_int(data.get("month")))
    if kind == "ChatHost":
        return ChatHost(id=event_id, sender=sender, viewer=_as_int(data.get("viewer")))

    return ChatUnknown(id=event_id, sender=sender, kind=kind, raw=dict(data))


@dataclass
class OutboundMessage:
    """要发送到聊天通道的消息。"""

    channel: str
    chat_id: str
    content: str
