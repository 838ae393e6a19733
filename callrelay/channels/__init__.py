"""直播聊天通道模块。"""

from callrelay.channels.base import BaseChannel
from callrelay.channels.dlive import DLiveChannel

__all__ = ["BaseChannel", "DLiveChannel"]
