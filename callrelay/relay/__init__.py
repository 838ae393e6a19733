"""!call 命令的解析和分发。"""

from callrelay.relay.dispatcher import CallDispatcher
from callrelay.relay.parser import parse_call_command

__all__ = ["CallDispatcher", "parse_call_command"]
