"""
callrelay - 将直播聊天中的 !call 命令转发到外部 HTTP 端点
"""

__version__ = "0.1.0"
__logo__ = "📞"
