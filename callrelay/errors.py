"""callrelay 的异常类型。"""


class CallRelayError(Exception):
    """callrelay 所有错误的基类。"""


class ConfigError(CallRelayError):
    """缺少必需的配置项，或配置值无效。"""

    def __init__(self, missing: list[str] | None = None, invalid: dict[str, str] | None = None):
        self.missing = missing or []
        self.invalid = invalid or {}
        parts = []
        if self.missing:
            parts.append(f"缺少必需的配置：{', '.join(self.missing)}")
        if self.invalid:
            details = "; ".join(f"{key}（{reason}）" for key, reason in self.invalid.items())
            parts.append(f"无效的配置：{details}")
        super().__init__("；".join(parts))


class ChannelResolutionError(CallRelayError):
    """无法将频道显示名称解析为内部流标识符。"""

    def __init__(self, display_name: str, reason: str):
        self.display_name = display_name
        self.reason = reason
        super().__init__(f"无法解析频道 {display_name}：{reason}")
