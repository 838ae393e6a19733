"""使用 Pydantic 的配置模式。"""

from typing import Literal

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DLIVE_STREAM_URL = "wss://graphigostream.prd.dlive.tv/"
DLIVE_API_URL = "https://graphigo.prd.dlive.tv/"


class DLiveConfig(BaseModel):
    """DLive 通道配置。"""
    channel: str = ""  # 频道显示名称
    auth_key: str = ""  # 认证模式下的凭据，原样透传
    stream_url: str = DLIVE_STREAM_URL
    api_url: str = DLIVE_API_URL
    announce: bool = True  # 认证模式下在聊天中回显结果


class DeliveryConfig(BaseModel):
    """外部 calls 端点的配置。"""
    base_url: str = ""
    endpoint: str = "/api/calls"
    shared_secret: str = ""
    timeout_s: float = 10.0

    @field_validator("base_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.strip().rstrip("/")

    @property
    def url(self) -> str:
        return f"{self.base_url}{self.endpoint}"


class ReconnectConfig(BaseModel):
    """断线重连策略。"""
    strategy: Literal["fixed", "exponential"] = "fixed"
    delay_s: float = 5.0
    max_delay_s: float = 60.0

    def delay_for(self, attempt: int) -> float:
        """第 attempt 次（从 1 开始）连续重连前的等待秒数。"""
        if self.strategy == "fixed":
            return self.delay_s
        exponent = max(attempt, 1) - 1
        return min(self.delay_s * (2 ** exponent), self.max_delay_s)


class Config(BaseSettings):
    """
    callrelay 的根配置。

    从环境变量（以及可选的 .env 文件）读取，例如 DLIVE_CHANNEL
    映射到 dlive.channel，CALLS_BASE_URL 映射到 calls.base_url。
    """
    model_config = SettingsConfigDict(
        env_file=".env",
        env_nested_delimiter="_",
        env_nested_max_split=1,
        extra="ignore",
    )

    dlive: DLiveConfig = Field(default_factory=DLiveConfig)
    calls: DeliveryConfig = Field(default_factory=DeliveryConfig)
    reconnect: ReconnectConfig = Field(default_factory=ReconnectConfig)

    @property
    def authenticated(self) -> bool:
        """是否配置了 DLive 凭据。"""
        return bool(self.dlive.auth_key)

    def missing_keys(self, authenticated: bool = False) -> list[str]:
        """返回缺失的必需环境变量名称。"""
        missing = []
        if authenticated and not self.dlive.auth_key:
            missing.append("DLIVE_AUTH_KEY")
        if not self.dlive.channel.strip():
            missing.append("DLIVE_CHANNEL")
        if not self.calls.base_url:
            missing.append("CALLS_BASE_URL")
        return missing
