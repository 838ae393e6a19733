"""向外部 calls 端点投递 slot 的 HTTP 客户端。"""

from dataclasses import dataclass
from typing import Any

import httpx
from loguru import logger

from callrelay.config.schema import DeliveryConfig


@dataclass
class DeliveryOutcome:
    """一次投递的结果。"""
    ok: bool
    status: int | None = None
    data: Any = None
    fallback: bool = False  # 是否使用了 GET 回退
    error: Any = None

    @property
    def mode(self) -> str:
        return "GET" if self.fallback else "POST"


def _response_body(response: httpx.Response) -> Any:
    """JSON 响应体，无法解码时返回文本。"""
    try:
        return response.json()
    except ValueError:
        return response.text


def _error_message(exc: Exception) -> Any:
    """优先使用远端返回的错误体，其次是传输层描述，最后是异常字符串。"""
    if isinstance(exc, httpx.HTTPStatusError):
        body = _response_body(exc.response)
        if body:
            return body
    message = str(exc)
    if message:
        return message
    return repr(exc)


class CallDeliveryClient:
    """
    将 slot 投递到外部端点。

    首先以 JSON 体发送 POST；失败时（网络错误、超时、非 2xx）
    仅回退一次，改用带相同字段查询参数的 GET。不做更多重试。
    """

    def __init__(self, config: DeliveryConfig, http: httpx.AsyncClient | None = None):
        self.config = config
        self._http = http
        self._owns_http = http is None

    def _client(self) -> httpx.AsyncClient:
        if self._http is None:
            self._http = httpx.AsyncClient(timeout=self.config.timeout_s, follow_redirects=True)
        return self._http

    def build_payload(self, slot: str, user: str) -> dict[str, str]:
        """构建请求字段，配置了共享密钥时附加 auth。"""
        payload = {"slot": slot, "user": user}
        if self.config.shared_secret:
            payload["auth"] = self.config.shared_secret
        return payload

    async def send(self, slot: str, user: str) -> DeliveryOutcome:
        """
        投递一个 slot。

        参数：
            slot：从聊天命令中提取的值。
            user：发送者的显示名称。

        返回：
            DeliveryOutcome，ok 为 False 时 error 中带有错误信息。
        """
        url = self.config.url
        payload = self.build_payload(slot, user)
        http = self._client()
        timeout = self.config.timeout_s

        try:
            response = await http.post(url, json=payload, timeout=timeout)
            response.raise_for_status()
            return DeliveryOutcome(ok=True, status=response.status_code, data=_response_body(response))
        except Exception as e:
            logger.warning(f"POST {url} 失败（slot={slot!r}, user={user}）：{_error_message(e)}，改用 GET 重试")

        try:
            response = await http.get(url, params=payload, timeout=timeout)
            response.raise_for_status()
            return DeliveryOutcome(
                ok=True,
                status=response.status_code,
                data=_response_body(response),
                fallback=True,
            )
        except Exception as e:
            error = _error_message(e)
            logger.warning(f"GET {url} 失败（slot={slot!r}, user={user}）：{error}")
            return DeliveryOutcome(ok=False, fallback=True, error=error)

    async def close(self) -> None:
        """关闭自己创建的 HTTP 客户端。"""
        if self._http and self._owns_http:
            await self._http.aclose()
        self._http = None
