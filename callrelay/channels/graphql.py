"""DLive GraphQL 文档、频道解析和聊天消息发送。"""

import hashlib
from typing import Any

import httpx
from loguru import logger

from callrelay.errors import ChannelResolutionError

STREAM_MESSAGE_SUBSCRIPTION = """subscription StreamMessageSubscription($streamer: String!, $viewer: String) {
  streamMessageReceived(streamer: $streamer, viewer: $viewer) {
    type
    ... on ChatText {
      id
      emojis
      content
      createdAt
      ...VStreamChatSenderInfoFrag
      __typename
    }
    ... on ChatGift {
      id
      gift
      amount
      ...VStreamChatSenderInfoFrag
      __typename
    }
    ... on ChatFollow {
      id
      ...VStreamChatSenderInfoFrag
      __typename
    }
    ... on ChatSubscription {
      id
      month
      ...VStreamChatSenderInfoFrag
      __typename
    }
    ... on ChatHost {
      id
      viewer
      ...VStreamChatSenderInfoFrag
      __typename
    }
    __typename
  }
}

fragment VStreamChatSenderInfoFrag on SenderInfo {
  sender {
    id
    username
    displayname
    avatar
    partnerStatus
    __typename
  }
  __typename
}
"""

LIVESTREAM_PAGE_QUERY = """query LivestreamPage($displayname: String!, $add: Boolean!, $isLoggedIn: Boolean!, $isMe: Boolean!, $showUnpicked: Boolean, $order: PartnerMessageOrder) {
  userByDisplayName(displayname: $displayname) {
    id
    username
    displayname
    __typename
  }
}
"""

SEND_CHAT_MESSAGE_MUTATION = """mutation SendStreamChatMessage($input: SendStreamchatMessageInput!) {
  sendStreamchatMessage(input: $input) {
    err {
      code
      message
      __typename
    }
    __typename
  }
}
"""


def query_hash(query: str) -> str:
    """持久化查询使用的 SHA-256 哈希。"""
    return hashlib.sha256(query.encode("utf-8")).hexdigest()


def persisted_operation(operation_name: str, query: str, variables: dict[str, Any]) -> dict[str, Any]:
    """构建同时携带哈希引用和完整文档的 GraphQL 操作。"""
    return {
        "operationName": operation_name,
        "variables": variables,
        "extensions": {"persistedQuery": {"version": 1, "sha256Hash": query_hash(query)}},
        "query": query,
    }


def subscription_start_frame(subscription_id: str, streamer: str) -> dict[str, Any]:
    """graphql-ws 的 start 帧，订阅指定主播的聊天消息。"""
    return {
        "id": subscription_id,
        "type": "start",
        "payload": persisted_operation(
            "StreamMessageSubscription",
            STREAM_MESSAGE_SUBSCRIPTION,
            {"streamer": streamer, "viewer": ""},
        ),
    }


async def resolve_streamer(
    display_name: str,
    api_url: str,
    http: httpx.AsyncClient | None = None,
    timeout: float = 10.0,
) -> str:
    """
    通过 LivestreamPage 查询将显示名称解析为内部用户名。

    参数：
        display_name：频道的显示名称。
        api_url：DLive GraphQL 端点。
        http：可选的共享 HTTP 客户端。

    返回：
        流标识符（username）。

    异常：
        ChannelResolutionError：请求失败或响应中没有 username。
    """
    body = persisted_operation(
        "LivestreamPage",
        LIVESTREAM_PAGE_QUERY,
        {
            "displayname": display_name,
            "add": False,
            "isLoggedIn": False,
            "isMe": False,
            "showUnpicked": False,
            "order": "PickTime",
        },
    )

    client = http or httpx.AsyncClient(timeout=timeout)
    try:
        response = await client.post(api_url, json=body, timeout=timeout)
        response.raise_for_status()
        data = response.json()
    except (httpx.HTTPError, ValueError) as e:
        raise ChannelResolutionError(display_name, str(e) or repr(e)) from e
    finally:
        if http is None:
            await client.aclose()

    if not isinstance(data, dict):
        raise ChannelResolutionError(display_name, f"意外的响应：{str(data)[:100]}")

    result = data.get("data")
    user = result.get("userByDisplayName") if isinstance(result, dict) else None
    username = user.get("username") if isinstance(user, dict) else None
    if not username:
        errors = data.get("errors")
        reason = f"GraphQL 错误：{errors}" if errors else "响应中没有 username"
        raise ChannelResolutionError(display_name, reason)

    logger.debug(f"频道 {display_name} 解析为 {username}")
    return username


async def send_chat_message(
    streamer: str,
    message: str,
    auth_key: str,
    api_url: str,
    http: httpx.AsyncClient,
    timeout: float = 10.0,
) -> None:
    """以认证用户身份向主播聊天室发送一条消息。"""
    body = persisted_operation(
        "SendStreamChatMessage",
        SEND_CHAT_MESSAGE_MUTATION,
        {
            "input": {
                "streamer": streamer,
                "message": message,
                "roomRole": "Member",
                "subscribing": True,
            }
        },
    )
    response = await http.post(
        api_url,
        json=body,
        headers={"Authorization": auth_key},
        timeout=timeout,
    )
    response.raise_for_status()
    data = response.json()
    if not isinstance(data, dict):
        raise RuntimeError(f"DLive 返回了意外的响应：{str(data)[:100]}")
    result = (data.get("data") or {}).get("sendStreamchatMessage") or {}
    err = result.get("err")
    if err:
        raise RuntimeError(f"DLive 拒绝了聊天消息：{err.get('code')} {err.get('message') or ''}".strip())
