"""!call 聊天命令解析。"""

import re

MAX_QUOTED_SLOT = 80

# !call "ma slot"  或  !call 'ma slot'
_QUOTED = re.compile(
    r"^!call\s+(?P<quote>[\"'])(?P<slot>(?:(?!(?P=quote)).){1,%d})(?P=quote)\s*$" % MAX_QUOTED_SLOT,
    re.IGNORECASE,
)
# !call ma slot（不以引号开头，长度不限）
_UNQUOTED = re.compile(r"^!call\s+(?P<slot>[^\"'\s].*)$", re.IGNORECASE)


def parse_call_command(text: str) -> str | None:
    """
    从聊天文本中提取 !call 命令的 slot。

    带引号的形式限制为 1-80 个字符；不带引号的形式取剩余的全部文本。
    返回 None 表示"不是命令"，而不是错误。
    """
    text = (text or "").strip()
    m = _QUOTED.match(text) or _UNQUOTED.match(text)
    if not m:
        return None
    slot = m.group("slot").strip()
    return slot or None
