# rubot/core/chatlist.py

# 机器人负责的群聊列表 (.chatlist.json) 的加载与校验。
# 文件缺失和内容不合法是两种不同的错误，启动流程据此输出有针对性的提示。

import json
import logging
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, StrictInt, ValidationError

logger = logging.getLogger(__name__)


class ChatlistError(Exception):
    """chatlist 相关错误的基类。"""


class ChatlistNotFoundError(ChatlistError):
    """chatlist 文件不存在或无法读取。"""


class InvalidChatlistError(ChatlistError):
    """
    chatlist 内容不合法：无法解析为 JSON，或某一项不符合 `{id: int, options: object}` 的结构。

    Attributes:
        index: 第一个不合法条目的下标（整体结构错误时为 None）。
        field: 出错的字段名（条目本身不是对象时为 None）。
    """

    def __init__(self, message: str, index: Optional[int] = None, field: Optional[str] = None):
        super().__init__(message)
        self.index = index
        self.field = field


class ChatlistEntry(BaseModel):
    """chatlist 中的单个条目。额外字段会被保留，交给具体功能自行解释。"""
    model_config = ConfigDict(extra='allow')

    id: StrictInt
    options: Dict[str, Any]


def validate_chatlist(entries: Any) -> List[Dict[str, Any]]:
    """
    校验 chatlist 的结构。

    Args:
        entries: 从 JSON 解析得到的原始数据。

    Returns:
        校验通过时原样返回 `entries`。

    Raises:
        InvalidChatlistError: 指明第一个出错的条目下标和字段。
    """
    if not isinstance(entries, list):
        raise InvalidChatlistError(f"chatlist 必须是一个 JSON 数组，实际得到的是 {type(entries).__name__}。")

    for index, entry in enumerate(entries):
        try:
            ChatlistEntry.model_validate(entry)
        except ValidationError as e:
            error = e.errors()[0]
            loc = error.get('loc') or ()
            field = str(loc[0]) if loc else None
            if field is None:
                message = f"chatlist 第 {index} 项必须是一个对象: {error['msg']}"
            else:
                message = f"chatlist 第 {index} 项的字段 '{field}' 不合法: {error['msg']}"
            raise InvalidChatlistError(message, index=index, field=field) from e

    logger.debug(f"chatlist 校验通过，共 {len(entries)} 项。")
    return entries


def load_chatlist(path: str) -> List[Dict[str, Any]]:
    """
    读取、解析并校验 chatlist 文件。

    Raises:
        ChatlistNotFoundError: 文件不存在或无法读取。
        InvalidChatlistError: 文件不是合法的 JSON，或结构校验失败。
    """
    logger.info(f"正在从 {path} 加载 chatlist...")
    try:
        with open(path, encoding='utf-8') as f:
            raw = f.read()
    except FileNotFoundError as e:
        raise ChatlistNotFoundError(f"找不到 chatlist 文件 {path}，是否忘记创建 .chatlist.json？") from e
    except OSError as e:
        raise ChatlistNotFoundError(f"无法读取 chatlist 文件 {path}: {e}") from e

    try:
        entries = json.loads(raw)
    except json.JSONDecodeError as e:
        raise InvalidChatlistError(f"chatlist 文件 {path} 不是合法的 JSON: {e}") from e

    return validate_chatlist(entries)
