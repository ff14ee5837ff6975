# rubot/core/chat.py

from typing import Any, Dict

from rubot.core.group import GroupEntity, GroupKind, GroupVariant


class Chat(GroupVariant):
    """
    一个由机器人管理的 Telegram 群聊，附带外部提供的配置项。
    配置项没有有效期，只在 `set_options` 时被整体替换。
    """
    kind = GroupKind.CHAT

    def __init__(self, entity: GroupEntity):
        super().__init__(entity)
        self._options: Dict[str, Any] = {}

    def set_options(self, options: Dict[str, Any]) -> None:
        # 原样保存，校验由 chatlist 模块在此之前完成
        self._options = options

    def get_options(self) -> Dict[str, Any]:
        return self._options
