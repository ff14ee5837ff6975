# rubot/core/channel.py

import logging

from rubot.core.group import GroupKind, GroupVariant

logger = logging.getLogger(__name__)


class Channel(GroupVariant):
    """一个由机器人发布消息的 Telegram 频道。"""
    kind = GroupKind.CHANNEL

    async def can_post_messages(self) -> bool:
        """
        检查机器人是否能在此频道发布消息。
        该结果每次都从管理员名单中读取，不单独缓存；机器人不在名单中时返回 False。
        """
        record = await self.entity.find_admin(self.bot.id)
        if record is None:
            logger.debug(f"机器人不是频道 {self.id} 的管理员。")
            return False
        return record.can_post_messages
