# rubot/bot/tasks.py

import asyncio
import logging

from rubot.bot.context import RubotContext

logger = logging.getLogger(__name__)


async def refresh_owned_chat_admins(context: RubotContext):
    """
    一个计划任务，定期强制刷新所有自有群聊的管理员名单，
    让处理器中的权限检查尽量命中缓存。单个群组失败不会影响其他群组。
    """
    chats = context.owned_chats
    logger.info(f"正在刷新 {len(chats)} 个群聊的管理员名单...")
    results = await asyncio.gather(*(chat.fetch_admins(force=True) for chat in chats))

    successful = 0
    for chat, result in zip(chats, results):
        if result.ok:
            successful += 1
        else:
            logger.warning(f"刷新群组 {chat.id} 的管理员名单失败: {result.error}")

    logger.info(f"管理员名单刷新任务完成。成功刷新了 {successful}/{len(chats)} 个群组。")
