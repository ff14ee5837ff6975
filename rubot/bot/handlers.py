# rubot/bot/handlers.py (事件处理器模块)

# 建立在群组实体之上的命令与成员变更处理器。
# 所有权限判断都经过实体的管理员名单缓存，而不是每次都调用 get_chat_member。

import logging
from functools import wraps
from typing import Sequence

from cachetools import TTLCache
from telegram import Update

from rubot.bot.context import RubotContext
from rubot.core.group import ADMIN_STATUSES, AdminRecord

logger = logging.getLogger(__name__)

# 同一个群组两次强制刷新之间的最短间隔（秒）
REFRESH_COOLDOWN = 30

STATUS_LABELS = {
    'creator': "群主",
    'administrator': "管理员",
}


def group_admin_only(func):
    """
    装饰器：只有当前群组的管理员才能使用被装饰的命令。
    私聊中的调用会被静默忽略。
    """
    @wraps(func)
    async def wrapper(update: Update, context: RubotContext, *args, **kwargs):
        group = context.current_chat(update)
        user = update.effective_user
        if group is None or user is None:
            return

        if not await group.is_admin(user.id):
            logger.info(f"用户 {user.id} 不是群组 {group.id} 的管理员，已拒绝命令。")
            if update.effective_message:
                await update.effective_message.reply_text("抱歉，只有群组管理员才能使用此命令。")
            return

        return await func(update, context, *args, **kwargs)

    return wrapper


def format_admin_list(admins: Sequence[AdminRecord]) -> str:
    lines = []
    for admin in admins:
        label = STATUS_LABELS.get(admin.status, admin.status)
        name = admin.full_name
        if admin.username:
            name = f"{name} (@{admin.username})"
        if admin.is_bot:
            name = f"{name} [bot]"
        lines.append(f"• {name}: {label}")
    return "\n".join(lines)


async def admins_handler(update: Update, context: RubotContext):
    """处理 /admins 命令，列出当前群组的管理员。"""
    group = context.current_chat(update)
    if group is None:
        await update.effective_message.reply_text("此命令只能在群组中使用。")
        return

    admins = await group.get_admins()
    if not admins:
        await update.effective_message.reply_text("暂时无法获取本群的管理员名单。")
        return

    await update.effective_message.reply_text(f"本群共有 {len(admins)} 位管理员:\n{format_admin_list(admins)}")


@group_admin_only
async def refresh_admins_handler(update: Update, context: RubotContext):
    """处理 /refresh_admins 命令，忽略缓存有效期强制刷新管理员名单。"""
    group = context.current_chat(update)

    if 'refresh_cooldowns' not in context.bot_data:
        context.bot_data['refresh_cooldowns'] = TTLCache(maxsize=1000, ttl=REFRESH_COOLDOWN)
    cooldowns: TTLCache = context.bot_data['refresh_cooldowns']

    if group.id in cooldowns:
        await update.effective_message.reply_text("管理员名单刚刚刷新过，请稍后再试。")
        return

    result = await group.fetch_admins(force=True)
    if not result.ok:
        await update.effective_message.reply_text("刷新管理员名单失败，请确认机器人仍是本群管理员。")
        return

    cooldowns[group.id] = True
    logger.info(f"群组 {group.id} 的管理员名单已被用户 {update.effective_user.id} 手动刷新。")
    await update.effective_message.reply_text(f"✅ 管理员名单已刷新，共 {len(result.admins)} 人。")


async def chat_member_handler(update: Update, context: RubotContext):
    """
    处理成员状态变更。涉及管理员身份的变更会让对应群组的名单缓存立即过期，
    下一次权限检查将重新拉取。只处理已注册的群组，不会为陌生群组创建实体。
    """
    member_update = update.chat_member or update.my_chat_member
    if member_update is None:
        return

    group = context.groups.get(member_update.chat.id)
    if group is None:
        return

    old_status = member_update.old_chat_member.status
    new_status = member_update.new_chat_member.status
    if old_status in ADMIN_STATUSES or new_status in ADMIN_STATUSES:
        logger.info(f"群组 {group.id} 中用户 {member_update.new_chat_member.user.id} 的状态从 {old_status} 变为 {new_status}。")
        group.invalidate_admins()
