# main.py
# =======================================
# 应用程序主入口 (Application Entry Point)
# =======================================

import asyncio
import logging
import sys
from typing import Any, Dict, List

from dotenv import load_dotenv
from telegram import Update
from telegram.ext import Application, CommandHandler, ChatMemberHandler, ContextTypes
from sqlalchemy.orm import sessionmaker

from rubot.config import Settings, ConfigurationMissing, load_settings
from rubot.core.chatlist import ChatlistNotFoundError, InvalidChatlistError, load_chatlist
from rubot.database import init_database, get_session_factory, save_group
from rubot.utils import session_scope
from rubot.bot.context import RubotContext, install_group_registry
from rubot.bot.handlers import admins_handler, refresh_admins_handler, chat_member_handler
from rubot.bot.tasks import refresh_owned_chat_admins

# ==================== 日志配置 ====================
logging.basicConfig(
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    level=logging.INFO
)
# httpx 会为每一次 API 请求打印日志，APScheduler 同样冗长
logging.getLogger('httpx').setLevel(logging.WARNING)
logging.getLogger('apscheduler').setLevel(logging.WARNING)
logger = logging.getLogger(__name__)


class StartupError(Exception):
    """启动阶段的检查未通过，机器人不应继续运行。"""


# ==================== 核心函数 ====================

async def setup_groups(application: Application, chatlist: List[Dict[str, Any]]):
    """
    在机器人开始轮询前，为私有频道和 chatlist 中的每个群聊创建实体，
    保存它们的元数据，并预先拉取所有群聊的管理员名单。

    Raises:
        StartupError: 私有频道同时出现在 chatlist 中，或机器人无法在私有频道发布消息。
    """
    settings: Settings = application.bot_data['settings']
    registry = install_group_registry(application)

    # 同一个 id 只能是频道或群聊之一
    for index, entry in enumerate(chatlist):
        if entry['id'] == settings.private_channel_id:
            raise StartupError(f"chatlist 第 {index} 项 (id:{entry['id']}) 与私有频道 PRIVATE_CHANNEL_ID 相同。")

    bot_info = await application.bot.get_me()
    logger.info(f"机器人身份: @{bot_info.username} (id:{bot_info.id})")

    channel = registry.get_channel(settings.private_channel_id)
    if not await channel.can_post_messages():
        raise StartupError("机器人必须是私有频道的管理员，并且拥有发布消息的权限。")

    owned_chats = application.bot_data['owned_chats']
    for entry in chatlist:
        logger.info(f"正在为 id:{entry['id']} 创建群聊实例...")
        chat = registry.get_chat(entry['id'])
        chat.set_options(entry['options'])
        if chat not in owned_chats:
            owned_chats.append(chat)

    session_factory: sessionmaker = application.bot_data['session_factory']
    with session_scope(session_factory) as db:
        save_group(db, channel)
        for chat in owned_chats:
            save_group(db, chat)

    await asyncio.gather(*(chat.get_admins() for chat in owned_chats))
    logger.info(f"已加载 {len(owned_chats)} 个自有群聊，注册表中共有 {len(registry)} 个群组。")


def build_application(settings: Settings, session_factory: sessionmaker) -> Application:
    """构建 Application，注册上下文类型、全局数据和所有事件处理器。"""
    application = (
        Application.builder()
        .token(settings.token)
        .context_types(ContextTypes(context=RubotContext))
        .build()
    )

    application.bot_data['settings'] = settings
    application.bot_data['session_factory'] = session_factory
    install_group_registry(application)

    logger.info("正在注册事件处理器...")
    application.add_handler(CommandHandler("admins", admins_handler))
    application.add_handler(CommandHandler("refresh_admins", refresh_admins_handler))
    application.add_handler(ChatMemberHandler(chat_member_handler, ChatMemberHandler.ANY_CHAT_MEMBER))
    return application


async def main() -> int:
    """
    应用程序的主入口函数。

    Returns:
        进程退出码：正常退出为 0，配置或 chatlist 错误为 1。
    """
    load_dotenv()

    # --- 1. 加载配置 ---
    try:
        settings = load_settings()
    except ConfigurationMissing as e:
        logger.critical(f"关键错误: {e} 机器人无法启动。")
        return 1

    # --- 2. 加载并校验 chatlist ---
    try:
        chatlist = load_chatlist(settings.chatlist_path)
    except ChatlistNotFoundError as e:
        logger.critical(f"关键错误: {e}")
        return 1
    except InvalidChatlistError as e:
        logger.critical(f"chatlist 校验失败: {e}")
        return 1

    # --- 3. 初始化数据库 ---
    engine = init_database(settings.database_url)
    session_factory = get_session_factory(engine)

    # --- 4. 初始化 Telegram Bot Application ---
    logger.info("正在启动机器人应用...")
    application = build_application(settings, session_factory)

    try:
        async with application:
            try:
                await setup_groups(application, chatlist)
            except StartupError as e:
                logger.critical(f"关键错误: {e}")
                return 1

            application.job_queue.run_repeating(
                refresh_owned_chat_admins,
                interval=settings.admin_refresh_interval,
                first=settings.admin_refresh_interval,
                name='refresh_admins',
            )
            logger.info(f"已添加每 {settings.admin_refresh_interval} 秒运行一次的管理员名单刷新任务。")

            await application.start()
            # chat_member 更新默认不会推送，需要显式订阅
            await application.updater.start_polling(allowed_updates=Update.ALL_TYPES)
            logger.info("机器人已完成启动，开始轮询接收更新...")
            try:
                # 让主协程永久运行，直到收到关闭信号
                await asyncio.Future()
            finally:
                # 必须在 `async with` 退出 (shutdown) 之前停止轮询和应用
                await application.updater.stop()
                await application.stop()
    except (KeyboardInterrupt, SystemExit):
        logger.info("接收到关闭信号 (如 Ctrl+C)，程序正在优雅地关闭...")
    logger.info("清理完成，程序即将退出。")
    return 0


if __name__ == '__main__':
    sys.exit(asyncio.run(main()))
