# rubot/bot/context.py

# 扩展 python-telegram-bot 的回调上下文，让功能代码可以直接通过 context 获取群组实体，
# 而无需到处传递 bot 或注册表的引用。

import logging
import time
from typing import Callable, Dict, List, Optional, Type, TypeVar

from telegram import Bot, Update
from telegram.constants import ChatType
from telegram.ext import Application, CallbackContext, ExtBot

from rubot.core.channel import Channel
from rubot.core.chat import Chat
from rubot.core.group import ADMIN_CACHE_TTL, GroupEntity, GroupVariant

logger = logging.getLogger(__name__)

REGISTRY_KEY = 'groups'

V = TypeVar('V', bound=GroupVariant)


class GroupRegistry:
    """
    进程级的群组实体注册表。

    这是唯一创建 GroupEntity 的地方，保证每个 chat id 至多对应一个实体，
    从而不会出现同一个群组有多份各自过期的管理员缓存。条目从不移除。
    """

    def __init__(self, bot: Bot, ttl: float = ADMIN_CACHE_TTL, clock: Callable[[], float] = time.monotonic):
        self.bot = bot
        self.ttl = ttl
        self._clock = clock
        self._groups: Dict[int, GroupVariant] = {}

    def _get_or_create(self, chat_id: int, variant: Type[V]) -> V:
        # 检查与插入之间没有 await，在单线程事件循环中是原子的
        group = self._groups.get(chat_id)
        if group is None:
            entity = GroupEntity(chat_id, self.bot, variant.kind, ttl=self.ttl, clock=self._clock)
            group = variant(entity)
            self._groups[chat_id] = group
            logger.info(f"已为 id:{chat_id} 创建 {variant.__name__} 实例。")
        elif not isinstance(group, variant):
            raise TypeError(f"id:{chat_id} 已注册为 {type(group).__name__}，不能再作为 {variant.__name__} 使用。")
        return group

    def get_chat(self, chat_id: int) -> Chat:
        return self._get_or_create(chat_id, Chat)

    def get_channel(self, chat_id: int) -> Channel:
        return self._get_or_create(chat_id, Channel)

    def get(self, chat_id: int) -> Optional[GroupVariant]:
        """只查询，不创建。"""
        return self._groups.get(chat_id)

    def __len__(self) -> int:
        return len(self._groups)


def install_group_registry(application: Application, **kwargs) -> GroupRegistry:
    """
    在启动时为 application 安装群组注册表。重复调用会返回已安装的实例。
    """
    registry = application.bot_data.get(REGISTRY_KEY)
    if registry is None:
        registry = GroupRegistry(application.bot, **kwargs)
        application.bot_data[REGISTRY_KEY] = registry
        logger.debug("群组注册表已安装。")
    application.bot_data.setdefault('owned_chats', [])
    return registry


class RubotContext(CallbackContext[ExtBot, dict, dict, dict]):
    """
    项目使用的回调上下文类型，通过 `ContextTypes(context=RubotContext)` 注册到 Application。
    """

    @property
    def groups(self) -> GroupRegistry:
        registry = self.bot_data.get(REGISTRY_KEY)
        if registry is None:
            raise RuntimeError("群组注册表尚未安装，请先调用 install_group_registry()。")
        return registry

    def get_chat(self, chat_id: int) -> Chat:
        return self.groups.get_chat(chat_id)

    def get_channel(self, chat_id: int) -> Channel:
        return self.groups.get_channel(chat_id)

    def current_chat(self, update: Update) -> Optional[GroupVariant]:
        """返回本次更新所在群组的实体；私聊或没有 chat 的更新返回 None。"""
        chat = update.effective_chat
        if chat is None:
            return None
        if chat.type == ChatType.CHANNEL:
            return self.get_channel(chat.id)
        if chat.type in (ChatType.GROUP, ChatType.SUPERGROUP):
            return self.get_chat(chat.id)
        return None

    @property
    def owned_chats(self) -> List[Chat]:
        return self.bot_data.get('owned_chats', [])
