# rubot/core/group.py

# 群组实体的公共部分：身份、管理员名单缓存以及基于缓存的权限查询。
# 频道 (Channel) 和群聊 (Chat) 各自组合一个 GroupEntity，缓存状态只存在于 GroupEntity 中。

import enum
import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional, Tuple

from telegram import Bot
from telegram.constants import ChatMemberStatus
from telegram.error import TelegramError

from rubot.utils import make_name

logger = logging.getLogger(__name__)

# 管理员名单的缓存有效期（秒）
ADMIN_CACHE_TTL = 60

ADMIN_STATUSES = (ChatMemberStatus.OWNER, ChatMemberStatus.ADMINISTRATOR)


class GroupKind(str, enum.Enum):
    """群组实体的变体标签。"""
    CHANNEL = "channel"
    CHAT = "chat"


@dataclass(frozen=True)
class AdminRecord:
    """名单中的一条管理员记录，由 Telegram 的 ChatMember 对象转换而来。"""
    user_id: int
    is_bot: bool
    full_name: str
    username: Optional[str]
    status: str
    can_post_messages: bool = False

    @property
    def is_admin(self) -> bool:
        return self.status in ADMIN_STATUSES

    @classmethod
    def from_chat_member(cls, member) -> "AdminRecord":
        """
        将 `get_chat_administrators` 返回的成员对象转换为 AdminRecord。

        群主没有单独的发布权限标志，视为可以发布；
        其余成员只有在 Telegram 明确返回 True 时才认为可以发布。
        """
        user = member.user
        is_owner = member.status == ChatMemberStatus.OWNER
        return cls(
            user_id=user.id,
            is_bot=bool(user.is_bot),
            full_name=make_name(user),
            username=user.username,
            status=member.status,
            can_post_messages=is_owner or getattr(member, 'can_post_messages', None) is True,
        )


@dataclass(frozen=True)
class AdminRoster:
    """
    名单快照。名单与下一次刷新时间总是作为一个整体被替换，
    不存在两者互相不一致的中间状态。
    """
    admins: Tuple[AdminRecord, ...]
    next_refresh_at: float


@dataclass(frozen=True)
class AdminFetchResult:
    """
    `GroupEntity.fetch_admins` 的结果。

    拉取失败时 `admins` 为空元组、`error` 记录失败原因，缓存保持不变；
    调用方无需处理异常即可按“没有已知管理员”降级。
    """
    admins: Tuple[AdminRecord, ...]
    from_cache: bool = False
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class GroupEntity:
    """
    一个由机器人负责的远程群组（频道或群聊）。

    管理员名单按需懒加载，并在 `ttl` 秒内复用。
    同一个 id 只应存在一个实例，新实例只能通过 `GroupRegistry` 创建。
    """

    def __init__(
        self,
        chat_id: int,
        bot: Bot,
        kind: GroupKind,
        ttl: float = ADMIN_CACHE_TTL,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._id = chat_id
        self.bot = bot
        self.kind = kind
        self.ttl = ttl
        self._clock = clock
        # 初始状态：空名单，并且立即需要刷新
        self._roster = AdminRoster(admins=(), next_refresh_at=clock() - ttl)

    @property
    def id(self) -> int:
        return self._id

    @property
    def admins(self) -> Tuple[AdminRecord, ...]:
        """当前缓存中的名单，不会触发网络请求。"""
        return self._roster.admins

    @property
    def next_refresh_at(self) -> float:
        return self._roster.next_refresh_at

    def is_fresh(self) -> bool:
        return self._roster.next_refresh_at > self._clock()

    async def fetch_admins(self, force: bool = False) -> AdminFetchResult:
        """
        获取管理员名单，缓存未过期时直接返回缓存。

        Args:
            force: 为 True 时忽略缓存有效期，强制从 Telegram 拉取。

        Returns:
            AdminFetchResult: 拉取失败时返回空名单并附带错误，缓存与刷新时间均不变，
            因此下一次调用会再次尝试拉取。
        """
        roster = self._roster
        if not force and self.is_fresh():
            logger.debug(f"群组 {self.id} 的管理员名单命中缓存 ({len(roster.admins)} 人)。")
            return AdminFetchResult(admins=roster.admins, from_cache=True)

        logger.debug(f"正在为群组 {self.id} 拉取管理员名单 (force={force})...")
        try:
            members = await self.bot.get_chat_administrators(chat_id=self.id)
            admins = tuple(AdminRecord.from_chat_member(member) for member in members)
        except TelegramError as e:
            logger.warning(f"获取群组 {self.id} 的管理员名单失败 (可能是机器人权限不足或已被移出): {e}")
            return AdminFetchResult(admins=(), error=e)
        except Exception as e:
            logger.error(f"获取群组 {self.id} 的管理员名单时发生未知错误: {e}", exc_info=True)
            return AdminFetchResult(admins=(), error=e)

        self._roster = AdminRoster(admins=admins, next_refresh_at=self._clock() + self.ttl)
        logger.debug(f"群组 {self.id} 的管理员名单已更新，共 {len(admins)} 人。")
        return AdminFetchResult(admins=admins)

    async def get_admins(self, force: bool = False) -> Tuple[AdminRecord, ...]:
        """返回管理员名单；拉取失败时返回空元组，从不抛出异常。"""
        result = await self.fetch_admins(force=force)
        return result.admins

    async def find_admin(self, user_id: int) -> Optional[AdminRecord]:
        for admin in await self.get_admins():
            if admin.user_id == user_id:
                return admin
        return None

    async def is_admin(self, user_id: int) -> bool:
        """
        检查用户是否为本群组的群主或管理员。
        用户不在名单中（包括名单因拉取失败而为空）时返回 False。
        """
        found = await self.find_admin(user_id)
        if found is None:
            return False
        logger.debug(f"在群组 {self.id} 中找到用户 {user_id}，状态: {found.status}")
        return found.is_admin

    async def is_bot_admin(self, bot_id: Optional[int] = None) -> bool:
        """检查机器人自身是否为管理员。未传入 bot_id 时使用 `bot.id`。"""
        return await self.is_admin(bot_id if bot_id is not None else self.bot.id)

    def invalidate_admins(self) -> None:
        """将名单标记为已过期，下一次查询会重新拉取；已有名单暂时保留。"""
        self._roster = AdminRoster(admins=self._roster.admins, next_refresh_at=self._clock() - self.ttl)
        logger.debug(f"群组 {self.id} 的管理员名单已被标记为过期。")

    async def delete_message(self, message_id: int) -> bool:
        """
        尽力删除本群组中的一条消息。

        消息可能已被删除、超过了 48 小时的删除期限，或者机器人没有删除权限；
        这些情况都只记录日志并返回 False，不会向调用方抛出异常。
        """
        try:
            await self.bot.delete_message(chat_id=self.id, message_id=message_id)
        except TelegramError as e:
            logger.debug(f"删除群组 {self.id} 中的消息 {message_id} 失败: {e}")
            return False
        except Exception as e:
            logger.error(f"删除群组 {self.id} 中的消息 {message_id} 时发生未知错误: {e}", exc_info=True)
            return False
        return True

    def __repr__(self):
        return f"<GroupEntity(id={self.id}, kind='{self.kind.value}', admins={len(self._roster.admins)})>"


class GroupVariant:
    """
    频道和群聊的公共外观：持有一个 GroupEntity，并转发其基础操作。
    只需要基础能力的代码可以统一对待 Channel 和 Chat。
    """
    kind: GroupKind

    def __init__(self, entity: GroupEntity):
        if entity.kind != self.kind:
            raise TypeError(f"无法用 {entity.kind.value} 实体创建 {type(self).__name__}。")
        self.entity = entity

    @property
    def id(self) -> int:
        return self.entity.id

    @property
    def bot(self) -> Bot:
        return self.entity.bot

    async def fetch_admins(self, force: bool = False) -> AdminFetchResult:
        return await self.entity.fetch_admins(force=force)

    async def get_admins(self, force: bool = False) -> Tuple[AdminRecord, ...]:
        return await self.entity.get_admins(force=force)

    async def find_admin(self, user_id: int) -> Optional[AdminRecord]:
        return await self.entity.find_admin(user_id)

    async def is_admin(self, user_id: int) -> bool:
        return await self.entity.is_admin(user_id)

    async def is_bot_admin(self, bot_id: Optional[int] = None) -> bool:
        return await self.entity.is_bot_admin(bot_id)

    def invalidate_admins(self) -> None:
        self.entity.invalidate_admins()

    async def delete_message(self, message_id: int) -> bool:
        return await self.entity.delete_message(message_id)

    def __repr__(self):
        return f"<{type(self).__name__}(id={self.id})>"
