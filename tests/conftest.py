# tests/conftest.py

import pytest
from unittest.mock import MagicMock, AsyncMock

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from rubot.database import Base
from rubot.bot.context import RubotContext, install_group_registry

BOT_ID = 42


class FakeClock:
    """可手动推进的时钟，替代 time.monotonic。"""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture(scope="function")
def test_db_session_factory():
    """
    提供一个基于内存的、干净的 SQLite 数据库会话工厂。
    StaticPool 保证同一个工厂创建的所有会话都连接到同一个内存数据库。
    """
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    yield factory
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def make_member():
    """返回一个用于构造模拟 ChatMember 对象的工厂函数。"""
    def _make_member(user_id, status='administrator', is_bot=False, first_name="User",
                     last_name=None, username=None, can_post_messages=None):
        user = MagicMock()
        user.id = user_id
        user.is_bot = is_bot
        user.first_name = first_name
        user.last_name = last_name
        user.username = username

        member = MagicMock()
        member.user = user
        member.status = status
        member.can_post_messages = can_post_messages
        return member
    return _make_member


@pytest.fixture
def mock_bot():
    """提供一个模拟的 telegram.Bot，所有网络方法均为 AsyncMock。"""
    bot = MagicMock()
    bot.id = BOT_ID
    bot.get_chat_administrators = AsyncMock(return_value=[])
    bot.delete_message = AsyncMock(return_value=True)
    bot.get_me = AsyncMock(return_value=MagicMock(id=BOT_ID, username="rubot"))
    return bot


@pytest.fixture
def mock_application(mock_bot):
    application = MagicMock()
    application.bot = mock_bot
    application.bot_data = {}
    return application


@pytest.fixture
def rubot_context(mock_application, clock):
    """提供一个已安装群组注册表的真实 RubotContext。"""
    install_group_registry(mock_application, clock=clock)
    return RubotContext(mock_application)


@pytest.fixture
def mock_update():
    """提供一个来自超级群组的模拟 Update 对象。"""
    update = MagicMock()

    mock_user = MagicMock()
    mock_user.id = 123
    mock_user.first_name = "Test"

    mock_chat = MagicMock()
    mock_chat.id = -1001
    mock_chat.type = "supergroup"

    mock_message = MagicMock()
    mock_message.message_id = 9999
    mock_message.reply_text = AsyncMock()
    mock_message.chat = mock_chat
    mock_message.from_user = mock_user

    update.effective_user = mock_user
    update.effective_chat = mock_chat
    update.effective_message = mock_message
    update.message = mock_message
    update.chat_member = None
    update.my_chat_member = None
    return update
