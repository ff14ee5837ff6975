# rubot/database.py

# 群组元数据的持久化。管理员名单只缓存在内存中，这里只保存群组本身和它的配置项。

import json
import logging

from sqlalchemy import create_engine, Column, BigInteger, String, Text, DateTime
from sqlalchemy.sql import func
from sqlalchemy.orm import declarative_base, sessionmaker, Session
from sqlalchemy.engine import Engine, make_url

from rubot.core.chat import Chat
from rubot.core.group import GroupVariant

logger = logging.getLogger(__name__)

# ==================== SQLAlchemy 基类 ====================
Base = declarative_base()


# ==================== 数据模型定义 ====================
class Group(Base):
    """
    模型类：表示一个由机器人负责的 Telegram 频道或群聊。
    """
    __tablename__ = 'groups'

    # Telegram 的 chat ID，由 Telegram 分配，因此不自增
    id = Column(BigInteger, primary_key=True, autoincrement=False,
                comment="Telegram 群组的唯一 Chat ID")
    kind = Column(String(20), nullable=False, comment="群组类型: channel 或 chat")
    # 以 JSON 文本形式保存 chatlist 中的 options
    options = Column(Text, nullable=True, comment="群组的配置项 (JSON)")
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<Group(id={self.id}, kind='{self.kind}')>"


# ==================== 数据库初始化函数 ====================

def init_database(db_url: str) -> Engine:
    """
    初始化数据库连接并根据模型创建所有表。

    Args:
        db_url (str): 标准的 SQLAlchemy 数据库连接 URL。

    Returns:
        Engine: SQLAlchemy 的数据库引擎实例。
    """
    try:
        url_info = make_url(db_url)
        logger.info(f"正在初始化数据库连接 (类型: {url_info.drivername})...")
    except Exception:
        logger.info("正在初始化数据库连接...")

    engine = create_engine(db_url, echo=False)
    Base.metadata.create_all(engine)
    logger.info("数据库表结构已验证/创建。")
    return engine


def get_session_factory(engine: Engine) -> sessionmaker:
    """基于给定的数据库引擎创建一个 session 工厂。"""
    return sessionmaker(bind=engine, autoflush=False, autocommit=False)


# ==================== 数据库操作工具函数 ====================

def save_group(db_session: Session, group: GroupVariant) -> Group:
    """
    创建或更新一个群组记录。群聊会同时保存其当前配置项。

    Args:
        db_session: 当前的 SQLAlchemy 会话。
        group: Channel 或 Chat 实例。
    """
    record = db_session.get(Group, group.id)
    if record is None:
        record = Group(id=group.id)
        db_session.add(record)
        logger.info(f"数据库中未找到群组 {group.id}，已自动创建。")

    record.kind = group.kind.value
    if isinstance(group, Chat):
        record.options = json.dumps(group.get_options(), ensure_ascii=False)
    else:
        record.options = None
    return record
