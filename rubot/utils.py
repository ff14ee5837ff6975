# rubot/utils.py

import logging
from contextlib import contextmanager
from sqlalchemy.orm import Session, sessionmaker

logger = logging.getLogger(__name__)

@contextmanager
def session_scope(session_factory: sessionmaker) -> Session:
    """
    提供一个事务性的数据库会话作用域。
    操作成功时自动提交，发生异常时回滚并重新抛出，最终总会关闭会话。

    用法:
    with session_scope(session_factory) as session:
        session.query(...)
    """
    session = session_factory()
    logger.debug("数据库会话已创建。")
    try:
        yield session
        session.commit()
        logger.debug("数据库事务已提交。")
    except Exception:
        logger.exception("数据库会话中发生错误，事务已回滚。")
        session.rollback()
        raise
    finally:
        session.close()
        logger.debug("数据库会话已关闭。")


def make_name(user) -> str:
    """
    根据 Telegram 用户的姓名字段拼出一个可读的显示名称。

    优先使用 first_name + last_name；两者都为空时退回到 @username，
    最后退回到用户ID。
    """
    parts = [part for part in (getattr(user, 'first_name', None), getattr(user, 'last_name', None)) if part]
    if parts:
        return " ".join(parts)
    username = getattr(user, 'username', None)
    if username:
        return f"@{username}"
    return str(user.id)
