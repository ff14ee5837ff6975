# rubot/config.py

# 从环境变量读取运行配置。调用方（main.py）负责事先执行 load_dotenv()。

import logging
import os
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)

DEFAULT_DATABASE_URL = "sqlite:///rubot.db"
DEFAULT_CHATLIST_PATH = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), ".chatlist.json")
DEFAULT_ADMIN_REFRESH_INTERVAL = 600


class ConfigurationMissing(Exception):
    """缺少必需的配置项，或配置项格式不正确。"""


@dataclass(frozen=True)
class Settings:
    token: str
    private_channel_id: int
    database_url: str = DEFAULT_DATABASE_URL
    chatlist_path: str = DEFAULT_CHATLIST_PATH
    admin_refresh_interval: int = DEFAULT_ADMIN_REFRESH_INTERVAL


def _get_int(name: str, default: Optional[int] = None) -> int:
    value = os.getenv(name)
    if not value:
        if default is None:
            raise ConfigurationMissing(f"未在环境变量中找到 {name}。")
        return default
    try:
        return int(value)
    except ValueError:
        raise ConfigurationMissing(f"环境变量 {name} 必须是整数，当前值为 '{value}'。")


def load_settings() -> Settings:
    """
    读取所有配置项。

    Raises:
        ConfigurationMissing: TELEGRAM_TOKEN 或 PRIVATE_CHANNEL_ID 缺失，或整数配置无法解析。
    """
    token = os.getenv("TELEGRAM_TOKEN")
    if not token:
        raise ConfigurationMissing("未在环境变量中找到 TELEGRAM_TOKEN。")

    settings = Settings(
        token=token,
        private_channel_id=_get_int("PRIVATE_CHANNEL_ID"),
        database_url=os.getenv("DATABASE_URL") or DEFAULT_DATABASE_URL,
        chatlist_path=os.getenv("CHATLIST_PATH") or DEFAULT_CHATLIST_PATH,
        admin_refresh_interval=_get_int("ADMIN_REFRESH_INTERVAL", DEFAULT_ADMIN_REFRESH_INTERVAL),
    )
    logger.debug(f"配置已加载 (chatlist: {settings.chatlist_path}, 管理员刷新间隔: {settings.admin_refresh_interval}s)。")
    return settings
