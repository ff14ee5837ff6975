# tests/test_tasks.py

import pytest
import logging

from telegram.error import TelegramError

from rubot.bot.tasks import refresh_owned_chat_admins

pytestmark = pytest.mark.asyncio


async def test_refresh_owned_chat_admins_forces_refresh(rubot_context, mock_bot, make_member, caplog):
    caplog.set_level(logging.INFO)
    chats = [rubot_context.get_chat(-1001), rubot_context.get_chat(-1002)]
    rubot_context.bot_data['owned_chats'].extend(chats)
    mock_bot.get_chat_administrators.return_value = [make_member(5)]
    await chats[0].get_admins()

    await refresh_owned_chat_admins(rubot_context)

    # 即使 -1001 的缓存仍然有效也会被刷新
    assert mock_bot.get_chat_administrators.call_count == 3
    mock_bot.get_chat_administrators.assert_any_call(chat_id=-1002)
    assert "成功刷新了 2/2 个群组" in caplog.text


async def test_refresh_owned_chat_admins_continues_after_failure(rubot_context, mock_bot, make_member, caplog):
    """测试：单个群组刷新失败只记录警告，其余群组照常刷新。"""
    caplog.set_level(logging.INFO)
    chats = [rubot_context.get_chat(-1001), rubot_context.get_chat(-1002)]
    rubot_context.bot_data['owned_chats'].extend(chats)

    def fake_get_chat_administrators(chat_id):
        if chat_id == -1001:
            raise TelegramError("Chat not found")
        return [make_member(5)]

    mock_bot.get_chat_administrators.side_effect = fake_get_chat_administrators

    await refresh_owned_chat_admins(rubot_context)

    assert chats[0].entity.admins == ()
    assert [admin.user_id for admin in chats[1].entity.admins] == [5]
    assert "刷新群组 -1001 的管理员名单失败" in caplog.text
    assert "成功刷新了 1/2 个群组" in caplog.text


async def test_refresh_with_no_owned_chats(rubot_context, mock_bot, caplog):
    caplog.set_level(logging.INFO)

    await refresh_owned_chat_admins(rubot_context)

    mock_bot.get_chat_administrators.assert_not_called()
    assert "成功刷新了 0/0 个群组" in caplog.text
