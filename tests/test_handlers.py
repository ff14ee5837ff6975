# tests/test_handlers.py

import pytest
from unittest.mock import MagicMock

from telegram.error import Forbidden

from rubot.bot.handlers import (
    admins_handler,
    chat_member_handler,
    format_admin_list,
    refresh_admins_handler,
)
from rubot.core.group import AdminRecord

pytestmark = pytest.mark.asyncio


async def test_admins_handler_lists_roster(mock_update, rubot_context, mock_bot, make_member):
    mock_bot.get_chat_administrators.return_value = [
        make_member(1, status='creator', first_name="Owner", username="boss"),
        make_member(mock_bot.id, is_bot=True, first_name="Rubot"),
    ]

    await admins_handler(mock_update, rubot_context)

    text = mock_update.message.reply_text.call_args.args[0]
    assert "本群共有 2 位管理员" in text
    assert "Owner (@boss): 群主" in text
    assert "Rubot [bot]: 管理员" in text


async def test_admins_handler_when_roster_unavailable(mock_update, rubot_context, mock_bot):
    mock_bot.get_chat_administrators.side_effect = Forbidden("not a member")

    await admins_handler(mock_update, rubot_context)

    mock_update.message.reply_text.assert_called_once_with("暂时无法获取本群的管理员名单。")


async def test_admins_handler_in_private_chat(mock_update, rubot_context, mock_bot):
    mock_update.effective_chat.type = "private"

    await admins_handler(mock_update, rubot_context)

    mock_update.message.reply_text.assert_called_once_with("此命令只能在群组中使用。")
    mock_bot.get_chat_administrators.assert_not_called()


async def test_refresh_admins_by_non_admin(mock_update, rubot_context, mock_bot, make_member):
    """测试：非管理员无法强制刷新名单。"""
    mock_bot.get_chat_administrators.return_value = [make_member(5)]

    await refresh_admins_handler(mock_update, rubot_context)

    mock_update.message.reply_text.assert_called_once_with("抱歉，只有群组管理员才能使用此命令。")
    assert mock_bot.get_chat_administrators.call_count == 1


async def test_refresh_admins_by_admin(mock_update, rubot_context, mock_bot, make_member):
    mock_bot.get_chat_administrators.return_value = [make_member(123), make_member(5)]

    await refresh_admins_handler(mock_update, rubot_context)

    # 一次用于权限检查（缓存未命中），一次强制刷新
    assert mock_bot.get_chat_administrators.call_count == 2
    mock_update.message.reply_text.assert_called_once_with("✅ 管理员名单已刷新，共 2 人。")


async def test_refresh_admins_respects_cooldown(mock_update, rubot_context, mock_bot, make_member):
    mock_bot.get_chat_administrators.return_value = [make_member(123)]

    await refresh_admins_handler(mock_update, rubot_context)
    await refresh_admins_handler(mock_update, rubot_context)

    assert mock_bot.get_chat_administrators.call_count == 2
    mock_update.message.reply_text.assert_called_with("管理员名单刚刚刷新过，请稍后再试。")


async def test_refresh_admins_failure_does_not_start_cooldown(mock_update, rubot_context, mock_bot, make_member):
    mock_bot.get_chat_administrators.side_effect = [[make_member(123)], Forbidden("kicked")]

    await refresh_admins_handler(mock_update, rubot_context)

    mock_update.message.reply_text.assert_called_once_with("刷新管理员名单失败，请确认机器人仍是本群管理员。")
    assert -1001 not in rubot_context.bot_data['refresh_cooldowns']


async def test_chat_member_handler_invalidates_on_promotion(mock_update, rubot_context, mock_bot, make_member):
    chat = rubot_context.get_chat(-1001)
    mock_bot.get_chat_administrators.return_value = [make_member(123)]
    await chat.get_admins()
    assert chat.entity.is_fresh()

    member_update = MagicMock()
    member_update.chat.id = -1001
    member_update.old_chat_member.status = 'member'
    member_update.new_chat_member.status = 'administrator'
    mock_update.chat_member = member_update

    await chat_member_handler(mock_update, rubot_context)

    assert not chat.entity.is_fresh()


async def test_chat_member_handler_ignores_regular_members(mock_update, rubot_context, mock_bot, make_member):
    chat = rubot_context.get_chat(-1001)
    mock_bot.get_chat_administrators.return_value = [make_member(123)]
    await chat.get_admins()

    member_update = MagicMock()
    member_update.chat.id = -1001
    member_update.old_chat_member.status = 'left'
    member_update.new_chat_member.status = 'member'
    mock_update.chat_member = member_update

    await chat_member_handler(mock_update, rubot_context)

    assert chat.entity.is_fresh()


async def test_chat_member_handler_ignores_unknown_groups(mock_update, rubot_context):
    member_update = MagicMock()
    member_update.chat.id = -2002
    member_update.old_chat_member.status = 'administrator'
    member_update.new_chat_member.status = 'left'
    mock_update.my_chat_member = member_update

    await chat_member_handler(mock_update, rubot_context)

    assert rubot_context.groups.get(-2002) is None


async def test_format_admin_list_falls_back_to_raw_status():
    admin = AdminRecord(user_id=1, is_bot=False, full_name="Ada", username=None, status='member')

    assert format_admin_list([admin]) == "• Ada: member"


async def test_admins_handler_on_edited_command(mock_update, rubot_context, mock_bot, make_member):
    """测试：编辑后的命令消息没有 update.message，回复应发送到 effective_message。"""
    mock_update.message = None
    mock_bot.get_chat_administrators.return_value = [make_member(123)]

    await admins_handler(mock_update, rubot_context)

    text = mock_update.effective_message.reply_text.call_args.args[0]
    assert "本群共有 1 位管理员" in text


async def test_refresh_admins_on_edited_command(mock_update, rubot_context, mock_bot, make_member):
    mock_update.message = None
    mock_bot.get_chat_administrators.return_value = [make_member(123)]

    await refresh_admins_handler(mock_update, rubot_context)
    await refresh_admins_handler(mock_update, rubot_context)

    mock_update.effective_message.reply_text.assert_any_call("✅ 管理员名单已刷新，共 1 人。")
    mock_update.effective_message.reply_text.assert_called_with("管理员名单刚刚刷新过，请稍后再试。")
