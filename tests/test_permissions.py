from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from core.permissions import ADMINISTRATOR, MANAGE_CHANNELS, has_bits, missing_names, require_perms


def test_has_bits():
    assert has_bits(ADMINISTRATOR | MANAGE_CHANNELS, ADMINISTRATOR)
    assert not has_bits(MANAGE_CHANNELS, ADMINISTRATOR | MANAGE_CHANNELS)


def test_missing_names():
    assert missing_names(MANAGE_CHANNELS, ADMINISTRATOR | MANAGE_CHANNELS) == ["administrator"]


def _interaction(perms: int, *, in_guild: bool = True):
    interaction = MagicMock()
    interaction.guild = MagicMock() if in_guild else None
    interaction.user.guild_permissions.value = perms
    interaction.response.is_done.return_value = False
    interaction.response.send_message = AsyncMock()
    return interaction


@pytest.mark.asyncio
async def test_require_perms_blocks_without_bits():
    body = AsyncMock()
    command = require_perms(ADMINISTRATOR)(body)
    interaction = _interaction(MANAGE_CHANNELS)
    await command(interaction)
    body.assert_not_awaited()
    text = interaction.response.send_message.await_args.args[0]
    assert "administrator" in text


@pytest.mark.asyncio
async def test_require_perms_runs_command_for_admins():
    body = AsyncMock(return_value="ok")
    command = require_perms(ADMINISTRATOR, message="Admin requis")(body)
    interaction = _interaction(ADMINISTRATOR)
    assert await command(interaction, 1) == "ok"
    body.assert_awaited_once_with(interaction, 1)


@pytest.mark.asyncio
async def test_require_perms_refuses_dm():
    body = AsyncMock()
    command = require_perms(ADMINISTRATOR, message="Admin requis")(body)
    interaction = _interaction(ADMINISTRATOR, in_guild=False)
    await command(interaction)
    body.assert_not_awaited()
    interaction.response.send_message.assert_awaited_once_with("Admin requis", ephemeral=True)
