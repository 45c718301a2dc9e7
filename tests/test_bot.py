"""Tests for service wiring and extension loading."""

from __future__ import annotations

import pytest

from conftest import FakeGenerator
from tldrbot.bot import EXTENSIONS, TldrBot, build_services


def test_build_services_shares_one_store(store):
    services = build_services(store, FakeGenerator())

    assert services.ledger.store is store
    assert services.cache.store is store
    assert services.subscriptions.store is store
    assert services.cache.summarizer is services.summarizer


@pytest.mark.asyncio
async def test_setup_hook_loads_every_extension(store):
    bot = TldrBot(build_services(store, FakeGenerator()), sync_commands=False)

    await bot.setup_hook()
    try:
        assert set(EXTENSIONS) <= set(bot.extensions)
        assert {"General", "SummariesCog", "DigestCog", "ServerSettingsCog"} <= set(bot.cogs)
        names = {command.name for command in bot.tree.get_commands()}
        assert {"catchmeup", "tldr", "highlights", "digest", "tldr-settings"} <= names
    finally:
        bot.get_cog("DigestCog").stop()
