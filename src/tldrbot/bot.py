# bot.py
"""Bot instance and the shared services handed to every cog."""

from __future__ import annotations

import logging
from dataclasses import dataclass

import discord
from discord import app_commands
from discord.ext import commands

from tldrbot import settings
from tldrbot.store import Store
from tldrbot.summarization import QuotaLedger, Summarizer, SubscriptionStore, SummaryCache
from tldrbot.text_generators import TextGeneratorAPI, get_text_generator

logger = logging.getLogger(__name__)

EXTENSIONS = (
    "tldrbot.cogs.general",
    "tldrbot.cogs.summaries",
    "tldrbot.cogs.digest",
    "tldrbot.cogs.server_settings",
)


@dataclass
class Services:
    store: Store
    ledger: QuotaLedger
    summarizer: Summarizer
    cache: SummaryCache
    subscriptions: SubscriptionStore


def build_services(store: Store, llm: TextGeneratorAPI | None = None) -> Services:
    """Wire the components around an open store."""
    llm = llm or get_text_generator(settings.SUMMARY_PROVIDER, settings.SUMMARY_MODEL)
    summarizer = Summarizer(llm)
    return Services(
        store=store,
        ledger=QuotaLedger(store),
        summarizer=summarizer,
        cache=SummaryCache(store, summarizer),
        subscriptions=SubscriptionStore(store),
    )


class TldrBot(commands.Bot):
    def __init__(self, services: Services, *, sync_commands: bool = True):
        intents = discord.Intents.default()
        intents.message_content = True
        super().__init__(
            command_prefix=commands.when_mentioned_or("!"),
            intents=intents,
            case_insensitive=True,
            help_command=None,
        )
        self.services = services
        self.sync_commands = sync_commands

    async def setup_hook(self) -> None:
        self.tree.on_error = self.on_app_command_error
        for name in EXTENSIONS:
            # Avoid double-loading across reconnects
            if name in self.extensions:
                continue
            await self.load_extension(name)
        if self.sync_commands:
            synced = await self.tree.sync()
            logger.info("Synced %d application commands", len(synced))

    async def on_app_command_error(
        self, interaction: discord.Interaction, error: app_commands.AppCommandError
    ) -> None:
        command = interaction.command.name if interaction.command else "?"
        logger.error("Error executing /%s", command, exc_info=error)
        message = "There was an error executing this command."
        if interaction.response.is_done():
            await interaction.followup.send(message, ephemeral=True)
        else:
            await interaction.response.send_message(message, ephemeral=True)

    async def on_ready(self) -> None:
        logger.info("Bot is ready. Logged in as %s (ID: %s)", self.user, self.user.id if self.user else "?")
        logger.info("Loaded cogs: %s", list(self.cogs.keys()))
