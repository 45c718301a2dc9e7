from discord.ext import commands

MAX_HELP_LEN = 1900  # keep a little margin below Discord 2000 limit


class General(commands.Cog):
    def __init__(self, bot: commands.Bot):
        self.bot = bot

    @commands.command()
    async def ping(self, ctx: commands.Context):
        """Responds with Pong!"""
        await ctx.send("Pong!")

    @commands.command(name="help")
    async def help_cmd(self, ctx: commands.Context):
        """Show available slash commands (<=2000 chars)."""
        text = (
            "**TL;DR Bot Help**\n"
            "Catch up on conversations without scrolling back.\n\n"
            "Summaries\n"
            "- `/catchmeup [channel] [timeframe] [style]` summary of a channel, e.g. timeframe `6h`, `24h`, `3d`.\n"
            "- `/tldr [messages] [style]` summary of the current thread, or the last N messages here.\n"
            "- `/highlights [channel] [timeframe] [count]` the most notable moments.\n"
            "- Styles: `concise`, `detailed`, `bullet`.\n\n"
            "Digests (Pro)\n"
            "- `/digest subscribe daily|weekly [time]` DM digest on the hour (UTC); weekly arrives Mondays.\n"
            "- `/digest channels` pick up to 5 channels; `/digest status`; `/digest unsubscribe`.\n\n"
            "Server\n"
            "- `/tldr-settings status` plan, limits and usage; `/tldr-settings upgrade` compare plans.\n\n"
            "Other\n"
            "- `ping` returns `Pong!`.\n"
        )
        await ctx.send(text[:MAX_HELP_LEN])


async def setup(bot: commands.Bot):
    await bot.add_cog(General(bot))
