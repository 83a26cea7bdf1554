import json

import discord
from discord.ext import commands
from discord import app_commands
from typing import Optional

from clubbot.cogs.events import is_club_admin
from clubbot.config import Config
from clubbot.operations.admin_operations import AdminOperations
from clubbot.ui.admin_confirmation_modal import AdminConfirmationModal, confirmation_target
from clubbot.utils.exceptions import ClubOperationError
from clubbot.utils.logger import setup_logger

logger = setup_logger(__name__)


class ProgressionCog(commands.Cog):
    """Experience, ranks, scoring rules and club settings"""

    def __init__(self, bot):
        self.bot = bot
        self.admin_ops = AdminOperations(bot.db, bot.store, bot.config_service)
        self.logger = logger

    async def _deny(self, interaction: discord.Interaction) -> bool:
        if is_club_admin(interaction.user):
            return False
        await interaction.response.send_message("❌ You need administrator permissions to use this command.", ephemeral=True)
        return True

    @app_commands.command(name="award-xp", description="Manually adjust a player's experience")
    @app_commands.describe(player_id="Player ID", amount="XP to add (negative to deduct)", reason="Shown in the player's history")
    async def award_xp(self, interaction: discord.Interaction, player_id: str, amount: int, reason: str):
        if await self._deny(interaction):
            return
        try:
            player = await self.admin_ops.award_experience(player_id, amount, reason, interaction.user.id)
        except ClubOperationError as e:
            await interaction.response.send_message(e.user_message, ephemeral=True)
            return

        embed = discord.Embed(title="✅ Experience Adjusted", color=discord.Color.green())
        embed.add_field(name="Player", value=player.callsign or player.name or player.id, inline=True)
        embed.add_field(name="Change", value=f"{amount:+d} XP", inline=True)
        embed.add_field(name="Total", value=f"{player.experience} XP", inline=True)
        embed.add_field(name="Tier", value=player.rank.name if player.rank else "Unranked", inline=True)
        embed.add_field(name="Reason", value=reason, inline=False)
        await interaction.response.send_message(embed=embed, ephemeral=True)

    @app_commands.command(name="award-badge", description="Award a legendary badge to a player")
    @app_commands.describe(player_id="Player ID", badge_id="Legendary badge ID")
    async def award_badge(self, interaction: discord.Interaction, player_id: str, badge_id: str):
        if await self._deny(interaction):
            return
        try:
            added = await self.admin_ops.award_legendary_badge(player_id, badge_id, interaction.user.id)
        except ClubOperationError as e:
            await interaction.response.send_message(e.user_message, ephemeral=True)
            return

        message = f"🏅 `{badge_id}` awarded to `{player_id}`." if added \
            else f"ℹ️ `{player_id}` already holds `{badge_id}`."
        await interaction.response.send_message(message, ephemeral=True)

    @app_commands.command(name="scoring-rule-set", description="Create or change a scoring rule")
    @app_commands.describe(rule_id="Rule ID (e.g. g_kill)", experience="XP per occurrence, negative for penalties")
    async def scoring_rule_set(self, interaction: discord.Interaction, rule_id: str, experience: int, name: Optional[str] = None):
        if await self._deny(interaction):
            return
        rule = await self.admin_ops.set_scoring_rule(rule_id, experience, interaction.user.id, name=name)
        await interaction.response.send_message(f"✅ **{rule.name}** (`{rule.id}`) = {rule.experience:+d} XP", ephemeral=True)

    @app_commands.command(name="rank-validate", description="Check the rank structure for tiers sharing a threshold")
    async def rank_validate(self, interaction: discord.Interaction):
        if await self._deny(interaction):
            return
        duplicates = await self.admin_ops.validate_rank_ladder()
        if not duplicates:
            await interaction.response.send_message("✅ Every tier has a distinct minimum XP.", ephemeral=True)
            return
        lines = [f"{threshold} XP: {', '.join(ids)}" for threshold, ids in sorted(duplicates.items())]
        await interaction.response.send_message(
            "⚠️ **Tiers sharing a threshold**\n```\n" + "\n".join(lines) + "\n```",
            ephemeral=True
        )

    @app_commands.command(name="rank-delete", description="Delete a rank and all of its tiers")
    @app_commands.describe(rank_id="Rank ID")
    async def rank_delete(self, interaction: discord.Interaction, rank_id: str):
        if await self._deny(interaction):
            return
        try:
            ladder = await self.admin_ops.load_rank_ladder(strict=False)
            rank = ladder.get_rank(rank_id)
        except ClubOperationError as e:
            await interaction.response.send_message(e.user_message, ephemeral=True)
            return

        async def run(modal_interaction: discord.Interaction):
            deleted = await self.admin_ops.delete_rank(rank_id, modal_interaction.user.id)
            await modal_interaction.response.send_message(
                f"🗑️ Rank **{deleted.name}** deleted with {len(deleted.tiers)} tier(s). "
                f"Players keep their current tier until their XP next changes.",
                ephemeral=True
            )

        await interaction.response.send_modal(AdminConfirmationModal(
            title="Delete Rank",
            confirmation_text=confirmation_target(rank.name, rank.id),
            callback=run
        ))

    @app_commands.command(name="transaction-correct", description="Cancel a ledger transaction with a correction entry")
    @app_commands.describe(transaction_id="Transaction ID", reason="Why the original is wrong")
    async def transaction_correct(self, interaction: discord.Interaction, transaction_id: str, reason: str):
        if await self._deny(interaction):
            return
        try:
            correction = await self.admin_ops.correct_transaction(transaction_id, reason, interaction.user.id)
        except ClubOperationError as e:
            await interaction.response.send_message(e.user_message, ephemeral=True)
            return
        await interaction.response.send_message(
            f"✅ Correction `{correction.id}` written ({Config.CURRENCY_SYMBOL}{correction.amount:.2f}).",
            ephemeral=True
        )

    @app_commands.command(name="config-list", description="List club settings, optionally filtered by category")
    @app_commands.describe(category="Settings category (e.g., 'events', 'finalization')")
    async def config_list(self, interaction: discord.Interaction, category: Optional[str] = None):
        if await self._deny(interaction):
            return
        config_service = self.bot.config_service
        configs = config_service.get_by_category(category) if category else config_service.list_all()
        if not configs:
            await interaction.response.send_message("No settings found.", ephemeral=True)
            return

        output = "```json\n"
        for key, value in sorted(configs.items()):
            line = f"{key}: {json.dumps(value)}\n"
            if len(output) + len(line) > 1900:
                output += "... (truncated)\n"
                break
            output += line
        output += "```"
        await interaction.response.send_message(output, ephemeral=True)

    @app_commands.command(name="config-set", description="Change a club setting")
    @app_commands.describe(key="Setting key (e.g., 'finalization.exactly_once')", value="Value (JSON for numbers/booleans)")
    async def config_set(self, interaction: discord.Interaction, key: str, value: str):
        if await self._deny(interaction):
            return
        try:
            parsed_value = json.loads(value)
        except json.JSONDecodeError:
            parsed_value = value

        await self.bot.config_service.set(key, parsed_value, interaction.user.id)
        await interaction.response.send_message(
            f"✅ **{key}** = `{parsed_value}`\nSome settings apply after the bot restarts.",
            ephemeral=True
        )


async def setup(bot):
    await bot.add_cog(ProgressionCog(bot))
