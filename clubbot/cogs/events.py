import discord
from discord.ext import commands
from discord import app_commands
from typing import Optional

from clubbot.config import Config
from clubbot.data_models.club import PaymentStatus
from clubbot.operations.event_operations import EventOperations
from clubbot.services.attendance import TransferPhase
from clubbot.services.finalization import FinalizationResult
from clubbot.ui.admin_confirmation_modal import AdminConfirmationModal, confirmation_target
from clubbot.utils.exceptions import ClubOperationError
from clubbot.utils.logger import setup_logger

logger = setup_logger(__name__)


def is_club_admin(user) -> bool:
    permissions = getattr(user, 'guild_permissions', None)
    return user.id == Config.OWNER_DISCORD_ID or bool(permissions and permissions.administrator)


def build_finalization_embed(result: FinalizationResult, title: str, preview: bool) -> discord.Embed:
    event = result.updated_event
    embed = discord.Embed(
        title=f"{'🔍 Finalization Preview' if preview else '🏁 Event Finalized'}: {title}",
        color=discord.Color.orange() if preview else discord.Color.green()
    )

    if result.experience_gained:
        lines = [f"`{pid}`: {xp:+d} XP" for pid, xp in result.experience_gained.items()]
        embed.add_field(name=f"Scored ({len(lines)})", value="\n".join(lines)[:1024], inline=False)
    if result.penalized_ids:
        embed.add_field(
            name=f"No-show penalties ({len(result.penalized_ids)})",
            value=", ".join(f"`{pid}`" for pid in result.penalized_ids)[:1024],
            inline=False
        )
    if result.skipped_ids:
        embed.add_field(
            name="Already applied (skipped)",
            value=", ".join(f"`{pid}`" for pid in result.skipped_ids)[:1024],
            inline=False
        )

    revenue = sum(t.amount for t in result.new_transactions)
    embed.add_field(name="Transactions", value=str(len(result.new_transactions)), inline=True)
    embed.add_field(name="Revenue", value=f"{Config.CURRENCY_SYMBOL}{revenue:.2f}", inline=True)
    embed.add_field(name="Sequence", value=str(event.finalization_sequence), inline=True)

    if result.failed_signup_deletions:
        embed.add_field(
            name="⚠️ Signups not deleted",
            value=", ".join(f"`{sid}`" for sid in result.failed_signup_deletions)[:1024],
            inline=False
        )
    if preview:
        embed.set_footer(text="Nothing has been written yet.")
    return embed


class EventsCog(commands.Cog):
    """Event day commands: check-in/out, payments, live stats and finalization"""

    def __init__(self, bot):
        self.bot = bot
        self.event_ops = EventOperations(bot.db, bot.store, bot.config_service)
        self.logger = logger

    async def _deny(self, interaction: discord.Interaction) -> bool:
        if is_club_admin(interaction.user):
            return False
        await interaction.response.send_message("❌ You need administrator permissions to use this command.", ephemeral=True)
        return True

    @staticmethod
    def _transfer_message(phase: TransferPhase, success: str, skipped: str) -> str:
        if phase is TransferPhase.COMPLETED:
            return success
        if phase is TransferPhase.NOT_APPLICABLE:
            return skipped
        return f"{success}\n⚠️ The signup record could not be updated; check the signup list."

    @app_commands.command(name="event-checkin", description="Check in a signed-up player")
    @app_commands.describe(event_id="Event ID", player_id="Player ID")
    async def event_checkin(self, interaction: discord.Interaction, event_id: str, player_id: str):
        if await self._deny(interaction):
            return
        try:
            result = await self.event_ops.check_in(event_id, player_id, interaction.user.id)
        except ClubOperationError as e:
            await interaction.response.send_message(e.user_message, ephemeral=True)
            return

        await interaction.response.send_message(
            self._transfer_message(
                result.phase,
                f"✅ `{player_id}` checked in.",
                f"ℹ️ `{player_id}` has no signup for this event (or is already checked in)."
            ),
            ephemeral=True
        )

    @app_commands.command(name="event-checkout", description="Move a checked-in player back to the signup list")
    @app_commands.describe(event_id="Event ID", player_id="Player ID")
    async def event_checkout(self, interaction: discord.Interaction, event_id: str, player_id: str):
        if await self._deny(interaction):
            return
        try:
            result = await self.event_ops.check_out(event_id, player_id, interaction.user.id)
        except ClubOperationError as e:
            await interaction.response.send_message(e.user_message, ephemeral=True)
            return

        await interaction.response.send_message(
            self._transfer_message(
                result.phase,
                f"✅ `{player_id}` checked out.",
                f"ℹ️ `{player_id}` is not checked in to this event."
            ),
            ephemeral=True
        )

    @app_commands.command(name="event-payment", description="Set an attendee's payment status")
    @app_commands.describe(event_id="Event ID", player_id="Player ID", status="Payment status")
    @app_commands.choices(status=[
        app_commands.Choice(name=s.value, value=s.value) for s in PaymentStatus
    ])
    async def event_payment(self, interaction: discord.Interaction, event_id: str, player_id: str, status: str):
        if await self._deny(interaction):
            return
        try:
            updated = await self.event_ops.set_payment_status(event_id, player_id, status, interaction.user.id)
        except ClubOperationError as e:
            await interaction.response.send_message(e.user_message, ephemeral=True)
            return

        message = f"✅ `{player_id}` marked **{status}**." if updated \
            else f"ℹ️ `{player_id}` is not checked in to this event."
        await interaction.response.send_message(message, ephemeral=True)

    @app_commands.command(name="event-stat", description="Set or adjust a live stat for an attendee")
    @app_commands.describe(
        event_id="Event ID",
        player_id="Player ID",
        stat="Stat to change",
        value="New value (leave empty to use delta)",
        delta="Amount to add, negative to subtract"
    )
    @app_commands.choices(stat=[
        app_commands.Choice(name=s.title(), value=s) for s in ('kills', 'deaths', 'headshots')
    ])
    async def event_stat(
        self,
        interaction: discord.Interaction,
        event_id: str,
        player_id: str,
        stat: str,
        value: Optional[int] = None,
        delta: Optional[int] = None
    ):
        if await self._deny(interaction):
            return
        if value is None and delta is None:
            delta = 1
        try:
            line = await self.event_ops.record_stat(event_id, player_id, stat, value=value, delta=delta)
        except ClubOperationError as e:
            await interaction.response.send_message(e.user_message, ephemeral=True)
            return

        await interaction.response.send_message(
            f"📊 `{player_id}`: {line.kills} K / {line.deaths} D / {line.headshots} HS",
            ephemeral=True
        )

    class FinalizeConfirmationView(discord.ui.View):
        """Preview buttons; confirming opens the typed-name modal"""

        def __init__(self, cog, admin_discord_id: int, event_id: str, event_title: str):
            super().__init__(timeout=120.0)
            self.cog = cog
            self.admin_discord_id = admin_discord_id
            self.event_id = event_id
            self.event_title = event_title

        @discord.ui.button(label="Finalize", style=discord.ButtonStyle.danger, emoji="🏁")
        async def confirm(self, interaction: discord.Interaction, button: discord.ui.Button):
            if interaction.user.id != self.admin_discord_id:
                await interaction.response.send_message("❌ Only the command author can confirm this action.", ephemeral=True)
                return

            async def run(modal_interaction: discord.Interaction):
                await self.cog.run_finalization(modal_interaction, self.event_id, self.event_title)

            await interaction.response.send_modal(AdminConfirmationModal(
                title="Finalize Event",
                confirmation_text=self.event_title,
                callback=run
            ))
            self.stop()

        @discord.ui.button(label="Cancel", style=discord.ButtonStyle.secondary)
        async def cancel(self, interaction: discord.Interaction, button: discord.ui.Button):
            if interaction.user.id != self.admin_discord_id:
                await interaction.response.send_message("❌ Only the command author can cancel this action.", ephemeral=True)
                return
            await interaction.response.edit_message(content="Finalization cancelled.", embed=None, view=None)
            self.stop()

    async def run_finalization(self, interaction: discord.Interaction, event_id: str, event_title: str):
        await interaction.response.defer(ephemeral=True, thinking=True)
        try:
            result = await self.event_ops.finalize_event(event_id, interaction.user.id)
        except ClubOperationError as e:
            await interaction.followup.send(e.user_message, ephemeral=True)
            return
        except Exception as e:
            self.logger.error(f"Finalization of {event_id} failed: {e}", exc_info=True)
            await interaction.followup.send(
                "❌ Finalization stopped part way. Some players or transactions may already be saved; "
                "preview the event again before retrying.",
                ephemeral=True
            )
            return

        await interaction.followup.send(embed=build_finalization_embed(result, event_title, preview=False), ephemeral=True)

    @app_commands.command(name="event-finalize", description="Preview and finalize an event")
    @app_commands.describe(event_id="Event ID")
    async def event_finalize(self, interaction: discord.Interaction, event_id: str):
        if await self._deny(interaction):
            return
        try:
            preview = await self.event_ops.preview_finalization(event_id)
        except ClubOperationError as e:
            await interaction.response.send_message(e.user_message, ephemeral=True)
            return

        title = confirmation_target(preview.updated_event.title, event_id)
        content = None
        if preview.updated_event.finalization_sequence > 1:
            content = "⚠️ This event has already been finalized. Finalizing again will add experience again."

        await interaction.response.send_message(
            content=content,
            embed=build_finalization_embed(preview, title, preview=True),
            view=self.FinalizeConfirmationView(self, interaction.user.id, event_id, title),
            ephemeral=True
        )


async def setup(bot):
    await bot.add_cog(EventsCog(bot))
