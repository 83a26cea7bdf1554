"""
Admin Confirmation Modal

Typed confirmation for destructive club operations. The admin must enter
the exact name of the event or rank before the action runs.
"""

import discord
from typing import Awaitable, Callable, Optional

from clubbot.utils.logger import setup_logger

logger = setup_logger(__name__)


def confirmation_matches(expected: str, typed: str) -> bool:
    """Exact match after trimming surrounding whitespace."""
    return typed.strip() == expected.strip()


def confirmation_target(name: Optional[str], fallback: str) -> str:
    """Text the admin must type: the display name, or the id when it is blank."""
    return (name or '').strip() or fallback


class AdminConfirmationModal(discord.ui.Modal):
    """Modal gating finalize/delete behind typing the target's name"""

    def __init__(
        self,
        title: str,
        confirmation_text: str,
        callback: Callable[[discord.Interaction], Awaitable[None]]
    ):
        super().__init__(title=title[:45], timeout=300)
        self.confirmation_text = confirmation_text
        self.on_confirmed = callback

        self.confirmation_input = discord.ui.TextInput(
            label='Type the name shown to confirm',
            placeholder=confirmation_text[:100],
            required=True,
            max_length=len(confirmation_text) + 10
        )
        self.add_item(self.confirmation_input)

    async def on_submit(self, interaction: discord.Interaction):
        typed = self.confirmation_input.value
        if not confirmation_matches(self.confirmation_text, typed):
            logger.info(f"Confirmation '{self.title}' rejected for {interaction.user}")
            await interaction.response.send_message(
                f"❌ **Confirmation Failed**\n"
                f"You typed: `{typed.strip()}`\n"
                f"Required: `{self.confirmation_text}`\n"
                f"Nothing was changed.",
                ephemeral=True
            )
            return

        await self.on_confirmed(interaction)

    async def on_error(self, interaction: discord.Interaction, error: Exception):
        logger.error(f"Confirmation modal '{self.title}' failed: {error}", exc_info=True)
        message = getattr(error, 'user_message', None) or f"❌ An error occurred: {error}"
        if interaction.response.is_done():
            await interaction.followup.send(message, ephemeral=True)
        else:
            await interaction.response.send_message(message, ephemeral=True)
