from __future__ import annotations

import random
import re

from ..commands import CommandContext, CommandDescriptor, CommandOption, CommandResult
from . import Plugin

_DICE_RE = re.compile(r"^(\d{0,2})d(\d{1,4})$")
MAX_DICE = 20


async def roll(ctx: CommandContext) -> CommandResult:
    dice = str(ctx.arguments.get("dice", "1d6")).strip().lower()
    match = _DICE_RE.match(dice)
    if match is None:
        return CommandResult(f"`{dice}` is not a dice roll; try `2d6`.")
    count = int(match.group(1) or 1)
    sides = int(match.group(2))
    if not 1 <= count <= MAX_DICE or sides < 2:
        return CommandResult(
            f"Roll between 1 and {MAX_DICE} dice with at least 2 sides."
        )
    rolls = [random.randint(1, sides) for _ in range(count)]
    detail = " + ".join(str(value) for value in rolls)
    if count == 1:
        return CommandResult(f"🎲 {dice}: **{rolls[0]}**", ephemeral=False)
    return CommandResult(f"🎲 {dice}: {detail} = **{sum(rolls)}**", ephemeral=False)


async def coinflip(ctx: CommandContext) -> CommandResult:
    _ = ctx
    return CommandResult(f"🪙 {random.choice(('Heads', 'Tails'))}!", ephemeral=False)


async def choose(ctx: CommandContext) -> CommandResult:
    choices = [part.strip() for part in ctx.arguments["options"].split(",")]
    choices = [choice for choice in choices if choice]
    if len(choices) < 2:
        return CommandResult("Give me at least two comma-separated options.")
    return CommandResult(f"I choose **{random.choice(choices)}**.", ephemeral=False)


def commands() -> list[CommandDescriptor]:
    return [
        CommandDescriptor(
            name="roll",
            plugin=Plugin.MISCELLANEOUS,
            description="Rolls dice, e.g. 2d6.",
            handler=roll,
            public=True,
            cooldown=3.0,
            options=(CommandOption(name="dice", description="Dice to roll (NdM)."),),
        ),
        CommandDescriptor(
            name="coinflip",
            plugin=Plugin.MISCELLANEOUS,
            description="Flips a coin.",
            handler=coinflip,
            public=True,
            cooldown=3.0,
        ),
        CommandDescriptor(
            name="choose",
            plugin=Plugin.MISCELLANEOUS,
            description="Picks one of several comma-separated options.",
            handler=choose,
            public=True,
            cooldown=3.0,
            options=(
                CommandOption(
                    name="options",
                    description="Comma-separated options.",
                    required=True,
                ),
            ),
        ),
    ]
