from __future__ import annotations

from ..commands import CommandContext, CommandDescriptor, CommandOption, CommandResult
from . import Plugin


async def ping(ctx: CommandContext) -> CommandResult:
    _ = ctx
    return CommandResult("Pong! I'm alive.", ephemeral=False)


async def help_command(ctx: CommandContext) -> CommandResult:
    wanted = ctx.arguments.get("plugin")
    lines: list[str] = []
    for plugin in Plugin:
        if wanted is not None and plugin.value != wanted:
            continue
        descriptors = ctx.catalog.by_plugin(plugin)
        if not descriptors:
            continue
        lines.append(f"**{plugin.title}**")
        for descriptor in descriptors:
            aliases = ""
            if descriptor.aliases:
                names = ", ".join(f"`/{a}`" for a in descriptor.aliases)
                aliases = f" (also {names})"
            lines.append(f"- `/{descriptor.name}`{aliases}: {descriptor.description}")
    if not lines:
        return CommandResult("No commands available.")
    return CommandResult("\n".join(lines))


def commands() -> list[CommandDescriptor]:
    return [
        CommandDescriptor(
            name="ping",
            plugin=Plugin.INFORMATION,
            description="Returns the ping of the bot. Pong!",
            handler=ping,
            aliases=("am-i-alive",),
            public=True,
        ),
        CommandDescriptor(
            name="help",
            plugin=Plugin.INFORMATION,
            description="Lists the available commands.",
            handler=help_command,
            cooldown=5.0,
            options=(
                CommandOption(
                    name="plugin",
                    description="Only list commands of this plugin.",
                    choices=tuple(Plugin.names()),
                ),
            ),
        ),
    ]
