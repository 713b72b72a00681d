from __future__ import annotations

from ..commands import CommandContext, CommandDescriptor, CommandOption, CommandResult
from ..plugin_states import PluginStateError
from . import Plugin

_GUILD_ONLY = "Plugins can only be switched inside a server."


async def list_plugins(ctx: CommandContext) -> CommandResult:
    lines = ["**Plugins**"]
    for plugin in Plugin:
        count = len(ctx.catalog.by_plugin(plugin))
        noun = "command" if count == 1 else "commands"
        line = f"- {plugin.value}: {count} {noun}"
        if plugin.is_default:
            line += " (default)"
        elif (
            ctx.guild_id is not None
            and ctx.plugins is not None
            and not await ctx.plugins.is_enabled(ctx.guild_id, plugin)
        ):
            line += " (disabled)"
        lines.append(line)
    return CommandResult("\n".join(lines))


def _target(ctx: CommandContext) -> Plugin | CommandResult:
    plugin = Plugin.from_name(str(ctx.arguments["plugin"]))
    if plugin is None:
        return CommandResult(f"There is no `{ctx.arguments['plugin']}` plugin.")
    return plugin


async def enable_plugin(ctx: CommandContext) -> CommandResult:
    if ctx.guild_id is None or ctx.plugins is None:
        return CommandResult(_GUILD_ONLY)
    plugin = _target(ctx)
    if isinstance(plugin, CommandResult):
        return plugin
    try:
        await ctx.plugins.enable(ctx.guild_id, plugin)
    except PluginStateError as exc:
        return CommandResult(str(exc))
    return CommandResult(f"Enabled the `{plugin.value}` plugin for this server.")


async def disable_plugin(ctx: CommandContext) -> CommandResult:
    if ctx.guild_id is None or ctx.plugins is None:
        return CommandResult(_GUILD_ONLY)
    plugin = _target(ctx)
    if isinstance(plugin, CommandResult):
        return plugin
    try:
        await ctx.plugins.disable(ctx.guild_id, plugin)
    except PluginStateError as exc:
        return CommandResult(str(exc))
    return CommandResult(f"Disabled the `{plugin.value}` plugin for this server.")


def _plugin_option(verb: str) -> CommandOption:
    return CommandOption(
        name="plugin",
        description=f"The plugin to {verb} for the current server.",
        required=True,
        choices=tuple(Plugin.switchable_names()),
    )


def commands() -> list[CommandDescriptor]:
    return [
        CommandDescriptor(
            name="plugins",
            plugin=Plugin.PLUGINS,
            description="Lists the plugins and how many commands each provides.",
            handler=list_plugins,
            cooldown=10.0,
        ),
        CommandDescriptor(
            name="enable",
            plugin=Plugin.PLUGINS,
            description="Enables a plugin for the current server.",
            handler=enable_plugin,
            cooldown=10.0,
            options=(_plugin_option("enable"),),
        ),
        CommandDescriptor(
            name="disable",
            plugin=Plugin.PLUGINS,
            description="Disables a plugin for the current server.",
            handler=disable_plugin,
            cooldown=10.0,
            options=(_plugin_option("disable"),),
        ),
    ]
