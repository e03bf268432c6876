from .base import BaseCommand, GraphCommand, SpoCommand, CommandContext
from .o365group_add import O365GroupAddCommand
from .schemaextension_remove import SchemaExtensionRemoveCommand
from .app_uninstall import AppUninstallCommand
from .hubsite_disconnect import HubSiteDisconnectCommand
from .sitescript_set import SiteScriptSetCommand

ALL_COMMANDS = [
    O365GroupAddCommand,
    SchemaExtensionRemoveCommand,
    AppUninstallCommand,
    HubSiteDisconnectCommand,
    SiteScriptSetCommand,
]

__all__ = [
    "BaseCommand",
    "GraphCommand",
    "SpoCommand",
    "CommandContext",
    "O365GroupAddCommand",
    "SchemaExtensionRemoveCommand",
    "AppUninstallCommand",
    "HubSiteDisconnectCommand",
    "SiteScriptSetCommand",
    "ALL_COMMANDS",
]
