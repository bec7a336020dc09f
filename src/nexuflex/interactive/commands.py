"""Local command handling for the interactive shell."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from nexuflex.config.schema import DEFAULT_PORT
from nexuflex.errors import NexuflexError, NotConnectedError
from nexuflex.logging import get_logger

if TYPE_CHECKING:
    from nexuflex.config.schema import Config
    from nexuflex.core.aliases import AliasTable
    from nexuflex.core.completion import CompletionEngine
    from nexuflex.core.history import HistoryStore
    from nexuflex.core.session import ClientSession

log = get_logger("commands")

# Asks the user for a value: (message, is_password) -> answer
Ask = Callable[[str, bool], Awaitable[str]]

_TRUE_WORDS = {"tls", "true", "yes", "on", "1"}

HELP_ROWS = [
    ("help, ?", "Show this help message"),
    ("exit, quit", "Leave the shell"),
    ("clear, cls", "Clear the screen"),
    ("connect <host> [port] [tls]", "Connect to a server"),
    ("disconnect", "Close the connection"),
    ("discover", "Find servers on the network and connect"),
    ("login [user]", "Log in to the connected server"),
    ("logout", "End the current session"),
    ("alias", "List local aliases"),
    ("alias <name>=<command>", "Define a local alias"),
    ("unalias <name>", "Remove a local alias"),
    ("history", "Show command history"),
    ("use [service]", "Set or clear the current service"),
    ("status", "Show connection and session status"),
    ("services", "List services offered by the server"),
    ("commands <service>", "List the commands of a service"),
    ("describe <Service.Action[.SubAction]>", "Show help for a command"),
    ("stream <command>", "Run a command with streamed output"),
    ("<Service.Action> [args]", "Run a command on the server"),
]


class CommandHandler:
    """Dispatches one input line to a local command or the server.

    The line is alias-expanded and recorded in history first. Errors from
    the client core are printed and never end the shell.
    """

    def __init__(
        self,
        config: Config,
        session: ClientSession,
        history: HistoryStore,
        aliases: AliasTable,
        completion: CompletionEngine,
        ask: Ask,
        console: Console | None = None,
    ) -> None:
        self.config = config
        self.session = session
        self.history = history
        self.aliases = aliases
        self.completion = completion
        self.ask = ask
        self.console = console or Console()

    async def handle(self, line: str) -> bool:
        """Handle one line. Returns False when the shell should exit."""
        line = line.strip()
        if not line:
            return True
        if self.config.aliases.enabled:
            line = self.aliases.expand(line)
        self.history.record(line)

        parts = line.split(None, 1)
        cmd = parts[0].lower()
        rest = parts[1] if len(parts) > 1 else ""

        if cmd in ("exit", "quit"):
            self.console.print("[dim]Goodbye.[/dim]")
            return False

        handlers = {
            "help": self._cmd_help,
            "?": self._cmd_help,
            "clear": self._cmd_clear,
            "cls": self._cmd_clear,
            "connect": self._cmd_connect,
            "disconnect": self._cmd_disconnect,
            "discover": self._cmd_discover,
            "login": self._cmd_login,
            "logout": self._cmd_logout,
            "alias": self._cmd_alias,
            "unalias": self._cmd_unalias,
            "history": self._cmd_history,
            "use": self._cmd_use,
            "status": self._cmd_status,
            "services": self._cmd_services,
            "commands": self._cmd_commands,
            "describe": self._cmd_describe,
            "stream": self._cmd_stream,
        }

        handler = handlers.get(cmd)
        try:
            if handler:
                await handler(rest)
            else:
                await self._cmd_execute(line)
        except NexuflexError as e:
            log.debug("Command %r failed: %s", cmd, e)
            self.console.print(f"[red]Error: {escape(str(e))}[/red]", highlight=False)
        return True

    async def _cmd_help(self, rest: str) -> None:
        table = Table(title="Available Commands")
        table.add_column("Command", style="bold")
        table.add_column("Description")
        for command, description in HELP_ROWS:
            table.add_row(escape(command), description)
        self.console.print(table)

    async def _cmd_clear(self, rest: str) -> None:
        self.console.clear()

    async def _cmd_connect(self, rest: str) -> None:
        args = rest.split()
        if not args:
            address = self.config.server.address
            if not address:
                self.console.print(escape("Usage: connect <host> [port] [tls]"), style="red")
                return
            port, use_tls = self.config.server.port, self.config.server.use_tls
        else:
            address = args[0]
            port = DEFAULT_PORT
            if len(args) > 1:
                try:
                    port = int(args[1])
                except ValueError:
                    self.console.print(f"[red]Invalid port: {escape(args[1])}[/red]")
                    return
            use_tls = len(args) > 2 and args[2].lower() in _TRUE_WORDS

        self.console.print(f"[dim]Connecting to {address}:{port}...[/dim]")
        server = await self.session.connect(address, port, use_tls)
        version = f" (version {server.version})" if server.version else ""
        self.console.print(f"[green]Connected to {server.name}{version}[/green]")

    async def _cmd_disconnect(self, rest: str) -> None:
        if not self.session.is_connected:
            self.console.print("[dim]Not connected[/dim]")
            return
        await self.session.close()
        self.console.print("[green]Disconnected[/green]")

    async def _cmd_discover(self, rest: str) -> None:
        self.console.print("[dim]Searching for servers...[/dim]")
        server = await self.session.discover_and_connect()
        if server is None:
            self.console.print("[yellow]No servers found[/yellow]")
            return
        self.console.print(f"[green]Connected to {server.name}[/green]")

    async def _cmd_login(self, rest: str) -> None:
        if not self.session.is_connected:
            raise NotConnectedError()
        username = rest.split()[0] if rest.split() else ""
        if not username:
            username = (await self.ask("Username: ", False)).strip()
            if not username:
                return
        password = await self.ask("Password: ", True)

        user = await self.session.login(username, password)
        self.session.start_keep_alive(self.config.session.keep_alive_interval)
        name = user.display_name or user.username or username
        self.console.print(f"[green]Logged in as {name}[/green]")

    async def _cmd_logout(self, rest: str) -> None:
        await self.session.logout()
        self.console.print("[green]Logged out[/green]")

    async def _cmd_alias(self, rest: str) -> None:
        if not self._aliases_enabled():
            return
        if not rest:
            entries = self.aliases.get_all()
            if not entries:
                self.console.print("[dim]No aliases defined[/dim]")
                return
            table = Table(title="Local Aliases")
            table.add_column("Alias", style="bold")
            table.add_column("Command")
            for name, command in entries.items():
                table.add_row(escape(name), escape(command))
            self.console.print(table)
            return

        name, sep, command = rest.partition("=")
        name, command = name.strip(), command.strip()
        if not sep or not command:
            self.console.print("[red]Usage: alias <name>=<command>[/red]")
            return
        self.aliases.add(name, command)
        self.completion.add_local_command(name)
        self._save_aliases()
        self.console.print(f"[green]Alias '{name}' created[/green]")

    async def _cmd_unalias(self, rest: str) -> None:
        if not self._aliases_enabled():
            return
        name = rest.strip()
        if not name:
            self.console.print("[red]Usage: unalias <name>[/red]")
            return
        self.aliases.remove(name)
        self.completion.remove_local_command(name)
        self._save_aliases()
        self.console.print(f"[green]Alias '{name}' removed[/green]")

    def _aliases_enabled(self) -> bool:
        if not self.config.aliases.enabled:
            self.console.print("[yellow]Aliases are disabled in the configuration[/yellow]")
            return False
        return True

    def _save_aliases(self) -> None:
        try:
            self.aliases.save()
        except OSError as e:
            log.warning("Could not save aliases: %s", e)
            self.console.print(f"[yellow]Could not save aliases: {escape(str(e))}[/yellow]")

    async def _cmd_history(self, rest: str) -> None:
        entries = self.history.entries
        if not entries:
            self.console.print("[dim]History is empty[/dim]")
            return
        for number, entry in enumerate(entries, start=1):
            self.console.print(f"{number:4d}  {entry}", markup=False, highlight=False)

    async def _cmd_use(self, rest: str) -> None:
        service = rest.strip()
        self.session.set_service_context(service)
        if service:
            self.console.print(f"[green]Using service {service}[/green]")
        else:
            self.console.print("[dim]Service context cleared[/dim]")

    async def _cmd_status(self, rest: str) -> None:
        snapshot = self.session.snapshot()
        self.console.print("[bold]Status:[/bold]")
        self.console.print(f"  Connection: {snapshot.connection_state.value}")
        if snapshot.server:
            server = snapshot.server
            tls = " (TLS)" if server.tls_enabled else ""
            self.console.print(f"  Server: {server.name} at {server.address}:{server.port}{tls}")
        self.console.print(f"  Session: {snapshot.session_state.value}")
        if snapshot.username:
            self.console.print(f"  User: {snapshot.username}")
        if snapshot.service_context:
            self.console.print(f"  Service: {snapshot.service_context}")
        if snapshot.remaining_minutes is not None:
            self.console.print(f"  Session expires in: {snapshot.remaining_minutes} min")

    async def _cmd_services(self, rest: str) -> None:
        services = await self.session.get_available_services()
        if not services:
            self.console.print("[dim]No services available[/dim]")
            return
        table = Table(title="Available Services")
        table.add_column("Service", style="bold")
        table.add_column("Version")
        table.add_column("Description")
        for service in services:
            name = f"{service.service_name} (core)" if service.is_core_service else service.service_name
            table.add_row(name, service.version or "-", service.description)
        self.console.print(table)

    async def _cmd_commands(self, rest: str) -> None:
        service = rest.strip() or self.session.service_context
        if not service:
            self.console.print("[red]Usage: commands <service>[/red]")
            return
        commands = await self.session.get_service_commands(service)
        if not commands:
            self.console.print(f"[dim]No commands for {service}[/dim]")
            return
        table = Table(title=f"{service} Commands")
        table.add_column("Command", style="bold")
        table.add_column("Description")
        for command in commands:
            table.add_row(f"{service}.{command.name}", command.description)
        self.console.print(table)

    async def _cmd_describe(self, rest: str) -> None:
        target = rest.strip()
        if not target:
            self.console.print(escape("Usage: describe <Service.Action[.SubAction]>"), style="red")
            return
        parts = target.split(".", 2)
        parts += [""] * (3 - len(parts))
        help_response = await self.session.get_command_help(*parts)
        if help_response.help_text:
            self.console.print(help_response.help_text, markup=False, highlight=False)
        info = help_response.command_info
        if info is None:
            return
        if info.usage_example:
            self.console.print(f"[bold]Usage:[/bold] {escape(info.usage_example)}", highlight=False)
        if info.parameters:
            table = Table(title="Parameters")
            table.add_column("Name", style="bold")
            table.add_column("Type")
            table.add_column("Required")
            table.add_column("Default")
            table.add_column("Description")
            for param in info.parameters:
                table.add_row(
                    param.name,
                    param.data_type or "-",
                    "yes" if param.required else "no",
                    param.default_value or "-",
                    param.description,
                )
            self.console.print(table)

    async def _cmd_stream(self, rest: str) -> None:
        command = rest.strip()
        if not command:
            self.console.print("[red]Usage: stream <command>[/red]")
            return
        await self.session.execute_streaming_command(command)

    async def _cmd_execute(self, line: str) -> None:
        result = await self.session.execute_command(line)
        if result.output:
            self.console.print(result.output, markup=False, highlight=False)
        if result.status_message:
            self.console.print(f"[dim]{escape(result.status_message)}[/dim]", highlight=False)
