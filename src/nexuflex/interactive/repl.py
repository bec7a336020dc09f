"""Interactive REPL for nexuflex."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

from prompt_toolkit import PromptSession
from prompt_toolkit.application import run_in_terminal
from prompt_toolkit.key_binding import KeyBindings
from prompt_toolkit.patch_stdout import patch_stdout
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from nexuflex import __version__
from nexuflex.core.aliases import AliasTable
from nexuflex.core.completion import CompletionEngine, format_suggestions
from nexuflex.core.history import HistoryStore
from nexuflex.core.session import (
    ClientSession,
    ConnectionState,
    SessionObserver,
    SessionState,
    StatusSnapshot,
)
from nexuflex.errors import NexuflexError
from nexuflex.interactive.commands import CommandHandler
from nexuflex.logging import get_logger

if TYPE_CHECKING:
    from prompt_toolkit.key_binding import KeyPressEvent

    from nexuflex.config.schema import Config
    from nexuflex.interactive.commands import Ask
    from nexuflex.types import ServerInfo

log = get_logger("repl")

console = Console()


class ConsoleObserver(SessionObserver):
    """Prints session events to a rich console."""

    def __init__(self, output: Console, ask: Ask) -> None:
        self.console = output
        self.ask = ask
        self.last_status: StatusSnapshot | None = None

    def on_status_changed(self, snapshot: StatusSnapshot) -> None:
        previous, self.last_status = self.last_status, snapshot
        if previous is None:
            return
        if (
            snapshot.session_state == SessionState.SESSION_EXPIRED
            and previous.session_state != SessionState.SESSION_EXPIRED
        ):
            self.console.print("[yellow]Session expired. Please log in again.[/yellow]")
        elif (
            snapshot.remaining_minutes is not None
            and snapshot.remaining_minutes != previous.remaining_minutes
        ):
            self.console.print(
                f"[yellow]Session expires in {snapshot.remaining_minutes} minute(s)[/yellow]"
            )
        if (
            snapshot.connection_state == ConnectionState.CONNECTION_ERROR
            and previous.connection_state != ConnectionState.CONNECTION_ERROR
        ):
            self.console.print("[red]Connection error[/red]")

    def on_output(self, text: str) -> None:
        style = "red" if text.startswith("Error: ") else None
        self.console.print(text, style=style, markup=False, highlight=False)

    def on_progress(self, text: str, percent: int) -> None:
        self.console.print(f"[dim]{escape(text)} ({percent}%)[/dim]")

    async def select_server(self, servers: list[ServerInfo]) -> int | None:
        if len(servers) == 1:
            return 0
        table = Table(title="Discovered Servers")
        table.add_column("#", justify="right")
        table.add_column("Name", style="bold")
        table.add_column("Address")
        table.add_column("Description")
        for index, server in enumerate(servers, start=1):
            tls = " (TLS)" if server.tls_enabled else ""
            table.add_row(
                str(index),
                escape(server.display_name),
                f"{server.address}:{server.port}{tls}",
                escape(server.description),
            )
        self.console.print(table)

        answer = (await self.ask(f"Select server [1-{len(servers)}]: ", False)).strip()
        if not answer:
            return None
        try:
            choice = int(answer) - 1
        except ValueError:
            self.console.print(f"[red]Not a number: {escape(answer)}[/red]")
            return None
        if not 0 <= choice < len(servers):
            self.console.print("[red]No such server[/red]")
            return None
        return choice


def status_line(snapshot: StatusSnapshot) -> str:
    """One-line status for the bottom toolbar."""
    if snapshot.connection_state != ConnectionState.CONNECTED:
        return f" {snapshot.connection_state.value.replace('_', ' ')}"
    parts = [snapshot.server_name]
    if snapshot.session_state == SessionState.AUTHENTICATED:
        parts.append(snapshot.username or "logged in")
    else:
        parts.append(snapshot.session_state.value.replace("_", " "))
    if snapshot.service_context:
        parts.append(snapshot.service_context)
    if snapshot.remaining_minutes is not None:
        parts.append(f"expires in {snapshot.remaining_minutes} min")
    return " " + " | ".join(parts)


class InteractiveRepl:
    """Interactive shell around a ClientSession."""

    def __init__(self, config: Config) -> None:
        self.config = config
        self.history = HistoryStore(
            config.history.max_entries,
            Path(config.history.path).expanduser() if config.history.path else None,
        )
        self.aliases = AliasTable(
            config.aliases.max_count,
            Path(config.aliases.path).expanduser() if config.aliases.path else None,
        )
        self.observer = ConsoleObserver(console, self.ask)
        self.session = ClientSession(config, self.observer)
        self.completion = CompletionEngine(
            self.session.auto_complete if config.ui.auto_complete else None
        )
        self.commands = CommandHandler(
            config,
            self.session,
            self.history,
            self.aliases,
            self.completion,
            self.ask,
            console,
        )
        self._input: PromptSession[str] = PromptSession()
        self.prompt: PromptSession[str] = PromptSession(
            key_bindings=self._key_bindings(),
            bottom_toolbar=self._toolbar,
        )

    async def ask(self, message: str, is_password: bool) -> str:
        with patch_stdout():
            return await self._input.prompt_async(message, is_password=is_password)

    def _toolbar(self) -> str:
        return status_line(self.session.snapshot())

    def _prompt_text(self) -> str:
        context = self.session.service_context
        return f"{context}> " if context else "> "

    def _key_bindings(self) -> KeyBindings:
        kb = KeyBindings()

        @kb.add("up")
        def _previous(event: KeyPressEvent) -> None:
            entry = self.history.previous()
            if entry is not None:
                event.current_buffer.text = entry
                event.current_buffer.cursor_position = len(entry)

        @kb.add("down")
        def _next(event: KeyPressEvent) -> None:
            entry = self.history.next()
            if entry is not None:
                event.current_buffer.text = entry
                event.current_buffer.cursor_position = len(entry)

        @kb.add("tab")
        async def _complete(event: KeyPressEvent) -> None:
            buffer = event.current_buffer
            text = buffer.text
            result = await self.completion.complete(text)
            if not result:
                return
            if len(result.suggestions) == 1:
                buffer.text = result.suggestions[0]
            elif len(result.common_prefix) > len(text.strip()):
                buffer.text = result.common_prefix
            else:
                suggestions = result.suggestions
                await run_in_terminal(lambda: self._print_suggestions(suggestions))
            buffer.cursor_position = len(buffer.text)

        return kb

    def _print_suggestions(self, suggestions: list[str]) -> None:
        console.print("[blue]Possible completions:[/blue]")
        for group, block in format_suggestions(suggestions):
            if group:
                console.print(f"[yellow]{escape(group)}:[/yellow]")
            console.print(block, markup=False, highlight=False)

    def _load_state(self) -> None:
        if self.config.history.save:
            try:
                self.history.load()
            except OSError as e:
                log.warning("Could not load history: %s", e)
        if self.config.aliases.enabled:
            try:
                self.aliases.load()
            except OSError as e:
                log.warning("Could not load aliases: %s", e)
            for name in self.aliases.get_all():
                self.completion.add_local_command(name)

    async def _auto_connect(self) -> None:
        server = self.config.server
        try:
            if server.address:
                console.print(f"[dim]Connecting to {server.address}:{server.port}...[/dim]")
                identity = await self.session.connect(server.address, server.port, server.use_tls)
            elif server.auto_discover:
                console.print("[dim]Searching for servers...[/dim]")
                identity = await self.session.discover_and_connect()
                if identity is None:
                    console.print("[yellow]No servers found[/yellow]")
                    return
            else:
                console.print("[dim]Not connected. Use [bold]connect <host>[/bold] or [bold]discover[/bold].[/dim]")
                return
        except NexuflexError as e:
            console.print(f"[red]Error: {escape(str(e))}[/red]")
            return
        console.print(f"[green]Connected to {escape(identity.name)}[/green]")

    async def _shutdown(self) -> None:
        if self.config.history.save and self.config.history.save_on_shutdown:
            try:
                self.history.save()
            except OSError as e:
                log.warning("Could not save history: %s", e)
        await self.session.close()

    async def run(self) -> int:
        """Run the interactive REPL until exit or end of input."""
        self._load_state()
        console.print(f"[bold]{escape(self.config.ui.header_text)}[/bold] v{__version__}")
        console.print("Type [bold]help[/bold] for commands, [bold]exit[/bold] to quit.\n")
        await self._auto_connect()

        try:
            while True:
                try:
                    with patch_stdout():
                        line = await self.prompt.prompt_async(self._prompt_text())
                except KeyboardInterrupt:
                    continue
                except EOFError:
                    break

                self.history.reset_navigation()
                if not await self.commands.handle(line):
                    break
        finally:
            await self._shutdown()
        return 0
