"""
Console front-end for the relay client.

Lines starting with ``/`` are handled locally; everything else goes
through the client's send path (so plain text typed in a private thread
becomes a private message).
"""

import asyncio
from typing import Callable, List, Optional

from NakenBridge.config import config
from NakenBridge.core.interpreter import (
    ChatLine,
    ClassifiedBatch,
    HelpBlock,
    MAIN_THREAD,
    PrivateMessage,
    RelayNotice,
    RosterUpdated,
    ThreadEntry,
    TransportError,
    UserEntry,
    WelcomeBanner,
    private_key,
)
from .client import BridgeClient
from .exceptions import ClientError
from .persistence import PersistenceService

LOCAL_COMMANDS = (
    ("/tabs", "List open threads"),
    ("/tab <key>", "Switch thread (main, pm_<slot>)"),
    ("/close <key>", "Close a private thread"),
    ("/users", "Show the user list"),
    ("/export [key]", "Save a thread to a text file"),
    ("/welcome on|off", "Show or hide the server welcome banner"),
    ("/help", "Show this help"),
)


def format_roster(entries: List[UserEntry]) -> str:
    if not entries:
        return "No users online"
    rows = [f"{'#':>3} {'Name':<18} {'Flags':<5} {'Channel':<12} {'Idle':>5} Location"]
    for user in entries:
        flags = ("A" if user.is_admin else "-") + ("E" if user.has_echo else "-")
        rows.append(f"{user.slot:>3} {user.name:<18} {flags:<5} {user.channel:<12} {user.idle:>5} {user.location}")
    return "\n".join(rows)


class ConsoleClient:
    """
    Text front-end: prints interpreted events and reads input lines.
    """

    def __init__(
        self,
        relay_url: str = config.DEFAULT_RELAY_ADDRESS,
        server: str = config.DEFAULT_TARGET_HOST,
        port: int = config.DEFAULT_TARGET_PORT,
        username: str = "",
        persistence: Optional[PersistenceService] = None,
        output: Callable[[str], None] = print,
        hide_welcome: bool = False
    ):
        self._output = output
        self._persistence = persistence
        self.hide_welcome = hide_welcome
        self.client = BridgeClient(
            relay_url, server, port, username,
            persistence=persistence,
            on_batch=self.show_batch
        )

    def show_batch(self, batch: ClassifiedBatch) -> None:
        for event in batch.events:
            text = self.format_event(event)
            if text:
                self._output(text)

    def format_event(self, event) -> Optional[str]:
        """Console text for one event, or None if nothing is shown."""
        if isinstance(event, WelcomeBanner):
            return None if self.hide_welcome else event.text
        if isinstance(event, HelpBlock):
            return event.text
        if isinstance(event, RosterUpdated):
            return format_roster(self.client.roster.entries) if event.replaced else None
        if isinstance(event, PrivateMessage):
            thread = self.client.threads.get(private_key(event.slot))
            entry = thread.entries[-1] if thread is not None and thread.entries else None
            body = entry.content if entry is not None else event.message
            return f"[{private_key(event.slot)}] {body}"
        if isinstance(event, ChatLine):
            return self.client.interpreter.renderer.render(ThreadEntry(event.text)).content
        if isinstance(event, TransportError):
            return f"! {event.message}"
        if isinstance(event, RelayNotice):
            return f"* {event.text}"
        return None

    async def handle_local(self, text: str) -> bool:
        """
        Run a ``/`` command.

        Returns:
            False when ``text`` is not a local command
        """
        if not text.startswith("/"):
            return False

        command, _, argument = text[1:].partition(" ")
        argument = argument.strip()
        threads = self.client.threads

        if command == "tabs":
            for key in threads.keys():
                thread = threads.get(key)
                marker = "*" if thread.active else ("!" if thread.flashing else " ")
                self._output(f"{marker} {key:<8} {thread.title}")
        elif command == "tab":
            try:
                threads.switch(argument or MAIN_THREAD)
                self._output(f"Now in {threads.active.title}")
            except KeyError:
                self._output(f"No thread {argument!r}")
        elif command == "close":
            if threads.close(argument):
                self._output(f"Closed {argument}")
            else:
                self._output(f"Cannot close {argument!r}")
        elif command == "users":
            self._output(format_roster(self.client.roster.entries))
        elif command == "export":
            key = argument or threads.active_key
            try:
                path = await self.client.export_thread(key)
            except KeyError:
                self._output(f"No thread {key!r}")
            else:
                self._output(f"Saved {key} to {path}" if path else f"Could not export {key}")
        elif command == "welcome":
            if argument not in ("on", "off"):
                self._output("Usage: /welcome on|off")
                return True
            self.hide_welcome = argument == "off"
            if self._persistence is not None:
                await self._persistence.update_settings(hide_welcome=self.hide_welcome)
            self._output(f"Welcome banner {'hidden' if self.hide_welcome else 'shown'}")
        elif command == "help":
            width = max(len(usage) for usage, _ in LOCAL_COMMANDS)
            self._output("\n".join(f"  {usage.ljust(width)}  {summary}" for usage, summary in LOCAL_COMMANDS))
        else:
            self._output(f"Unknown command /{command}, try /help")
        return True

    async def show_saved_history(self) -> bool:
        """Print the threads saved by the previous run, if any."""
        if not await self.client.load_histories():
            return False
        threads = self.client.threads
        self._output("--- Previous session ---")
        for key in threads.keys():
            prefix = "" if key == MAIN_THREAD else f"[{key}] "
            for entry in threads.get(key).entries:
                self._output(prefix + entry.content)
        self._output("---")
        return True

    async def read_input(self) -> None:
        """Read stdin lines until EOF or disconnect."""
        loop = asyncio.get_running_loop()
        while self.client.is_connected:
            try:
                text = await loop.run_in_executor(None, input, f"{self.client.threads.active_key}> ")
            except EOFError:
                break
            try:
                if not await self.handle_local(text.strip()):
                    await self.client.send_input(text)
            except ClientError as e:
                self._output(f"! {e}")
                break

    async def run(self) -> None:
        """
        Show the saved history, connect, then read input and print output
        until either side ends.
        """
        await self.show_saved_history()
        await self.client.connect()
        receiver = asyncio.create_task(self.client.receive())
        reader = asyncio.create_task(self.read_input())
        try:
            await asyncio.wait({receiver, reader}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            reader.cancel()
            receiver.cancel()
            await self.client.disconnect()
