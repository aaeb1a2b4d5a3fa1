"""
Chat Application UI

Main application class for the chat client terminal UI.
Built using the Textual framework on top of a ChatSession.
"""

import asyncio
import logging
from typing import List

from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, ScrollableContainer, Vertical
from textual.css.query import NoMatches
from textual.widgets import (
    Button,
    DataTable,
    Footer,
    Header,
    Input,
    Label,
    ListItem,
    ListView,
    Static,
)

from ..errors import ChatClientError
from ..models import Message, Room
from ..schemas import RoomDeletedNotification
from ..session import ChatSession

logger = logging.getLogger(__name__)


class MessageDisplay(Static):
    """Widget for displaying a single chat message."""

    def __init__(
        self,
        username: str,
        message_content: str,
        timestamp: str,
    ) -> None:
        """Initialize message display."""
        super().__init__()
        self.msg_username = username
        self.msg_content = message_content
        self.msg_timestamp = timestamp

    def compose(self) -> ComposeResult:
        """Compose the message display."""
        time_part = (
            self.msg_timestamp.split("T")[1][:8]
            if "T" in self.msg_timestamp
            else ""
        )
        yield Static(
            f"[bold cyan]{self.msg_username}[/] [dim]{time_part}[/]\n"
            f"{self.msg_content}",
            classes="message-content",
        )


class SystemMessage(Static):
    """Widget for displaying system messages and notifications."""

    def __init__(self, message: str, message_type: str = "info") -> None:
        """Initialize system message display."""
        self.message = message
        self.message_type = message_type
        super().__init__()

    def compose(self) -> ComposeResult:
        """Compose the system message."""
        color = {
            "info": "blue",
            "warning": "yellow",
            "error": "red",
            "success": "green",
        }.get(self.message_type, "white")
        yield Static(f"[{color}]{self.message}[/]", classes="system-message")


def room_row(room: Room) -> tuple:
    """Table cells for a room: name, unread count, online flag."""
    unread = str(room.unread_count) if room.unread_count else ""
    online = "[green]●[/]" if room.is_online else "[dim]○[/]"
    return (room.name or room.room_id, unread, online)


class ChatApp(App):
    """Main chat application."""

    CSS = """
    #main {
        height: 1fr;
    }

    #rooms-pane {
        width: 1fr;
        border-right: solid $primary;
    }

    #room-table {
        height: 1fr;
    }

    #chat-main {
        width: 3fr;
    }

    #sidebar {
        width: 1fr;
        border-left: solid $primary;
        padding: 0 1;
    }

    .pane-header {
        padding: 1 0;
        text-align: center;
    }

    .room-header {
        padding: 1;
        background: $surface;
        text-align: center;
    }

    #messages-container {
        height: 1fr;
        padding: 1;
    }

    #message-input-row {
        height: 3;
        padding: 0 1;
    }

    #message-input {
        width: 1fr;
    }

    #send-btn {
        margin: 0 0 0 1;
    }

    #member-list {
        height: 1fr;
    }

    #sidebar Button {
        margin: 1 0 0 0;
        width: 100%;
    }

    MessageDisplay {
        padding: 0 0 1 0;
    }

    .message-content {
        padding: 0 1;
    }

    .system-message {
        text-align: center;
        text-style: italic;
    }

    #status {
        height: 1;
        padding: 0 1;
    }
    """

    BINDINGS = [
        Binding("q", "quit", "Quit", show=True),
        Binding("escape", "leave_room", "Leave", show=True),
        Binding("ctrl+r", "reconnect", "Reconnect", show=True),
        Binding("ctrl+o", "load_older", "Older", show=True),
    ]

    def __init__(self, session: ChatSession) -> None:
        """Initialize the chat application."""
        super().__init__()
        self.session = session
        self._tasks: List[asyncio.Task] = []

    def compose(self) -> ComposeResult:
        """Compose the main application layout."""
        yield Header()
        with Horizontal(id="main"):
            with Vertical(id="rooms-pane"):
                yield Static("[bold]Rooms[/]", classes="pane-header")
                yield DataTable(id="room-table", cursor_type="row")
            with Vertical(id="chat-main"):
                yield Static(
                    "Select a room", id="room-header", classes="room-header"
                )
                yield ScrollableContainer(id="messages-container")
                with Horizontal(id="message-input-row"):
                    yield Input(
                        placeholder="Type a message...",
                        id="message-input",
                    )
                    yield Button("Send", id="send-btn", variant="primary")
            with Vertical(id="sidebar"):
                yield Static("[bold]Members[/]", classes="pane-header")
                yield ListView(id="member-list")
                yield Button("Leave", id="leave-room-btn", variant="warning")
                yield Button(
                    "Unsubscribe", id="unsubscribe-btn", variant="error"
                )
        yield Static("", id="status")
        yield Footer()

    async def on_mount(self) -> None:
        """Wire session callbacks and connect."""
        table = self.query_one("#room-table", DataTable)
        table.add_columns("Room", "Unread", "Online")

        self.session.set_on_rooms_changed(self._on_rooms_changed)
        self.session.set_on_message(self._on_message)
        self.session.set_on_subscription_change(
            lambda n: self.call_later(self._update_members)
        )
        self.session.set_on_presence(
            lambda n: self.call_later(self._update_members)
        )
        self.session.set_on_room_deleted(self._on_room_deleted)
        self.session.set_on_error(self._on_error)
        self.session.set_on_disconnected(self._on_disconnected)

        await self._connect()

    async def on_unmount(self) -> None:
        """Close the session when the app exits."""
        await self.session.close()
        if self.session.api is not None:
            await self.session.api.close()

    async def on_button_pressed(self, event: Button.Pressed) -> None:
        """Handle button press events."""
        button_id = event.button.id

        if button_id == "send-btn":
            await self._handle_send_message()
        elif button_id == "leave-room-btn":
            await self._handle_leave_room(unsubscribe=False)
        elif button_id == "unsubscribe-btn":
            await self._handle_leave_room(unsubscribe=True)

    async def on_input_submitted(self, event: Input.Submitted) -> None:
        """Handle input submit events (Enter key)."""
        if event.input.id == "message-input":
            await self._handle_send_message()

    async def on_data_table_row_selected(
        self, event: DataTable.RowSelected
    ) -> None:
        """Handle room selection from table."""
        if event.row_key:
            await self._handle_open_room(str(event.row_key.value))

    async def _connect(self) -> None:
        self._set_status("[yellow]Connecting...[/]")
        try:
            await self.session.start()
        except ChatClientError as e:
            logger.error("Connection failed: %s", e)
            self._set_status(f"[red]Connection failed: {e}[/]")
            return
        self._set_status("[green]Connected[/]")

    async def _handle_open_room(self, room_id: str) -> None:
        """Switch to a room (leaving the current one first)."""
        self._set_status("[yellow]Joining room...[/]")
        try:
            await self.session.open_room(room_id)
        except ChatClientError as e:
            logger.error("Failed to open room %s: %s", room_id, e)
            self._set_status(f"[red]Failed to join: {e}[/]")
            return

        self._set_status("")
        await self._render_room()
        await self._mark_read()

    async def _handle_leave_room(self, unsubscribe: bool) -> None:
        """Handle leaving the open room."""
        if self.session.open_room_id is None:
            return
        try:
            await self.session.leave_room(unsubscribe=unsubscribe)
        except ChatClientError as e:
            logger.warning("Failed to leave room: %s", e)
            self._set_status(f"[red]Failed to leave: {e}[/]")
            return
        await self._render_room()

    async def _handle_send_message(self) -> None:
        """Handle sending a message."""
        message_input = self.query_one("#message-input", Input)
        content = message_input.value.strip()
        if not content:
            return

        try:
            await self.session.publish(content)
            message_input.value = ""
        except (ChatClientError, ValueError) as e:
            logger.error("Failed to send message: %s", e)
            self._add_system_message(f"Failed to send message: {e}", "error")

    async def _mark_read(self) -> None:
        try:
            await self.session.mark_read()
        except ChatClientError as e:
            logger.warning("Failed to mark room read: %s", e)

    async def _render_room(self) -> None:
        """Redraw the header, message pane and member list."""
        room = self.session.state.open_room
        header = self.query_one("#room-header", Static)
        if room is None:
            header.update("Select a room")
        else:
            header.update(
                f"[bold]{room.name or room.room_id}[/] {room.description}"
            )

        messages = self.query_one("#messages-container", ScrollableContainer)
        await messages.remove_children()
        for message in self.session.messages:
            messages.mount(self._message_widget(message))
        messages.scroll_end()
        self._update_members()

    def _update_members(self) -> None:
        try:
            member_list = self.query_one("#member-list", ListView)
        except NoMatches:
            return
        member_list.clear()
        for subscriber in self.session.subscribers:
            marker = "[green]●[/]" if subscriber.is_present else "[dim]○[/]"
            member_list.append(
                ListItem(Label(f"{marker} {subscriber.username}"))
            )

    def _update_room_table(self, rooms: List[Room]) -> None:
        try:
            table = self.query_one("#room-table", DataTable)
        except NoMatches:
            return
        table.clear()
        for room in rooms:
            table.add_row(*room_row(room), key=room.room_id)

    def _message_widget(self, message: Message) -> MessageDisplay:
        return MessageDisplay(
            username=self._author_name(message),
            message_content=message.content,
            timestamp=message.timestamp,
        )

    def _author_name(self, message: Message) -> str:
        subscriber = self.session.state.roster.get(message.user_id)
        if subscriber is not None and subscriber.username:
            return subscriber.username
        return f"user {message.user_id}"

    def _add_system_message(
        self, message: str, message_type: str = "info"
    ) -> None:
        """Add a system message to the display."""
        try:
            messages = self.query_one(
                "#messages-container", ScrollableContainer
            )
            messages.mount(SystemMessage(message, message_type))
            messages.scroll_end()
        except NoMatches:
            pass

    def _set_status(self, text: str) -> None:
        try:
            self.query_one("#status", Static).update(text)
        except NoMatches:
            pass

    def _spawn(self, coro) -> None:
        task = asyncio.create_task(coro)
        self._tasks.append(task)
        task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Task) -> None:
        if task in self._tasks:
            self._tasks.remove(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(
                "Background task failed: %s",
                error,
                exc_info=(type(error), error, error.__traceback__),
            )

    # Session callbacks

    def _on_rooms_changed(self, rooms: List[Room]) -> None:
        self.call_later(self._update_room_table, rooms)

    def _on_message(self, message: Message) -> None:
        try:
            messages = self.query_one(
                "#messages-container", ScrollableContainer
            )
        except NoMatches:
            return
        messages.mount(self._message_widget(message))
        messages.scroll_end()
        self._spawn(self._mark_read())

    def _on_room_deleted(self, notification: RoomDeletedNotification) -> None:
        if self.session.open_room_id is None:
            self._spawn(self._render_room())
        self.call_later(
            self._set_status,
            f"[yellow]Room {notification.room_id} was deleted[/]",
        )

    def _on_error(self, error: Exception) -> None:
        self.call_later(self._set_status, f"[red]{error}[/]")

    def _on_disconnected(self) -> None:
        self.call_later(
            self._set_status,
            "[red]Connection lost[/] - press ctrl+r to reconnect",
        )

    # Actions

    def action_leave_room(self) -> None:
        """Handle leave action."""
        self._spawn(self._handle_leave_room(unsubscribe=False))

    def action_load_older(self) -> None:
        """Load the previous page of history for the open room."""
        self._spawn(self._load_older())

    def action_reconnect(self) -> None:
        """Replace the connection and resynchronise."""
        self._spawn(self._reconnect())

    async def _load_older(self) -> None:
        try:
            added = await self.session.load_history()
        except ChatClientError as e:
            self._set_status(f"[red]Could not load history: {e}[/]")
            return
        if added:
            await self._render_room()
        elif not self.session.state.messages.has_more:
            self._set_status("[dim]No older messages[/]")

    async def _reconnect(self) -> None:
        self._set_status("[yellow]Reconnecting...[/]")
        try:
            await self.session.reconnect()
        except ChatClientError as e:
            logger.error("Reconnect failed: %s", e)
            self._set_status(f"[red]Reconnect failed: {e}[/]")
            return
        self._set_status("[green]Reconnected[/]")
        await self._render_room()
