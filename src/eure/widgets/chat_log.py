"""
Scrollback of committed conversation turns.
"""
from rich.markup import escape
from textual.widgets import RichLog

from eure.models import Role, Turn

BOT_NAME = "Eure"


class ChatLog(RichLog):
    def write_turn(self, turn: Turn) -> None:
        if turn.role is Role.USER:
            self.write(f"[dim]user: {escape(turn.text)}[/dim]")
        else:
            self.write(f"[bold green]{BOT_NAME}:[/bold green] {escape(turn.text)}")

    def write_notice(self, text: str, style: str = "dim") -> None:
        self.write(f"[{style}]{escape(text)}[/{style}]")
