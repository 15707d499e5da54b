"""
The assistant answer while it is still streaming.
"""
from rich.markup import escape
from textual.widgets import Static

from .chat_log import BOT_NAME


class LiveAnswer(Static):
    DEFAULT_CSS = """
    LiveAnswer {
        height: auto;
        max-height: 50%;
        padding: 0 1;
        background: $success 5%;
    }
    """

    def show_answer(self, text: str) -> None:
        """Render the partial answer with a 'generating' marker."""
        self.display = True
        self.update(
            f"[bold green]{BOT_NAME}[/bold green] [dim]generating... (esc to stop)[/dim]\n"
            f"{escape(text)}"
        )

    def hide_answer(self) -> None:
        self.update("")
        self.display = False
