from typing import Optional

from rich.panel import Panel
from rich.text import Text

from decision_guardian.tui.enums import UIStyle


class UISection:
    @staticmethod
    def wrap(title: str, body, style: str = UIStyle.BLUE.value, subtitle: Optional[str] = None) -> Panel:
        return Panel(body, title=title, subtitle=subtitle, border_style=style, padding=(0, 1))

    @staticmethod
    def bullets(title: str, items: list[str], style: str) -> Panel:
        # Plain Text: glob patterns like "[abc]" must not be read as markup.
        body = Text("\n".join(f"- {item}" for item in items))
        return Panel(body, title=title, border_style=style, padding=(0, 1))
