#!/usr/bin/env python3
"""
Opaque handles for interactive widgets.
The runner only ever asks a widget to render itself; all interactive
behaviour stays inside the charting and mapping libraries.
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Union


class WidgetHandle(ABC):
    """Contract for interactive widgets produced by exercise code"""

    kind: str = 'widget'

    @abstractmethod
    def render(self) -> str:
        """Return an embeddable HTML fragment"""
        pass

    def render_page(self) -> str:
        """Return a standalone HTML page"""
        return (
            "<!DOCTYPE html>\n<html>\n<head><meta charset=\"utf-8\"></head>\n"
            f"<body>\n{self.render()}\n</body>\n</html>\n"
        )

    def save(self, path: Union[str, Path]) -> Path:
        """Write the widget as a standalone page"""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.render_page(), encoding='utf-8')
        return path

    def __repr__(self):
        return f"<{type(self).__name__} kind={self.kind}>"
