"""与具体 GUI 框架无关的视图辅助工具。"""

from .scroll import Debouncer, ScrollSynchronizer, ScrollViewport

__all__ = ["Debouncer", "ScrollSynchronizer", "ScrollViewport"]
