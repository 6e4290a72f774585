"""Token-budgeted context windows.

Usage:
    from ctxgraph.context import ContextWindowBuilder

    window = ContextWindowBuilder().build("fix the login bug", nodes, max_tokens=4000)
    print(window.text)
"""

from ctxgraph.context.models import ContextWindow, WindowMetrics, WindowOptions, WindowOrder
from ctxgraph.context.window import ContextWindowBuilder

__all__ = ["ContextWindowBuilder", "ContextWindow", "WindowMetrics", "WindowOptions", "WindowOrder"]
