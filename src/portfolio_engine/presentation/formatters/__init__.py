"""
Presentation formatters for the portfolio engine.
"""

from .console_formatter import ConsoleFormatter
from .response_formatter import ResponseFormatter

__all__ = [
    "ConsoleFormatter",
    "ResponseFormatter"
]
