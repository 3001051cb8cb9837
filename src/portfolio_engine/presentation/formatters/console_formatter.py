"""
Console formatting utilities for the portfolio engine CLI.
"""

import shutil
import sys
from typing import Any, Dict, List, Optional

from colorama import Fore, Style


class ConsoleFormatter:
    """
    Console output formatter with color support.

    Messages go to stdout except errors, which go to stderr.
    """

    def __init__(self, use_colors: bool = True, stream=None):
        self.stream = stream or sys.stdout
        self.use_colors = use_colors and self._supports_color()
        self.terminal_width = shutil.get_terminal_size(fallback=(80, 24)).columns

    def _supports_color(self) -> bool:
        return hasattr(self.stream, "isatty") and self.stream.isatty()

    def _colorize(self, text: str, color: str) -> str:
        if not self.use_colors:
            return text
        return f"{color}{text}{Style.RESET_ALL}"

    def print_success(self, message: str):
        print(self._colorize(f"✓ {message}", Fore.GREEN), file=self.stream)

    def print_error(self, message: str):
        print(self._colorize(f"✗ {message}", Fore.RED), file=sys.stderr)

    def print_warning(self, message: str):
        print(self._colorize(f"⚠ {message}", Fore.YELLOW), file=self.stream)

    def print_info(self, message: str):
        print(self._colorize(f"ℹ {message}", Fore.BLUE), file=self.stream)

    def print_header(self, title: str):
        print(f"\n{self._colorize(title, Style.BRIGHT)}", file=self.stream)
        print("=" * len(title), file=self.stream)

    def print_key_value(self, key: str, value: Any, indent: int = 0):
        label = self._colorize(f"{key}:", Fore.CYAN)
        print(f"{' ' * indent}{label} {value}", file=self.stream)

    def print_table_simple(self, headers: List[str], rows: List[List[Any]]):
        """Print a plain aligned table."""
        cells = [[str(cell) for cell in row] for row in rows]
        widths = [len(h) for h in headers]
        for row in cells:
            for i, cell in enumerate(row):
                widths[i] = max(widths[i], len(cell))

        header_line = "  ".join(h.ljust(widths[i]) for i, h in enumerate(headers))
        print(self._colorize(header_line, Style.BRIGHT), file=self.stream)
        print("  ".join("-" * w for w in widths), file=self.stream)
        for row in cells:
            print("  ".join(cell.ljust(widths[i]) for i, cell in enumerate(row)), file=self.stream)

    def print_metrics(self, metrics: Dict[str, Any], title: Optional[str] = None):
        if title:
            self.print_header(title)
        for key, value in metrics.items():
            if isinstance(value, (dict, list)):
                continue
            self.print_key_value(key, self.format_value(value), indent=2)

    @staticmethod
    def format_value(value: Any) -> str:
        if value is None:
            return "n/a"
        if isinstance(value, float):
            return f"{value:,.4f}"
        return str(value)

    def format_percentage(self, fraction: Optional[float], show_sign: bool = True) -> str:
        if fraction is None:
            return "n/a"
        sign = "+" if show_sign and fraction >= 0 else ""
        color = Fore.GREEN if fraction >= 0 else Fore.RED
        return self._colorize(f"{sign}{fraction * 100:.2f}%", color)
