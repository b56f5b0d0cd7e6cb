"""
Output Formatting

Provides formatted output for console and structured reporting.
"""

from .base import BaseFormatter, OutputLevel
from .console import ConsoleFormatter
from .report import render_report
from .structured import JsonFormatter

__all__ = [
    "BaseFormatter",
    "OutputLevel",
    "ConsoleFormatter",
    "JsonFormatter",
    "render_report",
]
