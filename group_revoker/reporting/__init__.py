"""Reporting package — operator-facing console output."""

from .console import ConsoleReporter, print_summary

__all__ = [
    "ConsoleReporter",
    "print_summary",
]
