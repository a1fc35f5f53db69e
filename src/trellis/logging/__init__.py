"""
Change journaling for Trellis.

Provides JSONL logging of committed document changes.
"""

from trellis.logging.change_logger import ChangeLogger, read_journal

__all__ = ["ChangeLogger", "read_journal"]
