"""
Undo/redo history for document snapshots.

The history stores whole document snapshots. Snapshots are immutable and
share unchanged subtrees, so keeping many of them is cheap and comparing
two of them short-circuits on shared identity before falling back to
structural equality.
"""

from __future__ import annotations

import collections as _collections
import contextlib as _contextlib
import logging as _logging
import typing as _typing

_logger = _logging.getLogger(__name__)

T = _typing.TypeVar("T")


class HistoryManager(_typing.Generic[T]):
    """
    Undo and redo stacks of snapshots.

    A change is recorded by handing the pre- and post-mutation snapshots to
    ``record``. A change that leaves the snapshot equal to the previous one
    is not recorded. Callers that have already compared the snapshots use
    ``push`` instead. Recording a change clears the redo stack.

    The history is unbounded unless ``limit`` is set, in which case the
    oldest undo entries are dropped first.
    """

    def __init__(self, limit: int | None = None) -> None:
        if limit is not None and limit < 1:
            raise ValueError(f"History limit must be positive, got {limit}")
        self.limit = limit
        self._undo: _collections.deque[T] = _collections.deque(maxlen=limit)
        self._redo: _collections.deque[T] = _collections.deque(maxlen=limit)
        self._paused = False

    @property
    def paused(self) -> bool:
        """Whether recording is suspended."""
        return self._paused

    def pause(self) -> None:
        """Suspend recording until ``resume`` is called."""
        self._paused = True

    def resume(self) -> None:
        """Resume recording."""
        self._paused = False

    @_contextlib.contextmanager
    def suspended(self) -> _typing.Iterator[None]:
        """Pause recording for the duration of a ``with`` block.

        The previous paused state is restored on exit, so blocks nest.
        """
        was_paused = self._paused
        self.pause()
        try:
            yield
        finally:
            if not was_paused:
                self.resume()

    def push(self, previous: T) -> bool:
        """
        Push ``previous`` as an undo entry without comparing snapshots.

        For callers that already know the state changed. Clears the redo
        stack.

        Returns:
            True if an undo entry was pushed (False while paused).
        """
        if self._paused:
            return False
        self._undo.append(previous)
        self._redo.clear()
        return True

    def record(self, previous: T, current: T) -> bool:
        """
        Record a change from ``previous`` to ``current``.

        Returns:
            True if an undo entry was pushed.
        """
        if previous is current or previous == current:
            return False
        return self.push(previous)

    def undo(self, current: T) -> T | None:
        """
        Step back one change.

        Args:
            current: The snapshot being replaced; it becomes redoable.

        Returns:
            The snapshot to restore, or None when there is nothing to undo.
        """
        if not self._undo:
            return None
        restored = self._undo.pop()
        self._redo.append(current)
        _logger.debug("Undo (%d left)", len(self._undo))
        return restored

    def redo(self, current: T) -> T | None:
        """
        Step forward one undone change.

        Returns:
            The snapshot to restore, or None when there is nothing to redo.
        """
        if not self._redo:
            return None
        restored = self._redo.pop()
        self._undo.append(current)
        _logger.debug("Redo (%d left)", len(self._redo))
        return restored

    def can_undo(self) -> bool:
        return bool(self._undo)

    def can_redo(self) -> bool:
        return bool(self._redo)

    @property
    def undo_depth(self) -> int:
        return len(self._undo)

    @property
    def redo_depth(self) -> int:
        return len(self._redo)

    def clear(self) -> None:
        """Drop all undo and redo entries."""
        self._undo.clear()
        self._redo.clear()
