"""
Change journal for Trellis documents.

Logs committed document store mutations to JSONL files for debugging and
auditing.
"""

import datetime as _datetime
import json as _json
import os as _os
import pathlib as _pathlib
import typing as _typing

import trellis.layers.traversal as traversal
import trellis.store.document_store as document_store


class ChangeLogger:
    """
    Logs document changes to a JSONL file.

    Each line in the file is a JSON object representing an event:
    - journal_start: Journal metadata (document name, timestamp)
    - change: A committed store mutation (action, details, sizes)
    - error: Error events
    - journal_end: Journal completion

    Usage:
        journal = ChangeLogger(log_dir="/tmp", document="landing-page")
        store.subscribe(journal.log_store_event)
        ...
        journal.close()
    """

    def __init__(
        self,
        *,
        log_dir: _pathlib.Path | str | None = None,
        log_file: _pathlib.Path | str | None = None,
        private_mode: bool = True,
        document: str = "untitled",
        enabled: bool = True,
    ) -> None:
        """
        Initialize the change logger.

        Args:
            log_dir: Directory for journal files (default: /tmp/trellis-logs).
            log_file: Explicit journal file path (overrides log_dir + auto name).
            private_mode: If True, set the journal directory to drwx------ (0o700).
            document: Name of the document being edited.
            enabled: Whether logging is enabled.
        """
        self._enabled = enabled
        self._document = document
        self._file: _typing.TextIO | None = None
        self._file_path: _pathlib.Path | None = None
        self._journal_id = _datetime.datetime.now().strftime("%Y%m%d_%H%M%S")
        self._event_count = 0

        if not enabled:
            return

        if log_file:
            self._file_path = _pathlib.Path(log_file)
            self._file_path.parent.mkdir(parents=True, exist_ok=True)
        else:
            base_dir = _pathlib.Path(log_dir) if log_dir else _pathlib.Path("/tmp/trellis-logs")
            base_dir.mkdir(parents=True, exist_ok=True)

            # Lock down permissions if private_mode (drwx------)
            if private_mode:
                _os.chmod(base_dir, 0o700)

            self._file_path = base_dir / f"trellis_{document}_{self._journal_id}.jsonl"

        # Held as instance state, closed in close()
        self._file = open(self._file_path, "a", encoding="utf-8")  # noqa: SIM115

        self._write_event(
            "journal_start",
            {
                "journal_id": self._journal_id,
                "document": document,
            },
        )

    def _write_event(
        self,
        event_type: str,
        data: dict[str, _typing.Any],
    ) -> None:
        """Write an event to the journal file."""
        if not self._enabled or not self._file:
            return

        self._event_count += 1
        event = {
            "timestamp": _datetime.datetime.now().isoformat(),
            "event_number": self._event_count,
            "event_type": event_type,
            **data,
        }

        try:
            self._file.write(_json.dumps(event, default=str) + "\n")
            self._file.flush()
        except OSError:
            # Journal write errors must never break editing
            pass

    def log_change(
        self,
        action: str,
        details: dict[str, _typing.Any] | None = None,
        *,
        page_count: int | None = None,
        layer_count: int | None = None,
        variable_count: int | None = None,
    ) -> None:
        """Log a committed change."""
        data: dict[str, _typing.Any] = {"action": action, "details": details or {}}
        if page_count is not None:
            data["page_count"] = page_count
        if layer_count is not None:
            data["layer_count"] = layer_count
        if variable_count is not None:
            data["variable_count"] = variable_count
        self._write_event("change", data)

    def log_store_event(self, event: document_store.StoreEvent) -> None:
        """Log a store event. Pass this method to ``DocumentStore.subscribe``."""
        state = event.state
        self.log_change(
            event.action,
            event.details,
            page_count=len(state.pages),
            layer_count=traversal.count_layers(state.pages),
            variable_count=len(state.variables),
        )

    def log_error(self, error: str, context: str | None = None) -> None:
        """Log an error event."""
        self._write_event(
            "error",
            {
                "error": error,
                "context": context,
            },
        )

    def log_event(self, event_type: str, **kwargs: _typing.Any) -> None:
        """Log a generic event with arbitrary data."""
        self._write_event(event_type, dict(kwargs))

    @property
    def file_path(self) -> _pathlib.Path | None:
        """Get the journal file path."""
        return self._file_path

    @property
    def enabled(self) -> bool:
        """Check if logging is enabled."""
        return self._enabled

    @property
    def event_count(self) -> int:
        return self._event_count

    def close(self) -> None:
        """Close the journal file."""
        if not self._enabled or not self._file:
            return

        self._write_event(
            "journal_end",
            {
                "total_events": self._event_count,
            },
        )

        try:
            self._file.close()
        except OSError:
            pass
        finally:
            self._file = None

    def __enter__(self) -> "ChangeLogger":
        """Context manager entry."""
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: _typing.Any,
    ) -> None:
        """Context manager exit."""
        if exc_type:
            self.log_error(str(exc_val), context=f"Exception: {exc_type.__name__}")
        self.close()


def read_journal(path: _pathlib.Path | str) -> list[dict[str, _typing.Any]]:
    """
    Read the events of a journal file.

    Lines that are not valid JSON objects (for example a partially written
    last line) are skipped.
    """
    events: list[dict[str, _typing.Any]] = []
    with open(path, encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if not line:
                continue
            try:
                event = _json.loads(line)
            except _json.JSONDecodeError:
                continue
            if isinstance(event, dict):
                events.append(event)
    return events
