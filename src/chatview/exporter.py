"""Write query results to json, csv, txt or html files."""

from __future__ import annotations

import csv
import html
import io
import json
import logging
import os
import re
from collections.abc import Callable, Iterable
from datetime import datetime
from importlib import resources
from string import Template

from .constants import CSV_HEADERS, EXPORT_FORMATS, HISTORY_EXPORT_LIMIT
from .errors import ChatViewError, InvalidFormat, WriteFailed, wrap_error
from .files import write_atomic
from .models import ChatMessage
from .store import QueryStore

_logger = logging.getLogger(__name__)

_MESSAGE_BLOCK = """\
        <div class="message">
            <div class="time">{time}</div>
            <div class="sender">{sender}</div>
            <div class="content">{content}</div>
        </div>"""


def _read_template(name: str) -> str:
    """Read an HTML template from the templates package."""
    return resources.files("chatview.templates").joinpath(name).read_text(encoding="utf-8")


def format_time(ts: int) -> str:
    """Render epoch seconds in the local calendar."""
    return datetime.fromtimestamp(ts).strftime("%Y-%m-%d %H:%M:%S")


def _safe_filename(name: str) -> str:
    """Replace characters that are unsafe in file names."""
    return re.sub(r'[\\/:*?"<>|\s]+', "_", name).strip("._") or "untitled"


def render_json(messages: list[ChatMessage], exported_at: datetime) -> str:
    data = {
        "messages": [m.to_dict() for m in messages],
        "export_time": exported_at.isoformat(),
        "message_count": len(messages),
    }
    return json.dumps(data, ensure_ascii=False, indent=2)


def render_csv(messages: list[ChatMessage], exported_at: datetime) -> str:
    buf = io.StringIO()
    writer = csv.writer(buf, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(CSV_HEADERS)
    for msg in messages:
        writer.writerow([format_time(msg.create_time), msg.display_sender, msg.type, msg.content or ""])
    return buf.getvalue()


def render_txt(messages: list[ChatMessage], exported_at: datetime) -> str:
    lines = [
        f"Exported at: {exported_at.strftime('%Y-%m-%d %H:%M:%S')}",
        f"Messages: {len(messages)}",
        "",
    ]
    for msg in messages:
        lines.append(f"[{format_time(msg.create_time)}] {msg.display_sender}: {msg.content or ''}")
    return "\n".join(lines) + "\n"


def render_html(messages: list[ChatMessage], exported_at: datetime) -> str:
    blocks = "\n".join(
        _MESSAGE_BLOCK.format(
            time=html.escape(format_time(msg.create_time)),
            sender=html.escape(msg.display_sender),
            content=html.escape(msg.content or ""),
        )
        for msg in messages
    )
    template = _read_template("export.html")
    return Template(template).substitute(
        title="Chat history export",
        export_time=html.escape(exported_at.strftime("%Y-%m-%d %H:%M:%S")),
        message_count=str(len(messages)),
        messages=blocks,
    )


RENDERERS: dict[str, Callable[[list[ChatMessage], datetime], str]] = {
    "json": render_json,
    "csv": render_csv,
    "txt": render_txt,
    "html": render_html,
}


class Exporter:
    """Export chat history or search results from a :class:`QueryStore`."""

    def __init__(
        self,
        store: QueryStore,
        export_dir: str,
        logger: logging.Logger | None = None,
        now: Callable[[], datetime] = datetime.now,
    ):
        self.store = store
        self.export_dir = export_dir
        self.logger = logger or _logger
        self.now = now

    def export_history(self, talker: str, fmt: str) -> str:
        """Export up to 1000 of *talker*'s newest messages. Returns the file path."""
        self._check_format(fmt)
        try:
            messages = self.store.chat_history(talker, 1, HISTORY_EXPORT_LIMIT)
            path = self._write(f"chat_history_{_safe_filename(talker)}", fmt, messages)
        except ChatViewError as e:
            self.logger.error("Exporting history for %s failed: %s", talker, e)
            raise
        except Exception as e:
            self.logger.error("Exporting history for %s failed: %s", talker, e)
            raise wrap_error(e) from e
        self.logger.info("Exported %d messages for %s to %s", len(messages), talker, path)
        return path

    def export_search(
        self,
        keyword: str,
        date_range: tuple[int, int] | None = None,
        message_types: Iterable[int] | None = None,
        talker: str | None = None,
        fmt: str = "json",
    ) -> str:
        """Export the results of :meth:`QueryStore.search`. Returns the file path."""
        self._check_format(fmt)
        try:
            messages = self.store.search(keyword, date_range, message_types, talker)
            path = self._write("search_results", fmt, messages)
        except ChatViewError as e:
            self.logger.error("Exporting search results for %r failed: %s", keyword, e)
            raise
        except Exception as e:
            self.logger.error("Exporting search results for %r failed: %s", keyword, e)
            raise wrap_error(e) from e
        self.logger.info("Exported %d search results to %s", len(messages), path)
        return path

    def _check_format(self, fmt: str) -> None:
        if fmt not in RENDERERS:
            raise InvalidFormat(
                f"Unsupported export format: {fmt} (expected one of {', '.join(EXPORT_FORMATS)})",
                {"format": fmt},
            )

    def _write(self, stem: str, fmt: str, messages: list[ChatMessage]) -> str:
        exported_at = self.now()
        stamp = exported_at.isoformat().replace(":", "-").replace(".", "-")
        path = os.path.join(self.export_dir, f"{stem}_{stamp}.{fmt}")
        content = RENDERERS[fmt](messages, exported_at)

        try:
            os.makedirs(self.export_dir, exist_ok=True)
        except OSError as e:
            raise WriteFailed(
                f"Could not create export directory {self.export_dir}: {e}",
                {"export_dir": self.export_dir},
            ) from e
        try:
            write_atomic(path, content.encode("utf-8"))
        except OSError as e:
            raise WriteFailed(f"Could not write {path}: {e}", {"path": path}) from e
        return path
