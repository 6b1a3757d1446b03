"""Click CLI for chatview: decrypt, query and export commands."""

from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime
from typing import Any

import click

from . import __version__
from .config import ENV_DATA_DIR, ENV_EXPORT_DIR, Settings
from .constants import DEFAULT_PAGE_SIZE, EXPORT_FORMATS
from .errors import ChatViewError
from .service import ChatView


def _setup_logging(verbosity: int, log_path: str | None = None, default_level: str = "WARNING") -> None:
    level = logging.getLevelName(default_level)
    if not isinstance(level, int):
        level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG

    handlers: list[logging.Handler] = [logging.StreamHandler()]
    handlers[0].setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
    if log_path:
        try:
            os.makedirs(os.path.dirname(log_path), exist_ok=True)
            file_handler = logging.FileHandler(log_path, mode="a", encoding="utf-8")
        except OSError as e:
            click.echo(f"Warning: cannot write log file {log_path}: {e}", err=True)
        else:
            file_handler.setFormatter(logging.Formatter("[%(asctime)s] %(levelname)s: %(message)s"))
            handlers.append(file_handler)

    logging.basicConfig(level=level, handlers=handlers, force=True)


@click.group()
@click.version_option(__version__, prog_name="chatview")
@click.option(
    "--data-dir",
    default=None,
    envvar=ENV_DATA_DIR,
    help="Directory for the decrypted database, logs and saved files (default: ~/.chatview)",
    type=click.Path(file_okay=False),
)
@click.option(
    "--export-dir",
    default=None,
    envvar=ENV_EXPORT_DIR,
    help="Directory for exported files (default: ~/Downloads/chatview-tools)",
    type=click.Path(file_okay=False),
)
@click.option("-v", "--verbose", count=True, help="Increase verbosity (-v info, -vv debug)")
@click.pass_context
def cli(ctx: click.Context, data_dir: str | None, export_dir: str | None, verbose: int) -> None:
    """chatview — Decrypt, browse and export archived chat history."""
    settings = Settings.from_env(data_dir=data_dir, export_dir=export_dir)
    _setup_logging(verbose, settings.log_path, settings.log_level)
    ctx.ensure_object(dict)
    ctx.obj["settings"] = settings
    ctx.obj["verbose"] = verbose


def _fail(e: ChatViewError) -> None:
    click.echo(f"Error: {e.message}", err=True)
    sys.exit(1)


def _open(ctx: click.Context) -> ChatView:
    """Create a ChatView over the previously decrypted database."""
    view = ChatView(ctx.obj["settings"])
    try:
        view.open_database()
    except ChatViewError as e:
        _fail(e)
    ctx.call_on_close(view.close)
    return view


def _echo_json(data: Any) -> None:
    click.echo(json.dumps(data, ensure_ascii=False, indent=2))


def _parse_date(value: str | None, end_of_day: bool = False) -> int | None:
    """Accept epoch seconds or an ISO date (``YYYY-MM-DD[THH:MM:SS]``)."""
    if value is None:
        return None
    if value.isdigit():
        return int(value)
    try:
        dt = datetime.fromisoformat(value)
    except ValueError:
        raise click.BadParameter(f"Not a date or epoch timestamp: {value}")
    if end_of_day and len(value) == 10:
        dt = dt.replace(hour=23, minute=59, second=59)
    return int(dt.timestamp())


def _date_range(since: str | None, until: str | None) -> tuple[int, int] | None:
    if since is None and until is None:
        return None
    start = _parse_date(since)
    end = _parse_date(until, end_of_day=True)
    return (start if start is not None else 0, end if end is not None else 2**63 - 1)


_search_options = [
    click.option("--since", default=None, help="Earliest message time (YYYY-MM-DD or epoch seconds)"),
    click.option("--until", default=None, help="Latest message time, inclusive"),
    click.option("--type", "message_types", multiple=True, type=int, help="Message type code(s) to include"),
    click.option("--talker", default=None, help="Only search this conversation"),
]


def search_options(f):
    for option in reversed(_search_options):
        f = option(f)
    return f


@cli.command("decrypt")
@click.argument("archive", type=click.Path())
@click.option(
    "--install-path",
    required=True,
    type=click.Path(),
    help="Vendor installation directory (contains WeChat.exe and DBPass.Bin)",
)
@click.pass_context
def decrypt_cmd(ctx: click.Context, archive: str, install_path: str) -> None:
    """Decrypt an archive into the local plaintext database."""
    with ChatView(ctx.obj["settings"]) as view:
        try:
            db_path = view.decrypt_database(archive, install_path)
            talkers = view.get_talkers()
        except ChatViewError as e:
            _fail(e)
    click.echo(f"Database decrypted to {db_path} ({len(talkers)} conversation(s)).")


@cli.command("talkers")
@click.pass_context
def talkers_cmd(ctx: click.Context) -> None:
    """List all conversations."""
    view = _open(ctx)
    try:
        talkers = view.get_talkers()
    except ChatViewError as e:
        _fail(e)

    if not talkers:
        click.echo("No conversations found.")
        return
    lines = list(talkers)
    lines.append(f"\n{len(talkers)} conversation(s) total.")
    click.echo_via_pager("\n".join(lines) + "\n")


@cli.command("history")
@click.argument("talker")
@click.option("--page", default=1, show_default=True, type=click.IntRange(min=1))
@click.option("--page-size", default=DEFAULT_PAGE_SIZE, show_default=True, type=click.IntRange(min=1))
@click.pass_context
def history_cmd(ctx: click.Context, talker: str, page: int, page_size: int) -> None:
    """Show one page of a conversation, newest first."""
    view = _open(ctx)
    try:
        messages = view.get_chat_history(talker, page, page_size)
    except ChatViewError as e:
        _fail(e)
    _echo_json([m.to_dict() for m in messages])


@cli.command("search")
@click.argument("keyword")
@search_options
@click.pass_context
def search_cmd(
    ctx: click.Context,
    keyword: str,
    since: str | None,
    until: str | None,
    message_types: tuple[int, ...],
    talker: str | None,
) -> None:
    """Search message content (case-sensitive, at most 100 results)."""
    view = _open(ctx)
    try:
        messages = view.search_messages(keyword, _date_range(since, until), message_types, talker)
    except ChatViewError as e:
        _fail(e)
    _echo_json([m.to_dict() for m in messages])


@cli.command("stats")
@click.pass_context
def stats_cmd(ctx: click.Context) -> None:
    """Show archive-wide message statistics."""
    view = _open(ctx)
    try:
        stats = view.get_chat_statistics()
    except ChatViewError as e:
        _fail(e)
    _echo_json(stats.to_dict())


@cli.command("group")
@click.argument("group_id")
@click.pass_context
def group_cmd(ctx: click.Context, group_id: str) -> None:
    """Show group metadata and members."""
    view = _open(ctx)
    try:
        info = view.get_group_info(group_id)
    except ChatViewError as e:
        _fail(e)
    _echo_json(info.to_dict())


@cli.command("members")
@click.argument("group_id")
@click.pass_context
def members_cmd(ctx: click.Context, group_id: str) -> None:
    """List group members, newest first."""
    view = _open(ctx)
    try:
        members = view.get_group_members(group_id)
    except ChatViewError as e:
        _fail(e)
    _echo_json([m.to_dict() for m in members])


@cli.command("group-history")
@click.argument("group_id")
@click.option("--page", default=1, show_default=True, type=click.IntRange(min=1))
@click.option("--page-size", default=DEFAULT_PAGE_SIZE, show_default=True, type=click.IntRange(min=1))
@click.pass_context
def group_history_cmd(ctx: click.Context, group_id: str, page: int, page_size: int) -> None:
    """Show one page of a group conversation, newest first."""
    view = _open(ctx)
    try:
        messages = view.get_group_chat_history(group_id, page, page_size)
    except ChatViewError as e:
        _fail(e)
    _echo_json([m.to_dict() for m in messages])


@cli.command("export")
@click.argument("talker", required=False)
@click.option(
    "-f",
    "--format",
    "fmt",
    default="json",
    show_default=True,
    help=f"One of: {', '.join(EXPORT_FORMATS)}",
)
@click.pass_context
def export_cmd(ctx: click.Context, talker: str | None, fmt: str) -> None:
    """Export a conversation (up to 1000 newest messages)."""
    view = _open(ctx)
    try:
        if talker is None:
            from .selector import select_talker

            talker = select_talker(view.get_talkers())
            if not talker:
                click.echo("No conversation selected.")
                return
        path = view.export_chat_history(talker, fmt)
    except ChatViewError as e:
        _fail(e)
    click.echo(f"Exported to {path}")


@cli.command("export-search")
@click.argument("keyword")
@search_options
@click.option(
    "-f",
    "--format",
    "fmt",
    default="json",
    show_default=True,
    help=f"One of: {', '.join(EXPORT_FORMATS)}",
)
@click.pass_context
def export_search_cmd(
    ctx: click.Context,
    keyword: str,
    since: str | None,
    until: str | None,
    message_types: tuple[int, ...],
    talker: str | None,
    fmt: str,
) -> None:
    """Export search results."""
    view = _open(ctx)
    try:
        path = view.export_search_results(
            keyword, _date_range(since, until), message_types, talker, fmt
        )
    except ChatViewError as e:
        _fail(e)
    click.echo(f"Exported to {path}")


@cli.command("save-file")
@click.argument("msg_id", type=int)
@click.pass_context
def save_file_cmd(ctx: click.Context, msg_id: int) -> None:
    """Copy a message's attachment into the local files directory."""
    view = _open(ctx)
    try:
        path = view.save_file(view.get_message(msg_id))
    except ChatViewError as e:
        _fail(e)
    click.echo(f"Saved to {path}")
