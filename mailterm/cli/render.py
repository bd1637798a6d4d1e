"""Rich rendering of session snapshots — one view per mode."""

from pathlib import Path

from rich import box
from rich.console import Group, RenderableType
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from mailterm.mime.types import Draft, MessageDetail
from mailterm.session.controller import MAX_PICKER_CHOICES
from mailterm.session.keys import HELP_ROWS
from mailterm.session.state import COMPOSE_FIELDS, Mode, SessionSnapshot

INBOX_HINTS = (
    "[c] compose • [d] delete • [m] mark read/unread • [l] labels • "
    "[/] search • [?] help • [q] quit"
)
VIEWER_HINTS = (
    "[b] back • [r] reply • [d] delete • [m] mark read/unread • "
    "[ctrl+d] download attachment • [q] quit"
)
DRAFT_HINTS = "[ctrl+s] send • [ctrl+a] add attachment • [ctrl+x] remove attachment • [esc] back"
SEARCH_HINTS = "[enter] search • [esc] cancel"
LABEL_HINTS = "[↑/↓] navigate • [enter] select • [b] back"

_FIELD_LABELS = {
    "sender": "From",
    "to": "To",
    "cc": "CC",
    "bcc": "BCC",
    "subject": "Subj",
    "body": "Body",
}

# Lines reserved around the message body for headers, attachments, and hints.
_VIEWER_CHROME = 14


def human_size(size: int) -> str:
    """Format a byte count with binary units: ``512 B``, ``1.5 KB``, ``3.0 MB``."""
    unit = 1024
    if size < unit:
        return f"{size} B"
    div, exp = unit, 0
    n = size // unit
    while n >= unit:
        div *= unit
        exp += 1
        n //= unit
    return f"{size / div:.1f} {'KMGTPE'[exp]}B"


def render(snapshot: SessionSnapshot, height: int = 40) -> RenderableType:
    """Build the full screen for ``snapshot``; ``height`` bounds the message body."""
    if snapshot.help_visible:
        body = _help_view()
    else:
        body = _VIEWS[snapshot.mode](snapshot, height)
    if snapshot.notification:
        return Group(body, Text(snapshot.notification, style="bold yellow"))
    return body


# ── Views ──────────────────────────────────────────────────────────────────────


def _loading_view(snapshot: SessionSnapshot, height: int) -> RenderableType:
    return Panel(Text("Loading...", justify="center"), box=box.ROUNDED, border_style="dim")


def _inbox_view(snapshot: SessionSnapshot, height: int) -> RenderableType:
    table = Table(box=box.ROUNDED, show_header=True, header_style="bold cyan", expand=True)
    table.add_column("", width=1)
    table.add_column("Subject", ratio=2, no_wrap=True)
    table.add_column("From", ratio=1, no_wrap=True)
    table.add_column("Date", width=18)
    table.add_column("Snippet", ratio=3, no_wrap=True)

    for i, message in enumerate(snapshot.messages):
        style = "reverse" if i == snapshot.selected_index else ("bold" if message.unread else "")
        table.add_row(
            "●" if message.unread else "",
            message.subject or "(no subject)",
            message.sender,
            message.date,
            message.snippet,
            style=style,
        )

    if not snapshot.messages:
        table.add_row("", "[dim]No messages[/dim]", "", "", "")
    return Group(table, Text(INBOX_HINTS, style="dim"))


def _message_view(snapshot: SessionSnapshot, height: int) -> RenderableType:
    detail = snapshot.current
    if detail is None:
        return _loading_view(snapshot, height)

    headers = Table.grid(padding=(0, 1))
    headers.add_column(style="bold")
    headers.add_column()
    headers.add_row("From:", detail.sender)
    headers.add_row("To:", detail.to)
    if detail.cc:
        headers.add_row("CC:", detail.cc)
    if detail.bcc:
        headers.add_row("BCC:", detail.bcc)
    headers.add_row("Subject:", detail.subject)
    headers.add_row("Date:", detail.date)

    lines = detail.body.splitlines()
    visible = max(height - _VIEWER_CHROME, 1)
    offset = min(snapshot.viewport_offset, max(len(lines) - 1, 0))
    body = Panel(Text("\n".join(lines[offset : offset + visible])), box=box.ROUNDED)

    parts: list[RenderableType] = [headers, body]
    parts.extend(_attachment_lines(detail, snapshot.picker_armed))
    parts.append(Text(VIEWER_HINTS, style="dim"))
    return Group(*parts)


def _attachment_lines(detail: MessageDetail, picker_armed: bool) -> list[RenderableType]:
    if not detail.attachments:
        return []
    if picker_armed:
        count = min(len(detail.attachments), MAX_PICKER_CHOICES)
        title = f"Download which attachment? (1-{count}) [esc] cancel"
        refs = detail.attachments[:MAX_PICKER_CHOICES]
    else:
        title = "Attachments:"
        refs = detail.attachments
    lines = [Text(title, style="bold")]
    lines.extend(
        Text(f"  [{ref.index}] {ref.filename} ({human_size(ref.size)})") for ref in refs
    )
    return lines


def _compose_view(snapshot: SessionSnapshot, height: int) -> RenderableType:
    grid = Table.grid(padding=(0, 1))
    grid.add_column(style="bold", width=6)
    grid.add_column()
    for name in COMPOSE_FIELDS:
        value = getattr(snapshot.compose, name)
        label = _FIELD_LABELS[name] + ":"
        if name == snapshot.focused_field and not snapshot.adding_attachment:
            grid.add_row(Text(label, style="bold cyan"), Text(value + "█"))
        else:
            grid.add_row(label, value)
    parts: list[RenderableType] = [
        Panel(grid, title="Compose New Email", box=box.ROUNDED, border_style="blue")
    ]
    parts.extend(_draft_footer(snapshot, snapshot.compose))
    return Group(*parts)


def _reply_view(snapshot: SessionSnapshot, height: int) -> RenderableType:
    original = snapshot.reply_to
    sender = original.sender if original else snapshot.reply.to
    subject = original.subject if original else snapshot.reply.subject.removeprefix("Re: ")
    cursor = "" if snapshot.adding_attachment else "█"
    grid = Table.grid(padding=(0, 1))
    grid.add_column(style="bold")
    grid.add_column()
    grid.add_row("Reply to:", sender)
    grid.add_row("Subject:", f"Re: {subject}")
    parts: list[RenderableType] = [
        grid,
        Panel(Text(snapshot.reply.body + cursor), box=box.ROUNDED, border_style="blue"),
    ]
    parts.extend(_draft_footer(snapshot, snapshot.reply))
    return Group(*parts)


def _draft_footer(snapshot: SessionSnapshot, draft: Draft) -> list[RenderableType]:
    parts: list[RenderableType] = []
    if draft.attachments:
        parts.append(Text("Attachments:", style="bold"))
        parts.extend(
            Text(f"  [{i}] {Path(path).name}") for i, path in enumerate(draft.attachments, start=1)
        )
    if snapshot.adding_attachment:
        parts.append(Text(f"Attachment Path: {snapshot.attachment_input}█"))
    parts.append(Text(DRAFT_HINTS, style="dim"))
    return parts


def _search_view(snapshot: SessionSnapshot, height: int) -> RenderableType:
    return Group(
        Text(f"  Search: {snapshot.search_text}█"),
        Text(SEARCH_HINTS, style="dim"),
    )


def _labels_view(snapshot: SessionSnapshot, height: int) -> RenderableType:
    table = Table(box=box.ROUNDED, show_header=True, header_style="bold cyan", title="Labels")
    table.add_column("Name")
    table.add_column("Type", style="dim")
    for i, label in enumerate(snapshot.labels):
        style = "reverse" if i == snapshot.selected_label_index else ""
        table.add_row(label.name, label.type, style=style)
    return Group(table, Text(LABEL_HINTS, style="dim"))


def _help_view() -> RenderableType:
    table = Table(box=box.SIMPLE, show_header=False)
    table.add_column(style="bold cyan")
    table.add_column()
    for key, description in HELP_ROWS:
        table.add_row(key, description)
    return Panel(table, title="Keys", border_style="blue")


_VIEWS = {
    Mode.LOADING: _loading_view,
    Mode.INBOX: _inbox_view,
    Mode.VIEWING: _message_view,
    Mode.COMPOSING: _compose_view,
    Mode.REPLYING: _reply_view,
    Mode.SEARCHING: _search_view,
    Mode.MANAGING_LABELS: _labels_view,
}
