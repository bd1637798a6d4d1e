"""Session controller — the finite-state machine behind the terminal client.

Consumes one event at a time (key presses and command completions), mutates
the Session it owns, and hands work to a Scheduler.  It never awaits
anything itself, so the UI loop stays responsive however slow Gmail is.

Key handling order:
  1. resolve the key to an Action through the current mode's keymap
  2. global quit, then LOADING (which swallows everything else)
  3. help overlay, attachment picker, attachment-path entry
  4. the (Mode, Action) transition table
  5. anything left is delegated to the focused widget
"""

import logging
from collections.abc import Callable
from pathlib import Path

from mailterm.config import Settings
from mailterm.mime.types import Draft, MessageDetail
from mailterm.session.commands import (
    Command,
    DownloadAttachment,
    FetchLabelMessages,
    FetchLabels,
    FetchMessage,
    FetchMessageList,
    PrefetchLabels,
    SendDraft,
    ToggleRead,
    TrashMessage,
    ValidateAttachment,
)
from mailterm.session.events import (
    AttachmentSaved,
    AttachmentValidated,
    CommandFailed,
    Event,
    KeyPressed,
    LabelsLoaded,
    MessageLoaded,
    MessagesLoaded,
    MessageSent,
    MessageTrashed,
    ReadToggled,
)
from mailterm.session.keys import GLOBAL_KEYS, Action, resolve
from mailterm.session.scheduler import Scheduler
from mailterm.session.state import COMPOSE_FIELDS, DraftKind, Mode, Session, SessionSnapshot
from mailterm.session.widgets import edit_text

logger = logging.getLogger(__name__)

SENDER_PLACEHOLDER = "me"
MAX_PICKER_CHOICES = 9

_DRAFT_MODES: dict[DraftKind, Mode] = {
    DraftKind.COMPOSE: Mode.COMPOSING,
    DraftKind.REPLY: Mode.REPLYING,
}


def compose_reply_body(text: str, original: MessageDetail) -> str:
    """Append the quoted original message below the user's reply text."""
    quoted = "\n".join("> " + line for line in original.body.split("\n"))
    return (
        f"{text}\n\n--- Original Message ---\n"
        f"From: {original.sender}\nDate: {original.date}\n\n{quoted}"
    )


class SessionController:
    """Owns the Session and drives every transition between modes."""

    def __init__(
        self,
        scheduler: Scheduler,
        settings: Settings | None = None,
        session: Session | None = None,
    ) -> None:
        self._scheduler = scheduler
        self._settings = settings or Settings()
        self._session = session or Session()
        self._loading: Command | None = None

    @property
    def session(self) -> Session:
        return self._session

    @property
    def finished(self) -> bool:
        return self._session.quit_requested

    @property
    def loading_command(self) -> Command | None:
        """The loading-class command currently outstanding, if any."""
        return self._loading

    def snapshot(self) -> SessionSnapshot:
        return self._session.snapshot()

    # ── Public API ─────────────────────────────────────────────────────────────

    def start(self) -> SessionSnapshot:
        """Kick off the inbox fetch and the background label prefetch."""
        self._issue_loading(
            FetchMessageList(self._settings.inbox_query, self._settings.inbox_max_results),
            return_mode=Mode.INBOX,
        )
        self._scheduler.submit(PrefetchLabels())
        return self.snapshot()

    def handle(self, event: Event) -> SessionSnapshot:
        """Apply one event and return the resulting snapshot."""
        handler = _EVENT_HANDLERS.get(type(event))
        if handler is None:
            logger.warning("Ignoring unknown event %r", event)
        else:
            handler(self, event)
        return self.snapshot()

    # ── Issuing ────────────────────────────────────────────────────────────────

    def _issue_loading(self, command: Command, return_mode: Mode | None = None) -> bool:
        """Submit a loading-class command, entering LOADING.

        Refuses when another loading-class command is still outstanding.
        """
        s = self._session
        if self._loading is not None:
            logger.warning(
                "Refusing %s: %s still outstanding",
                type(command).__name__,
                type(self._loading).__name__,
            )
            return False
        s.return_mode = return_mode if return_mode is not None else s.mode
        s.mode = Mode.LOADING
        s.help_visible = False
        self._loading = command
        self._scheduler.submit(command)
        return True

    def _finish_loading(self, event: Event) -> bool:
        """Clear the outstanding loading command; False if none was expected."""
        if self._loading is None or self._session.mode is not Mode.LOADING:
            logger.warning("Dropping unexpected %s", type(event).__name__)
            self._loading = None
            return False
        self._loading = None
        return True

    def _notify(self, message: str) -> None:
        self._session.notification = message

    # ── Key events ─────────────────────────────────────────────────────────────

    def _on_key(self, event: KeyPressed) -> None:
        s = self._session
        key = event.key
        action = resolve(s.mode, key)
        s.notification = ""

        if key in GLOBAL_KEYS:
            s.quit_requested = True
            return
        if s.mode is Mode.LOADING:
            return

        if s.help_visible:
            s.help_visible = False
            return
        if action is Action.HELP:
            s.help_visible = True
            return

        if s.picker_armed:
            self._on_picker_key(key, action)
            return
        if s.adding_attachment:
            self._on_attachment_entry_key(key, action)
            return

        transition = _TRANSITIONS.get((s.mode, action)) if action is not None else None
        if transition is not None:
            transition(self)
        else:
            self._delegate(key)

    def _on_picker_key(self, key: str, action: Action | None) -> None:
        s = self._session
        if action is Action.BACK:
            s.picker_armed = False
            return
        # str.isdigit also accepts superscripts like "²", which int() rejects.
        if s.current is None or len(key) != 1 or key not in "0123456789":
            return
        choice = int(key)
        attachments = s.current.attachments
        if not 1 <= choice <= min(len(attachments), MAX_PICKER_CHOICES):
            return
        ref = attachments[choice - 1]
        s.picker_armed = False
        self._scheduler.submit(DownloadAttachment(ref, self._settings.downloads_dir))
        self._notify(f"Downloading {ref.filename}...")

    def _on_attachment_entry_key(self, key: str, action: Action | None) -> None:
        s = self._session
        if action is Action.BACK:
            s.adding_attachment = False
            s.attachment_input.reset()
        elif action is Action.SUBMIT:
            path = s.attachment_input.value.strip()
            if path:
                self._scheduler.submit(ValidateAttachment(path, self._active_draft_kind()))
        elif action is Action.SEND:
            self._send()
        else:
            s.attachment_input.handle(key)

    def _delegate(self, key: str) -> None:
        s = self._session
        if s.mode is Mode.INBOX:
            s.message_cursor.handle(key, len(s.messages))
        elif s.mode is Mode.VIEWING:
            s.viewport.handle(key)
        elif s.mode is Mode.MANAGING_LABELS:
            s.label_cursor.handle(key, len(s.labels))
        elif s.mode is Mode.SEARCHING:
            s.search.handle(key)
        elif s.mode is Mode.COMPOSING:
            name = COMPOSE_FIELDS[s.focused]
            value, _ = edit_text(getattr(s.compose, name), key, multiline=name == "body")
            setattr(s.compose, name, value)
        elif s.mode is Mode.REPLYING:
            s.reply.body, _ = edit_text(s.reply.body, key, multiline=True)

    def _active_draft_kind(self) -> DraftKind:
        return DraftKind.REPLY if self._session.mode is Mode.REPLYING else DraftKind.COMPOSE

    # ── Transitions: inbox & viewing ───────────────────────────────────────────

    def _open_selected(self) -> None:
        selected = self._session.selected_message
        if selected is not None:
            self._issue_loading(FetchMessage(selected.id))

    def _start_compose(self) -> None:
        s = self._session
        s.compose = Draft(sender=SENDER_PLACEHOLDER)
        s.focused = 0
        s.adding_attachment = False
        s.attachment_input.reset()
        s.mode = Mode.COMPOSING

    def _start_search(self) -> None:
        s = self._session
        s.search.reset()
        s.mode = Mode.SEARCHING

    def _show_labels(self) -> None:
        self._issue_loading(FetchLabels())

    def _trash(self) -> None:
        target = self._target_id()
        if target is not None:
            self._scheduler.submit(TrashMessage(target[0]))

    def _toggle_read(self) -> None:
        target = self._target_id()
        if target is not None:
            self._scheduler.submit(ToggleRead(*target))

    def _target_id(self) -> tuple[str, bool] | None:
        """(id, unread) of the open message in VIEWING, else of the highlighted row."""
        s = self._session
        if s.mode is Mode.VIEWING and s.current is not None:
            return s.current.id, s.current.unread
        selected = s.selected_message
        if selected is None:
            return None
        return selected.id, selected.unread

    def _quit(self) -> None:
        self._session.quit_requested = True

    def _close_message(self) -> None:
        s = self._session
        s.current = None
        s.picker_armed = False
        s.viewport.goto_top()
        s.mode = Mode.INBOX

    def _start_reply(self) -> None:
        s = self._session
        if s.current is None:
            return
        s.reply_to = s.current
        s.reply = Draft(
            sender=SENDER_PLACEHOLDER,
            to=s.current.sender,
            subject="Re: " + s.current.subject,
        )
        s.adding_attachment = False
        s.attachment_input.reset()
        s.mode = Mode.REPLYING

    def _arm_picker(self) -> None:
        s = self._session
        if s.current is None or not s.current.attachments:
            self._notify("No attachments available")
            return
        s.picker_armed = True
        choices = min(len(s.current.attachments), MAX_PICKER_CHOICES)
        self._notify(f"Select attachment to download (1-{choices}) [esc] cancel")

    # ── Transitions: drafts ────────────────────────────────────────────────────

    def _send(self) -> None:
        s = self._session
        kind = self._active_draft_kind()
        if kind in s.sending:
            self._notify("Already sending...")
            return
        if kind is DraftKind.REPLY:
            if s.reply_to is None:
                return
            draft = s.reply.copy()
            draft.to = s.reply_to.sender
            draft.subject = "Re: " + s.reply_to.subject
            draft.body = compose_reply_body(s.reply.body, s.reply_to)
        else:
            draft = s.compose.copy()
        s.sending.add(kind)
        self._scheduler.submit(SendDraft(draft, kind, self._settings.attachment_limit))
        self._notify("Sending...")

    def _begin_attachment_entry(self) -> None:
        s = self._session
        s.adding_attachment = True
        s.attachment_input.reset()

    def _remove_attachment(self) -> None:
        removed = self._session.draft(self._active_draft_kind()).pop_attachment()
        if removed is not None:
            self._notify("Removed last attachment")

    def _next_field(self) -> None:
        s = self._session
        s.focused = (s.focused + 1) % len(COMPOSE_FIELDS)

    def _prev_field(self) -> None:
        s = self._session
        s.focused = (s.focused - 1) % len(COMPOSE_FIELDS)

    def _leave_compose(self) -> None:
        self._session.mode = Mode.INBOX

    def _leave_reply(self) -> None:
        self._session.mode = Mode.VIEWING

    # ── Transitions: search & labels ───────────────────────────────────────────

    def _submit_search(self) -> None:
        self._issue_loading(
            FetchMessageList(self._session.search.value, self._settings.search_max_results),
            return_mode=Mode.SEARCHING,
        )

    def _open_label(self) -> None:
        label = self._session.selected_label
        if label is not None:
            self._issue_loading(
                FetchLabelMessages(label.id, self._settings.label_max_results),
            )

    def _back_to_inbox(self) -> None:
        s = self._session
        s.current = None
        s.mode = Mode.INBOX

    # ── Completion events ──────────────────────────────────────────────────────

    def _on_message_loaded(self, event: MessageLoaded) -> None:
        if not self._finish_loading(event):
            return
        s = self._session
        s.current = event.detail
        s.picker_armed = False
        s.viewport.goto_top()
        s.mode = Mode.VIEWING

    def _on_messages_loaded(self, event: MessagesLoaded) -> None:
        if not self._finish_loading(event):
            return
        s = self._session
        s.messages = event.messages
        s.message_cursor.reset()
        s.current = None
        s.started = True
        s.mode = Mode.INBOX

    def _on_labels_loaded(self, event: LabelsLoaded) -> None:
        s = self._session
        if event.background:
            s.labels = event.labels
            return
        if not self._finish_loading(event):
            return
        s.labels = event.labels
        s.label_cursor.reset()
        s.mode = Mode.MANAGING_LABELS

    def _on_message_sent(self, event: MessageSent) -> None:
        s = self._session
        s.sending.discard(event.kind)
        logger.info("Sent %s draft", event.kind.value)
        if event.kind is DraftKind.COMPOSE:
            s.compose = Draft()
        else:
            s.reply = Draft()
            s.reply_to = None
        if s.mode is _DRAFT_MODES[event.kind]:
            s.adding_attachment = False
            s.attachment_input.reset()
            s.current = None
            s.viewport.goto_top()
            s.mode = Mode.INBOX
        self._notify("Email sent successfully!")

    def _on_message_trashed(self, event: MessageTrashed) -> None:
        logger.info("Trashed message %s", event.message_id)
        self._notify("Email moved to trash")

    def _on_read_toggled(self, event: ReadToggled) -> None:
        self._notify("Email marked as unread" if event.unread else "Email marked as read")

    def _on_attachment_saved(self, event: AttachmentSaved) -> None:
        logger.info("Saved attachment to %s", event.path)
        self._notify(f"Downloaded: {event.path}")

    def _on_attachment_validated(self, event: AttachmentValidated) -> None:
        s = self._session
        s.draft(event.kind).push_attachment(event.path)
        if s.adding_attachment and s.mode is _DRAFT_MODES[event.kind]:
            s.adding_attachment = False
            s.attachment_input.reset()
        self._notify(f"Added: {Path(event.path).name}")

    def _on_command_failed(self, event: CommandFailed) -> None:
        s = self._session
        command = event.command
        if isinstance(command, PrefetchLabels):
            logger.warning("Label prefetch failed, continuing without labels: %s", event.error)
            s.labels = ()
            return
        if isinstance(command, SendDraft):
            s.sending.discard(command.kind)
        if command.loading:
            if not self._finish_loading(event):
                return
            if not s.started:
                s.fatal_error = f"Failed to load inbox: {event.error}"
                s.quit_requested = True
                return
            s.mode = s.return_mode
        self._notify(command.describe_failure(event.error))


_TRANSITIONS: dict[tuple[Mode, Action], Callable[[SessionController], None]] = {
    (Mode.INBOX, Action.SELECT): SessionController._open_selected,
    (Mode.INBOX, Action.COMPOSE): SessionController._start_compose,
    (Mode.INBOX, Action.SEARCH): SessionController._start_search,
    (Mode.INBOX, Action.LABELS): SessionController._show_labels,
    (Mode.INBOX, Action.DELETE): SessionController._trash,
    (Mode.INBOX, Action.TOGGLE_READ): SessionController._toggle_read,
    (Mode.INBOX, Action.QUIT): SessionController._quit,
    (Mode.VIEWING, Action.BACK): SessionController._close_message,
    (Mode.VIEWING, Action.REPLY): SessionController._start_reply,
    (Mode.VIEWING, Action.LABELS): SessionController._show_labels,
    (Mode.VIEWING, Action.DELETE): SessionController._trash,
    (Mode.VIEWING, Action.TOGGLE_READ): SessionController._toggle_read,
    (Mode.VIEWING, Action.DOWNLOAD_ATTACHMENT): SessionController._arm_picker,
    (Mode.VIEWING, Action.QUIT): SessionController._quit,
    (Mode.COMPOSING, Action.SEND): SessionController._send,
    (Mode.COMPOSING, Action.ADD_ATTACHMENT): SessionController._begin_attachment_entry,
    (Mode.COMPOSING, Action.REMOVE_ATTACHMENT): SessionController._remove_attachment,
    (Mode.COMPOSING, Action.NEXT_FIELD): SessionController._next_field,
    (Mode.COMPOSING, Action.PREV_FIELD): SessionController._prev_field,
    (Mode.COMPOSING, Action.BACK): SessionController._leave_compose,
    (Mode.REPLYING, Action.SEND): SessionController._send,
    (Mode.REPLYING, Action.ADD_ATTACHMENT): SessionController._begin_attachment_entry,
    (Mode.REPLYING, Action.REMOVE_ATTACHMENT): SessionController._remove_attachment,
    (Mode.REPLYING, Action.BACK): SessionController._leave_reply,
    (Mode.SEARCHING, Action.SUBMIT): SessionController._submit_search,
    (Mode.SEARCHING, Action.BACK): SessionController._back_to_inbox,
    (Mode.MANAGING_LABELS, Action.SELECT): SessionController._open_label,
    (Mode.MANAGING_LABELS, Action.BACK): SessionController._back_to_inbox,
}

_EVENT_HANDLERS: dict[type, Callable[[SessionController, Event], None]] = {
    KeyPressed: SessionController._on_key,
    MessageLoaded: SessionController._on_message_loaded,
    MessagesLoaded: SessionController._on_messages_loaded,
    LabelsLoaded: SessionController._on_labels_loaded,
    MessageSent: SessionController._on_message_sent,
    MessageTrashed: SessionController._on_message_trashed,
    ReadToggled: SessionController._on_read_toggled,
    AttachmentSaved: SessionController._on_attachment_saved,
    AttachmentValidated: SessionController._on_attachment_validated,
    CommandFailed: SessionController._on_command_failed,
}
