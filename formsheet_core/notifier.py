"""
Notification Emitter - Out-of-band email on every new submission row

``SubmissionNotifier`` subscribes to the store's ``RowWritten`` events and
does its work on a background executor, outside the submission lock:

1. read the store's last row (at trigger time, not the event payload)
2. render an HTML and a plain-text message
3. send through a ``Mailer``; on failure retry once as plain text only

Delivery problems are logged and never reach the submission response.
"""

import logging
import mimetypes
import smtplib
from abc import ABC, abstractmethod
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from email.message import EmailMessage
from email.utils import make_msgid
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence

from jinja2 import BaseLoader, Environment, select_autoescape

from .config import FormSheetConfig, NotifyConfig
from .errors import NotificationDeliveryError
from .schema import CANONICAL_SCHEMA
from .store import RowWritten, TabularStore
from .version import __version__

logger = logging.getLogger(__name__)

LOGO_MARKER = "<!--logo-->"
LOGO_TAG = "<img src=\"cid:{cid}\" alt=\"logo\" height=\"48\"><br>"


# =============================================================================
# Mailers
# =============================================================================

class Mailer(ABC):
    """Something that can deliver an ``EmailMessage``."""

    @abstractmethod
    def send(self, message: EmailMessage) -> None:
        pass


class SmtpMailer(Mailer):
    """SMTP delivery (optionally STARTTLS and login)."""

    def __init__(self, config: NotifyConfig):
        self.config = config

    def send(self, message: EmailMessage) -> None:
        cfg = self.config
        with smtplib.SMTP(cfg.smtp_host, cfg.smtp_port, timeout=cfg.timeout) as smtp:
            if cfg.use_tls:
                smtp.starttls()
            if cfg.smtp_user:
                smtp.login(cfg.smtp_user, cfg.smtp_password or "")
            smtp.send_message(message)


# =============================================================================
# Rendering
# =============================================================================

@dataclass
class RenderedNotification:
    subject: str
    text: str
    html: str
    row_index: int


TEXT_TEMPLATE = """Bonjour,

Une nouvelle candidature a été soumise :

📋 INFORMATIONS
{{ sep }}
👤 Nom: {{ f['Nom'] }} {{ f['Prénom'] }}
📧 Email: {{ f['Email'] }}
📱 Téléphone: {{ f['Téléphone'] }}
🎓 Université: {{ f['Université'] }}
📘 Facebook: {{ f['Lien Facebook'] }}
⏰ Date: {{ f['Timestamp'] }}

🔗 CONSULTER
{{ sep }}
{{ store_url }}

{{ sep }}
{{ title }}"""

HTML_TEMPLATE = """<html><body style="font-family:sans-serif"><!--logo-->
<h2 style="color:#4ECDC4">{{ title }}</h2>
<p>Une nouvelle candidature a été soumise :</p>
<table cellpadding="4">
{%- for label, value in rows %}
<tr><th align="left">{{ label }}</th><td>{{ value }}</td></tr>
{%- endfor %}
</table>
<p><a href="{{ store_url }}">Consulter les réponses</a></p>
<p style="color:#888">{{ title }} | FormSheet v{{ version }} | ligne {{ row_index }}</p>
</body></html>"""

_html_env = Environment(loader=BaseLoader(), autoescape=select_autoescape(['html', 'xml']))
_text_env = Environment(loader=BaseLoader(), autoescape=False)


def _row_fields(headers: Sequence[str], values: Sequence[str]) -> Dict[str, str]:
    # Fall back to canonical positions when the header row cannot be matched
    labels = list(headers) if headers else list(CANONICAL_SCHEMA)
    fields = {label: values[i] if i < len(values) else "" for i, label in enumerate(labels)}
    for i, label in enumerate(CANONICAL_SCHEMA):
        if label not in fields:
            fields[label] = values[i] if i < len(values) else ""
    return fields


def render_notification(
    row_index: int,
    headers: Sequence[str],
    values: Sequence[str],
    config: FormSheetConfig,
    store_url: str = "",
) -> RenderedNotification:
    """Render the plain-text and HTML bodies for one submission row."""
    f = _row_fields(headers, values)
    title = config.form.title

    text = _text_env.from_string(TEXT_TEMPLATE).render(
        f=f,
        sep="━━━━━━━━━━━━━━━━",
        store_url=store_url,
        title=title,
    )

    html_body = _html_env.from_string(HTML_TEMPLATE).render(
        title=title,
        rows=[
            ("Nom", f"{f['Nom']} {f['Prénom']}"),
            ("Email", f["Email"]),
            ("Téléphone", f["Téléphone"]),
            ("Université", f["Université"]),
            ("Facebook", f["Lien Facebook"]),
            ("Date", f["Timestamp"]),
        ],
        store_url=store_url,
        version=__version__,
        row_index=row_index,
    )

    return RenderedNotification(
        subject=config.notify.subject,
        text=text,
        html=html_body,
        row_index=row_index,
    )


def build_message(rendered: RenderedNotification, config: NotifyConfig, rich: bool = True) -> EmailMessage:
    """
    Build the email. ``rich`` adds the HTML alternative and the inline logo.
    """
    msg = EmailMessage()
    msg["Subject"] = rendered.subject
    msg["From"] = config.sender
    msg["To"] = config.recipient
    msg.set_content(rendered.text)

    if not rich:
        return msg

    logo_path = Path(config.logo_path) if config.logo_path else None
    if logo_path is not None and logo_path.exists():
        cid = make_msgid()
        msg.add_alternative(rendered.html.replace(LOGO_MARKER, LOGO_TAG.format(cid=cid[1:-1])), subtype="html")
        mime, _ = mimetypes.guess_type(logo_path.name)
        maintype, subtype = (mime or "image/png").split("/", 1)
        msg.get_payload()[1].add_related(logo_path.read_bytes(), maintype=maintype, subtype=subtype, cid=cid)
    else:
        msg.add_alternative(rendered.html.replace(LOGO_MARKER, ""), subtype="html")

    return msg


# =============================================================================
# Notifier
# =============================================================================

class SubmissionNotifier:
    """
    Sends one email per new submission row.

    Example:
        notifier = SubmissionNotifier(store, config).attach()
        ...
        notifier.shutdown()
    """

    def __init__(
        self,
        store: TabularStore,
        config: FormSheetConfig,
        mailer: Optional[Mailer] = None,
        executor: Optional[ThreadPoolExecutor] = None,
    ):
        self.store = store
        self.config = config
        self.mailer = mailer or SmtpMailer(config.notify)
        self._executor = executor or ThreadPoolExecutor(max_workers=1, thread_name_prefix="formsheet-notify")
        self._unsubscribe: Optional[Callable[[], None]] = None
        self.failures: List[NotificationDeliveryError] = []

    @property
    def store_url(self) -> str:
        if self.config.notify.store_url:
            return self.config.notify.store_url
        path = getattr(self.store, "path", None)
        return Path(path).resolve().as_uri() if path else ""

    def attach(self) -> "SubmissionNotifier":
        """Subscribe to the store's row events."""
        if self._unsubscribe is None:
            self._unsubscribe = self.store.subscribe(self.on_row_written)
        return self

    def detach(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def shutdown(self, wait: bool = True) -> None:
        self.detach()
        self._executor.shutdown(wait=wait)

    def on_row_written(self, event: RowWritten) -> Future:
        """Store listener: schedule the notification and return immediately."""
        logger.debug(f"Row {event.row_index} written, scheduling notification")
        return self._executor.submit(self.notify_last_row)

    def notify_last_row(self) -> bool:
        """
        Notify about the store's current last row.

        Returns:
            True if an email was delivered
        """
        try:
            last = self.store.last_row()
            headers = self.store.read_schema()
        except Exception as e:
            logger.error(f"Notification skipped, store unreadable: {e}")
            return False

        if last is None or last[0] <= 1:
            logger.debug("No submission row to notify about")
            return False

        index, values = last
        try:
            rendered = render_notification(index, headers, values, self.config, self.store_url)
        except Exception as e:
            failure = NotificationDeliveryError(f"Row {index}: cannot render notification: {e}")
            self.failures.append(failure)
            logger.error(f"Notification skipped, {failure.message}")
            return False
        return self.deliver(rendered)

    def deliver(self, rendered: RenderedNotification) -> bool:
        """Send rich, then plain text; log and swallow a total failure."""
        try:
            self.mailer.send(build_message(rendered, self.config.notify, rich=True))
            logger.info(f"Notification sent for row {rendered.row_index}")
            return True
        except Exception as e:
            logger.warning(f"Error sending email: {e}, retrying as plain text")

        try:
            self.mailer.send(build_message(rendered, self.config.notify, rich=False))
            logger.info(f"Plain-text notification sent for row {rendered.row_index}")
            return True
        except Exception as e:
            failure = NotificationDeliveryError(f"Row {rendered.row_index}: {e}")
            self.failures.append(failure)
            logger.error(f"Error sending email: {failure.message}")
            return False
