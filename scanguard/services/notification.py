"""MailNotifier — e-mail alert when an infected upload is rejected.

Mail delivery is fire-and-forget: SMTP and network errors are logged and
suppressed so that a broken mail relay never changes the scan outcome.
Notifications are disabled when either ``smtp_host`` or
``av_notify_address`` is empty.
"""

from __future__ import annotations

import logging
import os
import smtplib
from email.message import EmailMessage

from scanguard.core.verdict_processor import Notifier

logger = logging.getLogger(__name__)

# SMTP connection timeout in seconds
_SMTP_TIMEOUT = 10.0


class MailNotifier(Notifier):
    """Send infected-file notifications over SMTP.

    STARTTLS and login are used when *username* is set.

    Args:
        host: SMTP server hostname.  Empty disables notifications.
        port: SMTP server port.
        sender: ``From`` address.
        recipient: Notification recipient.  Empty disables notifications.
        username: SMTP login user.
        password: SMTP login password.
    """

    def __init__(
        self,
        host: str,
        port: int,
        sender: str,
        recipient: str,
        username: str = "",
        password: str = "",
    ) -> None:
        self._host = host
        self._port = port
        self._sender = sender
        self._recipient = recipient
        self._username = username
        self._password = password

    @property
    def enabled(self) -> bool:
        return bool(self._host and self._recipient)

    def send_mail(self, path: str) -> None:
        if not self.enabled:
            logger.debug("MailNotifier disabled; skipping notification for path=%s", path)
            return

        message = self._build_message(path)
        try:
            with smtplib.SMTP(self._host, self._port, timeout=_SMTP_TIMEOUT) as server:
                if self._username:
                    server.starttls()
                    server.login(self._username, self._password)
                server.send_message(message)
        except (smtplib.SMTPException, OSError) as exc:
            logger.error(
                "Failed to send infected-file notification for path=%s via %s:%d: %s",
                path,
                self._host,
                self._port,
                exc,
            )
            return

        logger.info("Infected-file notification sent for path=%s to=%s", path, self._recipient)

    def _build_message(self, path: str) -> EmailMessage:
        message = EmailMessage()
        message["Subject"] = "Malware detected"
        message["From"] = self._sender
        message["To"] = self._recipient
        message.set_content(
            "Malware was detected in an uploaded file and the file was deleted.\n\n"
            f"File: {os.path.basename(path)}\n"
            f"Path: {path}\n"
        )
        return message
