import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Optional

from fastapi import Request

logger = logging.getLogger(__name__)


class NotificationError(Exception):
    """Raised when an email could not be handed to the SMTP server."""


class Mailer:
    """
    Outbound email transport.

    One instance is built at startup and shared by every request; each send
    opens its own short SMTP session.
    """

    def __init__(
        self,
        host: str,
        port: int,
        user: Optional[str] = None,
        password: Optional[str] = None,
        use_tls: bool = True,
        sender_name: str = "Cinema Notifications",
        timeout: float = 30.0,
    ):
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.use_tls = use_tls
        self.sender_name = sender_name
        self.timeout = timeout

    @property
    def sender(self) -> str:
        return f'"{self.sender_name}" <{self.user or "no-reply@localhost"}>'

    def build_message(self, to: str, subject: str, text: str, html: Optional[str] = None) -> MIMEMultipart:
        msg = MIMEMultipart("alternative")
        msg["From"] = self.sender
        msg["To"] = to
        msg["Subject"] = subject
        msg.attach(MIMEText(text, "plain"))
        msg.attach(MIMEText(html or f"<pre>{text}</pre>", "html"))
        return msg

    def send(self, to: str, subject: str, text: str, html: Optional[str] = None) -> None:
        if not to:
            raise NotificationError("No recipient configured")
        msg = self.build_message(to, subject, text, html)
        try:
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
                if self.use_tls:
                    server.starttls()
                if self.user and self.password:
                    server.login(self.user, self.password)
                server.send_message(msg)
        except (smtplib.SMTPException, OSError) as exc:
            logger.error("Error sending email to %s: %s", to, exc)
            raise NotificationError(str(exc)) from exc
        logger.info("Email sent to %s: %s", to, subject)


def get_mailer(request: Request) -> Mailer:
    return request.app.state.mailer
