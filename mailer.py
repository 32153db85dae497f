"""Outbound email through an SMTP relay."""

import smtplib
from email.message import EmailMessage

from fastapi import Depends
from fastapi.concurrency import run_in_threadpool
from loguru import logger

from config import Settings, get_settings


class Mailer:
    def __init__(
        self,
        host: str,
        port: int,
        username: str = "",
        password: str = "",
        sender: str = "",
        subject: str = "",
        use_ssl: bool = True,
        timeout: float = 30,
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.sender = sender or username
        self.subject = subject
        self.use_ssl = use_ssl
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings: Settings) -> "Mailer":
        return cls(
            host=settings.smtp_host,
            port=settings.smtp_port,
            username=settings.mail_user,
            password=settings.mail_password.get_secret_value(),
            subject=settings.mail_subject,
            use_ssl=settings.smtp_use_ssl,
            timeout=settings.smtp_timeout,
        )

    def build_message(self, to: str, body: str) -> EmailMessage:
        message = EmailMessage()
        message["From"] = self.sender
        message["To"] = to
        message["Subject"] = self.subject
        message.set_content(body)
        return message

    def _deliver(self, message: EmailMessage) -> None:
        smtp_class = smtplib.SMTP_SSL if self.use_ssl else smtplib.SMTP
        with smtp_class(self.host, self.port, timeout=self.timeout) as smtp:
            if not self.use_ssl:
                smtp.starttls()
            if self.username:
                smtp.login(self.username, self.password)
            smtp.send_message(message)

    async def send(self, to: str, body: str) -> bool:
        """Send one email. Returns False on any transport failure; never retries."""
        message = self.build_message(to, body)
        try:
            await run_in_threadpool(self._deliver, message)
        except (smtplib.SMTPException, OSError) as e:
            logger.warning(f"Mail to {to} failed: {e}")
            return False
        logger.info(f"Mail sent to {to}")
        return True


def get_mailer(settings: Settings = Depends(get_settings)) -> Mailer:
    return Mailer.from_settings(settings)
