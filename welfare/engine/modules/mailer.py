"""
Mail transports used to deliver reminder emails.

Every transport exposes the same coroutine, send(to, subject, html, text),
which returns the provider message id or raises TransportError. Missing
credentials produce an UnconfiguredMailer whose sends raise ConfigurationError,
so a run without mail configured still completes with every delivery Failed.
"""

# Internal
import asyncio
import json
import logging
import smtplib
import sys
from email.message import EmailMessage
from email.utils import make_msgid

# External
import aiohttp

# Project
from welfare.data_structures.registry_config import MailSecret
from welfare.engine.constants.constants import DEFAULT_SEND_TIMEOUT_SECONDS, RESEND_API_ROUTE
from welfare.engine.exceptions import ConfigurationError, TransportError

SMTP_SSL_PORT = 465


class Mailer:
    async def send(self, to: str, subject: str, html: str, text: str) -> str:
        raise NotImplementedError

    async def verify(self) -> bool:
        raise NotImplementedError

    async def close(self) -> None:
        pass


class UnconfiguredMailer(Mailer):
    def __init__(self, reason: str = "Email service not configured - missing credentials"):
        self.reason = reason

    async def send(self, to: str, subject: str, html: str, text: str) -> str:
        raise ConfigurationError(self.reason)

    async def verify(self) -> bool:
        logging.warning(self.reason)
        return False


class SmtpMailer(Mailer):
    """
    SMTP transport. smtplib is blocking, so every send runs in a worker thread
    over its own short-lived connection.
    """
    def __init__(
        self,
        host: str,
        port: int,
        user: str,
        password: str,
        mail_from: str = "",
        timeout: float = DEFAULT_SEND_TIMEOUT_SECONDS
    ):
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.mail_from = mail_from or user
        self.timeout = timeout

    def _connect(self) -> smtplib.SMTP:
        if self.port == SMTP_SSL_PORT:
            connection = smtplib.SMTP_SSL(self.host, self.port, timeout=self.timeout)
        else:
            connection = smtplib.SMTP(self.host, self.port, timeout=self.timeout)
            connection.starttls()

        connection.login(self.user, self.password)
        return connection

    def _build_message(self, to: str, subject: str, html: str, text: str) -> EmailMessage:
        message = EmailMessage()
        message["From"] = self.mail_from
        message["To"] = to
        message["Subject"] = subject
        message["Message-ID"] = make_msgid(domain=self.mail_from.split("@")[-1] or None)

        message.set_content(text)
        message.add_alternative(html, subtype="html")

        return message

    def _send_sync(self, to: str, subject: str, html: str, text: str) -> str:
        message = self._build_message(to, subject, html, text)

        try:
            with self._connect() as connection:
                connection.send_message(message)
        except (smtplib.SMTPException, OSError) as exc:
            raise TransportError(f"SMTP error sending to {to}: {exc}") from exc

        logging.info(f"Email sent to {to} ({message['Message-ID']})")
        return message["Message-ID"]

    def _verify_sync(self) -> bool:
        try:
            with self._connect() as connection:
                connection.noop()
        except (smtplib.SMTPException, OSError) as exc:
            logging.error(f"Email connection failed: {exc}")
            return False

        logging.info("Email service connected successfully")
        return True

    async def send(self, to: str, subject: str, html: str, text: str) -> str:
        if not to:
            raise TransportError("No recipient email address provided")

        return await asyncio.to_thread(self._send_sync, to, subject, html, text)

    async def verify(self) -> bool:
        return await asyncio.to_thread(self._verify_sync)


class ResendMailer(Mailer):
    """
    Transactional email over the Resend HTTP API.
    """
    def __init__(
        self,
        api_key: str,
        mail_from: str,
        timeout: float = DEFAULT_SEND_TIMEOUT_SECONDS,
        semaphore: int = 2,
        api_route: str = RESEND_API_ROUTE
    ):
        """
        Initialize the Resend client.

        Args:
            api_key (str): Resend API key.
            mail_from (str): Sender address, must belong to a verified domain.
            timeout (float, optional): Total timeout per request in seconds.
            semaphore (int, optional): Maximum number of concurrent API requests. Defaults to 2.
            api_route (str, optional): Base URL of the API.
        """
        self._api_route = api_route
        self._api_key = api_key
        self._semaphore = asyncio.Semaphore(semaphore)
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self.mail_from = mail_from

        self._session: aiohttp.ClientSession | None = None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                headers={"Authorization": f"Bearer {self._api_key}"},
                timeout=self._timeout
            )

        return self._session

    async def send(self, to: str, subject: str, html: str, text: str) -> str:
        if not to:
            raise TransportError("No recipient email address provided")

        payload = {
            "from": self.mail_from,
            "to": [to],
            "subject": subject,
            "html": html,
            "text": text,
        }

        async with self._semaphore:
            try:
                async with self._get_session().post(f"{self._api_route}/emails", json=payload) as resp:
                    logging.info(f"{sys._getframe().f_code.co_name} - {resp.status}")
                    body = await resp.text()

                    if not 200 <= resp.status < 300:
                        raise TransportError(f"Resend returned {resp.status} for {to}: {body}")
            except aiohttp.ClientError as exc:
                raise TransportError(f"Resend request failed for {to}: {exc}") from exc

        try:
            email_id = json.loads(body).get("id")
        except (ValueError, AttributeError):
            email_id = None

        if not email_id:
            raise TransportError(f"Resend returned an invalid response: {body}")

        logging.info(f"Email sent successfully to {to} (id: {email_id})")
        return email_id

    async def verify(self) -> bool:
        try:
            async with self._get_session().get(f"{self._api_route}/domains") as resp:
                logging.info(f"{sys._getframe().f_code.co_name} - {resp.status}")
                return 200 <= resp.status < 300
        except aiohttp.ClientError as exc:
            logging.error(f"Resend verification failed: {exc}")
            return False

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()


def build_mailer(secrets: MailSecret, timeout: float = DEFAULT_SEND_TIMEOUT_SECONDS) -> Mailer:
    if secrets.provider == "resend":
        if not secrets.resend_api_key or not secrets.mail_from:
            logging.warning("resend_api_key or mail_from not set, email reminders will fail")
            return UnconfiguredMailer()

        return ResendMailer(secrets.resend_api_key, secrets.mail_from, timeout=timeout)

    if not secrets.smtp_user or not secrets.smtp_password:
        logging.warning("smtp_user or smtp_password not set, email reminders will fail")
        return UnconfiguredMailer()

    return SmtpMailer(
        host=secrets.smtp_host,
        port=secrets.smtp_port,
        user=secrets.smtp_user,
        password=secrets.smtp_password,
        mail_from=secrets.mail_from,
        timeout=timeout
    )
