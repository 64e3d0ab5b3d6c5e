# Internal
import asyncio
import logging
from typing import List, Optional

# Project
from welfare.data_structures.outgoing_email import EmailContent, Recipient
from welfare.data_structures.reminder_log import DeliveryStatus, RecipientDelivery
from welfare.engine.constants.constants import DEFAULT_SEND_DELAY_SECONDS, DEFAULT_SEND_TIMEOUT_SECONDS
from welfare.engine.exceptions import TransportError
from welfare.engine.modules.datetime_manager import DatetimeManager
from welfare.engine.modules.mailer import Mailer


class DeliveryDispatcher:
    """
    Sends one email per recipient, one at a time, with a pause between sends to
    stay under provider rate limits.

    Failures are returned as Failed deliveries and never raised.
    """
    def __init__(
        self,
        mailer: Mailer,
        datetime_manager: Optional[DatetimeManager] = None,
        send_delay: float = DEFAULT_SEND_DELAY_SECONDS,
        send_timeout: float = DEFAULT_SEND_TIMEOUT_SECONDS
    ):
        self.mailer = mailer
        self.datetime_manager = datetime_manager or DatetimeManager()
        self.send_delay = send_delay
        self.send_timeout = send_timeout

    async def _send_one(self, content: EmailContent, recipient: Recipient) -> RecipientDelivery:
        try:
            message_id = await asyncio.wait_for(
                self.mailer.send(recipient.email, content.subject, content.html, content.text),
                timeout=self.send_timeout
            )
        except asyncio.TimeoutError:
            error = f"Send timed out after {self.send_timeout:g}s"
        except TransportError as exc:
            error = str(exc)
        except Exception as exc:
            logging.exception(f"Unexpected error sending to {recipient.email}: {exc}")
            error = str(exc) or exc.__class__.__name__
        else:
            logging.info(f"  Sent to {recipient.email}")
            return RecipientDelivery(
                email=recipient.email,
                recipient_type=recipient.recipient_type,
                status=DeliveryStatus.SENT,
                sent_at=self.datetime_manager.now(),
                message_id=message_id
            )

        logging.error(f"  Failed to send to {recipient.email}: {error}")
        return RecipientDelivery(
            email=recipient.email,
            recipient_type=recipient.recipient_type,
            status=DeliveryStatus.FAILED,
            error=error
        )

    async def dispatch(self, content: EmailContent, recipients: List[Recipient]) -> List[RecipientDelivery]:
        deliveries = []

        for index, recipient in enumerate(recipients):
            if index and self.send_delay:
                await asyncio.sleep(self.send_delay)

            deliveries.append(await self._send_one(content, recipient))

        return deliveries
