# carewatch/adapters/telegram_notifier.py
from __future__ import annotations

import logging
from typing import Sequence

from aiogram import Bot

from carewatch.core.errors import SinkDeliveryFailure
from carewatch.core.i18n import fmt
from carewatch.core.logging_utils import kv
from carewatch.core.models import WellnessAlert
from carewatch.core.retry import BACKOFFS, with_retry


class TelegramNotifier:
    """
    Caregiver delivery: every new wellness alert becomes one Telegram message.
    Registered as an AlertFeed notifier. Sends are retried with backoff; the
    final failure is raised as SinkDeliveryFailure for the feed to log.
    """

    def __init__(self, bot: Bot, chat_id: int, *, backoffs: Sequence[float] = BACKOFFS):
        self.bot = bot
        self.chat_id = chat_id
        self.backoffs = list(backoffs)
        self.log = logging.getLogger("carewatch.telegram")

    @classmethod
    def from_token(cls, token: str, chat_id: int) -> "TelegramNotifier":
        return cls(Bot(token=token), chat_id)

    async def __call__(self, alert: WellnessAlert) -> None:
        text = fmt("caregiver_alert", type=alert.type.value, message=alert.message)
        try:
            await with_retry(
                self.bot.send_message,
                chat_id=self.chat_id,
                text=text,
                backoffs=self.backoffs,
            )
        except Exception as e:
            raise SinkDeliveryFailure(
                f"telegram send to {self.chat_id} failed: {e!r}"
            ) from e
        self.log.info("telegram.sent " + kv(chat_id=self.chat_id, alert=alert.id))

    async def close(self) -> None:
        await self.bot.session.close()
