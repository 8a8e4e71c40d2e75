import logging
import time
from typing import Any
from aiogram import BaseMiddleware
from aiogram.enums import ChatType
from aiogram.types import Message

from chatstats.services.ingest import MessageIngest, UserIdentity

logger = logging.getLogger(__name__)


class MessageIngestMiddleware(BaseMiddleware):
    """
    Логирует входящие сообщения и сохраняет текст групповых чатов.

    Личные переписки с ботом в статистику не попадают. Ошибка сохранения
    никогда не прерывает обработку: результат ingest только логируется.
    """

    def __init__(self, ingest: MessageIngest):
        self.ingest = ingest

    async def __call__(self, handler, event: Message, data: dict[str, Any]):
        start_time = time.time()

        if isinstance(event, Message) and event.chat:
            user_tag = f"@{event.from_user.username}" if event.from_user and event.from_user.username else f"id:{event.from_user.id if event.from_user else 'unknown'}"
            text_preview = (event.text or "")[:50]

            # Для команд логируем на INFO уровне
            if event.text and event.text.startswith("/"):
                logger.info(
                    f"[CMD IN] chat={event.chat.id} | user={user_tag} | "
                    f"cmd={text_preview}"
                )
            else:
                logger.debug(
                    f"[MSG IN] chat={event.chat.id} | type={event.chat.type} | "
                    f"user={user_tag} | msg_id={event.message_id}"
                )

            if event.text and event.from_user and event.chat.type != ChatType.PRIVATE:
                author = UserIdentity(
                    id=event.from_user.id,
                    username=event.from_user.username,
                    first_name=event.from_user.first_name,
                    last_name=event.from_user.last_name,
                )
                outcome = await self.ingest.record(author, event.chat.id, event.text)
                if not outcome.ok:
                    # reason already logged by ingest
                    logger.debug(f"[INGEST INCOMPLETE] chat={event.chat.id} | step={outcome.failed_step.value}")

        # Выполняем обработчик и замеряем время
        try:
            result = await handler(event, data)
            duration = time.time() - start_time

            if duration > 5.0:
                logger.warning(
                    f"[MSG SLOW] chat={event.chat.id if event.chat else 'N/A'} | "
                    f"msg_id={event.message_id} | time={duration:.2f}s"
                )

            return result
        except Exception as e:
            duration = time.time() - start_time
            logger.error(
                f"[MSG ERROR] chat={event.chat.id if event.chat else 'N/A'} | "
                f"msg_id={event.message_id} | "
                f"time={duration:.2f}s | error={type(e).__name__}: {e}"
            )
            raise
