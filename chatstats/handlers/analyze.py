import html
import logging
from aiogram import Router
from aiogram.enums import ChatType
from aiogram.filters import Command, CommandObject
from aiogram.types import Message

from chatstats.config import settings
from chatstats.services.analyzer import GeminiAnalyzer
from chatstats.services.statistics import PRIVACY_HINT, StatisticsService
from chatstats.utils import display_name

logger = logging.getLogger(__name__)

router = Router()

MAX_RESULT_LENGTH = 3800


@router.message(Command("analyze"))
async def cmd_analyze(
    msg: Message,
    command: CommandObject,
    stats_service: StatisticsService,
    analyzer: GeminiAnalyzer,
):
    """
    Анализ стиля общения пользователя по его последним сообщениям.

    Цель: @username из аргумента, иначе автор сообщения, на которое ответили,
    иначе сам автор команды. В группе берутся только сообщения этого чата.
    """
    arg = (command.args or "").split()
    username = arg[0] if arg and arg[0].startswith("@") else None
    reply_to = msg.reply_to_message
    is_private = msg.chat.type == ChatType.PRIVATE

    if not username and not (reply_to and reply_to.from_user) and is_private:
        return await msg.reply(
            "Для анализа в личке укажите @username или используйте reply в группе."
        )

    try:
        target = msg.from_user
        user_id = target.id
        label = display_name(target.username, target.first_name, target.last_name)

        if reply_to and reply_to.from_user:
            target = reply_to.from_user
            user_id = target.id
            label = display_name(target.username, target.first_name, target.last_name)

        if username:
            user = await stats_service.queries.get_user_by_username(username)
            if not user:
                return await msg.reply(f"Пользователь {html.escape(username)} не найден.")
            user_id = user.id
            label = display_name(user.username, user.first_name, user.last_name)

        messages = await stats_service.queries.messages_by_user(
            user_id,
            limit=settings.analyze_message_limit,
            chat_id=None if is_private else msg.chat.id,
        )
        if not messages:
            return await msg.reply(
                f"Нет сообщений для анализа ({html.escape(label)}).\n\n{PRIVACY_HINT}"
            )

        result = await analyzer.analyze(messages)
        # лимит Telegram - 4096 символов, оставляем запас под заголовок
        if len(result) > MAX_RESULT_LENGTH:
            result = result[:MAX_RESULT_LENGTH] + "...\n\n[обрезано, слишком много текста]"
        await msg.reply(f"Анализ пользователя {label}\n\n{result}", parse_mode=None)
    except Exception as e:
        logger.error(f"[ANALYZE] chat={msg.chat.id} | error={type(e).__name__}: {e}")
        await msg.reply("Ошибка при обработке запроса. Попробуйте позже.")
