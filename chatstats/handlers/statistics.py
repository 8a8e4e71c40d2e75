import html
import logging
from aiogram import Router, F
from aiogram.enums import ChatType
from aiogram.exceptions import TelegramBadRequest
from aiogram.filters import Command, CommandObject
from aiogram.types import CallbackQuery, InlineKeyboardButton, InlineKeyboardMarkup, Message

from chatstats.services.ranges import OFFERED_RANGES, StatsRange, range_start
from chatstats.services.statistics import StatisticsService, no_data_text
from chatstats.utils import display_name

logger = logging.getLogger(__name__)

router = Router()

STATS_PREFIX = "stats:"
ERROR_TEXT = "Ошибка при обработке запроса. Попробуйте позже."

RANGE_BUTTON_TEXT = {
    StatsRange.DAY: "За сегодня",
    StatsRange.WEEK: "За неделю",
    StatsRange.MONTH: "За месяц",
    StatsRange.ALL: "За все время",
}


def _range_rows(callback_for) -> list[list[InlineKeyboardButton]]:
    buttons = [
        InlineKeyboardButton(text=RANGE_BUTTON_TEXT[r], callback_data=callback_for(r))
        for r in OFFERED_RANGES
    ]
    # три периода в ряд, "за все время" отдельной строкой
    return [buttons[:3], buttons[3:]]


def leaderboard_keyboard(stats_range: StatsRange) -> InlineKeyboardMarkup:
    rows = _range_rows(lambda r: f"{STATS_PREFIX}range:{r.value}")
    rows.append([InlineKeyboardButton(
        text="Статистика пользователя",
        callback_data=f"{STATS_PREFIX}userlist:{stats_range.value}",
    )])
    return InlineKeyboardMarkup(inline_keyboard=rows)


def user_keyboard(user_id: int, stats_range: StatsRange) -> InlineKeyboardMarkup:
    rows = _range_rows(lambda r: f"{STATS_PREFIX}user:{user_id}:{r.value}")
    rows.append([InlineKeyboardButton(
        text="К списку пользователей",
        callback_data=f"{STATS_PREFIX}userlist:{stats_range.value}",
    )])
    return InlineKeyboardMarkup(inline_keyboard=rows)


def parse_range(value: str) -> StatsRange | None:
    try:
        return StatsRange(value.lower())
    except ValueError:
        return None


async def _edit(callback: CallbackQuery, text: str, keyboard: InlineKeyboardMarkup):
    try:
        await callback.message.edit_text(text, reply_markup=keyboard)
    except TelegramBadRequest as e:
        # the same report clicked twice
        if "message is not modified" not in str(e).lower():
            raise


@router.message(Command("stats"))
async def cmd_stats(msg: Message, command: CommandObject, stats_service: StatisticsService):
    """
    /stats - лидерборд чата за все время.
    /stats @username - статистика конкретного пользователя.
    """
    chat_id = msg.chat.id
    arg = (command.args or "").split()
    username = arg[0] if arg and arg[0].startswith("@") else None

    try:
        if username:
            user = await stats_service.queries.get_user_by_username(username)
            if not user:
                return await msg.reply(f"Пользователь {html.escape(username)} не найден.")
            text = await stats_service.user_report(chat_id, user.id, StatsRange.ALL)
            return await msg.reply(text, reply_markup=user_keyboard(user.id, StatsRange.ALL))

        text = await stats_service.leaderboard_report(chat_id, StatsRange.ALL)
        await msg.reply(text, reply_markup=leaderboard_keyboard(StatsRange.ALL))
    except Exception as e:
        logger.error(f"[STATS] chat={chat_id} | error={type(e).__name__}: {e}")
        await msg.reply(ERROR_TEXT)


@router.message(Command("myrank"))
async def cmd_myrank(msg: Message, stats_service: StatisticsService):
    """Место автора в чате за все время."""
    if msg.chat.type == ChatType.PRIVATE or not msg.from_user:
        return await msg.reply("Команда доступна только в групповых чатах.")

    try:
        text = await stats_service.rank_report(msg.chat.id, msg.from_user.id)
        await msg.reply(text)
    except Exception as e:
        logger.error(f"[MYRANK] chat={msg.chat.id} | error={type(e).__name__}: {e}")
        await msg.reply(ERROR_TEXT)


@router.callback_query(F.data.startswith(STATS_PREFIX))
async def callback_stats(callback: CallbackQuery, stats_service: StatisticsService):
    """
    Кнопки статистики:
        stats:range:{range}          лидерборд за период
        stats:userlist:{range}       выбор пользователя из топа
        stats:user:{user_id}:{range} отчет пользователя за период
    """
    if not isinstance(callback.message, Message):
        return await callback.answer()

    parts = callback.data.split(":")
    action = parts[1] if len(parts) > 1 else ""
    stats_range = parse_range(parts[-1]) if len(parts) > 2 else None
    if stats_range is None:
        return await callback.answer("Ошибка")

    chat_id = callback.message.chat.id
    try:
        if action == "range" and len(parts) == 3:
            text = await stats_service.leaderboard_report(chat_id, stats_range)
            await _edit(callback, text, leaderboard_keyboard(stats_range))

        elif action == "userlist" and len(parts) == 3:
            rows = await stats_service.queries.top_users(chat_id, range_start(stats_range))
            if not rows:
                await _edit(callback, no_data_text(stats_range), leaderboard_keyboard(stats_range))
            else:
                buttons = [
                    [InlineKeyboardButton(
                        text=display_name(row.username, row.first_name, row.last_name),
                        callback_data=f"{STATS_PREFIX}user:{row.user_id}:{stats_range.value}",
                    )]
                    for row in rows
                ]
                buttons.append([InlineKeyboardButton(
                    text="Назад", callback_data=f"{STATS_PREFIX}range:{stats_range.value}"
                )])
                await _edit(callback, "Выберите пользователя:", InlineKeyboardMarkup(inline_keyboard=buttons))

        elif action == "user" and len(parts) == 4 and parts[2].isdigit():
            user_id = int(parts[2])
            text = await stats_service.user_report(chat_id, user_id, stats_range)
            await _edit(callback, text, user_keyboard(user_id, stats_range))

        else:
            return await callback.answer("Ошибка")

        await callback.answer()
    except Exception as e:
        logger.error(f"[STATS CB] chat={chat_id} | data={callback.data} | error={type(e).__name__}: {e}")
        await callback.answer("Произошла ошибка. Попробуйте позже.")
