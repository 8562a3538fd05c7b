import asyncio
import hashlib
import logging
import time
from typing import Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.config import SHORT_CODE_MAX_ATTEMPTS
from src.models.models import Link

logger = logging.getLogger(__name__)

SHORT_CODE_LENGTH = 8


class ShortCodeGenerationError(Exception):
    """Не удалось подобрать свободный короткий код за отведенное число попыток."""


def current_millis() -> int:
    return time.time_ns() // 1_000_000


def generate_short_code(owner: str, original_link: str, timestamp_ms: int) -> str:
    """
    Строит короткий код: первые 8 hex-символов sha256 от owner + original_link + время в мс.

    :param owner: Имя владельца ссылки
    :param original_link: Оригинальный URL
    :param timestamp_ms: Время в миллисекундах
    :return: Короткий код из 8 символов [0-9a-f]
    """
    payload = f"{owner}{original_link}{timestamp_ms}".encode("utf-8")
    return hashlib.sha256(payload).hexdigest()[:SHORT_CODE_LENGTH]


async def short_code_exists(session: AsyncSession, short_link: str) -> bool:
    result = await session.execute(select(Link.id).filter_by(short_link=short_link))
    return result.first() is not None


async def generate_unique_short_code(
        session: AsyncSession,
        owner: str,
        original_link: str,
        max_attempts: int = SHORT_CODE_MAX_ATTEMPTS,
) -> Tuple[str, int]:
    """
    Генерирует код, которого еще нет в таблице ссылок.

    При коллизии код пересчитывается с новым значением времени. Если за
    max_attempts попыток свободный код не найден, выбрасывается
    ShortCodeGenerationError.

    :return: Пара (код, число потраченных попыток)
    """
    last_timestamp = None
    for attempt in range(1, max_attempts + 1):
        timestamp = current_millis()
        # Тот же миллисекундный штамп даст тот же код, ждем следующий тик
        while timestamp == last_timestamp:
            await asyncio.sleep(0.001)
            timestamp = current_millis()
        last_timestamp = timestamp

        short_link = generate_short_code(owner, original_link, timestamp)
        if not await short_code_exists(session, short_link):
            return short_link, attempt

        logger.warning("Short code collision on %s (attempt %d/%d)", short_link, attempt, max_attempts)

    raise ShortCodeGenerationError(
        f"Unable to generate unique short code after {max_attempts} attempts"
    )
