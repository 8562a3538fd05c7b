import logging

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import IntegrityError
from sqlalchemy import select

from datetime import datetime
from typing import List, Optional

from src.config import SHORT_CODE_MAX_ATTEMPTS
from src.models.models import Link, Click, utcnow
from src.utils import generate_unique_short_code, ShortCodeGenerationError


logger = logging.getLogger(__name__)

LINK_FIELDS = ("original_link", "remarks", "expiry_date")


async def create_link_in_db(
        session: AsyncSession,
        original_link: str,
        owner: str,
        remarks: Optional[str] = None,
        expiry_date: Optional[datetime] = None,
        max_attempts: int = SHORT_CODE_MAX_ATTEMPTS
) -> Link:
    """
    Функция для создания ссылки в базе данных

    Arguments:
    - session: Сессия для работы с базой данных
    - original_link: Оригинальный URL
    - owner: Имя пользователя-владельца
    - remarks: Заметка к ссылке
    - expiry_date: Дата истечения срока действия, если задана

    Если между проверкой и вставкой код успел занять параллельный запрос,
    уникальный индекс вернет IntegrityError и код будет сгенерирован заново.
    Проверки и вставки делят один бюджет из max_attempts попыток.
    """
    remaining = max_attempts
    while remaining > 0:
        short_link, spent = await generate_unique_short_code(session, owner, original_link, remaining)
        # Неудачная вставка тоже расходует попытку
        remaining -= spent
        link = Link(
            original_link=original_link,
            short_link=short_link,
            remarks=remarks,
            expiry_date=expiry_date,
            owner=owner,
            clicks=[],
        )
        session.add(link)
        try:
            await session.commit()
        except IntegrityError:
            await session.rollback()
            logger.warning("Short code %s was taken concurrently, regenerating", short_link)
            continue

        logger.info("Created link %s for %s", short_link, owner)
        return link

    raise ShortCodeGenerationError(
        f"Unable to store unique short code after {max_attempts} attempts"
    )


async def get_links(session: AsyncSession, owner: Optional[str] = None) -> List[Link]:
    """Все ссылки, либо только ссылки владельца owner."""
    query = select(Link).order_by(Link.id)
    # Пустой username означает "без фильтра"
    if owner:
        query = query.filter_by(owner=owner)
    result = await session.execute(query)
    return list(result.scalars().all())


async def get_link(session: AsyncSession, short_link: str, owner: Optional[str] = None) -> Optional[Link]:
    """
    Поиск ссылки по короткому коду, либо по паре (owner, short_link).
    :param session: сессия базы данных
    :param short_link: короткий код
    :param owner: владелец, если ищем по паре
    :return: ссылка или None
    """
    query = select(Link).filter_by(short_link=short_link)
    if owner is not None:
        query = query.filter_by(owner=owner)
    result = await session.execute(query)
    return result.scalars().first()


async def update_link_in_db(session: AsyncSession, current_link: Link, updates: dict) -> Link:
    """
    Частичное обновление ссылки.
    :param session: Сессия базы данных
    :param current_link: Существующая ссылка, которую нужно обновить
    :param updates: Разрешенные поля из LinkUpdate
    """
    for field in LINK_FIELDS:
        if field not in updates:
            continue
        # original_link обязателен
        if field == "original_link" and updates[field] is None:
            continue
        setattr(current_link, field, updates[field])

    await session.commit()
    return current_link


async def delete_link_in_db(session: AsyncSession, current_link: Link):
    await session.delete(current_link)
    await session.commit()
    logger.info("Deleted link %s of %s", current_link.short_link, current_link.owner)


async def add_click(session: AsyncSession, current_link: Link, ip_addr: str, user_device: str) -> List[Click]:
    """
    Добавляет запись о переходе в конец списка кликов ссылки.
    :return: Полный список кликов после добавления
    """
    current_link.clicks.append(
        Click(click_time=utcnow(), ip_addr=ip_addr, user_device=user_device)
    )
    await session.commit()
    return list(current_link.clicks)


def click_to_dict(click: Click) -> dict:
    return {
        "click_time": click.click_time.isoformat(),
        "ip_addr": click.ip_addr,
        "user_device": click.user_device,
    }


def link_to_dict(link: Link) -> dict:
    content = {
        "id": link.id,
        "original_link": link.original_link,
        "short_link": link.short_link,
        "remarks": link.remarks,
        "owner": link.owner,
        "clicks": [click_to_dict(click) for click in link.clicks],
    }
    # Срок действия отдаем, только если он задан
    if link.expiry_date is not None:
        content["expiry_date"] = link.expiry_date.isoformat()
    return content
