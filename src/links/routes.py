import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse

from sqlalchemy.ext.asyncio import AsyncSession

from typing import Optional

from src.links.models import LinkCreate, LinkUpdate, ClickCreate
from src.database import get_db
from src.links.services import create_link_in_db, get_links, get_link, update_link_in_db, \
    delete_link_in_db, add_click, link_to_dict, click_to_dict

router = APIRouter()
logger = logging.getLogger(__name__)


def link_not_found() -> HTTPException:
    return HTTPException(status_code=404, detail="Link not found")


@router.post("/createlinks")
async def create_link(link_data: LinkCreate, db: AsyncSession = Depends(get_db)):
    """
        Создание короткой ссылки.
        Принимает JSON с полями:
        :param original_link: URL для сокращения,
        :param remarks: Необязательное поле - заметка к ссылке,
        :param expiry_date: Необязательное поле - дата истечения срока действия,
        :param owner: Имя пользователя-владельца.

        Короткий код строится из владельца, URL и текущего времени и
        перегенерируется, пока не окажется свободным.

        :return: JSON с полями message и short_link
"""
    try:
        new_link = await create_link_in_db(
            session=db,
            original_link=link_data.original_link,
            owner=link_data.owner,
            remarks=link_data.remarks,
            expiry_date=link_data.expiry_date,
        )
        content = {
            "message": "Link created successfully",
            "short_link": new_link.short_link
        }
        return JSONResponse(status_code=status.HTTP_201_CREATED, content=content)

    except Exception:
        logger.exception("Failed to create link for %s", link_data.owner)
        raise HTTPException(status_code=500, detail="Server error")


@router.get("/links")
async def list_links(username: Optional[str] = None, db: AsyncSession = Depends(get_db)):
    """
        Список ссылок.
        :param username: Необязательный фильтр по владельцу
        :return: Массив ссылок
    """
    try:
        links = await get_links(db, owner=username)
        return [link_to_dict(link) for link in links]
    except Exception:
        logger.exception("Failed to list links")
        raise HTTPException(status_code=500, detail="Server error")


@router.get("/link/{owner}/{short_link}")
async def get_owner_link(owner: str, short_link: str, db: AsyncSession = Depends(get_db)):
    """
        Получение ссылки по владельцу и короткому коду.
    """
    try:
        link = await get_link(db, short_link, owner=owner)
        if not link:
            raise link_not_found()
        return link_to_dict(link)
    except HTTPException:
        raise
    except Exception:
        logger.exception("Failed to fetch link %s/%s", owner, short_link)
        raise HTTPException(status_code=500, detail="Server error")


@router.get("/link/{short_link}")
async def get_link_by_code(short_link: str, db: AsyncSession = Depends(get_db)):
    """
        Получение ссылки только по короткому коду.
    """
    try:
        link = await get_link(db, short_link)
        if not link:
            raise link_not_found()
        return link_to_dict(link)
    except HTTPException:
        raise
    except Exception:
        logger.exception("Failed to fetch link %s", short_link)
        raise HTTPException(status_code=500, detail="Server error")


@router.put("/link/{owner}/{short_link}")
async def update_link(
        owner: str,
        short_link: str,
        link_data: LinkUpdate,
        db: AsyncSession = Depends(get_db),
):
    """
    Частичное обновление ссылки.
    :param owner: Владелец ссылки
    :param short_link: Короткий код ссылки
    :return: Обновленная ссылка
    """
    try:
        link = await get_link(db, short_link, owner=owner)
        if not link:
            raise link_not_found()

        link = await update_link_in_db(db, link, link_data.model_dump(exclude_unset=True))
        return link_to_dict(link)

    except HTTPException:
        raise
    except Exception:
        logger.exception("Failed to update link %s/%s", owner, short_link)
        raise HTTPException(status_code=500, detail="Server error")


@router.delete("/link/{owner}/{short_link}")
async def delete_link(owner: str, short_link: str, db: AsyncSession = Depends(get_db)):
    """
        Удаляет ссылку вместе с ее кликами.
        :param owner: Владелец ссылки
        :param short_link: Короткий код ссылки
        :return: Сообщение об удалении
    """
    try:
        link = await get_link(db, short_link, owner=owner)
        if not link:
            raise link_not_found()

        await delete_link_in_db(db, link)
        return {"message": "Link deleted successfully"}
    except HTTPException:
        raise
    except Exception:
        logger.exception("Failed to delete link %s/%s", owner, short_link)
        raise HTTPException(status_code=500, detail="Server error")


@router.post("/editclick/{short_link}")
@router.post("/editclick/{short_link}/", include_in_schema=False)
async def edit_click(short_link: str, click: ClickCreate, db: AsyncSession = Depends(get_db)):
    """
    Добавление записи о переходе по ссылке.
    :param short_link: Короткий код ссылки
    :return: Сообщение и полный список кликов
    """
    try:
        link = await get_link(db, short_link)
        if not link:
            raise link_not_found()

        clicks = await add_click(db, link, click.click_data.ip_addr, click.click_data.user_device)
        return {
            "message": "Click data added successfully",
            "clicks": [click_to_dict(item) for item in clicks]
        }
    except HTTPException:
        raise
    except Exception:
        logger.exception("Failed to add click to %s", short_link)
        raise HTTPException(status_code=500, detail="Server error")


@router.get("/get-ip")
async def get_ip(request: Request):
    """Диагностика: IP клиента с учетом X-Forwarded-For."""
    forwarded = request.headers.get("x-forwarded-for")
    ip = forwarded or (request.client.host if request.client else None)
    return {"ip": ip}
