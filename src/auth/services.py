import logging

from passlib.context import CryptContext

from jose import jwt, JWTError
from typing import Optional, Union

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, delete, or_, and_

from datetime import timedelta, datetime, timezone

from src.models.models import User, Link, Click
from src.config import SECRET_KEY, ALGORITHM


logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

SECRET_KEY: str = SECRET_KEY
ALGORITHM: str = ALGORITHM

USER_FIELDS = ("username", "email", "phoneno")


def get_password_hash(password: str) -> str:
    """Хеширует пароль.

    Args:
        password (str): Пароль для хеширования.

    Returns:
        str: Хешированный пароль.
    """
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Проверяет, соответствует ли пароль его хешу.
    Args:
        plain_password (str): Пароль для проверки.
        hashed_password (str): Хешированный пароль.

    Returns:
        bool: True, если пароль соответствует хешу, False в противном случае.
     """
    return pwd_context.verify(plain_password, hashed_password)


async def get_user_by_username(session: AsyncSession, username: str) -> Optional[User]:
    result = await session.execute(select(User).filter_by(username=username))
    return result.scalars().first()


async def find_conflicting_user(
        session: AsyncSession,
        username: Optional[str],
        email: Optional[str],
        exclude_username: Optional[str] = None
) -> Optional[User]:
    """
        Ищет другого пользователя, у которого уже занят username или email.

        Args:
            session (AsyncSession): Сессия базы данных.
            username (str): Проверяемое имя пользователя.
            email (str): Проверяемая электронная почта.
            exclude_username (str): Пользователь, которого не учитываем (сам редактируемый).

        Returns:
            User: Найденный пользователь или None.
    """
    conditions = []
    if username is not None:
        conditions.append(User.username == username)
    if email is not None:
        conditions.append(User.email == email)
    if not conditions:
        return None

    criteria = or_(*conditions)
    if exclude_username is not None:
        criteria = and_(User.username != exclude_username, criteria)

    query = select(User).filter(criteria)

    result = await session.execute(query)
    return result.scalars().first()


async def create_user(
        session: AsyncSession,
        username: str,
        email: str,
        password: str,
        phoneno: Optional[str] = None
) -> User:
    """Создает нового пользователя

    Args:
        session (AsyncSession): Сессия базы данных.
        username (str): Имя пользователя.
        email (str): Электронная почта пользователя.
        password (str): Пароль пользователя.
        phoneno (str): Телефон, необязательно.

    Returns:
        User: Созданный пользователь.
    """
    user = User(
        username=username,
        email=email,
        phoneno=phoneno,
        hashed_password=get_password_hash(password),
    )
    session.add(user)
    await session.commit()
    logger.info("Registered user %s", username)
    return user


async def authenticate_user(session: AsyncSession, username: str, password: str) -> Union[User, None]:
    """
        Аутентифицирует пользователя

        Args:
            session (AsyncSession): Сессия базы данных.
            username (str): Имя пользователя.
            password (str): Пароль пользователя.

        Returns:
            User: Аутентифицированный пользователь.
    """
    user = await get_user_by_username(session, username)
    if user and verify_password(password, user.hashed_password):
        return user
    return None


def create_access_token(data: dict, expires_delta: timedelta) -> str:
    """
        Создает JWT-токен.

        Args:
            data (dict): Данные для токена.
            expires_delta (timedelta): Время истечения токена.

        Returns:
            str: JWT-токен.
    """
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + expires_delta
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def decode_access_token(token: str) -> Union[str, None]:
    """Декодирует JWT-токен и возвращает идентификатор пользователя."""
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
        return payload.get("sub")
    except JWTError:
        return None


async def update_user(session: AsyncSession, user: User, updates: dict) -> User:
    """
    Обновляет пользователя и переименовывает владельца у его ссылок.

    Пароль хешируется, только если он есть в обновлении. Изменение
    пользователя и ссылок фиксируется одним коммитом.

    :param session: Сессия базы данных
    :param user: Редактируемый пользователь
    :param updates: Разрешенные поля из UserUpdate
    :return: Обновленный пользователь
    """
    old_username = user.username
    try:
        for field in USER_FIELDS:
            # username и email обязательны, null для них игнорируем
            if field in updates and (updates[field] is not None or field == "phoneno"):
                setattr(user, field, updates[field])
        if updates.get("password") is not None:
            user.hashed_password = get_password_hash(updates["password"])

        new_username = updates.get("username")
        if new_username and new_username != old_username:
            await session.execute(
                update(Link).where(Link.owner == old_username).values(owner=new_username)
            )
            logger.info("Renamed owner %s -> %s on links", old_username, new_username)

        await session.commit()
    except Exception:
        await session.rollback()
        raise
    return user


async def delete_user(session: AsyncSession, user: User):
    """
    Удаляет пользователя вместе со всеми его ссылками и их кликами.
    :param session: Сессия базы данных
    :param user: Удаляемый пользователь
    """
    owned = select(Link.id).where(Link.owner == user.username)
    try:
        await session.execute(delete(Click).where(Click.link_id.in_(owned)))
        await session.execute(delete(Link).where(Link.owner == user.username))
        await session.delete(user)
        await session.commit()
    except Exception:
        await session.rollback()
        raise
    logger.info("Deleted user %s and associated links", user.username)


def user_to_dict(user: User) -> dict:
    return {
        "id": user.id,
        "username": user.username,
        "email": user.email,
        "phoneno": user.phoneno,
    }
