import logging

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import IntegrityError

from datetime import timedelta

from src.auth import services
from src.auth.models import UserCreate, UserLogin, UserUpdate
from src.config import ACCESS_TOKEN_EXPIRE_MINUTES
from src.database import get_db

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/register")
async def register(user_data: UserCreate, db: AsyncSession = Depends(get_db)):
    """
        Регистрация нового пользователя.

        :param username: Имя пользователя
        :param email: Электронная почта
        :param phoneno: Телефон, необязательно
        :param password: Пароль
        :return: Сообщение об успешной регистрации
    """
    conflict = HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail=f"{user_data.username} or {user_data.email} already exists"
    )
    try:
        existing_user = await services.find_conflicting_user(db, user_data.username, user_data.email)
        if existing_user:
            raise conflict

        await services.create_user(
            db,
            username=user_data.username,
            email=user_data.email,
            password=user_data.password,
            phoneno=user_data.phoneno,
        )
        return JSONResponse(
            status_code=status.HTTP_201_CREATED,
            content={"message": "User registered successfully"}
        )
    except HTTPException:
        raise
    except IntegrityError:
        # Параллельная регистрация с теми же данными
        await db.rollback()
        raise conflict
    except Exception:
        logger.exception("Failed to register %s", user_data.username)
        raise HTTPException(status_code=500, detail="Server error")


@router.post("/login")
async def login(credentials: UserLogin, db: AsyncSession = Depends(get_db)):
    """
        Аутентификация пользователя.

        :param username: Имя пользователя
        :param password: Пароль
        :return: Подписанный токен доступа
    """
    try:
        user = await services.authenticate_user(db, credentials.username, credentials.password)
        if not user:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Invalid credentials"
            )

        token = services.create_access_token(
            data={"sub": str(user.id)},
            expires_delta=timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
        )
        return {"token": token}
    except HTTPException:
        raise
    except Exception:
        logger.exception("Login failed for %s", credentials.username)
        raise HTTPException(status_code=500, detail="Server error")


@router.get("/fetchuser/{username}")
async def fetch_user(username: str, db: AsyncSession = Depends(get_db)):
    """
        Получение информации о пользователе.

        :param username: Имя пользователя
        :return: Информация о пользователе без хеша пароля
    """
    try:
        user = await services.get_user_by_username(db, username)
        if not user:
            raise HTTPException(status_code=404, detail="User not found")
        return services.user_to_dict(user)
    except HTTPException:
        raise
    except Exception:
        logger.exception("Failed to fetch user %s", username)
        raise HTTPException(status_code=500, detail="Server error")


@router.put("/edituser/{username}")
async def edit_user(username: str, user_data: UserUpdate, db: AsyncSession = Depends(get_db)):
    """
        Редактирование пользователя.

        Если меняется username или email, проверяем, что они не заняты другим
        пользователем. При смене username владелец переименовывается у всех
        его ссылок.

        :param username: Текущее имя пользователя
        :return: Обновленный пользователь
    """
    updates = user_data.model_dump(exclude_unset=True)
    try:
        if updates.get("username") or updates.get("email"):
            existing_user = await services.find_conflicting_user(
                db,
                updates.get("username"),
                updates.get("email"),
                exclude_username=username
            )
            if existing_user:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="Username/Email already exists"
                )

        user = await services.get_user_by_username(db, username)
        if not user:
            raise HTTPException(status_code=404, detail=f"{username} not found")

        user = await services.update_user(db, user, updates)
        return services.user_to_dict(user)
    except HTTPException:
        raise
    except IntegrityError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Username/Email already exists"
        )
    except Exception:
        logger.exception("Failed to edit user %s", username)
        raise HTTPException(status_code=500, detail="Server error")


@router.delete("/deleteuser/{username}")
async def delete_user(username: str, db: AsyncSession = Depends(get_db)):
    """
        Удаление аккаунта вместе со всеми ссылками пользователя.

        :param username: Имя пользователя
        :return: Сообщение об удалении
    """
    try:
        user = await services.get_user_by_username(db, username)
        if not user:
            raise HTTPException(status_code=404, detail="User not found")

        await services.delete_user(db, user)
        return {"message": "User and associated links deleted successfully"}
    except HTTPException:
        raise
    except Exception:
        logger.exception("Failed to delete user %s", username)
        raise HTTPException(status_code=500, detail="Server error")
