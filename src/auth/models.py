from pydantic import BaseModel, Field, field_validator
from typing import Optional, Union


class UserCreate(BaseModel):
    username: str = Field(..., min_length=1)
    email: str = Field(..., min_length=1)
    phoneno: Optional[str] = None
    password: str = Field(..., min_length=1)

    @field_validator("phoneno", mode="before")
    @classmethod
    def phone_to_str(cls, value: Union[str, int, None]) -> Optional[str]:
        # Телефон может прийти числом
        return None if value is None else str(value)


class UserLogin(BaseModel):
    username: str
    password: str


class UserUpdate(BaseModel):
    """Поля пользователя, которые разрешено менять через /edituser."""
    username: Optional[str] = Field(None, min_length=1)
    email: Optional[str] = Field(None, min_length=1)
    phoneno: Optional[str] = None
    password: Optional[str] = Field(None, min_length=1)

    @field_validator("phoneno", mode="before")
    @classmethod
    def phone_to_str(cls, value: Union[str, int, None]) -> Optional[str]:
        return None if value is None else str(value)
