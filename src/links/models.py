from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Optional
from datetime import datetime, timezone


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    # В базе время хранится без часового пояса, в UTC
    if value is not None and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


class LinkCreate(BaseModel):
    original_link: str = Field(..., min_length=1)
    remarks: Optional[str] = None
    expiry_date: Optional[datetime] = None
    owner: str = Field(..., min_length=1)

    @field_validator("expiry_date")
    @classmethod
    def normalize_expiry(cls, value: Optional[datetime]) -> Optional[datetime]:
        return to_naive_utc(value)


class LinkUpdate(BaseModel):
    """Поля ссылки, которые разрешено менять через PUT /link/{owner}/{hash}."""
    original_link: Optional[str] = Field(None, min_length=1)
    remarks: Optional[str] = None
    expiry_date: Optional[datetime] = None

    @field_validator("expiry_date")
    @classmethod
    def normalize_expiry(cls, value: Optional[datetime]) -> Optional[datetime]:
        return to_naive_utc(value)


class ClickData(BaseModel):
    ip_addr: str
    user_device: str


class ClickCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    click_data: ClickData = Field(..., alias="clickData")
