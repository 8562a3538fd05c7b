from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Text, func
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


def utcnow() -> datetime:
    """Текущее время в UTC без tzinfo, в таком виде оно хранится в базе."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class User(Base):
    __tablename__ = 'user'

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String, unique=True, nullable=False, index=True)
    email = Column(String, unique=True, nullable=False)
    phoneno = Column(String, nullable=True)
    hashed_password = Column(String, nullable=False)
    registered_at = Column(DateTime, server_default=func.now(), nullable=False)


class Link(Base):
    __tablename__ = 'link'

    id = Column(Integer, primary_key=True, index=True)
    original_link = Column(Text, nullable=False)
    short_link = Column(String(8), unique=True, nullable=False, index=True)
    remarks = Column(Text, nullable=True)
    expiry_date = Column(DateTime, nullable=True)
    # Копия username владельца, не внешний ключ
    owner = Column(String, nullable=False, index=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    clicks = relationship(
        "Click",
        back_populates="link",
        order_by="Click.id",
        cascade="all, delete-orphan",
        lazy="selectin",
    )


class Click(Base):
    __tablename__ = 'click'

    id = Column(Integer, primary_key=True)
    link_id = Column(Integer, ForeignKey("link.id", ondelete="CASCADE"), nullable=False, index=True)
    click_time = Column(DateTime, default=utcnow, nullable=False)
    ip_addr = Column(String, nullable=False)
    user_device = Column(String, nullable=False)

    link = relationship("Link", back_populates="clicks")
