from typing import Optional

from sqlalchemy import Boolean, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from farmestly.db.session import Base, TimestampMixin, UUIDPrimaryKey


class Account(UUIDPrimaryKey, TimestampMixin, Base):
    """A farm account (tenant). Owned by the account service; read-only here."""

    __tablename__ = "accounts"

    farm_name: Mapped[str] = mapped_column(String(255), default="Farm")
    farm_logo: Mapped[Optional[str]] = mapped_column(Text, default=None)  # data URI
    email: Mapped[Optional[str]] = mapped_column(String(320), default=None)
    email_verified: Mapped[bool] = mapped_column(Boolean, default=False)
