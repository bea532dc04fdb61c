import uuid

from sqlalchemy import ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from farmestly.db.session import Base, TimestampMixin, UUIDPrimaryKey
from farmestly.domain.enums import FarmAssetType


class FarmAsset(UUIDPrimaryKey, TimestampMixin, Base):
    """Named farm object (field, machine, attachment, tool) using single-table inheritance."""

    __tablename__ = "farm_assets"

    account_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("accounts.id"), index=True)
    name: Mapped[str] = mapped_column(String(255))
    asset_type: Mapped[str] = mapped_column(String(20))

    __mapper_args__ = {
        "polymorphic_on": "asset_type",
        "polymorphic_identity": "asset",
    }


class FarmField(FarmAsset):
    __mapper_args__ = {"polymorphic_identity": FarmAssetType.FIELD.value}


class Machine(FarmAsset):
    __mapper_args__ = {"polymorphic_identity": FarmAssetType.MACHINE.value}


class Attachment(FarmAsset):
    __mapper_args__ = {"polymorphic_identity": FarmAssetType.ATTACHMENT.value}


class Tool(FarmAsset):
    __mapper_args__ = {"polymorphic_identity": FarmAssetType.TOOL.value}
