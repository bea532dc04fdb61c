import uuid
from dataclasses import dataclass, field
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from farmestly.db.models.account import Account
from farmestly.db.models.farm_asset import FarmAsset
from farmestly.domain.enums import FarmAssetType


@dataclass
class FarmLookups:
    """Id -> display name maps used to label job records in a report."""

    fields: dict[uuid.UUID, str] = field(default_factory=dict)
    machines: dict[uuid.UUID, str] = field(default_factory=dict)
    attachments: dict[uuid.UUID, str] = field(default_factory=dict)
    tools: dict[uuid.UUID, str] = field(default_factory=dict)


class AccountRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_id(self, account_id: uuid.UUID) -> Optional[Account]:
        result = await self._session.execute(select(Account).where(Account.id == account_id))
        return result.scalar_one_or_none()

    async def get_lookups(self, account_id: uuid.UUID) -> FarmLookups:
        result = await self._session.execute(
            select(FarmAsset.id, FarmAsset.asset_type, FarmAsset.name).where(FarmAsset.account_id == account_id)
        )
        lookups = FarmLookups()
        buckets = {
            FarmAssetType.FIELD.value: lookups.fields,
            FarmAssetType.MACHINE.value: lookups.machines,
            FarmAssetType.ATTACHMENT.value: lookups.attachments,
            FarmAssetType.TOOL.value: lookups.tools,
        }
        for asset_id, asset_type, name in result.all():
            bucket = buckets.get(asset_type)
            if bucket is not None:
                bucket[asset_id] = name
        return lookups
