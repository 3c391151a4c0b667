"""
Admin settings row access.
"""
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from models import AdminSettings, SETTINGS_ROW_ID


class SettingsRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self) -> Optional[AdminSettings]:
        return await self.session.get(AdminSettings, SETTINGS_ROW_ID)

    async def get_retention_days(self, default: int) -> int:
        """Configured data retention in days, or ``default`` when unset."""
        row = await self.get()
        if row is None or not row.data_retention_days:
            return default
        return row.data_retention_days

    async def set_retention_days(self, days: int) -> AdminSettings:
        row = await self.get()
        if row is None:
            row = AdminSettings(id=SETTINGS_ROW_ID, data_retention_days=days)
            self.session.add(row)
        else:
            row.data_retention_days = days
        await self.session.flush()
        return row
