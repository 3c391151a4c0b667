"""
Read access to the target configuration store.
"""
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from models import Target


class TargetRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def list_enabled(self) -> list[Target]:
        """Enabled targets in id order."""
        result = await self.session.execute(
            select(Target).where(Target.enabled.is_(True)).order_by(Target.id)
        )
        return list(result.scalars().all())

    async def get(self, target_id: int) -> Optional[Target]:
        return await self.session.get(Target, target_id)

    async def add(
        self,
        name: str,
        host: str,
        protocol: str = "ICMP",
        port: Optional[int] = None,
        enabled: bool = True,
    ) -> Target:
        target = Target(name=name, host=host, protocol=protocol, port=port, enabled=enabled)
        self.session.add(target)
        await self.session.flush()
        return target
