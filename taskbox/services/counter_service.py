"""
Sharded task counter for TaskBox.

A project's task count is spread over a fixed number of shard rows so that
frequent increments and decrements do not all contend on one row. Each
write picks a shard uniformly at random and applies an atomic SQL
increment; the count shown to users is the sum over all shards.
"""

import random
from typing import List, Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from taskbox.database import CounterShardORM
from taskbox.logging_config import get_logger
from taskbox.models import SHARD_COUNT, CounterShard
from taskbox.services.errors import InvalidShardError

logger = get_logger(__name__)


class CounterService:
    """
    Service layer for the sharded per-project task counter.

    Shards are created lazily with a count of 0 the first time they are
    written and are only ever removed together, when the project goes away.
    """

    def __init__(
        self,
        session: AsyncSession,
        shard_count: int = SHARD_COUNT,
        rng: Optional[random.Random] = None
    ) -> None:
        """
        Initialize the counter service.

        Args:
            session: Active async database session
            shard_count: Number of shards per project
            rng: Random source used to pick shards (defaults to an unseeded Random)
        """
        self.session = session
        self.shard_count = shard_count
        self._rng = rng or random.Random()

    def _validate_shard_id(self, shard_id: int) -> None:
        if isinstance(shard_id, bool) or not isinstance(shard_id, int):
            raise InvalidShardError(f"Shard id must be an integer, got {shard_id!r}")
        if not 0 <= shard_id < self.shard_count:
            raise InvalidShardError(
                f"Shard id {shard_id} outside range [0, {self.shard_count})"
            )

    def pick_shard(self) -> int:
        """Pick a shard uniformly at random."""
        return self._rng.randrange(self.shard_count)

    async def _ensure_shard(self, project_id: str, shard_id: int) -> None:
        result = await self.session.execute(
            select(CounterShardORM).where(
                CounterShardORM.project_id == project_id,
                CounterShardORM.shard_id == shard_id,
            )
        )
        if result.scalar_one_or_none() is None:
            self.session.add(CounterShardORM(project_id=project_id, shard_id=shard_id, count=0))
            await self.session.flush()
            logger.debug(f"Created counter shard {shard_id} for project {project_id}")

    async def increment(
        self,
        project_id: str,
        delta: int = 1,
        shard_id: Optional[int] = None
    ) -> int:
        """
        Add ``delta`` to one shard of the project's counter.

        Args:
            project_id: Project whose counter changes
            delta: Amount to add (negative to subtract)
            shard_id: Shard to write (random when omitted)

        Returns:
            The shard id that absorbed the write

        Raises:
            InvalidShardError: If shard_id is outside the configured range
        """
        if shard_id is None:
            shard_id = self.pick_shard()
        self._validate_shard_id(shard_id)

        await self._ensure_shard(project_id, shard_id)
        await self.session.execute(
            update(CounterShardORM)
            .where(
                CounterShardORM.project_id == project_id,
                CounterShardORM.shard_id == shard_id,
            )
            .values(count=CounterShardORM.count + delta)
        )
        await self.session.flush()

        logger.debug(f"Counter shard {shard_id} of project {project_id} changed by {delta}")
        return shard_id

    async def decrement(
        self,
        project_id: str,
        amount: int = 1,
        shard_id: Optional[int] = None
    ) -> int:
        """Subtract ``amount`` from one shard; see increment()."""
        return await self.increment(project_id, -amount, shard_id=shard_id)

    async def get_count(self, project_id: str) -> int:
        """
        Sum every shard of the project's counter.

        Returns:
            Total task count (0 when no shard exists yet)
        """
        result = await self.session.execute(
            select(func.coalesce(func.sum(CounterShardORM.count), 0))
            .where(CounterShardORM.project_id == project_id)
        )
        return int(result.scalar_one())

    async def get_shards(self, project_id: str) -> List[CounterShard]:
        """Return the existing shards of a project ordered by shard id."""
        result = await self.session.execute(
            select(CounterShardORM)
            .where(CounterShardORM.project_id == project_id)
            .order_by(CounterShardORM.shard_id)
        )
        return [
            CounterShard(project_id=row.project_id, shard_id=row.shard_id, count=row.count)
            for row in result.scalars().all()
        ]

    async def delete_shards(self, project_id: str) -> int:
        """
        Remove every shard of a project (project teardown only).

        Returns:
            Number of shards removed
        """
        result = await self.session.execute(
            delete(CounterShardORM).where(CounterShardORM.project_id == project_id)
        )
        await self.session.flush()
        logger.info(f"Deleted {result.rowcount} counter shards of project {project_id}")
        return result.rowcount
