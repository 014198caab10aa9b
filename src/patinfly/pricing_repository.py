# src/patinfly/pricing_repository.py

import logging

from patinfly.database import SystemPricingPlanDatasource
from patinfly.errors import StorageError
from patinfly.models import Plan, SystemPricingPlan
from patinfly.seed import PricingPlanSeedSource

logger = logging.getLogger(__name__)


class SystemPricingPlanRepository:
    """
    Pricing plans come from the entity store, falling back to the bundled seed.
    A snapshot found only in the seed is copied into the store.
    The backend has no pricing endpoint, so this repository never goes remote.
    """

    def __init__(self, store: SystemPricingPlanDatasource, seed: PricingPlanSeedSource):
        self.store = store
        self.seed = seed

    async def _write_back(self, plan: SystemPricingPlan):
        try:
            await self.store.save(plan)
            logger.debug("Copied pricing plan %s from seed into the entity store", plan.version)
        except StorageError as e:
            logger.error("Could not cache pricing plan %s: %s", plan.version, e)

    async def get(self) -> SystemPricingPlan | None:
        plan = await self.store.get_first()
        if plan is not None:
            return plan
        plan = await self.seed.get_first()
        if plan is not None:
            await self._write_back(plan)
        return plan

    async def get_by_version(self, version: str) -> SystemPricingPlan | None:
        plan = await self.store.get_by_version(version)
        if plan is not None:
            return plan
        plan = await self.seed.get_by_key(version)
        if plan is None:
            logger.debug("Pricing plan %s not found", version)
            return None
        await self._write_back(plan)
        return plan

    async def get_plan(self, plan_id: str) -> Plan | None:
        """A single plan from the current snapshot."""
        snapshot = await self.get()
        return snapshot.plan_by_id(plan_id) if snapshot else None

    async def set_pricing_plan(self, plan: SystemPricingPlan) -> bool:
        try:
            await self.store.save(plan)
        except StorageError as e:
            logger.error("Error saving pricing plan %s: %s", plan.version, e)
            return False
        return True

    async def update(self, plan: SystemPricingPlan) -> SystemPricingPlan | None:
        """Rewrites a stored snapshot; None if that version was never stored."""
        try:
            updated = await self.store.update(plan)
        except StorageError as e:
            logger.error("Error updating pricing plan %s: %s", plan.version, e)
            return None
        return plan if updated else None

    async def delete(self, version: str) -> SystemPricingPlan | None:
        plan = await self.store.get_by_version(version)
        if plan is None:
            return None
        await self.store.delete(plan)
        return plan
