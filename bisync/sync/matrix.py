"""
Reference Price Matrix Builder

Makes sure ``product_refprice`` holds a row for every product x platform
pair. Missing pairs are created with a NULL ``ref_price`` in one
insert-or-ignore statement; existing rows, and the prices users entered
on them, are never touched.
"""

from itertools import product
from typing import Iterable

import structlog

from bisync.sync.target import BiTarget

logger = structlog.get_logger(__name__)


class RefPriceMatrixBuilder:
    """Creates the Cartesian product of products and platforms in BI"""

    def __init__(self, target: BiTarget):
        self.target = target

    async def build(self, product_ids: Iterable[int], platform_ids: Iterable[int]) -> int:
        """
        Ensure a pricing row exists for every pair.

        Returns:
            int: Number of pairs covered (existing or newly created)
        """
        pairs = [
            {"product_id": product_id, "platform_id": platform_id}
            for product_id, platform_id in product(
                sorted(set(product_ids)), sorted(set(platform_ids))
            )
        ]
        if not pairs:
            logger.info("No product x platform pairs to ensure")
            return 0

        await self.target.ensure_refprices(pairs)
        logger.info("Ensured product_refprice rows", pairs=len(pairs))
        return len(pairs)
