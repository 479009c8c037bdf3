"""
Platform Identifier Reconciler

Translates WaWi platform ids into BI platform ids. Both systems share the
platform id space, so the mapping is the identity restricted to platforms
that already exist in ``dim_platform``. Lookups return an explicit
``UnmappedPlatform`` instead of ``None`` so callers have to handle the
skip path.
"""

from dataclasses import dataclass
from typing import Dict, Iterable, Union

import structlog

from bisync.sync.records import TargetPlatform, WawiPlatform

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class MappedPlatform:
    source_id: int
    target_id: int


@dataclass(frozen=True)
class UnmappedPlatform:
    source_id: int


PlatformLookup = Union[MappedPlatform, UnmappedPlatform]


class PlatformIdMap:
    """
    Source -> target platform id mapping, built once per run.

    Example:
        id_map = PlatformIdMap.build(source_platforms, await target.list_platforms())
        match = id_map.lookup(sale.platform_id)
        if isinstance(match, UnmappedPlatform):
            ...  # skip the row
    """

    def __init__(self, mapping: Dict[int, int]):
        self._mapping = dict(mapping)

    @classmethod
    def build(
        cls,
        source_platforms: Iterable[WawiPlatform],
        target_platforms: Iterable[TargetPlatform],
    ) -> "PlatformIdMap":
        """
        Build the map from freshly read target state.

        Args:
            source_platforms: WaWi platforms seen in this run
            target_platforms: ``dim_platform`` rows after the platform upsert

        Returns:
            PlatformIdMap: Identity mapping over the target platform ids
        """
        target_ids = {p.platform_id for p in target_platforms}
        mapping = {platform_id: platform_id for platform_id in target_ids}

        missing = sorted({p.platform_id for p in source_platforms} - target_ids)
        if missing:
            logger.warning(
                "Source platforms not present in BI",
                platform_ids=missing,
            )

        return cls(mapping)

    def lookup(self, source_id: int) -> PlatformLookup:
        target_id = self._mapping.get(source_id)
        if target_id is None:
            return UnmappedPlatform(source_id)
        return MappedPlatform(source_id, target_id)

    def __contains__(self, source_id: object) -> bool:
        return source_id in self._mapping

    def __len__(self) -> int:
        return len(self._mapping)
