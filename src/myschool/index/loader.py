"""Directory loading pipeline."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Sequence

from myschool.config import REGIONS, Region
from myschool.ingestion.neis import NeisClient, NeisError, parse_schools
from myschool.models import IndexEntry, SchoolRecord, Snapshot
from myschool.utils.text import extract_initials

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class LoadStats:
    loaded: Dict[str, int] = field(default_factory=dict)
    failed: List[str] = field(default_factory=list)

    def record(self, region: Region, count: int, *, failed: bool = False) -> None:
        self.loaded[region.code] = count
        if failed:
            self.failed.append(region.code)

    @property
    def total(self) -> int:
        return sum(self.loaded.values())


def build_entry(record: SchoolRecord) -> IndexEntry:
    return IndexEntry(school=record, phonetic_key=extract_initials(record.name))


class RegionalLoader:
    """Fetches every region in parallel and merges them into one snapshot."""

    def __init__(
        self,
        client: NeisClient,
        *,
        regions: Sequence[Region] = REGIONS,
        page_size: int = 1000,
        max_workers: int | None = None,
    ) -> None:
        self.client = client
        self.regions = tuple(regions)
        self.page_size = page_size
        self.max_workers = max_workers or max(len(self.regions), 1)
        self.last_stats = LoadStats()

    def load_all(self) -> Snapshot:
        """Load all regions and return a snapshot stamped with the current time.

        A region that fails part way contributes whatever it fetched before
        the failure; the snapshot is only built once every region is done.
        """
        stats = LoadStats()
        with ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="region") as pool:
            futures = [(region, pool.submit(self._load_region, region)) for region in self.regions]
            entries: List[IndexEntry] = []
            for region, future in futures:
                region_entries, failed = future.result()
                stats.record(region, len(region_entries), failed=failed)
                entries.extend(region_entries)
                if region_entries:
                    LOGGER.info("Loaded %d schools from %s (%s)", len(region_entries), region.name, region.code)

        self.last_stats = stats
        LOGGER.info("Total schools loaded: %d", stats.total)
        return Snapshot(
            entries=tuple(entries),
            loaded_at=datetime.now(timezone.utc),
            region_counts=dict(stats.loaded),
        )

    def load_region(self, region: Region) -> List[IndexEntry]:
        """Page through one region until a short page or a failure."""
        entries, _ = self._load_region(region)
        return entries

    def _load_region(self, region: Region) -> tuple[List[IndexEntry], bool]:
        entries: List[IndexEntry] = []
        page = 1
        while True:
            try:
                rows = self.client.fetch_school_page(region.code, page, self.page_size)
            except NeisError as exc:
                LOGGER.warning(
                    "Stopped loading %s at page %d after %d schools: %s",
                    region.code,
                    page,
                    len(entries),
                    exc,
                )
                return entries, True
            entries.extend(build_entry(record) for record in parse_schools(rows))
            if len(rows) < self.page_size:
                return entries, False
            page += 1
