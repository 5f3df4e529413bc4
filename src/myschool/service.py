"""Service object shared by the web app and the CLI."""

from __future__ import annotations

import logging
from typing import Dict, List

from myschool.cache import TTLCache
from myschool.config import AppConfig
from myschool.index.loader import RegionalLoader
from myschool.index.refresh import RefreshCoordinator
from myschool.index.search import Searcher
from myschool.index.snapshot import SnapshotHolder
from myschool.ingestion.neis import NeisClient
from myschool.models import MealData, RefreshStatus, SchoolRecord

LOGGER = logging.getLogger(__name__)


def meals_key(org_code: str, school_code: str, date: str) -> str:
    return f"meals:{org_code}:{school_code}:{date}"


def timetable_key(org_code: str, school_code: str, grade: str, class_name: str, date: str) -> str:
    return f"timetable:{org_code}:{school_code}:{grade}:{class_name}:{date}"


def _copy_meals(meals: Dict[str, MealData]) -> Dict[str, MealData]:
    return {kind: MealData(menu=list(meal.menu), calories=meal.calories) for kind, meal in meals.items()}


class SchoolService:
    """Owns the directory index, the cache and the NEIS client.

    Built once at startup and handed to every caller. Searches, meals and
    timetables share one cache; their key prefixes never overlap.
    """

    def __init__(self, config: AppConfig, *, client: NeisClient | None = None) -> None:
        self.config = config
        self.client = client or NeisClient(
            config.api_key,
            base_url=config.base_url,
            timeout=config.request_timeout,
        )
        self.cache = TTLCache(config.cache_ttl, sweep_interval=config.sweep_interval)
        self.holder = SnapshotHolder()
        self.loader = RegionalLoader(self.client, regions=config.regions, page_size=config.page_size)
        self.coordinator = RefreshCoordinator(self.loader, self.holder, interval=config.refresh_interval)
        self.searcher = Searcher(
            self.holder,
            self.cache,
            self.client,
            max_results=config.max_results,
            fallback_limit=config.fallback_page_size,
            on_cold_start=self.coordinator.refresh_async,
        )

    def start(self) -> None:
        self.cache.start_sweeper()
        self.coordinator.start()

    def close(self) -> None:
        self.coordinator.stop()
        self.cache.stop_sweeper()
        self.client.close()

    def refresh(self) -> bool:
        return self.coordinator.refresh()

    def search(self, query: str) -> List[SchoolRecord]:
        return self.searcher.search(query)

    def all_schools(self) -> List[SchoolRecord]:
        snapshot = self.holder.current()
        return snapshot.schools() if snapshot is not None else []

    def status(self) -> RefreshStatus:
        return self.coordinator.status()

    def get_meals(self, org_code: str, school_code: str, date: str) -> Dict[str, MealData]:
        key = meals_key(org_code, school_code, date)
        cached, found = self.cache.get(key)
        if found and isinstance(cached, dict):
            return _copy_meals(cached)
        LOGGER.debug("Cache miss for %s", key)
        meals = self.client.fetch_meals(org_code, school_code, date)
        # Days NEIS has not published yet are asked for again next time.
        if meals:
            self.cache.put(key, _copy_meals(meals))
        return meals

    def get_timetable(
        self, org_code: str, school_code: str, grade: str, class_name: str, date: str
    ) -> List[str]:
        key = timetable_key(org_code, school_code, grade, class_name, date)
        cached, found = self.cache.get(key)
        if found and isinstance(cached, tuple):
            return list(cached)
        LOGGER.debug("Cache miss for %s", key)
        subjects = tuple(self.client.fetch_timetable(org_code, school_code, grade, class_name, date))
        if subjects:
            self.cache.put(key, subjects)
        return list(subjects)
