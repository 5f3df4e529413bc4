"""Client for the NEIS open data hub.

Every NEIS service answers with the same envelope::

    {"schoolInfo": [{"head": [...]}, {"row": [{...}, ...]}]}

and reports "no data" with a top-level ``RESULT`` object instead of the
service key. Rows are decoded through pydantic schemas whose fields all
default to the empty string, so callers only ever see typed values.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, List

import httpx
from pydantic import BaseModel, ConfigDict, Field, field_validator

from myschool.config import DEFAULT_BASE_URL
from myschool.models import MealData, SchoolRecord

LOGGER = logging.getLogger(__name__)

USER_AGENT = "myschool/0.1.0"

_MENU_SEPARATOR = "<br/>"
_CALORIES_RE = re.compile(r"^\s*([-+]?\d+(?:\.\d+)?)")
_MEAL_KEYS = {"조식": "breakfast", "석식": "dinner"}


class NeisError(RuntimeError):
    """Raised when a NEIS request fails or its response cannot be used."""


class NeisDecodeError(NeisError):
    """Raised when a NEIS response body is not a JSON object."""


class _Row(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    @field_validator("*", mode="before")
    @classmethod
    def _text_only(cls, value: Any) -> str:
        return value if isinstance(value, str) else ""


class SchoolRow(_Row):
    code: str = Field(default="", alias="SD_SCHUL_CODE")
    org_code: str = Field(default="", alias="ATPT_OFCDC_SC_CODE")
    name: str = Field(default="", alias="SCHUL_NM")
    address: str = Field(default="", alias="ORG_RDNMA")
    kind: str = Field(default="", alias="SCHUL_KND_SC_NM")

    def to_record(self) -> SchoolRecord | None:
        if not self.code or not self.name:
            return None
        return SchoolRecord(
            code=self.code,
            org_code=self.org_code,
            name=self.name,
            address=self.address,
            kind=self.kind,
        )


class MealRow(_Row):
    date: str = Field(default="", alias="MLSV_YMD")
    meal_type: str = Field(default="", alias="MMEAL_SC_NM")
    menu_detail: str = Field(default="", alias="DDISH_NM")
    calories: str = Field(default="", alias="CAL_INFO")


class TimetableRow(_Row):
    date: str = Field(default="", alias="ALL_TI_YMD")
    period: str = Field(default="", alias="PERIO")
    subject: str = Field(default="", alias="ITRT_CNTNT")


def extract_rows(payload: Dict[str, Any], service: str) -> List[Dict[str, Any]]:
    """Return the ``row`` block of a NEIS envelope, or an empty list."""
    blocks = payload.get(service)
    if not isinstance(blocks, list):
        return []
    for block in blocks:
        if isinstance(block, dict) and isinstance(block.get("row"), list):
            return [row for row in block["row"] if isinstance(row, dict)]
    return []


def parse_schools(rows: List[Dict[str, Any]]) -> List[SchoolRecord]:
    """Decode school rows, dropping those without a code or a name."""
    schools: List[SchoolRecord] = []
    for row in rows:
        record = SchoolRow.model_validate(row).to_record()
        if record is not None:
            schools.append(record)
    return schools


def clean_menu(detail: str) -> List[str]:
    """Split a ``DDISH_NM`` value into dishes without allergy markers."""
    dishes: List[str] = []
    for item in detail.split(_MENU_SEPARATOR):
        cleaned = item.strip()
        while "(" in cleaned:
            start = cleaned.find("(")
            end = cleaned.find(")")
            if end <= start:
                break
            cleaned = cleaned[:start] + cleaned[end + 1 :]
        cleaned = cleaned.strip()
        if cleaned:
            dishes.append(cleaned)
    return dishes


def parse_calories(value: str) -> float:
    match = _CALORIES_RE.match(value)
    return float(match.group(1)) if match else 0.0


def parse_meals(rows: List[Dict[str, Any]]) -> Dict[str, MealData]:
    meals: Dict[str, MealData] = {}
    for row in rows:
        meal = MealRow.model_validate(row)
        key = _MEAL_KEYS.get(meal.meal_type, "lunch")
        meals[key] = MealData(menu=clean_menu(meal.menu_detail), calories=parse_calories(meal.calories))
    return meals


class NeisClient:
    """Thin synchronous wrapper around the NEIS hub endpoints.

    The underlying ``httpx.Client`` is shared and safe to use from the
    loader's worker threads.
    """

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.api_key = api_key
        self._client = httpx.Client(
            base_url=base_url.rstrip("/") + "/",
            headers={"User-Agent": USER_AGENT},
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def _get_json(self, service: str, params: Dict[str, str]) -> Dict[str, Any]:
        query = {"Type": "json", **params}
        if self.api_key:
            query["KEY"] = self.api_key
        try:
            response = self._client.get(service, params=query)
        except httpx.HTTPError as exc:
            raise NeisError(f"{service} request failed: {exc}") from exc
        except RuntimeError as exc:
            # httpx raises RuntimeError once the client has been closed.
            if not self._client.is_closed:
                raise
            raise NeisError(f"{service} request failed: client is closed") from exc
        if response.status_code >= 400:
            raise NeisError(f"{service} returned HTTP {response.status_code}")
        try:
            payload = response.json()
        except ValueError as exc:
            raise NeisDecodeError(f"{service} returned invalid JSON: {exc}") from exc
        if not isinstance(payload, dict):
            raise NeisDecodeError(f"{service} returned {type(payload).__name__}, expected object")
        return payload

    def fetch_school_page(self, region_code: str, page: int, page_size: int = 1000) -> List[Dict[str, Any]]:
        """Fetch one raw page of a region's directory."""
        payload = self._get_json(
            "schoolInfo",
            {
                "pIndex": str(page),
                "pSize": str(page_size),
                "ATPT_OFCDC_SC_CODE": region_code,
            },
        )
        return extract_rows(payload, "schoolInfo")

    def search_school_names(self, query: str, limit: int = 100) -> List[SchoolRecord]:
        """Ask NEIS directly for schools whose name contains ``query``."""
        payload = self._get_json("schoolInfo", {"pSize": str(limit), "SCHUL_NM": f"*{query}*"})
        return parse_schools(extract_rows(payload, "schoolInfo"))

    def fetch_meals(self, org_code: str, school_code: str, date: str) -> Dict[str, MealData]:
        payload = self._get_json(
            "mealServiceDietInfo",
            {
                "ATPT_OFCDC_SC_CODE": org_code,
                "SD_SCHUL_CODE": school_code,
                "MLSV_YMD": date,
            },
        )
        return parse_meals(extract_rows(payload, "mealServiceDietInfo"))

    def fetch_timetable(
        self, org_code: str, school_code: str, grade: str, class_name: str, date: str
    ) -> List[str]:
        """Return the subjects of one class for one day, in period order.

        High school timetables are tried first; elementary timetables are
        used when that answer is unusable.
        """
        params = {
            "ATPT_OFCDC_SC_CODE": org_code,
            "SD_SCHUL_CODE": school_code,
            "GRADE": grade,
            "CLASS_NM": class_name,
            "TI_FROM_YMD": date,
            "TI_TO_YMD": date,
        }
        service = "hisTimetable"
        try:
            payload = self._get_json(service, params)
        except NeisDecodeError as exc:
            LOGGER.debug("Falling back to elsTimetable: %s", exc)
            payload = {}
        if service not in payload:
            service = "elsTimetable"
            payload = self._get_json(service, params)
        rows = extract_rows(payload, service)
        return [TimetableRow.model_validate(row).subject for row in rows]
