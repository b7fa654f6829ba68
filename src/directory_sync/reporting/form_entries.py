"""Form entry feed: recent case entries expanded with their related entities.

Entries are fetched with an expression pipeline and only carry ids for
their form version, categories, workflow, departments, risk model versions
and priority. ``expand`` resolves each kind with one ``?ids=..&ids=..``
request so the feed can be consumed without further lookups.
"""

from collections.abc import Callable, Iterable
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any

import structlog

from ..api.endpoints import DirectoryEndpoints
from ..constants import DEFAULT_CASE_TYPE_ID, DEFAULT_LOOKBACK_DAYS, DEFAULT_VISIBILITY
from ..models.responses import EntryList

if TYPE_CHECKING:
    from ..api.client import DirectoryClient

logger = structlog.get_logger(__name__)

Entry = dict[str, Any]


def unique_ids(values: Iterable[Any]) -> list[str]:
    """
    Flatten one level, drop None, stringify and de-duplicate.

    Order of first appearance is preserved.

    Example:
        unique_ids([1, [2, 3], None, "1"]) -> ["1", "2", "3"]
    """
    seen: dict[str, None] = {}
    for value in values:
        items = value if isinstance(value, list | tuple) else [value]
        for item in items:
            if item is not None:
                seen.setdefault(str(item), None)
    return list(seen)


def _nested(entry: Entry, *keys: str) -> Any:
    value: Any = entry
    for key in keys:
        if not isinstance(value, dict):
            return None
        value = value.get(key)
    return value


def _category_field(name: str) -> Callable[[Entry], list[Any]]:
    def extract(entry: Entry) -> list[Any]:
        return [category.get(name) for category in entry.get("categories") or []]

    return extract


# Related entity kinds: feed attribute, endpoint, id extractor
RELATED_KINDS: tuple[tuple[str, str, Callable[[Entry], Any]], ...] = (
    (
        "form_versions",
        DirectoryEndpoints.FORM_VERSIONS,
        lambda e: _nested(e, "formVersion", "formVersionId"),
    ),
    (
        "category_versions",
        DirectoryEndpoints.CATEGORY_VERSIONS,
        _category_field("categoryVersionId"),
    ),
    ("category_groups", DirectoryEndpoints.CATEGORY_GROUPS, _category_field("categoryGroupId")),
    (
        "form_types",
        DirectoryEndpoints.FORM_TYPES,
        lambda e: _nested(e, "formVersion", "formTypeId"),
    ),
    ("workflows", DirectoryEndpoints.WORKFLOWS, lambda e: e.get("workflowId")),
    ("departments", DirectoryEndpoints.DEPARTMENTS_BY_ID, lambda e: e.get("departmentIds")),
    (
        "risk_model_versions",
        DirectoryEndpoints.RISK_MODEL_VERSIONS,
        lambda e: e.get("riskVersionModelIds"),
    ),
    ("priorities", DirectoryEndpoints.PRIORITIES, lambda e: e.get("priorityId")),
)


@dataclass
class FormEntryFeed:
    """Form entries together with every entity they reference."""

    entries: list[Entry] = field(default_factory=list)
    form_versions: list[Entry] = field(default_factory=list)
    category_versions: list[Entry] = field(default_factory=list)
    category_groups: list[Entry] = field(default_factory=list)
    form_types: list[Entry] = field(default_factory=list)
    workflows: list[Entry] = field(default_factory=list)
    departments: list[Entry] = field(default_factory=list)
    risk_model_versions: list[Entry] = field(default_factory=list)
    priorities: list[Entry] = field(default_factory=list)

    def counts(self) -> dict[str, int]:
        return {name: len(items) for name, items in asdict(self).items()}

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def lookback_start(days: int, now: datetime | None = None) -> str:
    """ISO-8601 UTC timestamp (millisecond precision, Z suffix) ``days`` ago."""
    moment = (now or datetime.now(UTC)) - timedelta(days=days)
    return moment.astimezone(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def build_pipeline(
    case_type_id: str, visibility: str, start: str
) -> dict[str, list[dict[str, Any]]]:
    """Expression pipeline selecting entries registered since ``start``."""
    return {
        "pipeline": [
            {
                "$select": {
                    "caseTypeId": {"$eq": case_type_id},
                    "visibility": visibility,
                    "registeredOnDate": {"preset": "CUSTOM", "start": {"$gte": start}},
                }
            }
        ]
    }


class FormEntryReporter:
    """Fetch recent form entries and resolve their references."""

    def __init__(self, client: "DirectoryClient"):
        self.client = client

    async def fetch_entries(
        self,
        department_id: str,
        case_type_id: str = DEFAULT_CASE_TYPE_ID,
        visibility: str = DEFAULT_VISIBILITY,
        days: int = DEFAULT_LOOKBACK_DAYS,
        now: datetime | None = None,
    ) -> list[Entry]:
        """Entries registered in the last ``days`` days for a department tree."""
        if days < 0:
            raise ValueError("days must be >= 0")
        body = build_pipeline(case_type_id, visibility, lookback_start(days, now))
        data = await self.client.post(
            DirectoryEndpoints.EXPRESSION_EXECUTE,
            json=body,
            params={"departmentId": department_id},
        )
        if isinstance(data, dict):
            data = data.get("entries")
        entries = [entry for entry in data or [] if isinstance(entry, dict)]
        logger.info(
            "Fetched form entries",
            department_id=department_id,
            days=days,
            count=len(entries),
        )
        return entries

    async def _fetch_by_ids(self, endpoint: str, ids: list[str]) -> list[Entry]:
        if not ids:
            return []
        data = await self.client.get(endpoint, params={"ids": ids})
        return EntryList.model_validate(data or {}).entries

    async def expand(self, entries: list[Entry]) -> FormEntryFeed:
        """Resolve every related entity kind referenced by ``entries``."""
        feed = FormEntryFeed(entries=list(entries))
        if not entries:
            return feed

        for name, endpoint, extract in RELATED_KINDS:
            ids = unique_ids(extract(entry) for entry in entries)
            items = await self._fetch_by_ids(endpoint, ids)
            setattr(feed, name, items)
            logger.debug("Expanded related entities", kind=name, ids=len(ids), found=len(items))

        return feed

    async def build_feed(
        self,
        department_id: str,
        case_type_id: str = DEFAULT_CASE_TYPE_ID,
        visibility: str = DEFAULT_VISIBILITY,
        days: int = DEFAULT_LOOKBACK_DAYS,
    ) -> FormEntryFeed:
        """fetch_entries followed by expand."""
        entries = await self.fetch_entries(department_id, case_type_id, visibility, days)
        return await self.expand(entries)
