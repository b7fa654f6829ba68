"""Unit tests for the form entry feed."""

from datetime import UTC, datetime, timedelta, timezone

import pytest

from src.directory_sync.api.endpoints import DirectoryEndpoints
from src.directory_sync.reporting.form_entries import (
    FormEntryFeed,
    FormEntryReporter,
    build_pipeline,
    lookback_start,
    unique_ids,
)

NOW = datetime(2024, 3, 1, 12, 0, tzinfo=UTC)


def entry(**fields):
    base = {
        "id": 1,
        "formVersion": {"formVersionId": 10, "formTypeId": 3},
        "categories": [{"categoryVersionId": 100, "categoryGroupId": 7}],
        "workflowId": 5,
        "departmentIds": ["d1", "d2"],
        "riskVersionModelIds": [40],
        "priorityId": 2,
    }
    base.update(fields)
    return base


class TestHelpers:
    """Test id extraction and request building helpers."""

    def test_unique_ids(self):
        assert unique_ids([1, [2, 3], None, "1", (3, 4)]) == ["1", "2", "3", "4"]

    def test_unique_ids_drops_none_inside_lists(self):
        assert unique_ids([[None, 5], None]) == ["5"]

    def test_lookback_start(self):
        assert lookback_start(60, now=NOW) == "2024-01-01T12:00:00.000Z"

    def test_lookback_start_converts_to_utc(self):
        local = datetime(2024, 3, 1, 14, 0, tzinfo=timezone(timedelta(hours=2)))
        assert lookback_start(0, now=local) == "2024-03-01T12:00:00.000Z"

    def test_build_pipeline(self):
        pipeline = build_pipeline("1", "DEPARTMENT_AND_CHILDREN", "2024-01-01T00:00:00.000Z")

        select = pipeline["pipeline"][0]["$select"]
        assert select["caseTypeId"] == {"$eq": "1"}
        assert select["visibility"] == "DEPARTMENT_AND_CHILDREN"
        assert select["registeredOnDate"] == {
            "preset": "CUSTOM",
            "start": {"$gte": "2024-01-01T00:00:00.000Z"},
        }

    def test_feed_counts(self):
        feed = FormEntryFeed(entries=[{}, {}], priorities=[{}])

        counts = feed.counts()

        assert counts["entries"] == 2
        assert counts["priorities"] == 1
        assert counts["workflows"] == 0
        assert feed.to_dict()["entries"] == [{}, {}]


class TestFormEntryReporter:
    """Test fetching and expanding form entries."""

    async def test_fetch_entries(self, mock_client):
        mock_client.post.return_value = [entry(), "not-an-entry"]
        reporter = FormEntryReporter(mock_client)

        entries = await reporter.fetch_entries("dept-1", days=60, now=NOW)

        assert entries == [entry()]
        endpoint = mock_client.post.call_args.args[0]
        kwargs = mock_client.post.call_args.kwargs
        assert endpoint == DirectoryEndpoints.EXPRESSION_EXECUTE
        assert kwargs["params"] == {"departmentId": "dept-1"}
        select = kwargs["json"]["pipeline"][0]["$select"]
        assert select["registeredOnDate"]["start"]["$gte"] == "2024-01-01T12:00:00.000Z"

    async def test_fetch_entries_accepts_envelope(self, mock_client):
        mock_client.post.return_value = {"entries": [entry(id=2)]}

        entries = await FormEntryReporter(mock_client).fetch_entries("dept-1")

        assert [e["id"] for e in entries] == [2]

    async def test_fetch_entries_handles_empty_body(self, mock_client):
        mock_client.post.return_value = None
        assert await FormEntryReporter(mock_client).fetch_entries("dept-1") == []

    async def test_negative_days_rejected(self, mock_client):
        with pytest.raises(ValueError):
            await FormEntryReporter(mock_client).fetch_entries("dept-1", days=-1)

    async def test_expand_requests_each_kind_once(self, mock_client):
        requested = {}

        async def fake_get(endpoint, params=None):
            requested[endpoint] = params["ids"]
            return {"entries": [{"id": value} for value in params["ids"]]}

        mock_client.get.side_effect = fake_get
        entries = [entry(), entry(id=2, workflowId=6, departmentIds=["d2", "d3"], priorityId=None)]

        feed = await FormEntryReporter(mock_client).expand(entries)

        assert requested[DirectoryEndpoints.FORM_VERSIONS] == ["10"]
        assert requested[DirectoryEndpoints.CATEGORY_VERSIONS] == ["100"]
        assert requested[DirectoryEndpoints.CATEGORY_GROUPS] == ["7"]
        assert requested[DirectoryEndpoints.FORM_TYPES] == ["3"]
        assert requested[DirectoryEndpoints.WORKFLOWS] == ["5", "6"]
        assert requested[DirectoryEndpoints.DEPARTMENTS_BY_ID] == ["d1", "d2", "d3"]
        assert requested[DirectoryEndpoints.RISK_MODEL_VERSIONS] == ["40"]
        assert requested[DirectoryEndpoints.PRIORITIES] == ["2"]
        assert [d["id"] for d in feed.departments] == ["d1", "d2", "d3"]
        assert len(feed.entries) == 2

    async def test_expand_skips_kinds_without_ids(self, mock_client):
        mock_client.get.return_value = {"entries": [{"id": "x"}]}
        bare = {"id": 1, "workflowId": 9}

        feed = await FormEntryReporter(mock_client).expand([bare])

        assert mock_client.get.await_count == 1
        assert mock_client.get.call_args.args[0] == DirectoryEndpoints.WORKFLOWS
        assert feed.workflows == [{"id": "x"}]
        assert feed.form_versions == []

    async def test_expand_empty(self, mock_client):
        feed = await FormEntryReporter(mock_client).expand([])

        assert feed == FormEntryFeed()
        mock_client.get.assert_not_awaited()

    async def test_build_feed(self, mock_client):
        mock_client.post.return_value = {"entries": [{"id": 1, "priorityId": 4}]}
        mock_client.get.return_value = {"entries": [{"id": 4, "name": "High"}]}

        feed = await FormEntryReporter(mock_client).build_feed("dept-1", days=7)

        assert feed.priorities == [{"id": 4, "name": "High"}]
        assert mock_client.post.call_args.kwargs["params"] == {"departmentId": "dept-1"}
