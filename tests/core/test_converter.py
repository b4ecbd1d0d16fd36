"""Tests for reference conversion, per-document processing and multi-document runs.

All registries are in-memory ``FakeRegistry`` instances; no HTTP.
"""

from __future__ import annotations

import asyncio
import logging
import re
from pathlib import Path
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from refswap.config import RunConfig
from refswap.core.converter import convert_projects, convert_reference, process_document
from refswap.core.matcher import select_eligible
from refswap.core.models import OutcomeStatus
from refswap.exceptions import RegistryError
from refswap.project.document import ProjectDocument
from refswap.registry.aggregator import RegistryAggregator
from refswap.registry.base import PackageCandidate
from tests.helpers import FakeRegistry, write_project

NEWTONSOFT = "Newtonsoft.Json, Version=12.0.0, Culture=neutral"


@pytest.fixture
def nuget() -> FakeRegistry:
    return FakeRegistry("nuget.org", {
        "Newtonsoft.Json": ["13.0.3", "12.0.3"],
        "Newtonsoft.Json.Bson": ["1.0.2"],
        "Dapper": ["2.1.24", "2.0.151", "1.50.2"],
    })


def _aggregator(*registries: FakeRegistry) -> RegistryAggregator:
    return RegistryAggregator(registries)


def _package_refs(doc: ProjectDocument) -> dict[str, dict[str, str]]:
    return {
        d.evaluated_include: d.direct_metadata
        for d in doc.items if d.item_type == "PackageReference"
    }


# ---------------------------------------------------------------------------
# Tests: convert_reference
# ---------------------------------------------------------------------------


class TestConvertReference:
    """Tests for converting one declaration."""

    def test_newtonsoft_scenario(self, legacy_project: Path, nuget: FakeRegistry) -> None:
        doc = ProjectDocument.load(legacy_project)
        (reference,) = select_eligible(doc)
        outcome = asyncio.run(convert_reference(doc, reference, _aggregator(nuget)))

        assert outcome.status is OutcomeStatus.CONVERTED
        assert outcome.package_id == "Newtonsoft.Json"
        assert outcome.version == "13.0.3"
        assert _package_refs(doc) == {"Newtonsoft.Json": {"Version": "13.0.3"}}
        assert NEWTONSOFT not in [d.evaluated_include for d in doc.items]
        assert nuget.queries == ["Newtonsoft.Json"]

    def test_first_listed_version_selected(self, legacy_project: Path) -> None:
        registry = FakeRegistry("feed", {"Newtonsoft.Json": ["9.0.1", "13.0.3", "11.0.2"]})
        doc = ProjectDocument.load(legacy_project)
        (reference,) = select_eligible(doc)
        outcome = asyncio.run(convert_reference(doc, reference, _aggregator(registry)))
        assert outcome.version == "9.0.1"

    def test_no_candidate_leaves_document_unchanged(self, legacy_project: Path) -> None:
        registry = FakeRegistry("feed", {"Newtonsoft.Json.Bson": ["1.0.2"]})
        doc = ProjectDocument.load(legacy_project)
        before = doc.to_text()
        (reference,) = select_eligible(doc)
        outcome = asyncio.run(convert_reference(doc, reference, _aggregator(registry)))

        assert outcome.status is OutcomeStatus.SKIPPED_NO_PACKAGE
        assert doc.to_text() == before
        assert not doc.modified

    def test_empty_version_list_skips_with_warning(
        self, legacy_project: Path, caplog: pytest.LogCaptureFixture
    ) -> None:
        registry = FakeRegistry("feed", {"Newtonsoft.Json": []})
        doc = ProjectDocument.load(legacy_project)
        before = doc.to_text()
        (reference,) = select_eligible(doc)
        with caplog.at_level(logging.WARNING, logger="refswap"):
            outcome = asyncio.run(convert_reference(doc, reference, _aggregator(registry)))

        assert outcome.status is OutcomeStatus.SKIPPED_NO_VERSIONS
        assert outcome.package_id == "Newtonsoft.Json"
        assert "Failed to retrieve any versions for Newtonsoft.Json" in caplog.text
        assert doc.to_text() == before
        assert _package_refs(doc) == {}

    def test_lazy_version_fetch(self, legacy_project: Path) -> None:
        async def _versions() -> list[str]:
            return ["13.0.3"]

        candidate = PackageCandidate(title="Newtonsoft.Json", fetch_versions=_versions)
        doc = ProjectDocument.load(legacy_project)
        (reference,) = select_eligible(doc)
        aggregator = _aggregator()
        with patch.object(aggregator, "find_package", new_callable=AsyncMock, return_value=candidate):
            outcome = asyncio.run(convert_reference(doc, reference, aggregator))
        assert outcome.version == "13.0.3"

    def test_later_registry_not_queried(self, legacy_project: Path, nuget: FakeRegistry) -> None:
        mirror = FakeRegistry("mirror", {"Newtonsoft.Json": ["1.0.0"]})
        doc = ProjectDocument.load(legacy_project)
        (reference,) = select_eligible(doc)
        outcome = asyncio.run(convert_reference(doc, reference, _aggregator(nuget, mirror)))
        assert outcome.registry_name == "nuget.org"
        assert mirror.queries == []


# ---------------------------------------------------------------------------
# Tests: process_document
# ---------------------------------------------------------------------------


class TestProcessDocument:
    """Tests for the per-document driver."""

    def test_converts_and_saves(self, sdk_project: Path, nuget: FakeRegistry) -> None:
        report = asyncio.run(process_document(sdk_project, RunConfig(), _aggregator(nuget)))

        assert report.saved
        assert [o.status for o in report.outcomes] == [
            OutcomeStatus.CONVERTED, OutcomeStatus.SKIPPED_NO_PACKAGE,
        ]
        doc = ProjectDocument.load(sdk_project)
        assert _package_refs(doc) == {
            "Dapper": {"Version": "2.1.24"},
            "Serilog": {"Version": "3.1.1"},
            "Xunit": {"Version": "2.6.0"},
        }
        references = [d.evaluated_include for d in doc.items if d.item_type == "Reference"]
        assert references == ["Internal.Tools", "Legacy.Native"]

    def test_saved_exactly_once(self, legacy_project: Path, nuget: FakeRegistry) -> None:
        config = RunConfig(include_without_hint_path=True)
        with patch.object(ProjectDocument, "save", autospec=True) as save:
            report = asyncio.run(process_document(legacy_project, config, _aggregator(nuget)))
        assert save.call_count == 1
        assert len(report.outcomes) == 3

    def test_no_changes_no_save(self, legacy_project: Path) -> None:
        original = legacy_project.read_bytes()
        report = asyncio.run(
            process_document(legacy_project, RunConfig(), _aggregator(FakeRegistry("empty")))
        )
        assert not report.saved
        assert legacy_project.read_bytes() == original

    def test_pattern_excludes_before_registry(self, legacy_project: Path, nuget: FakeRegistry) -> None:
        config = RunConfig(reference_pattern=re.compile(r"^System\."))
        report = asyncio.run(process_document(legacy_project, config, _aggregator(nuget)))
        assert report.outcomes == []
        assert nuget.queries == []

    def test_idempotent_second_run(self, legacy_project: Path, nuget: FakeRegistry) -> None:
        aggregator = _aggregator(nuget)
        first = asyncio.run(process_document(legacy_project, RunConfig(), aggregator))
        converted = legacy_project.read_bytes()
        second = asyncio.run(process_document(legacy_project, RunConfig(), aggregator))

        assert first.saved and len(first.converted) == 1
        assert second.outcomes == [] and not second.saved
        assert legacy_project.read_bytes() == converted

    def test_global_properties_reach_loader(self, tmp_path: Path, nuget: FakeRegistry) -> None:
        path = write_project(tmp_path, "Props.csproj", (
            "<Project>\n"
            "  <ItemGroup>\n"
            '    <Reference Include="Dapper">\n'
            "      <HintPath>$(DapperPath)</HintPath>\n"
            "    </Reference>\n"
            "  </ItemGroup>\n"
            "</Project>\n"
        ))
        without = asyncio.run(process_document(path, RunConfig(), _aggregator(nuget)))
        assert without.outcomes == []

        config = RunConfig(global_properties={"DapperPath": "lib\\Dapper.dll"})
        report = asyncio.run(process_document(path, config, _aggregator(nuget)))
        assert [o.version for o in report.converted] == ["2.1.24"]

    def test_load_failure_reported(self, tmp_path: Path, nuget: FakeRegistry) -> None:
        report = asyncio.run(
            process_document(tmp_path / "Missing.csproj", RunConfig(), _aggregator(nuget))
        )
        assert report.failed
        assert "Missing.csproj" in (report.error or "")
        assert not report.saved

    def test_save_failure_reported(self, legacy_project: Path, nuget: FakeRegistry) -> None:
        with patch.object(ProjectDocument, "save", side_effect=PermissionError("read-only")):
            report = asyncio.run(process_document(legacy_project, RunConfig(), _aggregator(nuget)))
        assert report.failed
        assert "read-only" in (report.error or "")


# ---------------------------------------------------------------------------
# Tests: convert_projects
# ---------------------------------------------------------------------------


class TestConvertProjects:
    """Tests for concurrent multi-document runs."""

    def test_bad_document_does_not_affect_good_one(
        self, tmp_path: Path, legacy_project: Path, nuget: FakeRegistry
    ) -> None:
        missing = tmp_path / "nope" / "Missing.csproj"
        reports = asyncio.run(
            convert_projects([missing, legacy_project], RunConfig(), _aggregator(nuget))
        )
        assert [r.path for r in reports] == [missing, legacy_project]
        assert reports[0].failed
        assert reports[1].saved and not reports[1].failed
        assert "Newtonsoft.Json" in _package_refs(ProjectDocument.load(legacy_project))

    def test_documents_converted_independently(
        self, legacy_project: Path, sdk_project: Path, nuget: FakeRegistry
    ) -> None:
        reports = asyncio.run(
            convert_projects([legacy_project, sdk_project], RunConfig(), _aggregator(nuget))
        )
        assert [len(r.converted) for r in reports] == [1, 1]
        assert all(r.saved for r in reports)

    def test_builds_aggregator_from_config(self, legacy_project: Path) -> None:
        with patch("refswap.core.converter.RegistryAggregator.from_endpoints") as factory:
            factory.return_value = _aggregator(FakeRegistry("empty"))
            asyncio.run(convert_projects([legacy_project], RunConfig()))
        (endpoints, client), _ = factory.call_args
        assert endpoints == RunConfig().endpoints
        assert isinstance(client, httpx.AsyncClient)
        assert client.is_closed

    def test_version_listing_failure_isolated(
        self, legacy_project: Path, sdk_project: Path, nuget: FakeRegistry
    ) -> None:
        async def _unavailable() -> list[str]:
            raise RegistryError("feed does not expose a PackageBaseAddress resource")

        broken = PackageCandidate(title="Newtonsoft.Json", registry_name="feed",
                                  fetch_versions=_unavailable)
        aggregator = _aggregator(nuget)
        real_find = aggregator.find_package

        async def _find(name: str, include_prerelease: bool = False) -> PackageCandidate | None:
            if name == "Newtonsoft.Json":
                return broken
            return await real_find(name, include_prerelease)

        original = legacy_project.read_bytes()
        with patch.object(aggregator, "find_package", side_effect=_find):
            reports = asyncio.run(
                convert_projects([legacy_project, sdk_project], RunConfig(), aggregator)
            )

        assert [o.status for o in reports[0].outcomes] == [OutcomeStatus.SKIPPED_REGISTRY_ERROR]
        assert not reports[0].saved and not reports[0].failed
        assert legacy_project.read_bytes() == original
        assert [o.version for o in reports[1].converted] == ["2.1.24"]
        assert reports[1].saved

    def test_unexpected_registry_error_recorded_on_document(
        self, legacy_project: Path, sdk_project: Path, nuget: FakeRegistry
    ) -> None:
        aggregator = _aggregator(nuget)
        real_find = aggregator.find_package

        async def _find(name: str, include_prerelease: bool = False) -> PackageCandidate | None:
            if name == "Newtonsoft.Json":
                raise RegistryError("feed went away")
            return await real_find(name, include_prerelease)

        with patch.object(aggregator, "find_package", side_effect=_find):
            reports = asyncio.run(
                convert_projects([legacy_project, sdk_project], RunConfig(), aggregator)
            )

        assert reports[0].failed and "feed went away" in (reports[0].error or "")
        assert not reports[0].saved
        assert reports[1].saved and not reports[1].failed
