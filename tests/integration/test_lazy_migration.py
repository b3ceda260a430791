"""
End-to-end tests for lazy migration through the in-memory harness.

A read through the federated query service returns the legacy version at
once and enqueues a migration; draining the queue moves the content into
the destination storage and the metadata into the primary store.
"""

import pytest

from lazymigrate.migration.exceptions import PartialMigrationFailure
from lazymigrate.migration.trigger import AlreadyMigratedPolicy, MigrationDecision
from lazymigrate.resources.models import FileMetadata, FileSet, Use, Work
from lazymigrate.storage.in_memory import MEMORY_SCHEME
from lazymigrate.testing import InMemoryMigrationHarness
from tests.fixtures import legacy_file, legacy_file_set

pytestmark = pytest.mark.integration

RESOURCE_ID = "fs1abc"
PDF_ONE = b"%PDF-1.7 first"
PDF_TWO = b"%PDF-1.7 second"


def seed_file_set(harness: InMemoryMigrationHarness, *, serve_second: bool = True) -> None:
    harness.seed_legacy(
        legacy_file_set(RESOURCE_ID),
        legacy_file("f1", RESOURCE_ID),
        legacy_file("f2", RESOURCE_ID),
    )
    harness.serve_legacy("legacy://legacy.example/files/f1", PDF_ONE)
    if serve_second:
        harness.serve_legacy("legacy://legacy.example/files/f2", PDF_TWO)


def write_thumbnail(harness: InMemoryMigrationHarness, resource_id: str = RESOURCE_ID) -> None:
    enumerator = harness.stack.worker.derivative_paths
    assert enumerator is not None
    path = enumerator.path_for(resource_id, "thumbnail", "jpg")
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(b"thumbnail")


async def primary_files(harness: InMemoryMigrationHarness, file_set: FileSet) -> list[FileMetadata]:
    return await harness.primary.query_service.find_many_file_metadata_by_ids(file_set.file_ids)


class TestLazyMigration:
    """Reading a legacy file set migrates it in the background."""

    async def test_read_returns_legacy_version_and_enqueues(self, harness: InMemoryMigrationHarness):
        """The first read is served from the legacy store without waiting."""
        seed_file_set(harness)

        resource = await harness.query_service.find_by(RESOURCE_ID)

        assert resource.file_ids == ["f1", "f2"]
        assert harness.queue.pending_count == 1
        assert harness.stack.metrics.snapshot().decisions == {MigrationDecision.ENQUEUED.value: 1}
        assert harness.primary.records() == []

    async def test_drain_migrates_files_and_derivatives(self, harness: InMemoryMigrationHarness):
        """After the job runs the primary store owns content and metadata."""
        seed_file_set(harness)
        write_thumbnail(harness)

        await harness.query_service.find_by(RESOURCE_ID)
        assert await harness.drain() == 1
        assert harness.queue.failures == []

        migrated = await harness.primary.query_service.find_by(RESOURCE_ID)
        assert isinstance(migrated, FileSet)
        assert len(migrated.file_ids) == 3
        assert not {"f1", "f2"} & set(migrated.file_ids)
        assert migrated.label == "scan.pdf"

        files = await primary_files(harness, migrated)
        assert all(f.file_identifier.startswith(MEMORY_SCHEME) for f in files)
        assert all(f.file_set_id == RESOURCE_ID for f in files)

        originals = [f for f in files if Use.ORIGINAL_FILE.value in f.use]
        assert [f.original_filename for f in originals] == ["scan.pdf", "scan.pdf"]
        contents = {await harness.storage.read(f.file_identifier) for f in originals}
        assert contents == {PDF_ONE, PDF_TWO}

        (thumbnail,) = [f for f in files if Use.THUMBNAIL_IMAGE.value in f.use]
        assert await harness.storage.read(thumbnail.file_identifier) == b"thumbnail"

    async def test_legacy_store_is_left_untouched(self, harness: InMemoryMigrationHarness):
        """Migration never writes to the legacy store."""
        seed_file_set(harness)

        await harness.query_service.find_by(RESOURCE_ID)
        await harness.drain()

        legacy = await harness.legacy.query_service.find_by(RESOURCE_ID)
        assert legacy.file_ids == ["f1", "f2"]

    async def test_second_read_is_already_migrated(self, harness: InMemoryMigrationHarness):
        """Once migrated, reads come from the primary store and enqueue nothing."""
        seed_file_set(harness)

        await harness.query_service.find_by(RESOURCE_ID)
        await harness.drain()
        requests_after_migration = len(harness.legacy_requests)

        resource = await harness.query_service.find_by(RESOURCE_ID)

        assert not {"f1", "f2"} & set(resource.file_ids)
        assert harness.queue.pending_count == 0
        decisions = harness.stack.metrics.snapshot().decisions
        assert decisions[MigrationDecision.ENQUEUED.value] == 1
        assert decisions[MigrationDecision.ALREADY_MIGRATED.value] == 1
        assert len(harness.legacy_requests) == requests_after_migration

    async def test_bulk_reads_after_migration_enqueue_nothing(
        self, harness: InMemoryMigrationHarness
    ):
        """Bulk reads see the stale legacy copy too, but do not migrate again."""
        seed_file_set(harness)
        write_thumbnail(harness)
        await harness.query_service.find_by(RESOURCE_ID)
        await harness.drain()

        for _ in range(3):
            (found,) = await harness.query_service.find_many_by_ids([RESOURCE_ID])
            assert not {"f1", "f2"} & set(found.file_ids)
            await harness.query_service.find_all()

        assert harness.queue.pending_count == 0
        assert await harness.drain() == 0
        assert harness.stack.metrics.snapshot().decisions[MigrationDecision.ENQUEUED.value] == 1

    async def test_file_set_without_files_migrates_derivatives(
        self, harness: InMemoryMigrationHarness
    ):
        """An empty file set is enqueued so its derivatives move over."""
        harness.seed_legacy(FileSet(id="fs9xyz", label="empty"))
        write_thumbnail(harness, "fs9xyz")

        await harness.query_service.find_by("fs9xyz")
        assert harness.queue.pending_count == 1
        await harness.drain()

        migrated = await harness.primary.query_service.find_by("fs9xyz")
        (thumbnail,) = await primary_files(harness, migrated)
        assert thumbnail.use == [Use.THUMBNAIL_IMAGE.value]
        assert await harness.storage.read(thumbnail.file_identifier) == b"thumbnail"

        await harness.query_service.find_by("fs9xyz")
        assert harness.queue.pending_count == 0

    async def test_resources_without_files_are_not_migrated(
        self, harness: InMemoryMigrationHarness
    ):
        """Works are served from the legacy store without a migration."""
        harness.seed_legacy(Work(id="work-1", member_ids=[RESOURCE_ID]))

        work = await harness.query_service.find_by("work-1")

        assert work.id == "work-1"
        assert harness.queue.pending_count == 0
        assert harness.stack.metrics.snapshot().decisions == {
            MigrationDecision.NOT_APPLICABLE.value: 1
        }


class TestMissingLegacyContent:
    """Legacy content that cannot be fetched."""

    async def test_failed_file_is_kept_and_reported(self, harness: InMemoryMigrationHarness):
        """A 404 leaves the legacy id in place and the job in queue.failures."""
        seed_file_set(harness, serve_second=False)

        await harness.query_service.find_by(RESOURCE_ID)
        await harness.drain()

        (failure,) = harness.queue.failures
        assert isinstance(failure.error, PartialMigrationFailure)
        assert [item.reference for item in failure.error.failures] == ["f2"]

        resource = await harness.query_service.find_by(RESOURCE_ID)
        assert "f2" in resource.file_ids
        assert "f1" not in resource.file_ids
        assert len(resource.file_ids) == 2

    async def test_later_read_retries_under_all_policy(self, tmp_path):
        """With the ALL policy a partly migrated file set is enqueued again."""
        harness = InMemoryMigrationHarness(
            tmp_path / "derivatives", policy=AlreadyMigratedPolicy.ALL
        )
        try:
            seed_file_set(harness, serve_second=False)
            await harness.query_service.find_by(RESOURCE_ID)
            await harness.drain()

            harness.serve_legacy("legacy://legacy.example/files/f2", PDF_TWO)
            await harness.query_service.find_by(RESOURCE_ID)
            assert harness.queue.pending_count == 1
            await harness.drain()

            migrated = await harness.primary.query_service.find_by(RESOURCE_ID)
            assert len(migrated.file_ids) == 2
            assert not {"f1", "f2"} & set(migrated.file_ids)
            assert len(harness.queue.failures) == 1
        finally:
            await harness.close()
