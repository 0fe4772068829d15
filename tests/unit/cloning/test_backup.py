"""Unit tests for TableSnapshotBackupManager."""

import threading

import pytest

from envclone.access import InMemoryTableAccess
from envclone.cloning import TableSnapshotBackupManager
from envclone.exceptions import BackupError


@pytest.fixture
def store():
    return InMemoryTableAccess(
        {
            "categories": [{"id": "cat-1", "name": "Rent"}],
            "transactions": [{"id": "tx-1", "category_id": "cat-1", "amount": 10}],
        }
    )


class TestInMemoryBackup:
    @pytest.mark.asyncio
    async def test_create_and_describe(self, test_env, store):
        manager = TableSnapshotBackupManager(enable_tracing=False)

        backup_id = await manager.create_backup(test_env, store, ["transactions", "categories", "lofts"], "op-1")

        assert backup_id.startswith("backup_")
        backup = await manager.get_backup(backup_id)
        assert backup.environment == "test"
        assert backup.operation_id == "op-1"
        assert backup.tables == {"categories": 1, "transactions": 1}
        assert backup.total_rows == 2

    @pytest.mark.asyncio
    async def test_restore_replaces_current_rows(self, test_env, store):
        manager = TableSnapshotBackupManager(enable_tracing=False)
        backup_id = await manager.create_backup(test_env, store, ["categories", "transactions"], "op-1")
        await store.upsert_batch("categories", [{"id": "cat-2", "name": "Food"}], ("id",))
        await store.delete_all("transactions")

        restored = await manager.restore_backup(backup_id, store)

        assert restored == 2
        assert store.rows("categories") == [{"id": "cat-1", "name": "Rent"}]
        assert store.rows("transactions") == [{"id": "tx-1", "category_id": "cat-1", "amount": 10}]
        assert [c.table for c in store.calls_for("delete_all")][:2] == ["transactions", "categories"]

    @pytest.mark.asyncio
    async def test_unknown_backup(self, store):
        manager = TableSnapshotBackupManager(enable_tracing=False)
        with pytest.raises(BackupError, match="backup not found"):
            await manager.restore_backup("backup_missing", store)

    @pytest.mark.asyncio
    async def test_read_failure(self, test_env, store):
        store.fail("categories", "fetch_page", "connection reset")
        manager = TableSnapshotBackupManager(enable_tracing=False)

        with pytest.raises(BackupError) as exc_info:
            await manager.create_backup(test_env, store, ["categories"], "op-1")

        assert exc_info.value.backup_id.startswith("backup_")
        assert "connection reset" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_restore_write_failure(self, test_env, store):
        manager = TableSnapshotBackupManager(enable_tracing=False)
        backup_id = await manager.create_backup(test_env, store, ["categories"], "op-1")
        store.fail("categories", "upsert_batch", "read-only", raise_error=False)
        store.fail("categories", "insert_batch", "read-only", raise_error=False)

        with pytest.raises(BackupError, match="could not restore categories"):
            await manager.restore_backup(backup_id, store)

    @pytest.mark.asyncio
    async def test_delete_backup(self, test_env, store):
        manager = TableSnapshotBackupManager(enable_tracing=False)
        backup_id = await manager.create_backup(test_env, store, ["categories"], "op-1")

        assert await manager.delete_backup(backup_id)
        assert await manager.get_backup(backup_id) is None
        assert not await manager.delete_backup(backup_id)


class TestDirectoryBackup:
    @pytest.mark.asyncio
    async def test_files_written(self, tmp_path, test_env, store):
        manager = TableSnapshotBackupManager(tmp_path, enable_tracing=False)

        backup_id = await manager.create_backup(test_env, store, ["categories", "transactions"], "op-1")

        folder = tmp_path / backup_id
        assert (folder / "manifest.json").is_file()
        assert (folder / "categories.json").is_file()
        assert (folder / "transactions.json").is_file()

    @pytest.mark.asyncio
    async def test_restore_from_another_manager(self, tmp_path, test_env, store):
        """A backup written to disk can be restored by a fresh manager."""
        backup_id = await TableSnapshotBackupManager(tmp_path, enable_tracing=False).create_backup(
            test_env, store, ["categories"], "op-1"
        )
        await store.delete_all("categories")

        manager = TableSnapshotBackupManager(tmp_path, enable_tracing=False)
        backup = await manager.get_backup(backup_id)
        restored = await manager.restore_backup(backup_id, store)

        assert backup.tables == {"categories": 1}
        assert backup.created_at.tzinfo is not None
        assert restored == 1
        assert store.rows("categories") == [{"id": "cat-1", "name": "Rent"}]

    @pytest.mark.asyncio
    async def test_missing_table_file(self, tmp_path, test_env, store):
        manager = TableSnapshotBackupManager(tmp_path, enable_tracing=False)
        backup_id = await manager.create_backup(test_env, store, ["categories"], "op-1")
        (tmp_path / backup_id / "categories.json").unlink()

        with pytest.raises(BackupError, match="missing backup file"):
            await TableSnapshotBackupManager(tmp_path, enable_tracing=False).restore_backup(backup_id, store)

    @pytest.mark.asyncio
    async def test_delete_removes_files(self, tmp_path, test_env, store):
        manager = TableSnapshotBackupManager(tmp_path, enable_tracing=False)
        backup_id = await manager.create_backup(test_env, store, ["categories"], "op-1")

        assert await manager.delete_backup(backup_id)
        assert not (tmp_path / backup_id).exists()

    @pytest.mark.asyncio
    async def test_file_io_runs_off_the_event_loop(self, tmp_path, test_env, store, monkeypatch):
        manager = TableSnapshotBackupManager(tmp_path, enable_tracing=False)
        loop_thread = threading.get_ident()
        threads = {}

        def recording(name):
            original = getattr(manager, name)

            def wrapper(*args):
                threads[name] = threading.get_ident()
                return original(*args)

            return wrapper

        for name in ("_write_files", "_read_manifest", "_read_files", "_delete_files"):
            monkeypatch.setattr(manager, name, recording(name))

        backup_id = await manager.create_backup(test_env, store, ["categories"], "op-1")
        manager._backups.clear()
        await manager.restore_backup(backup_id, store)
        await manager.delete_backup(backup_id)

        assert set(threads) == {"_write_files", "_read_manifest", "_read_files", "_delete_files"}
        assert loop_thread not in threads.values()
