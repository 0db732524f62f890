"""Tests for TempDirProvisioner."""

import gc
import os
import weakref

from mongomem.infra.storage import TempDirProvisioner


class TestTempDirProvisioner:
    """Tests for TempDirProvisioner."""

    def test_provision_creates_directory(self, tmp_path):
        storage = TempDirProvisioner(prefix="mongo-mem-", base_dir=str(tmp_path))

        path = storage.provision_temp_dir()

        assert os.path.isdir(path)
        assert os.path.basename(path).startswith("mongo-mem-")
        assert os.path.dirname(path) == str(tmp_path)

    def test_paths_are_unique(self, tmp_path):
        storage = TempDirProvisioner(base_dir=str(tmp_path))

        assert storage.provision_temp_dir() != storage.provision_temp_dir()

    def test_cleanup_removes_contents(self, tmp_path):
        """cleanup() should remove the directory and files mongod wrote."""
        storage = TempDirProvisioner(base_dir=str(tmp_path))
        path = storage.provision_temp_dir()
        with open(os.path.join(path, "WiredTiger.lock"), "w") as f:
            f.write("lock")

        storage.cleanup(path)

        assert not os.path.exists(path)

    def test_cleanup_ignores_unknown_path(self, tmp_path):
        """Directories the provisioner did not create are never removed."""
        storage = TempDirProvisioner(base_dir=str(tmp_path))
        user_dir = tmp_path / "user-data"
        user_dir.mkdir()

        storage.cleanup(str(user_dir))

        assert user_dir.exists()

    def test_cleanup_is_idempotent(self, tmp_path):
        storage = TempDirProvisioner(base_dir=str(tmp_path))
        path = storage.provision_temp_dir()

        storage.cleanup(path)
        storage.cleanup(path)

        assert not os.path.exists(path)

    def test_cleanup_all(self, tmp_path):
        storage = TempDirProvisioner(base_dir=str(tmp_path))
        paths = [storage.provision_temp_dir() for _ in range(3)]

        storage.cleanup_all()

        assert not any(os.path.exists(p) for p in paths)

    def test_collected_provisioner_removes_its_dirs(self, tmp_path):
        """Dropping the provisioner should remove what it created."""
        storage = TempDirProvisioner(base_dir=str(tmp_path))
        path = storage.provision_temp_dir()
        ref = weakref.ref(storage)

        del storage
        gc.collect()

        assert ref() is None
        assert not os.path.exists(path)

    def test_many_provisioners_are_not_kept_alive(self, tmp_path):
        """Provisioners with live dirs should still be collectable."""
        refs = []
        for _ in range(20):
            storage = TempDirProvisioner(base_dir=str(tmp_path))
            storage.provision_temp_dir()
            refs.append(weakref.ref(storage))
        del storage

        gc.collect()

        assert all(ref() is None for ref in refs)
        assert os.listdir(tmp_path) == []
