"""test suite for DownloadService."""
import pytest
import asyncio
import sys
import shutil
import tempfile
from pathlib import Path
from unittest.mock import patch

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from npmfetch.domain.errors import (
    CacheAddError,
    ClientLoadError,
    TarballReadError,
    TarballWriteError,
)
from npmfetch.domain.models import Manifest
from npmfetch.registry.client import PackageManagerClient
from npmfetch.registry.handle import LazyClient
from npmfetch.services.download import DownloadService

PAYLOAD = b"\x1f\x8b\x08\x00" + bytes(range(256)) * 64


class FakeClient(PackageManagerClient):
    """
    in-memory stand-in for npm.

    `mode` selects how cache_add reports completion: "callback", "awaitable",
    "both" (callback first, then the awaitable), "awaitable-first" or "hang".
    """

    def __init__(self, cache_dir: Path, manifest=None, mode: str = "awaitable", error: Exception = None):
        self._cache_dir = cache_dir
        self.manifest = manifest
        self.mode = mode
        self.error = error
        self.load_error = None
        self.added = []
        self.cancelled = False

    async def load(self):
        if self.load_error:
            raise self.load_error

    @property
    def cache_root(self) -> Path:
        return self._cache_dir

    async def view(self, args):
        raise NotImplementedError

    def cache_add(self, spec, callback=None):
        self.added.append(spec)

        if self.mode == "hang":
            async def never_finishes():
                try:
                    await asyncio.sleep(30)
                except asyncio.CancelledError:
                    self.cancelled = True
                    raise
            return never_finishes()

        if self.mode == "callback":
            callback(self.error, None if self.error else self.manifest)
            return None

        async def complete():
            await asyncio.sleep(0)
            if self.error:
                raise self.error
            return {"manifest": self.manifest}

        if self.mode == "both":
            callback(self.error, None if self.error else self.manifest)

            async def conflicting():
                await asyncio.sleep(0)
                raise CacheAddError(spec, "second completion")
            return conflicting()

        if self.mode == "awaitable-first":
            asyncio.get_running_loop().call_later(
                0.01, callback, CacheAddError(spec, "late callback"), None
            )
            return complete()

        return complete()


class TestDownloadService:
    @pytest.fixture
    def temp_dir(self):
        temp_dir = Path(tempfile.mkdtemp())
        yield temp_dir
        if temp_dir.exists():
            shutil.rmtree(temp_dir)

    @pytest.fixture
    def cache_dir(self, temp_dir):
        path = temp_dir / "cache"
        path.mkdir()
        return path

    @pytest.fixture
    def out_dir(self, temp_dir):
        path = temp_dir / "out"
        path.mkdir()
        return path

    def _cache_tarball(self, cache_dir: Path, name: str, version: str) -> Path:
        path = cache_dir / name / version / "package.tgz"
        path.parent.mkdir(parents=True)
        path.write_bytes(PAYLOAD)
        return path

    def _service(self, client) -> DownloadService:
        return DownloadService(LazyClient(client))

    @pytest.mark.parametrize("mode", ["awaitable", "callback"])
    def test_download_tarball(self, cache_dir, out_dir, mode):
        self._cache_tarball(cache_dir, "bower", "1.7.7")
        manifest = {"name": "bower", "version": "1.7.7"}
        client = FakeClient(cache_dir, manifest, mode=mode)

        result = asyncio.run(self._service(client).download_tarball("bower", "1.7.7", out_dir))

        assert result == out_dir.resolve() / "bower-1.7.7.tgz"
        assert result.is_absolute()
        assert result.read_bytes() == PAYLOAD
        assert client.added == ["bower@1.7.7"]
        # cache entry stays in place
        assert (cache_dir / "bower" / "1.7.7" / "package.tgz").exists()

    def test_scoped_package_file_name(self, cache_dir, out_dir):
        self._cache_tarball(cache_dir, "@scope/pkg", "2.0.0")
        client = FakeClient(cache_dir, Manifest(name="@scope/pkg", version="2.0.0"))

        result = asyncio.run(self._service(client).download_tarball("@scope/pkg", "2.0.0", out_dir))

        assert result.name == "scope-pkg-2.0.0.tgz"
        assert result.read_bytes() == PAYLOAD
        assert client.added == ["@scope/pkg@2.0.0"]

    def test_manifest_values_win_over_input(self, cache_dir, out_dir):
        # the registry may normalise what the caller asked for
        self._cache_tarball(cache_dir, "bower", "1.7.7")
        client = FakeClient(cache_dir, {"name": "bower", "version": "1.7.7"})

        result = asyncio.run(self._service(client).download_tarball("bower", "v1.7.7", out_dir))

        assert result.name == "bower-1.7.7.tgz"
        assert client.added == ["bower@v1.7.7"]

    def test_relative_target_dir_resolved(self, cache_dir, out_dir, monkeypatch):
        self._cache_tarball(cache_dir, "bower", "1.7.7")
        client = FakeClient(cache_dir, {"name": "bower", "version": "1.7.7"})
        monkeypatch.chdir(out_dir.parent)

        result = asyncio.run(self._service(client).download_tarball("bower", "1.7.7", "out"))

        assert result == out_dir.resolve() / "bower-1.7.7.tgz"

    @pytest.mark.parametrize("mode", ["awaitable", "callback"])
    def test_cache_add_failure(self, cache_dir, out_dir, mode):
        error = CacheAddError("bower@99.0.0", "E404 No matching version")
        client = FakeClient(cache_dir, mode=mode, error=error)

        with pytest.raises(CacheAddError) as exc_info:
            asyncio.run(self._service(client).download_tarball("bower", "99.0.0", out_dir))

        assert exc_info.value is error
        assert list(out_dir.iterdir()) == []

    def test_double_completion_first_success_wins(self, cache_dir, out_dir):
        self._cache_tarball(cache_dir, "bower", "1.7.7")
        client = FakeClient(cache_dir, {"name": "bower", "version": "1.7.7"}, mode="both")

        result = asyncio.run(self._service(client).download_tarball("bower", "1.7.7", out_dir))

        assert result.read_bytes() == PAYLOAD

    def test_double_completion_first_failure_wins(self, cache_dir, out_dir):
        self._cache_tarball(cache_dir, "bower", "1.7.7")
        error = CacheAddError("bower@1.7.7", "network down")
        client = FakeClient(cache_dir, {"name": "bower", "version": "1.7.7"}, mode="both", error=error)

        with pytest.raises(CacheAddError, match="network down"):
            asyncio.run(self._service(client).download_tarball("bower", "1.7.7", out_dir))
        assert list(out_dir.iterdir()) == []

    def test_awaitable_before_late_callback(self, cache_dir, out_dir):
        self._cache_tarball(cache_dir, "bower", "1.7.7")
        client = FakeClient(cache_dir, {"name": "bower", "version": "1.7.7"}, mode="awaitable-first")

        result = asyncio.run(self._service(client).download_tarball("bower", "1.7.7", out_dir))

        assert result.name == "bower-1.7.7.tgz"

    def test_timeout_cancels_cache_add(self, cache_dir, out_dir):
        client = FakeClient(cache_dir, mode="hang")
        service = self._service(client)

        async def run():
            return await asyncio.wait_for(service.download_tarball("bower", "1.7.7", out_dir), 0.05)

        with pytest.raises(asyncio.TimeoutError):
            asyncio.run(run())

        assert client.cancelled
        assert list(out_dir.iterdir()) == []

    def test_unusable_manifest(self, cache_dir, out_dir):
        client = FakeClient(cache_dir, {"name": "bower"})

        with pytest.raises(CacheAddError, match="unusable manifest"):
            asyncio.run(self._service(client).download_tarball("bower", "1.7.7", out_dir))

    def test_load_failure(self, cache_dir, out_dir):
        client = FakeClient(cache_dir, {"name": "bower", "version": "1.7.7"})
        client.load_error = ClientLoadError("npm not found")

        with pytest.raises(ClientLoadError):
            asyncio.run(self._service(client).download_tarball("bower", "1.7.7", out_dir))
        assert client.added == []

    def test_missing_cached_tarball(self, cache_dir, out_dir):
        client = FakeClient(cache_dir, {"name": "bower", "version": "1.7.7"})

        with pytest.raises(TarballReadError):
            asyncio.run(self._service(client).download_tarball("bower", "1.7.7", out_dir))
        assert list(out_dir.iterdir()) == []

    def test_missing_target_dir(self, cache_dir, temp_dir):
        self._cache_tarball(cache_dir, "bower", "1.7.7")
        client = FakeClient(cache_dir, {"name": "bower", "version": "1.7.7"})

        with pytest.raises(TarballWriteError):
            asyncio.run(self._service(client).download_tarball("bower", "1.7.7", temp_dir / "absent"))
        assert not (temp_dir / "absent").exists()

    def test_copy_runs_with_atomic_writer(self, cache_dir, out_dir):
        self._cache_tarball(cache_dir, "bower", "1.7.7")
        client = FakeClient(cache_dir, {"name": "bower", "version": "1.7.7"})

        with patch("npmfetch.services.download.copy_atomic") as mock_copy:
            asyncio.run(self._service(client).download_tarball("bower", "1.7.7", out_dir))

        mock_copy.assert_called_once_with(
            cache_dir / "bower" / "1.7.7" / "package.tgz",
            out_dir.resolve() / "bower-1.7.7.tgz",
        )


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
