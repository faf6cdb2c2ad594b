import asyncio
import inspect
import logging
from pathlib import Path
from typing import Any, Union

from pydantic import ValidationError

from ..domain.errors import CacheAddError, TarballCopyError
from ..domain.models import Manifest, package_spec
from ..registry.handle import LazyClient
from ..utils.atomic import copy_atomic
from ..utils.settle import SettleOnce

logger = logging.getLogger(__name__)


class DownloadService:
    """copies package tarballs out of the package manager's cache."""

    def __init__(self, client: LazyClient):
        self.client = client

    async def download_tarball(self, package_name: str, version: str, target_dir: Union[str, Path]) -> Path:
        """
        download `package_name@version` and copy its tarball into `target_dir`.

        args:
            package_name: package name, optionally scoped (`@scope/name`)
            version: exact version to fetch
            target_dir: existing directory to write into

        returns:
            absolute path of the written tarball, e.g. `<target_dir>/bower-1.7.7.tgz`
        """
        # resolve before any await so a later cwd change does not matter
        target_dir = Path(target_dir).resolve()
        spec = package_spec(package_name, version)

        client = await self.client.get()
        manifest = await self._cache_add(client, spec)

        source = manifest.cache_path(client.cache_root)
        target = target_dir / manifest.tarball_name

        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, copy_atomic, source, target)
        except TarballCopyError as e:
            logger.debug("copying %s failed: %s", manifest.spec, e)
            raise
        return target

    async def _cache_add(self, client, spec: str) -> Manifest:
        """run cache add and wait for whichever completion signal arrives first."""
        settle = SettleOnce()
        result = client.cache_add(spec, settle.callback)
        task = settle.follow(result) if inspect.isawaitable(result) else None

        try:
            data = await settle.wait()
        except asyncio.CancelledError:
            # stop the client's work too, and wait until it has wound down
            if task is not None and not task.done():
                task.cancel()
                await asyncio.wait([task])
            raise

        data = _unwrap_manifest(data)
        if isinstance(data, Manifest):
            return data
        try:
            if isinstance(data, dict):
                return Manifest(**data)
            return Manifest.model_validate(data, from_attributes=True)
        except ValidationError as e:
            raise CacheAddError(spec, f"unusable manifest {data!r}") from e


def _unwrap_manifest(data: Any) -> Any:
    # some clients resolve with `{"manifest": {...}}` instead of the manifest
    if isinstance(data, dict) and "manifest" in data:
        return data["manifest"]
    manifest = getattr(data, "manifest", None)
    if manifest is not None:
        return manifest
    return data
