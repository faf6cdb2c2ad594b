import asyncio
import json
import logging
import shutil
import tempfile
from pathlib import Path
from typing import Any, List, Optional

from pydantic import ValidationError

from .client import CacheAddCallback, PackageManagerClient
from ..domain.errors import CacheAddError, ClientLoadError, NpmCommandError, QueryError
from ..domain.models import Manifest

logger = logging.getLogger(__name__)


class NpmCli(PackageManagerClient):
    """package manager client backed by the `npm` executable."""

    def __init__(self, npm_bin: str = "npm", cache_dir: Optional[Path] = None, registry: Optional[str] = None):
        self.npm_bin = npm_bin
        self.registry = registry
        self.npm_version: Optional[str] = None
        self._cache_dir = Path(cache_dir).expanduser().resolve() if cache_dir else None

    async def _run(self, *args: str) -> str:
        """run npm with `args` and return its stdout."""
        argv = [self.npm_bin, *args]
        if self.registry:
            argv.append(f"--registry={self.registry}")
        logger.debug("running %s", " ".join(argv))

        try:
            proc = await asyncio.create_subprocess_exec(
                *argv,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise NpmCommandError(argv, None, str(e)) from e

        try:
            stdout, stderr = await proc.communicate()
        except BaseException:
            # cancelled or failed while npm runs: do not leave the child behind
            if proc.returncode is None:
                try:
                    proc.kill()
                except ProcessLookupError:
                    pass
                await proc.wait()
            raise

        if proc.returncode != 0:
            # npm --json reports errors on stdout, plain errors go to stderr
            raise NpmCommandError(argv, proc.returncode, stderr.decode(), stdout.decode())
        return stdout.decode()

    async def load(self) -> None:
        try:
            self.npm_version = (await self._run("--version")).strip()
            if self._cache_dir is None:
                self._cache_dir = Path((await self._run("config", "get", "cache")).strip())
        except NpmCommandError as e:
            raise ClientLoadError(f"failed to load npm: {e}") from e
        logger.debug("npm %s, cache at %s", self.npm_version, self._cache_dir)

    @property
    def cache_root(self) -> Path:
        if self._cache_dir is None:
            raise ClientLoadError("npm client is not loaded")
        return self._cache_dir

    async def view(self, args: List[str]) -> Any:
        package_name = args[0] if args else ""
        try:
            output = await self._run("view", *args, "--json")
        except NpmCommandError as e:
            raise QueryError(package_name, str(e)) from e

        if not output.strip():
            return None
        try:
            data = json.loads(output)
        except json.JSONDecodeError as e:
            raise QueryError(package_name, f"invalid JSON from npm: {e}") from e

        # a single matching value is printed bare instead of as a list
        if isinstance(data, str):
            return [data]
        return data

    def cache_add(self, spec: str, callback: Optional[CacheAddCallback] = None) -> asyncio.Task:
        task = asyncio.ensure_future(self._pack(spec))
        if callback is not None:
            def _notify(t: asyncio.Task):
                if t.cancelled():
                    return
                error = t.exception()
                if error is not None:
                    callback(error, None)
                else:
                    callback(None, t.result())
            task.add_done_callback(_notify)
        return task

    async def _pack(self, spec: str) -> Manifest:
        """
        fetch `spec` through `npm pack` and file the archive under the cache root.

        `npm pack` goes through npm's own cache, so this also populates it.
        """
        cache_root = self.cache_root
        try:
            cache_root.mkdir(parents=True, exist_ok=True)
            tmp_dir = Path(tempfile.mkdtemp(prefix=".pack-", dir=cache_root))
        except OSError as e:
            raise CacheAddError(spec, str(e)) from e

        try:
            try:
                output = await self._run("pack", spec, "--json", "--pack-destination", str(tmp_dir))
            except NpmCommandError as e:
                raise CacheAddError(spec, str(e)) from e

            try:
                reports = json.loads(output)
                manifest = Manifest(**(reports[0] if isinstance(reports, list) else reports))
            except (json.JSONDecodeError, IndexError, TypeError, ValidationError) as e:
                raise CacheAddError(spec, f"unexpected output from npm pack: {e}") from e

            packed = tmp_dir / (manifest.filename or manifest.tarball_name)
            cached = manifest.cache_path(cache_root)
            try:
                cached.parent.mkdir(parents=True, exist_ok=True)
                packed.replace(cached)
            except OSError as e:
                raise CacheAddError(spec, str(e)) from e
            logger.debug("cached %s at %s", manifest.spec, cached)
            return manifest
        finally:
            shutil.rmtree(tmp_dir, ignore_errors=True)
