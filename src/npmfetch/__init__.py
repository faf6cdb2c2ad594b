"""list npm package releases and download their tarballs."""
from .domain.errors import (
    NpmFetchError,
    NpmCommandError,
    ClientLoadError,
    QueryError,
    CacheAddError,
    TarballCopyError,
    TarballReadError,
    TarballWriteError,
)
from .domain.models import Manifest
from .registry.client import PackageManagerClient
from .registry.handle import LazyClient
from .registry.npm import NpmCli
from .services.download import DownloadService
from .services.releases import ReleasesService

__all__ = [
    "NpmFetchError",
    "NpmCommandError",
    "ClientLoadError",
    "QueryError",
    "CacheAddError",
    "TarballCopyError",
    "TarballReadError",
    "TarballWriteError",
    "Manifest",
    "PackageManagerClient",
    "LazyClient",
    "NpmCli",
    "DownloadService",
    "ReleasesService",
]
