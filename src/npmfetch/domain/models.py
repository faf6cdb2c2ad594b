from pathlib import Path
from typing import Optional
from pydantic import BaseModel, ConfigDict

TARBALL_FILENAME = "package.tgz"


def package_spec(package_name: str, version: str) -> str:
    """return the canonical `name@version` reference."""
    return f"{package_name}@{version}"


def flatten_name(package_name: str) -> str:
    """
    turn a package name into something safe to use as a file name.

    scoped names lose their leading `@` and have `/` replaced by `-`,
    so `@scope/pkg` becomes `scope-pkg`. unscoped names are returned as is.
    """
    if package_name.startswith("@"):
        return package_name[1:].replace("/", "-")
    return package_name


class Manifest(BaseModel):
    """represents what the package manager reports for a cached package version."""
    model_config = ConfigDict(extra="ignore")

    name: str
    version: str
    filename: Optional[str] = None
    integrity: Optional[str] = None
    shasum: Optional[str] = None
    size: Optional[int] = None

    @property
    def spec(self) -> str:
        return package_spec(self.name, self.version)

    @property
    def tarball_name(self) -> str:
        return f"{flatten_name(self.name)}-{self.version}.tgz"

    def cache_path(self, cache_root: Path) -> Path:
        # scoped names nest one level deeper (<root>/@scope/pkg/<version>)
        return Path(cache_root) / self.name / self.version / TARBALL_FILENAME
