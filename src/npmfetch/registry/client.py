from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Awaitable, Callable, List, Optional

# node-style completion callback: callback(error, data)
CacheAddCallback = Callable[[Optional[BaseException], Any], None]


class PackageManagerClient(ABC):
    @abstractmethod
    async def load(self) -> None:
        """prepare the client for use (locate the executable, read its config)."""
        pass

    @property
    @abstractmethod
    def cache_root(self) -> Path:
        """directory holding `<name>/<version>/package.tgz` entries."""
        pass

    @abstractmethod
    async def view(self, args: List[str]) -> Any:
        """run a metadata query, e.g. `[package_name, "versions"]`, and return the raw result."""
        pass

    @abstractmethod
    def cache_add(self, spec: str, callback: Optional[CacheAddCallback] = None) -> Optional[Awaitable[Any]]:
        """
        add `name@version` to the local cache.

        implementations report the resulting manifest through `callback`, through
        the returned awaitable, or through both.
        """
        pass
