from typing import Sequence

from ..domain.errors import QueryError
from ..registry.handle import LazyClient


def most_recent_key(data: dict) -> str:
    """
    return the last key of `data` in plain string order.

    this is string ordering, not semver: "9.0.0" sorts after "10.0.0".
    """
    keys = sorted(data)
    return keys[-1]


class ReleasesService:
    """lists the published versions of a package."""

    def __init__(self, client: LazyClient):
        self.client = client

    async def list_releases(self, package_name: str) -> Sequence[str]:
        """
        return the versions published for `package_name`.

        the view query answers either with the list itself or with a mapping
        such as `{"1.7.7": {"versions": ["1.0.0", "1.1.0"]}}`, which is unwrapped
        through its most recent key.
        """
        client = await self.client.get()
        data = await client.view([package_name, "versions"])

        if isinstance(data, (list, tuple)):
            return data

        if not isinstance(data, dict) or not data:
            raise QueryError(package_name, f"unexpected result {data!r}")

        record = data[most_recent_key(data)]
        if not isinstance(record, dict) or "versions" not in record:
            raise QueryError(package_name, f"no versions in {record!r}")
        return record["versions"]
