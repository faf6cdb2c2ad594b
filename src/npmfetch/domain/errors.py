import json
import re
from typing import List, Optional

# npm < 10 prefixes failures with "npm ERR!", npm >= 10 with "npm error"
NPM_PREFIX = re.compile(r"^npm (?:ERR!|error)\s?")


def npm_error_detail(stderr: str, stdout: str = "") -> str:
    """
    pick the cause out of a failed npm invocation.

    with --json npm prints an error object on stdout; otherwise stderr starts
    with a `code` line and a summary, and ends with the path of its debug log.
    """
    try:
        data = json.loads(stdout)
    except ValueError:
        data = None
    if isinstance(data, dict) and isinstance(data.get("error"), dict):
        error = data["error"]
        parts = [str(error[k]) for k in ("code", "summary") if error.get(k)]
        if parts:
            return " ".join(parts)

    lines = []
    for line in (stderr or stdout).splitlines():
        line = NPM_PREFIX.sub("", line.strip()).strip()
        if not line or "_logs" in line or "complete log of this run" in line:
            continue
        lines.append(line)
    if not lines:
        return "no output"

    for i, line in enumerate(lines):
        if line.startswith("code "):
            code = line[len("code "):].strip()
            rest = [other for other in lines[i + 1:] if not other.startswith(("errno ", "syscall "))]
            return f"{code} {rest[0]}" if rest else code
    return lines[0]


class NpmFetchError(Exception):
    """base class for exceptions in npmfetch."""
    pass


class NpmCommandError(NpmFetchError):
    """raised when an npm invocation cannot be started or exits non-zero."""
    def __init__(self, argv: List[str], returncode: Optional[int], stderr: str = "", stdout: str = ""):
        self.argv = argv
        self.returncode = returncode
        self.stderr = stderr
        self.stdout = stdout
        detail = npm_error_detail(stderr, stdout)
        if returncode is None:
            message = f"could not run '{' '.join(argv)}': {detail}"
        else:
            message = f"'{' '.join(argv)}' exited with code {returncode}: {detail}"
        super().__init__(message)


class ClientLoadError(NpmFetchError):
    """raised when the package manager client cannot be loaded."""
    pass


class QueryError(NpmFetchError):
    """raised when a registry query fails or returns something unexpected."""
    def __init__(self, package_name: str, reason: str):
        self.package_name = package_name
        super().__init__(f"query for '{package_name}' failed: {reason}")


class CacheAddError(NpmFetchError):
    """raised when a package version cannot be added to the cache."""
    def __init__(self, spec: str, reason: str):
        self.spec = spec
        super().__init__(f"cache add for '{spec}' failed: {reason}")


class TarballCopyError(NpmFetchError):
    """base class for failures while copying a cached tarball."""
    def __init__(self, path, reason: str):
        self.path = path
        super().__init__(f"{path}: {reason}")


class TarballReadError(TarballCopyError):
    """raised when the cached tarball is missing or unreadable."""
    pass


class TarballWriteError(TarballCopyError):
    """raised when the output tarball cannot be written."""
    pass
