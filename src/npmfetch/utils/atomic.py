import logging
import os
import tempfile
from pathlib import Path
from typing import BinaryIO

from ..domain.errors import TarballReadError, TarballWriteError

logger = logging.getLogger(__name__)

# chunk size for streaming copies (1 MiB)
DEFAULT_CHUNK = 1024 * 1024


def _open_source(source: Path) -> BinaryIO:
    try:
        return open(source, "rb")
    except OSError as e:
        raise TarballReadError(source, e.strerror or str(e)) from e


def copy_atomic(source: Path, target: Path, chunk_size: int = DEFAULT_CHUNK) -> Path:
    """
    stream `source` into `target` so that `target` never exists half-written.

    bytes go to a temporary file next to `target`, which is renamed over it only
    after the last chunk was written and flushed. on any failure the temporary
    file is removed and `target` is left as it was.

    args:
        source: file to copy
        target: destination path (its directory must already exist)
        chunk_size: bytes read per iteration

    returns:
        the destination path

    raises:
        TarballReadError: if `source` cannot be opened or read
        TarballWriteError: if the destination cannot be created, written or renamed
    """
    source = Path(source)
    target = Path(target)

    with _open_source(source) as src:
        try:
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{target.name}.", suffix=".part", dir=target.parent
            )
        except OSError as e:
            raise TarballWriteError(target, e.strerror or str(e)) from e

        tmp = Path(tmp_name)
        logger.debug("copying %s -> %s via %s", source, target, tmp.name)
        try:
            with os.fdopen(fd, "wb") as dst:
                while True:
                    try:
                        chunk = src.read(chunk_size)
                    except OSError as e:
                        raise TarballReadError(source, e.strerror or str(e)) from e
                    if not chunk:
                        break
                    try:
                        dst.write(chunk)
                    except OSError as e:
                        raise TarballWriteError(target, e.strerror or str(e)) from e
                try:
                    dst.flush()
                    os.fsync(dst.fileno())
                except OSError as e:
                    raise TarballWriteError(target, e.strerror or str(e)) from e

            try:
                # mkstemp creates 0600 files
                tmp.chmod(0o644)
                tmp.replace(target)
            except OSError as e:
                raise TarballWriteError(target, e.strerror or str(e)) from e
        except BaseException:
            try:
                tmp.unlink()
            except FileNotFoundError:
                pass
            raise

    return target
