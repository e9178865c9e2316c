"""Download, unpack and copy primitives shared by every add-on."""

import hashlib
import os
import shutil
import stat
import tarfile
import zipfile
import zlib
from pathlib import Path

import requests

from reddock.exceptions import (
    ChecksumMismatchError,
    DownloadError,
    ExtractError,
    ProcessError,
    StagingError,
)
from reddock.utils.deps import require
from reddock.utils.process import run_tool
from reddock.utils.progress import NULL_PROGRESS, ProgressSink

CHUNK_SIZE = 1024 * 256

# tarfile open modes per compression hint; lzip is handed to GNU tar
_TAR_MODES: dict[str, str] = {
    "": "r:*",
    "gz": "r:gz",
    "bz2": "r:bz2",
    "xz": "r:xz",
}


def download(
    url: str,
    dest: Path,
    *,
    progress: ProgressSink = NULL_PROGRESS,
    session: requests.Session | None = None,
) -> Path:
    """Fetch ``url`` into ``dest`` with a single GET.

    No retry, no resume, no timeout.

    Raises:
        DownloadError: On transport failure, non-2xx status, or write error.
    """
    http = session or requests
    dest.parent.mkdir(parents=True, exist_ok=True)

    try:
        with http.get(url, stream=True, allow_redirects=True) as resp:
            if not 200 <= resp.status_code < 300:
                raise DownloadError(
                    f"Bad status downloading {url}: {resp.status_code} {resp.reason}"
                )

            total = int(resp.headers.get("content-length") or 0)
            received = 0
            last_pct = -1
            with dest.open("wb") as out:
                for chunk in resp.iter_content(chunk_size=CHUNK_SIZE):
                    if not chunk:
                        continue
                    out.write(chunk)
                    received += len(chunk)
                    if total:
                        pct = received * 100 // total
                        if pct // 10 != last_pct // 10:
                            last_pct = pct
                            progress.emit(f"Downloading {dest.name}... {pct}%")
    except requests.RequestException as e:
        raise DownloadError(f"Failed to download {url}: {e}") from e
    except OSError as e:
        raise DownloadError(f"Failed to write {dest}: {e}") from e

    return dest


def md5sum(path: Path) -> str:
    """Hex MD5 digest of a file."""
    h = hashlib.md5()
    with path.open("rb") as f:
        for chunk in iter(lambda: f.read(CHUNK_SIZE), b""):
            h.update(chunk)
    return h.hexdigest()


def verify_md5(path: Path, expected: str) -> None:
    """Compare a file against its recorded checksum.

    Raises:
        ChecksumMismatchError: If the digests differ.
    """
    actual = md5sum(path)
    if actual.lower() != expected.lower():
        raise ChecksumMismatchError(str(path), expected, actual)


def _safe_target(dest: Path, member: str) -> Path:
    target = (dest / member).resolve()
    if not target.is_relative_to(dest.resolve()):
        raise ExtractError(f"Archive member escapes destination: {member}")
    return target


def extract_zip(archive: Path, dest: Path) -> Path:
    """Unpack a zip archive, keeping directory layout, modes and symlinks.

    Raises:
        ExtractError: If the archive is malformed or dest cannot be written.
    """
    try:
        dest.mkdir(parents=True, exist_ok=True)
        with zipfile.ZipFile(archive) as zf:
            for info in zf.infolist():
                target = _safe_target(dest, info.filename)
                mode = info.external_attr >> 16

                if info.is_dir():
                    target.mkdir(parents=True, exist_ok=True)
                    continue

                target.parent.mkdir(parents=True, exist_ok=True)
                if stat.S_ISLNK(mode):
                    link = zf.read(info).decode()
                    if target.is_symlink() or target.exists():
                        target.unlink()
                    os.symlink(link, target)
                    continue

                with zf.open(info) as src, target.open("wb") as out:
                    shutil.copyfileobj(src, out)
                if mode & 0o777:
                    target.chmod(stat.S_IMODE(mode))
    except (zipfile.BadZipFile, zlib.error, EOFError, UnicodeDecodeError) as e:
        raise ExtractError(f"Corrupt zip archive {archive}: {e}") from e
    except OSError as e:
        raise ExtractError(f"Failed to extract {archive}: {e}") from e

    return dest


def extract_tar(archive: Path, dest: Path, compression: str | None = None) -> Path:
    """Unpack a tar archive.

    Args:
        archive: Path to the tarball.
        dest: Destination directory (created if missing).
        compression: "gz", "bz2", "xz", "lzip", or None to auto-detect.

    Raises:
        ExtractError: If the archive is malformed or dest cannot be written.
    """
    try:
        dest.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise ExtractError(f"Cannot create {dest}: {e}") from e

    if compression == "lzip":
        # Python's tarfile has no lzip codec
        require("tar", "lzip")
        try:
            run_tool(["tar", "--lzip", "-xf", str(archive), "-C", str(dest)])
        except ProcessError as e:
            raise ExtractError(f"Failed to extract {archive.name}: {e.output}") from e
        return dest

    mode = _TAR_MODES.get(compression or "")
    if mode is None:
        raise ExtractError(f"Unknown tar compression: {compression}")

    try:
        with tarfile.open(archive, mode) as tf:
            tf.extractall(dest, filter="tar")
    except (tarfile.TarError, EOFError) as e:
        raise ExtractError(f"Corrupt tar archive {archive}: {e}") from e
    except OSError as e:
        raise ExtractError(f"Failed to extract {archive}: {e}") from e

    return dest


def _remove(path: Path) -> None:
    if path.is_symlink() or path.is_file():
        path.unlink()
    elif path.is_dir():
        shutil.rmtree(path)


def _merge(src: Path, dst: Path) -> None:
    # Existing entries are replaced, never written through
    if src.is_symlink():
        _remove(dst)
        os.symlink(os.readlink(src), dst)
    elif src.is_dir():
        if dst.is_symlink() or (dst.exists() and not dst.is_dir()):
            _remove(dst)
        dst.mkdir(exist_ok=True)
        for child in sorted_children(src):
            _merge(child, dst / child.name)
        shutil.copystat(src, dst)
    else:
        _remove(dst)
        shutil.copy2(src, dst)


def copy_tree(src: Path, dst: Path) -> Path:
    """Overlay ``src`` onto ``dst`` like ``cp -a src/. dst/``.

    Mode bits and symlinks are kept. Entries already present in ``dst`` are
    replaced. ``src`` may also be a single file, which is copied to ``dst``.

    Raises:
        StagingError: If the source is missing or a copy fails.
    """
    if not src.exists() and not src.is_symlink():
        raise StagingError(f"Source not found: {src}")

    try:
        dst.parent.mkdir(parents=True, exist_ok=True)
        _merge(src, dst)
    except OSError as e:
        raise StagingError(f"Failed to copy {src} to {dst}: {e}") from e

    return dst


def reset_dir(path: Path) -> Path:
    """Delete ``path`` if present and recreate it empty."""
    if path.is_symlink() or path.is_file():
        path.unlink()
    elif path.exists():
        shutil.rmtree(path)
    path.mkdir(parents=True)
    return path


def sorted_children(path: Path) -> list[Path]:
    """Directory entries in name order."""
    return sorted(path.iterdir(), key=lambda p: p.name)


def single_root(path: Path) -> Path:
    """Descend into the lone top-level directory GitHub archives wrap content in."""
    children = sorted_children(path)
    if len(children) == 1 and children[0].is_dir():
        return children[0]
    return path
