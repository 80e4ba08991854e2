"""
Filesystem helpers used when installing runtimes and storing caches.

Archives downloaded for a runtime are unpacked into a staging directory,
checked member by member so nothing lands outside it, and moved to their
final prefix with a single rename. The cache store relies on the same
extraction code and on atomic_write for its index.
"""

import hashlib
import os
import shutil
import stat
import tarfile
import tempfile
import zipfile
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Sequence, Tuple, Union

import py7zr

PathLike = Union[str, Path]


class FilesystemError(Exception):
    """A file or directory operation could not be completed."""

    pass


class ArchiveExtractionError(FilesystemError):
    """An archive is missing, corrupt or could not be unpacked."""

    pass


class UnsupportedArchiveFormat(ArchiveExtractionError):
    """The archive type is not one RuntimeKit can unpack."""

    pass


class InsecureArchiveError(ArchiveExtractionError):
    """An archive member would be written outside the destination."""

    pass


def is_relative_to(path: Path, parent: Path) -> bool:
    """Return True if path is parent itself or somewhere below it."""
    return path == parent or parent in path.parents


def _is_excluded(member: str, exclude: Sequence[str]) -> bool:
    # "share/doc" drops "ruby-3.3.0/share/doc/ruby/README" at any depth
    wrapped = "/" + member.replace("\\", "/").strip("/") + "/"
    return any("/" + pattern.strip("/") + "/" in wrapped for pattern in exclude)


def _check_members(names: Iterable[str], destination: Path, exclude: Sequence[str]) -> List[str]:
    """
    Drop excluded members and reject any that escape the destination.

    Returns:
        Member names to extract, in archive order
    """
    root = destination.resolve()
    selected = []
    for name in names:
        if _is_excluded(name, exclude):
            continue
        if not is_relative_to((root / name).resolve(), root):
            raise InsecureArchiveError(
                f"Blocked archive member '{name}': it resolves outside {root}"
            )
        selected.append(name)
    return selected


def _unpack_zip(archive_path: Path, destination: Path, exclude: Sequence[str]) -> None:
    with zipfile.ZipFile(archive_path) as bundle:
        for name in _check_members(bundle.namelist(), destination, exclude):
            bundle.extract(name, destination)


def _tar_unpacker(mode: str) -> Callable[[Path, Path, Sequence[str]], None]:
    def unpack(archive_path: Path, destination: Path, exclude: Sequence[str]) -> None:
        with tarfile.open(archive_path, mode) as bundle:
            by_name = {info.name: info for info in bundle.getmembers()}
            wanted = _check_members(by_name, destination, exclude)
            members = [by_name[name] for name in wanted]
            if hasattr(tarfile, "data_filter"):
                bundle.extractall(destination, members=members, filter="data")
            else:
                bundle.extractall(destination, members=members)

    return unpack


def _unpack_7z(archive_path: Path, destination: Path, exclude: Sequence[str]) -> None:
    with py7zr.SevenZipFile(archive_path, mode="r") as bundle:
        wanted = _check_members(bundle.getnames(), destination, exclude)
        bundle.extract(path=destination, targets=wanted)


# Suffix to unpacker; "archive_format" overrides use the same keys
_UNPACKERS: Tuple[Tuple[str, Callable[[Path, Path, Sequence[str]], None]], ...] = (
    (".zip", _unpack_zip),
    (".tar.gz", _tar_unpacker("r:gz")),
    (".tgz", _tar_unpacker("r:gz")),
    (".tar.xz", _tar_unpacker("r:xz")),
    (".7z", _unpack_7z),
)


def _unpacker_for(name: str) -> Optional[Callable[[Path, Path, Sequence[str]], None]]:
    for suffix, unpacker in _UNPACKERS:
        if name.endswith(suffix):
            return unpacker
    return None


def extract_archive(
    archive_path: PathLike,
    destination: PathLike,
    exclude: Optional[Sequence[str]] = None,
    archive_format: Optional[str] = None,
) -> None:
    """
    Unpack a runtime or cache archive into destination.

    Args:
        archive_path: Archive on disk
        destination: Target directory, created when missing
        exclude: Subtrees to leave out, such as "share/doc"
        archive_format: "zip", "tar.gz", "tar.xz" or "7z" when the file name
            carries no usable extension

    Raises:
        UnsupportedArchiveFormat: The type cannot be determined or handled
        InsecureArchiveError: A member points outside destination
        ArchiveExtractionError: The archive is missing or unreadable

    Example:
        >>> extract_archive("ruby-3.3.0.tar.gz", "/tmp/stage", exclude=["share/doc"])
    """
    source = Path(archive_path)
    target = Path(destination)

    if not source.exists():
        raise ArchiveExtractionError(f"Archive not found: {source}")

    kind = f".{archive_format.lstrip('.')}" if archive_format else source.name.lower()
    unpacker = _unpacker_for(kind)
    if unpacker is None:
        known = ", ".join(suffix for suffix, _ in _UNPACKERS)
        raise UnsupportedArchiveFormat(f"Cannot unpack {source.name}; known types: {known}")

    target.mkdir(parents=True, exist_ok=True)
    try:
        unpacker(source, target, list(exclude or ()))
    except ArchiveExtractionError:
        raise
    except Exception as e:
        raise ArchiveExtractionError(f"Could not unpack {source}: {e}") from e


def single_root(directory: Path) -> Path:
    """Return the lone top-level folder of an unpacked archive, or directory."""
    entries = list(directory.iterdir())
    if len(entries) == 1 and entries[0].is_dir():
        return entries[0]
    return directory


def atomic_write(
    file_path: PathLike, content: Union[str, bytes], encoding: str = "utf-8"
) -> None:
    """Replace file_path with content so readers never see a partial file."""
    target = Path(file_path)
    target.parent.mkdir(parents=True, exist_ok=True)
    payload = content.encode(encoding) if isinstance(content, str) else content

    with tempfile.NamedTemporaryFile(
        dir=target.parent, prefix=f".{target.name}.", suffix=".part", delete=False
    ) as handle:
        scratch = Path(handle.name)
        try:
            handle.write(payload)
        except BaseException:
            handle.close()
            scratch.unlink(missing_ok=True)
            raise

    try:
        os.replace(scratch, target)
    except OSError:
        scratch.unlink(missing_ok=True)
        raise


def move_into_place(source: Path, target: Path) -> None:
    """
    Rename a prepared directory onto its final path.

    Both paths must be on the same filesystem and target must not exist.
    """
    if target.exists():
        raise FilesystemError(f"Refusing to replace existing directory: {target}")

    target.parent.mkdir(parents=True, exist_ok=True)
    try:
        os.replace(source, target)
    except OSError as e:
        raise FilesystemError(f"Could not rename {source} to {target}: {e}") from e


def _clear_readonly(func, target, _exc_info) -> None:
    # Windows refuses to unlink read-only files that gem installs leave behind
    os.chmod(target, stat.S_IWRITE)
    func(target)


def safe_rmtree(path: PathLike, require_prefix: Optional[PathLike] = None) -> None:
    """
    Delete a directory tree, optionally only when it sits under require_prefix.

    A missing path is not an error.

    Raises:
        ValueError: path lies outside require_prefix
        FilesystemError: path is a file, or removal failed
    """
    victim = Path(path).resolve()

    if require_prefix is not None:
        fence = Path(require_prefix).resolve()
        if not is_relative_to(victim, fence):
            raise ValueError(f"Refusing to delete '{victim}': not under required prefix '{fence}'")

    if not victim.exists():
        return
    if not victim.is_dir():
        raise FilesystemError(f"Expected a directory, found a file: {victim}")

    try:
        shutil.rmtree(victim, onerror=_clear_readonly if os.name == "nt" else None)
    except OSError as e:
        raise FilesystemError(f"Could not delete {victim}: {e}") from e


def compute_file_hash(
    file_path: PathLike, algorithm: str = "sha256", chunk_size: int = 65536
) -> str:
    """
    Hex digest of a file's contents.

    Example:
        >>> compute_file_hash("Gemfile.lock")
        '9f86d081...'
    """
    source = Path(file_path)
    if not source.is_file():
        raise FilesystemError(f"File not found: {source}")

    if algorithm not in hashlib.algorithms_available:
        raise ValueError(f"Unknown digest algorithm: {algorithm}")
    digest = hashlib.new(algorithm)

    with source.open("rb") as stream:
        for block in iter(lambda: stream.read(chunk_size), b""):
            digest.update(block)
    return digest.hexdigest()


def existing_paths(paths: Iterable[PathLike]) -> List[Path]:
    """Return the subset of paths that exist on disk."""
    return [Path(p) for p in paths if Path(p).exists()]


__all__ = [
    "FilesystemError",
    "ArchiveExtractionError",
    "UnsupportedArchiveFormat",
    "InsecureArchiveError",
    "is_relative_to",
    "extract_archive",
    "single_root",
    "atomic_write",
    "move_into_place",
    "safe_rmtree",
    "compute_file_hash",
    "existing_paths",
]
