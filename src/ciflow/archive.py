"""Rename the identity inside an integration flow archive.

A flow archive names its own id in two places: the ``Bundle-SymbolicName``
header of ``META-INF/MANIFEST.MF`` and the ``<name>`` element of
``.project``. Publishing a flow under another id means rewriting both and
zipping the result again.

Manifest lines are limited to 72 bytes including the CRLF. Longer headers
are folded: the first physical line carries 70 bytes, each continuation
line a single space plus up to 69 bytes. With ``Bundle-SymbolicName: ``
(21 bytes) in front, an id longer than 49 bytes is therefore split across
lines and a plain substring search for it fails. :func:`rewrite_manifest`
unfolds each header before matching and folds the rewritten header again.
"""

from __future__ import annotations

import logging
import re
import shutil
import tempfile
import zipfile
from collections.abc import Callable, Iterable
from pathlib import Path
from xml.sax.saxutils import escape

from ciflow.errors import ArchiveError

logger = logging.getLogger(__name__)

MANIFEST_MEMBER = "META-INF/MANIFEST.MF"
PROJECT_MEMBER = ".project"

MANIFEST_LINE_CONTENT_BYTES = 70
_CONTINUATION = b" "
_DEFAULT_NEWLINE = b"\r\n"


# ── Manifest and project descriptor rewriting (pure) ───────────────────


def _split_newline(line: bytes) -> tuple[bytes, bytes]:
    """Split a physical line into its content and its line terminator."""
    for newline in (b"\r\n", b"\n", b"\r"):
        if line.endswith(newline):
            return line[: -len(newline)], newline
    return line, b""


def _char_boundary(data: bytes, index: int, floor: int) -> int:
    """Move *index* back so it does not split a UTF-8 sequence."""
    while index > floor + 1 and (data[index] & 0xC0) == 0x80:
        index -= 1
    return index


def fold_manifest_line(content: bytes, newline: bytes = _DEFAULT_NEWLINE) -> bytes:
    """Fold one logical manifest header into 72-byte physical lines.

    The returned bytes contain the inner line breaks but no trailing one.
    """
    pieces = []
    start = 0
    width = MANIFEST_LINE_CONTENT_BYTES
    while len(content) - start > width:
        end = _char_boundary(content, start + width, start)
        pieces.append(content[start:end])
        start = end
        width = MANIFEST_LINE_CONTENT_BYTES - len(_CONTINUATION)
    pieces.append(content[start:])
    return (newline + _CONTINUATION).join(pieces)


def _logical_lines(data: bytes) -> list[list[bytes]]:
    """Group physical lines (terminators kept) into logical headers."""
    groups: list[list[bytes]] = []
    for line in data.splitlines(keepends=True):
        if line.startswith(_CONTINUATION) and groups:
            groups[-1].append(line)
        else:
            groups.append([line])
    return groups


def _unfold(group: list[bytes]) -> bytes:
    contents = [_split_newline(line)[0] for line in group]
    return contents[0] + b"".join(c[len(_CONTINUATION):] for c in contents[1:])


def rewrite_manifest(data: bytes, old_id: str, new_id: str) -> bytes:
    """Replace ``SymbolicName: <old_id>`` with ``SymbolicName: <new_id>``.

    Headers that do not mention the old id are returned byte for byte.
    """
    pattern = re.compile(
        rb"SymbolicName: " + re.escape(old_id.encode("utf-8")) + rb"(?=$|[;,\s])"
    )
    replacement = b"SymbolicName: " + new_id.encode("utf-8")

    out = []
    replaced = 0
    for group in _logical_lines(data):
        content = _unfold(group)
        updated, count = pattern.subn(lambda _m: replacement, content)
        if not count:
            out.extend(group)
            continue

        replaced += count
        newline = _split_newline(group[0])[1] or _DEFAULT_NEWLINE
        trailing = _split_newline(group[-1])[1]
        out.append(fold_manifest_line(updated, newline) + trailing)

    if not replaced:
        logger.warning("SymbolicName %s not found in %s", old_id, MANIFEST_MEMBER)
    return b"".join(out)


def rewrite_project_descriptor(data: bytes, old_id: str, new_id: str) -> bytes:
    """Replace ``<name>old_id</name>`` with ``<name>new_id</name>``."""
    old = b"<name>" + escape(old_id).encode("utf-8") + b"</name>"
    new = b"<name>" + escape(new_id).encode("utf-8") + b"</name>"
    if old not in data:
        logger.warning("<name>%s</name> not found in %s", old_id, PROJECT_MEMBER)
        return data
    return data.replace(old, new)


_REWRITERS: dict[str, Callable[[bytes, str, str], bytes]] = {
    MANIFEST_MEMBER: rewrite_manifest,
    PROJECT_MEMBER: rewrite_project_descriptor,
}


def rewrite_identity(member: str, data: bytes, old_id: str, new_id: str) -> bytes:
    """Rewrite the identity in one of the two identity-bearing archive members."""
    try:
        rewriter = _REWRITERS[member]
    except KeyError:
        raise ValueError(f"{member} does not carry the flow identity") from None
    return rewriter(data, old_id, new_id)


# ── Archive I/O ─────────────────────────────────────────────────────────


def extract_archive(archive_path: str | Path, target_dir: str | Path) -> list[str]:
    """Extract *archive_path* into *target_dir*.

    Entries containing ``..`` are skipped. Returns the names written, in
    archive order.
    """
    target_dir = Path(target_dir)
    written = []
    with zipfile.ZipFile(archive_path) as zf:
        for info in zf.infolist():
            if ".." in info.filename:
                logger.warning("Skipping archive entry %s", info.filename)
                continue

            name = info.filename.lstrip("/")
            if not name:
                continue
            target = target_dir / name

            if info.is_dir():
                target.mkdir(parents=True, exist_ok=True)
                written.append(name)
                continue

            target.parent.mkdir(parents=True, exist_ok=True)
            with zf.open(info) as src, target.open("wb") as dst:
                shutil.copyfileobj(src, dst)

            mode = (info.external_attr >> 16) & 0o777
            if mode:
                target.chmod(mode)
            written.append(name)

    logger.debug("Extracted %d entries from %s", len(written), archive_path)
    return written


def pack_directory(
    source_dir: str | Path,
    target_path: str | Path,
    names: Iterable[str] | None = None,
) -> Path:
    """Zip the contents of *source_dir* with DEFLATE.

    Entries are stored relative to *source_dir*, directories with a trailing
    ``/``. *names* fixes the entry order; without it the tree is walked in
    sorted order.
    """
    source_dir = Path(source_dir)
    target_path = Path(target_path)
    if names is None:
        paths = sorted(source_dir.rglob("*"))
    else:
        paths = [source_dir / n.rstrip("/") for n in names]

    with zipfile.ZipFile(target_path, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        for path in paths:
            zf.write(path, path.relative_to(source_dir).as_posix())

    return target_path


def _rewrite_member(root: Path, member: str, old_id: str, new_id: str) -> None:
    path = root / member
    data = path.read_bytes()
    updated = rewrite_identity(member, data, old_id, new_id)
    if updated == data:
        return

    mode = path.stat().st_mode & 0o777
    path.unlink()
    path.write_bytes(updated)
    path.chmod(mode)
    logger.info("File %s has been updated", member)


def adjust_identity(
    archive_path: str | Path,
    old_id: str,
    new_id: str,
    workdir: str | Path,
) -> Path:
    """Write a copy of *archive_path* whose identity is *new_id*.

    The new archive is created inside *workdir*, which the caller owns and
    removes. The extraction directory is always removed here, and no
    partial archive is left behind on failure.
    """
    workdir = Path(workdir)
    extract_dir = Path(tempfile.mkdtemp(prefix="flow-", dir=workdir))
    target = workdir / f"{extract_dir.name}.zip"

    try:
        try:
            names = extract_archive(archive_path, extract_dir)
        except (OSError, zipfile.BadZipFile) as exc:
            raise ArchiveError(f"error during unzipping file: {exc}") from exc
        logger.info("File %s has been unzipped to directory %s", archive_path, extract_dir)

        for member in (MANIFEST_MEMBER, PROJECT_MEMBER):
            try:
                _rewrite_member(extract_dir, member, old_id, new_id)
            except OSError as exc:
                raise ArchiveError(f"error updating {member} file: {exc}") from exc

        try:
            pack_directory(extract_dir, target, names)
        except (OSError, zipfile.LargeZipFile) as exc:
            raise ArchiveError(f"error creating new zip file: {exc}") from exc
    except BaseException:
        target.unlink(missing_ok=True)
        raise
    finally:
        shutil.rmtree(extract_dir, ignore_errors=True)

    logger.info("New zip file has been created: %s", target)
    return target
