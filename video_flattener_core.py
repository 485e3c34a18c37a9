"""
Video Folder Flattener Core

Engine for finding "pure video" subfolders of a root directory and
flattening them into the root. Designed to be imported by the GUI and the
tests. No third-party dependencies required.

Features:
- Classify the immediate subfolders of a root (video files only, no nested
  folders, hidden entries ignored)
- Collision-safe renaming: "name (1).ext", "name (2).ext", ...
- Atomic rename when source and root share a filesystem, copy+delete
  otherwise
- Per-folder cleanup of empty descendants and removal of emptied folders
- Structured report and log callbacks
"""
from __future__ import annotations

import logging
import os
import shutil
import stat
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Sequence

__all__ = [
    "VIDEO_EXTENSIONS",
    "Match",
    "MoveReport",
    "ReportEntry",
    "ScanError",
    "RootUnreadableError",
    "classify",
    "evaluate_folder",
    "flatten",
    "get_logger",
    "human_size",
    "is_hidden",
    "move_file",
    "next_available_name",
    "parse_extensions",
    "remove_empty_descendants",
    "supports_atomic_move",
]

# Lowercase, no dots
VIDEO_EXTENSIONS = frozenset(
    {"mp4", "mov", "m4v", "mkv", "avi", "wmv", "flv", "webm", "mpeg", "mpg", "3gp"}
)

# ----------------------------------------------------------------------------
# Logging
# ----------------------------------------------------------------------------


def get_logger(log_path: Optional[Path] = None) -> logging.Logger:
    """Return a configured module-level logger.

    Args:
        log_path: Optional path for the log file. Defaults to a file named
                  "video_flattener.log" alongside this module. Only honoured
                  on the first call.
    """
    logger = getattr(get_logger, "_logger", None)
    if logger is not None:
        return logger

    logger = logging.getLogger("video_flattener")
    logger.setLevel(logging.INFO)

    # Avoid duplicate handlers if reimported
    if not logger.handlers:
        try:
            if log_path is None:
                log_path = Path(__file__).with_name("video_flattener.log")
            log_path.parent.mkdir(parents=True, exist_ok=True)

            fh = logging.FileHandler(log_path, encoding="utf-8")
            fmt = logging.Formatter(
                "%(asctime)s - %(levelname)s - %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
            fh.setFormatter(fmt)
            logger.addHandler(fh)
        except (OSError, PermissionError):
            # Fallback to console if file not writeable
            ch = logging.StreamHandler()
            logger.addHandler(ch)

    setattr(get_logger, "_logger", logger)
    return logger


# ----------------------------------------------------------------------------
# Errors
# ----------------------------------------------------------------------------


class ScanError(Exception):
    """A scan could not be performed at all."""


class RootUnreadableError(ScanError):
    """Root does not exist, is not a directory, or cannot be listed."""

    def __init__(self, root: Path, reason: str) -> None:
        super().__init__(f"Cannot read root folder {root}: {reason}")
        self.root = root
        self.reason = reason


# ----------------------------------------------------------------------------
# Data structures
# ----------------------------------------------------------------------------


@dataclass(frozen=True)
class Match:
    """A subfolder of root that holds nothing but video files."""

    folder: Path
    video_count: int
    total_bytes: int
    selected: bool = True

    @property
    def size_human(self) -> str:
        return human_size(self.total_bytes)


@dataclass
class ReportEntry:
    """One line of a flatten report.

    ``outcome`` is one of: info, moved, moved_non_atomic, move_failed,
    enumeration_failed, rejected, deleted, deleted_after_cleanup,
    not_deleted, delete_failed.
    """

    level: str
    outcome: str
    message: str
    source: Optional[Path] = None
    destination: Optional[Path] = None

    @property
    def is_error(self) -> bool:
        return self.level == "error"


@dataclass
class MoveReport:
    """Counters and ordered outcome log of a flatten run."""

    moved_files: int = 0
    deleted_folders: int = 0
    entries: List[ReportEntry] = field(default_factory=list)

    @property
    def errors(self) -> int:
        return sum(1 for e in self.entries if e.is_error)

    @property
    def not_deleted(self) -> List[Path]:
        return [
            e.source for e in self.entries
            if e.outcome == "not_deleted" and e.source is not None
        ]


LogCallback = Callable[[ReportEntry], None]
HiddenPredicate = Callable[[Path], bool]

# ----------------------------------------------------------------------------
# Helpers
# ----------------------------------------------------------------------------


def is_hidden(path: Path) -> bool:
    """Return True if path is considered hidden.

    Dotfiles are hidden everywhere. On Windows the filesystem hidden
    attribute is honoured as well.
    """
    if path.name.startswith("."):
        return True
    if os.name != "nt":
        return False
    try:
        attrs = getattr(path.lstat(), "st_file_attributes", 0)
    except OSError:
        return False
    return bool(attrs & stat.FILE_ATTRIBUTE_HIDDEN)


def extension_of(filename: str) -> str:
    """Text after the last dot, or "" when there is none (or it ends the name)."""
    dot = filename.rfind(".")
    if 0 <= dot < len(filename) - 1:
        return filename[dot + 1:]
    return ""


def strip_extension(filename: str) -> str:
    dot = filename.rfind(".")
    return filename[:dot] if dot > 0 else filename


def is_video_name(filename: str, extensions: Iterable[str] = VIDEO_EXTENSIONS) -> bool:
    return extension_of(filename).lower() in extensions


def parse_extensions(text: str) -> frozenset:
    """Parse ".MP4, mkv webm" into {"mp4", "mkv", "webm"}."""
    exts = {
        token.strip().lstrip(".").lower()
        for token in text.replace(",", " ").split()
    }
    exts.discard("")
    if not exts:
        raise ValueError("at least one video extension is required")
    return frozenset(exts)


def human_size(num_bytes: int) -> str:
    """Return human-readable size string."""
    units = ["B", "KB", "MB", "GB", "TB"]
    size = float(num_bytes)
    for unit in units:
        if size < 1024 or unit == units[-1]:
            return f"{size:.1f} {unit}"
        size /= 1024
    return f"{size:.1f} TB"


def next_available_name(target: Path) -> Path:
    """Return target, or the first free "name (n).ext" variant next to it.

    Extensionless names get "name (n)". The check is best effort: nothing
    reserves the name between this call and the move.
    """
    if not target.exists():
        return target
    base = strip_extension(target.name)
    ext = extension_of(target.name)
    i = 1
    while True:
        candidate = f"{base} ({i}).{ext}" if ext else f"{base} ({i})"
        alt = target.parent / candidate
        if not alt.exists():
            return alt
        i += 1


def is_directory(path: Path) -> bool:
    """Path.is_dir() that reports False when the entry cannot be stat'ed."""
    try:
        return path.is_dir()
    except OSError:
        return False


def is_dir_empty(folder: Path) -> bool:
    with os.scandir(folder) as it:
        return next(it, None) is None


def remove_empty_descendants(folder: Path) -> int:
    """Remove empty directories below folder, deepest first. Returns count.

    Files are never touched and folder itself is kept.
    """
    count = 0
    for dirpath, _, _ in os.walk(folder, topdown=False):
        p = Path(dirpath)
        if p == folder:
            continue
        try:
            if is_dir_empty(p):
                p.rmdir()
                count += 1
        except OSError:
            # Not empty or not permitted
            continue
    return count


def supports_atomic_move(source: Path, dest_dir: Path) -> bool:
    """True when source can be renamed into dest_dir in one step.

    A rename is only atomic within a single filesystem, so this compares
    device ids.
    """
    try:
        return source.lstat().st_dev == dest_dir.stat().st_dev
    except OSError:
        return False


def move_file(source: Path, dest: Path) -> bool:
    """Move source to dest. Returns True if an atomic rename was used."""
    if supports_atomic_move(source, dest.parent):
        os.rename(source, dest)
        return True
    shutil.move(str(source), str(dest))
    return False


def _normalize_root(root) -> Path:
    return Path(root).expanduser().resolve()


# ----------------------------------------------------------------------------
# Classifier
# ----------------------------------------------------------------------------


def evaluate_folder(
    folder: Path,
    extensions: Iterable[str] = VIDEO_EXTENSIONS,
    hidden: HiddenPredicate = is_hidden,
) -> Optional[Match]:
    """Return a Match if folder holds only video files, else None.

    Hidden entries are ignored. Any non-hidden subfolder or non-video file
    disqualifies the folder, as does having no visible files at all. A folder
    that cannot be listed is treated as not qualifying.
    """
    video_count = 0
    total_bytes = 0
    try:
        for p in folder.iterdir():
            if hidden(p):
                continue
            if is_directory(p):
                return None
            if not is_video_name(p.name, extensions):
                return None
            video_count += 1
            try:
                total_bytes += p.stat().st_size
            except OSError:
                pass
    except OSError:
        return None

    if video_count == 0:
        return None
    return Match(folder=folder, video_count=video_count, total_bytes=total_bytes)


def classify(
    root,
    extensions: Iterable[str] = VIDEO_EXTENSIONS,
    hidden: HiddenPredicate = is_hidden,
    log_cb: Optional[LogCallback] = None,
) -> List[Match]:
    """Scan root's immediate subfolders and return the pure video ones.

    Args:
        root: Root directory.
        extensions: Recognized video extensions (lowercase, no dot).
        hidden: Predicate deciding which entries to ignore.
        log_cb: Optional callback receiving ReportEntry lines.

    Returns:
        Matches sorted by folder path, case-insensitive.

    Raises:
        RootUnreadableError: root is missing, not a folder, or unlistable.
    """
    logger = get_logger()
    root = _normalize_root(root)
    extensions = frozenset(e.lower() for e in extensions)

    def emit(level: str, message: str) -> None:
        entry = ReportEntry(level=level, outcome="info", message=message, source=root)
        if level == "error":
            logger.error(message)
        else:
            logger.info(message)
        if log_cb:
            log_cb(entry)

    emit("info", f"Scanning immediate subfolders of: {root}")
    if not root.exists():
        emit("error", f"Scan failed: {root} does not exist")
        raise RootUnreadableError(root, "does not exist")
    if not root.is_dir():
        emit("error", f"Scan failed: {root} is not a directory")
        raise RootUnreadableError(root, "not a directory")
    try:
        children = list(root.iterdir())
    except OSError as e:
        emit("error", f"Scan failed: {e}")
        raise RootUnreadableError(root, str(e)) from e

    matches: List[Match] = []
    for child in children:
        if not is_directory(child):
            continue
        match = evaluate_folder(root / child.name, extensions, hidden)
        if match is not None:
            matches.append(match)

    matches.sort(key=lambda m: (str(m.folder).lower(), str(m.folder)))
    emit("info", f"Found {len(matches)} folder(s) that contain only video files.")
    return matches


# ----------------------------------------------------------------------------
# Flattener
# ----------------------------------------------------------------------------


def flatten(
    root,
    matches: Sequence[Match],
    extensions: Iterable[str] = VIDEO_EXTENSIONS,
    hidden: HiddenPredicate = is_hidden,
    log_cb: Optional[LogCallback] = None,
) -> MoveReport:
    """Move the video files of each match into root and delete emptied folders.

    Each match is processed independently: a failure on one file or folder
    is recorded in the report and processing carries on. Nothing is raised
    for per-item problems.

    Args:
        root: Root directory, destination of every move.
        matches: Folders to flatten, typically the selected scan results.
        extensions: Recognized video extensions, re-checked at move time.
        hidden: Predicate deciding which entries to leave in place.
        log_cb: Optional callback receiving each ReportEntry as it happens.

    Returns:
        MoveReport with counters and the ordered outcome log.
    """
    logger = get_logger()
    root = _normalize_root(root)
    extensions = frozenset(e.lower() for e in extensions)
    report = MoveReport()

    def record(
        level: str,
        outcome: str,
        message: str,
        source: Optional[Path] = None,
        destination: Optional[Path] = None,
    ) -> None:
        entry = ReportEntry(level, outcome, message, source, destination)
        report.entries.append(entry)
        if level == "error":
            logger.error(message)
        else:
            logger.info(message)
        if log_cb:
            log_cb(entry)

    record("info", "info", "Starting move of selected folders...", root)

    for match in matches:
        folder = Path(match.folder)
        if folder.parent != root:
            record(
                "error", "rejected",
                f"Skipped {folder}: not a direct subfolder of {root}",
                folder,
            )
            continue

        record("info", "info", f"Processing: {folder}", folder)

        # Move phase
        try:
            entries = list(folder.iterdir())
        except OSError as e:
            record(
                "error", "enumeration_failed",
                f"  Failed reading folder: {folder} ({e})",
                folder,
            )
            continue

        for src in entries:
            # A folder that appeared after the scan is left alone
            if is_directory(src):
                continue
            if hidden(src):
                continue
            if not is_video_name(src.name, extensions):
                continue

            dest = next_available_name(root / src.name)
            try:
                atomic = move_file(src, dest)
            except (OSError, shutil.Error) as e:
                record(
                    "error", "move_failed",
                    f"  Failed to move: {src.name} ({e})",
                    src, dest,
                )
                continue

            report.moved_files += 1
            if atomic:
                record(
                    "info", "moved",
                    f"  Moved: {src.name} -> {dest.name}",
                    src, dest,
                )
            else:
                record(
                    "info", "moved_non_atomic",
                    f"  Moved (non-atomic fs): {src.name} -> {dest.name}",
                    src, dest,
                )

        # Cleanup phase
        try:
            if is_dir_empty(folder):
                folder.rmdir()
                report.deleted_folders += 1
                record(
                    "info", "deleted",
                    f"  Deleted empty folder: {folder.name}",
                    folder,
                )
                continue

            remove_empty_descendants(folder)
            if is_dir_empty(folder):
                folder.rmdir()
                report.deleted_folders += 1
                record(
                    "info", "deleted_after_cleanup",
                    f"  Deleted (after cleanup) folder: {folder.name}",
                    folder,
                )
            else:
                record(
                    "info", "not_deleted",
                    f"  Skipped deletion; folder not empty: {folder.name}",
                    folder,
                )
        except OSError as e:
            record(
                "error", "delete_failed",
                f"  Could not delete folder: {folder} ({e})",
                folder,
            )

    record(
        "info", "info",
        f"Done. Moved files: {report.moved_files}, "
        f"Folders deleted: {report.deleted_folders}",
        root,
    )
    return report
