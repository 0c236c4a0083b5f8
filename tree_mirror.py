# /tree_mirror.py
"""
Tree Mirror
- Keeps a target folder an exact copy of a source folder (source always wins).
- Full reconciliation on startup: copy missing, rewrite differing, delete extras.
- Watches every source directory with its own non-recursive subscription.
- Debounces bursts of events, then re-runs the full reconciliation once the
  event stream is quiet and no pass is already running.
- New subdirectories are picked up when the watch registry is rebuilt after
  each pass.
- Optional gitignore-style exclusions (--exclude, repeatable).
- Styled console output:
  - COPY / UPDATE green
  - DELETE / RMTREE orange
  - COPYTREE light brown
  - errors red
- Log file is always plain (no color codes).

Usage
  pip install watchdog pathspec colorama
  python tree_mirror.py /src /dst
  python tree_mirror.py /src /dst --debounce 1.0 --exclude "*.tmp" --verbose
"""

from __future__ import annotations

import argparse
import datetime as dt
import errno
import logging
import os
import queue
import shutil
import sys
import threading
import time
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Callable, Iterable, Optional

from pathspec import PathSpec
from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

try:
    from colorama import init as colorama_init  # type: ignore
except Exception:  # pragma: no cover
    colorama_init = None

DEBOUNCE_SEC = 0.5
CHUNK_SIZE = 1024 * 1024
LISTENER_THREAD_NAME = "directory-changes-listener"

# Access notifications carry no content change.
PASSIVE_EVENT_TYPES = frozenset({"opened", "closed", "closed_no_write"})


# -------------------------
# Console styling
# -------------------------

class Ansi:
    RESET = "\x1b[0m"
    RED = "\x1b[31m"
    GREEN = "\x1b[32m"
    ORANGE = "\x1b[38;5;208m"
    WHITE = "\x1b[97m"
    LIGHT_BROWN = "\x1b[33m"
    CYAN = "\x1b[36m"


ACTION_COLORS = {
    "COPY": Ansi.GREEN,
    "UPDATE": Ansi.GREEN,
    "COPYTREE": Ansi.LIGHT_BROWN,
    "DELETE": Ansi.ORANGE,
    "RMTREE": Ansi.ORANGE,
    "EVENT": Ansi.CYAN,
    "SYNC": Ansi.WHITE,
    "WATCH": Ansi.WHITE,
}


def _supports_color(stream) -> bool:
    try:
        return hasattr(stream, "isatty") and stream.isatty()
    except Exception:
        return False


class ColorizingFormatter(logging.Formatter):
    def __init__(self, use_color: bool, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.use_color = use_color

    def format(self, record: logging.LogRecord) -> str:
        base = super().format(record)
        if not self.use_color:
            return base

        if record.levelno >= logging.ERROR:
            return f"{Ansi.RED}{base}{Ansi.RESET}"

        action = getattr(record, "action", None)
        is_dir = getattr(record, "is_dir", None)
        path_text = getattr(record, "path_text", None)

        if action:
            action_color = ACTION_COLORS.get(action, "")
            if action_color and action in base:
                base = base.replace(action, f"{action_color}{action}{Ansi.RESET}", 1)

        if path_text and path_text in base:
            pcolor = Ansi.LIGHT_BROWN if is_dir else Ansi.WHITE
            base = base.replace(path_text, f"{pcolor}{path_text}{Ansi.RESET}")

        return base


def _today_log_name(prefix: str = "tree_mirror") -> str:
    return f"{prefix}_{dt.date.today().isoformat()}.log"


def setup_logger(log_dir: Path, verbose: bool = False) -> logging.Logger:
    log_dir.mkdir(parents=True, exist_ok=True)
    log_path = log_dir / _today_log_name()
    level = logging.DEBUG if verbose else logging.INFO

    logger = logging.getLogger("tree_mirror")
    logger.setLevel(level)
    logger.propagate = False

    if logger.handlers:
        return logger

    if colorama_init:
        colorama_init()

    fmt = "%(asctime)s | %(levelname)s | %(message)s"
    datefmt = "%Y-%m-%d %H:%M:%S"

    fh = logging.FileHandler(log_path, encoding="utf-8")
    fh.setFormatter(logging.Formatter(fmt=fmt, datefmt=datefmt))
    fh.setLevel(level)

    ch = logging.StreamHandler(sys.stdout)
    ch.setLevel(level)
    ch.setFormatter(ColorizingFormatter(use_color=_supports_color(sys.stdout), fmt=fmt, datefmt=datefmt))

    logger.addHandler(fh)
    logger.addHandler(ch)

    logger.info("Logging to: %s", log_path)
    return logger


def log_action(
    logger: logging.Logger,
    action: str,
    message: str,
    path: Optional[Path] = None,
    is_dir: Optional[bool] = None,
    level: int = logging.INFO,
) -> None:
    extra = {"action": action}
    if path is not None:
        extra["path_text"] = str(path)
        extra["is_dir"] = bool(is_dir) if is_dir is not None else (path.exists() and path.is_dir())
    logger.log(level, f"{action} | {message}", extra=extra)


# -------------------------
# Config / CLI
# -------------------------

@dataclass(frozen=True)
class AppConfig:
    source_dir: Path
    target_dir: Path
    log_dir: Path
    debounce_sec: float = DEBOUNCE_SEC
    exclude: tuple[str, ...] = ()
    verbose: bool = False


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="tree-mirror",
        usage="%(prog)s [options] SOURCE TARGET",
        description="Keep TARGET an exact mirror of SOURCE and re-sync whenever SOURCE changes.",
    )
    p.add_argument("paths", nargs="*", metavar="DIR", help="Source folder, then target folder.")
    p.add_argument("--log-dir", type=str, default=".", help="Directory for log files.")
    p.add_argument("--debounce", type=float, default=DEBOUNCE_SEC, help="Quiet period (seconds) before re-syncing.")
    p.add_argument(
        "--exclude",
        action="append",
        default=[],
        metavar="PATTERN",
        help="Gitignore-style pattern to leave out of the mirror (repeatable).",
    )
    p.add_argument("--verbose", action="store_true", help="Log comparisons and other debug detail.")
    return p


def build_config(args: argparse.Namespace) -> AppConfig:
    source, target = args.paths
    return AppConfig(
        source_dir=Path(source),
        target_dir=Path(target),
        log_dir=Path(args.log_dir).expanduser(),
        debounce_sec=max(0.0, float(args.debounce)),
        exclude=tuple(args.exclude),
        verbose=bool(args.verbose),
    )


def _is_subpath(child: Path, parent: Path) -> bool:
    try:
        child.resolve().relative_to(parent.resolve())
        return True
    except ValueError:
        return False


def validate_paths(source: Path, target: Path) -> tuple[Path, Path]:
    source = source.expanduser().resolve()
    target = target.expanduser().resolve()

    if not source.is_dir():
        raise ValueError(f"Source directory does not exist or is not a folder: {source}")
    if not target.is_dir():
        raise ValueError(f"Target directory does not exist or is not a folder: {target}")
    if source == target:
        raise ValueError("Source and target folders must be different.")
    if _is_subpath(target, source):
        raise ValueError("Target folder must NOT be inside source folder (would cause loops).")
    if _is_subpath(source, target):
        raise ValueError("Source folder must NOT be inside target folder (it would be deleted).")

    return source, target


# -------------------------
# Exclusions + filesystem helpers
# -------------------------

class IgnoreMatcher:
    """Gitignore-style matcher over paths relative to a tree root."""

    def __init__(self, patterns: Iterable[str] = ()):
        self.patterns = list(patterns)
        self.spec = PathSpec.from_lines("gitwildmatch", self.patterns)

    def __bool__(self) -> bool:
        return bool(self.patterns)

    def is_ignored(self, rel: Path, is_dir: bool = False) -> bool:
        if not self.patterns:
            return False
        rel_posix = rel.as_posix()
        if rel_posix in ("", "."):
            return False
        if is_dir and not rel_posix.endswith("/"):
            rel_posix += "/"
        return self.spec.match_file(rel_posix)


def files_identical(a: Path, b: Path, chunk_size: int = CHUNK_SIZE) -> bool:
    if a.stat().st_size != b.stat().st_size:
        return False
    with a.open("rb") as fa, b.open("rb") as fb:
        while True:
            ca = fa.read(chunk_size)
            cb = fb.read(chunk_size)
            if ca != cb:
                return False
            if not ca:
                return True


def remove_path(path: Path) -> bool:
    """Remove a file, symlink or directory tree. Returns True for a directory."""
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path)
        return True
    path.unlink()
    return False


def is_link_cycle(root: Path, parent: str, name: str) -> bool:
    """True when ``parent/name`` is a symlink to ``parent``, one of its ancestors up to ``root``, or above them."""
    child = os.path.join(parent, name)
    if not os.path.islink(child):
        return False
    target = os.path.realpath(child)
    prefix = target.rstrip(os.sep) + os.sep
    current = Path(parent)
    while True:
        real = os.path.realpath(current)
        if real == target or real.startswith(prefix):
            return True
        if current == root or current == current.parent:
            return False
        current = current.parent


# -------------------------
# Reconciler
# -------------------------

@dataclass
class SyncStats:
    dirs_copied: int = 0
    files_copied: int = 0
    files_updated: int = 0
    dirs_deleted: int = 0
    files_deleted: int = 0
    errors: int = 0
    aborted: bool = False
    duration_sec: float = 0.0

    @property
    def changes(self) -> int:
        return self.dirs_copied + self.files_copied + self.files_updated + self.dirs_deleted + self.files_deleted

    def to_dict(self) -> dict:
        d = asdict(self)
        d["changes"] = self.changes
        return d


class Reconciler:
    """
    Converges ``target_root`` onto ``source_root``.

    A pass runs in two phases: a pre-order walk of the source that copies
    missing entries and rewrites files whose bytes differ, then a pre-order
    walk of the target that deletes everything the source no longer has.
    Errors on single entries are logged and skipped. ``busy`` is set for
    exactly the duration of ``synchronize()``.
    """

    def __init__(
        self,
        source_root: Path,
        target_root: Path,
        logger: logging.Logger,
        ignore: Optional[IgnoreMatcher] = None,
    ):
        self.source_root = Path(source_root)
        self.target_root = Path(target_root)
        self.logger = logger
        self.ignore = ignore or IgnoreMatcher()
        self._busy = threading.Event()

    @property
    def busy(self) -> bool:
        return self._busy.is_set()

    def synchronize(self) -> SyncStats:
        stats = SyncStats()
        started = time.monotonic()
        self._busy.set()
        log_action(self.logger, "SYNC", f"start {self.source_root} -> {self.target_root}")
        try:
            if not self.source_root.is_dir():
                raise FileNotFoundError(errno.ENOENT, "source root is not accessible", str(self.source_root))
            self._copy_phase(stats)
            self._delete_phase(stats)
        except Exception:
            stats.aborted = True
            self.logger.exception("SYNC | pass abandoned: %s -> %s", self.source_root, self.target_root)
        finally:
            self._busy.clear()

        stats.duration_sec = time.monotonic() - started
        log_action(
            self.logger,
            "SYNC",
            f"{'aborted' if stats.aborted else 'done'} in {stats.duration_sec:.2f}s | "
            f"copied {stats.files_copied} files / {stats.dirs_copied} dirs, "
            f"updated {stats.files_updated}, deleted {stats.files_deleted} files / {stats.dirs_deleted} dirs, "
            f"errors {stats.errors}",
        )
        return stats

    # phase 1: source -> target

    def _copy_phase(self, stats: SyncStats) -> None:
        if self._sync_directory(Path(), stats):
            return

        walk = os.walk(self.source_root, followlinks=True, onerror=self._walk_error(self.source_root, stats))
        for dirpath, dirnames, filenames in walk:
            rel_dir = Path(dirpath).relative_to(self.source_root)

            descend = []
            for name in sorted(dirnames):
                rel = rel_dir / name
                if self.ignore.is_ignored(rel, is_dir=True):
                    continue
                if is_link_cycle(self.source_root, dirpath, name):
                    self.logger.debug("Skipping symlink cycle: %s", self.source_root / rel)
                    continue
                if not self._sync_directory(rel, stats):
                    descend.append(name)
            dirnames[:] = descend

            for name in sorted(filenames):
                rel = rel_dir / name
                if self.ignore.is_ignored(rel):
                    continue
                self._sync_file(rel, stats)

    def _sync_directory(self, rel: Path, stats: SyncStats) -> bool:
        """Copy the whole subtree when the target lacks it. Returns True when the walk must not descend."""
        src = self.source_root / rel
        dst = self.target_root / rel
        self.logger.debug("Comparing directory: %s -> %s", src, dst)

        try:
            if dst.is_dir() and not dst.is_symlink():
                return False
            if os.path.lexists(dst):
                remove_path(dst)
                log_action(self.logger, "DELETE", f"(kind mismatch) {dst}", path=dst, is_dir=False)
            shutil.copytree(src, dst, copy_function=shutil.copy2, ignore=self._copytree_ignore)
            stats.dirs_copied += 1
            log_action(self.logger, "COPYTREE", f"{src} -> {dst}", path=dst, is_dir=True)
        except shutil.Error as e:
            failures = e.args[0] if e.args and isinstance(e.args[0], list) else [e]
            stats.errors += len(failures)
            for failure in failures:
                log_action(self.logger, "COPYTREE", f"ERROR {src} -> {dst} | {failure}", path=dst, is_dir=True, level=logging.ERROR)
        except OSError as e:
            stats.errors += 1
            log_action(self.logger, "COPYTREE", f"ERROR {src} -> {dst} | {e}", path=dst, is_dir=True, level=logging.ERROR)
        return True

    def _copytree_ignore(self, dirpath: str, names: list[str]) -> set[str]:
        rel_dir = Path(dirpath).relative_to(self.source_root)
        ignored = set()
        for name in names:
            is_dir = os.path.isdir(os.path.join(dirpath, name))
            if self.ignore.is_ignored(rel_dir / name, is_dir=is_dir):
                ignored.add(name)
            elif is_dir and is_link_cycle(self.source_root, dirpath, name):
                ignored.add(name)
        return ignored

    def _sync_file(self, rel: Path, stats: SyncStats) -> None:
        src = self.source_root / rel
        dst = self.target_root / rel
        self.logger.debug("Comparing file: %s -> %s", src, dst)

        try:
            if dst.is_symlink():
                # never write through a link in the target
                dst.unlink()
                log_action(self.logger, "DELETE", f"(symlink in target) {dst}", path=dst, is_dir=False)
            elif dst.is_dir():
                shutil.rmtree(dst)
                log_action(self.logger, "RMTREE", f"(kind mismatch) {dst}", path=dst, is_dir=True)

            if not dst.exists():
                shutil.copy2(src, dst)
                stats.files_copied += 1
                log_action(self.logger, "COPY", f"{src} -> {dst}", path=dst, is_dir=False)
                return

            if files_identical(src, dst):
                return

            self.logger.debug("File mismatch: %s != %s", src, dst)
            shutil.copyfile(src, dst)
            stats.files_updated += 1
            log_action(self.logger, "UPDATE", f"{src} -> {dst}", path=dst, is_dir=False)
        except OSError as e:
            stats.errors += 1
            log_action(self.logger, "COPY", f"ERROR {src} -> {dst} | {e}", path=dst, is_dir=False, level=logging.ERROR)

    # phase 2: target -> source

    def _delete_phase(self, stats: SyncStats) -> None:
        for dirpath, dirnames, filenames in os.walk(self.target_root, onerror=self._walk_error(self.target_root, stats)):
            rel_dir = Path(dirpath).relative_to(self.target_root)

            keep = []
            for name in sorted(dirnames):
                rel = rel_dir / name
                if self._source_has(rel, is_dir=True):
                    keep.append(name)
                else:
                    self._delete_entry(rel, stats)
            dirnames[:] = keep

            for name in sorted(filenames):
                rel = rel_dir / name
                if not self._source_has(rel, is_dir=False):
                    self._delete_entry(rel, stats)

    def _source_has(self, rel: Path, is_dir: bool) -> bool:
        if self.ignore.is_ignored(rel, is_dir=is_dir):
            return False
        if is_dir and is_link_cycle(self.source_root, str(self.source_root / rel.parent), rel.name):
            return False
        return os.path.lexists(self.source_root / rel)

    def _delete_entry(self, rel: Path, stats: SyncStats) -> None:
        dst = self.target_root / rel
        try:
            if remove_path(dst):
                stats.dirs_deleted += 1
                log_action(self.logger, "RMTREE", f"{dst}", path=dst, is_dir=True)
            else:
                stats.files_deleted += 1
                log_action(self.logger, "DELETE", f"{dst}", path=dst, is_dir=False)
        except OSError as e:
            stats.errors += 1
            log_action(self.logger, "DELETE", f"ERROR {dst} | {e}", path=dst, is_dir=False, level=logging.ERROR)

    def _walk_error(self, root: Path, stats: SyncStats) -> Callable[[OSError], None]:
        def onerror(err: OSError) -> None:
            # an unreadable root ends the pass
            if err.filename is not None and Path(err.filename) == root:
                raise err
            stats.errors += 1
            log_action(self.logger, "SYNC", f"ERROR walking {err.filename} | {err}", level=logging.ERROR)

        return onerror


# -------------------------
# Watch registry
# -------------------------

class _DirectoryEventHandler(FileSystemEventHandler):
    """Forwards the events of one watched directory to the loop's queue."""

    def __init__(self, directory: Path, source_root: Path, events: queue.Queue, ignore: IgnoreMatcher):
        self.directory = directory
        self.source_root = source_root
        self.events = events
        self.ignore = ignore

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.event_type in PASSIVE_EVENT_TYPES:
            return
        if self.ignore:
            try:
                rel = Path(os.fsdecode(event.src_path)).relative_to(self.source_root)
            except ValueError:
                rel = None
            if rel is not None and self.ignore.is_ignored(rel, is_dir=event.is_directory):
                return
        self.events.put((self.directory, event))


class WatchRegistry:
    """One non-recursive watchdog subscription per directory, keyed by its watch handle."""

    def __init__(
        self,
        observer,
        handler_factory: Callable[[Path], FileSystemEventHandler],
        logger: logging.Logger,
        ignore: Optional[IgnoreMatcher] = None,
    ):
        self.observer = observer
        self.handler_factory = handler_factory
        self.logger = logger
        self.ignore = ignore or IgnoreMatcher()
        self._watches: dict = {}

    def __len__(self) -> int:
        return len(self._watches)

    def __contains__(self, directory: Path) -> bool:
        return directory in self._watches.values()

    def directories(self) -> list[Path]:
        return sorted(self._watches.values())

    def register(self, directory: Path) -> bool:
        try:
            watch = self.observer.schedule(self.handler_factory(directory), str(directory), recursive=False)
        except OSError as e:
            log_action(self.logger, "WATCH", f"ERROR cannot watch {directory} | {e}", path=directory, is_dir=True, level=logging.ERROR)
            return False
        self._watches[watch] = directory
        self.logger.debug("Watching directory: %s", directory)
        return True

    def register_all(self, root: Path) -> int:
        if not root.is_dir():
            log_action(self.logger, "WATCH", f"ERROR not a directory: {root}", path=root, is_dir=True, level=logging.ERROR)
            return 0

        count = int(self.register(root))

        def onerror(err: OSError) -> None:
            log_action(self.logger, "WATCH", f"ERROR walking {err.filename} | {err}", level=logging.ERROR)

        for dirpath, dirnames, _ in os.walk(root, followlinks=True, onerror=onerror):
            rel_dir = Path(dirpath).relative_to(root)
            dirnames[:] = sorted(
                d
                for d in dirnames
                if not is_link_cycle(root, dirpath, d) and not self.ignore.is_ignored(rel_dir / d, is_dir=True)
            )
            for name in dirnames:
                count += int(self.register(Path(dirpath) / name))
        return count

    def prune(self) -> list[Path]:
        """Drop watches whose directory no longer exists."""
        gone = []
        for watch, directory in list(self._watches.items()):
            if directory.is_dir():
                continue
            self._unschedule(watch)
            del self._watches[watch]
            gone.append(directory)
        return gone

    def clear(self) -> None:
        for watch in list(self._watches):
            self._unschedule(watch)
        self._watches.clear()

    def _unschedule(self, watch) -> None:
        try:
            self.observer.unschedule(watch)
        except (KeyError, OSError) as e:
            self.logger.debug("Unschedule failed for %s: %s", self._watches.get(watch), e)


# -------------------------
# Watch loop
# -------------------------

_STOP = object()


def classify_event(event: FileSystemEvent) -> list[tuple[str, str]]:
    """Return ``(kind, absolute path)`` pairs; a move counts as delete + create."""
    src = os.fsdecode(event.src_path)
    if event.event_type == "moved":
        return [("deleted", src), ("created", os.fsdecode(event.dest_path))]
    return [(event.event_type, src)]


class WatchLoop(threading.Thread):
    """
    Watches the source tree and re-runs the reconciler once events go quiet.

    Each iteration blocks until an event arrives, waits out the debounce
    window, drains and logs everything queued, prunes dead watches, then
    syncs if nothing new is pending and the reconciler is idle. After a
    sync the registry is rebuilt from scratch so new subdirectories get
    their own watch.
    """

    def __init__(
        self,
        source_root: Path,
        reconciler: Reconciler,
        logger: logging.Logger,
        debounce_sec: float = DEBOUNCE_SEC,
        ignore: Optional[IgnoreMatcher] = None,
        observer_factory: Callable[[], object] = Observer,
    ):
        super().__init__(name=LISTENER_THREAD_NAME, daemon=True)
        self.source_root = Path(source_root)
        self.reconciler = reconciler
        self.logger = logger
        self.debounce_sec = max(0.0, float(debounce_sec))
        self.ignore = ignore or IgnoreMatcher()
        self.passes = 0
        self._events: queue.Queue = queue.Queue()
        self._stop_event = threading.Event()
        self.observer = observer_factory()
        self.registry = WatchRegistry(self.observer, self._handler_for, logger, self.ignore)

    def _handler_for(self, directory: Path) -> _DirectoryEventHandler:
        return _DirectoryEventHandler(directory, self.source_root, self._events, self.ignore)

    def stop(self) -> None:
        self._stop_event.set()
        self._events.put(_STOP)

    @property
    def stopped(self) -> bool:
        return self._stop_event.is_set()

    def run(self) -> None:
        self.logger.info("WATCH: started %s (debounce=%.2fs)", self.source_root, self.debounce_sec)
        self.observer.start()
        try:
            self._watch_changes()
        finally:
            self.registry.clear()
            self.observer.stop()
            self.observer.join(timeout=10)
            self.logger.info("WATCH: stopped")

    def _watch_changes(self) -> None:
        self._rebuild()
        while self.registry and not self.stopped:
            first = self._wait_for_event()
            if first is None:
                return
            try:
                self._drain(first)
                for directory in self.registry.prune():
                    log_action(self.logger, "WATCH", f"removed (directory gone) {directory}", path=directory, is_dir=True)
                if not self.registry:
                    self.logger.warning("WATCH: no directories left to watch")
                    return
                if self.stopped:
                    return
                self._maybe_synchronize()
            except Exception:
                self.logger.exception("WATCH: iteration failed")

        if not self.registry:
            self.logger.warning("WATCH: no directories left to watch")

    def _rebuild(self) -> None:
        self.registry.clear()
        count = self.registry.register_all(self.source_root)
        self.logger.debug("Watching %d directories under %s", count, self.source_root)

    def _wait_for_event(self):
        item = self._events.get()
        if item is _STOP or self.stopped:
            self.logger.info("WATCH: wait interrupted, stopping")
            return None
        # a modify is usually followed by a timestamp update; let both land
        if self._stop_event.wait(self.debounce_sec):
            self.logger.info("WATCH: interrupted during debounce, stopping")
            return None
        return item

    def _drain(self, first) -> int:
        batch = [first]
        while True:
            try:
                item = self._events.get_nowait()
            except queue.Empty:
                break
            if item is _STOP:
                continue
            batch.append(item)

        for directory, event in batch:
            for kind, path in classify_event(event):
                try:
                    rel = Path(path).relative_to(self.source_root)
                except ValueError:
                    rel = Path(path)
                log_action(self.logger, "EVENT", f"{kind} {rel} (in {directory})", path=rel, is_dir=event.is_directory)
        return len(batch)

    def _maybe_synchronize(self) -> bool:
        if not self._events.empty():
            self.logger.debug("WATCH: more events pending, postponing sync")
            return False
        if self.reconciler.busy:
            self.logger.debug("WATCH: reconciliation already running, skipping")
            return False

        self.passes += 1
        self.reconciler.synchronize()
        self._rebuild()
        return True


# -------------------------
# Main
# -------------------------

def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(sys.argv[1:] if argv is None else argv)
    if len(args.paths) != 2:
        parser.print_usage()
        return 0

    cfg = build_config(args)
    logger = setup_logger(cfg.log_dir, verbose=cfg.verbose)

    try:
        source, target = validate_paths(cfg.source_dir, cfg.target_dir)
        logger.info("Source: %s", source)
        logger.info("Target: %s", target)
    except ValueError as e:
        logger.error("Config error: %s", e)
        return 2

    ignore = IgnoreMatcher(cfg.exclude)
    reconciler = Reconciler(source, target, logger, ignore=ignore)
    reconciler.synchronize()

    loop = WatchLoop(source, reconciler, logger, debounce_sec=cfg.debounce_sec, ignore=ignore)

    logger.info("Starting watcher... (Ctrl+C to stop)")
    loop.start()

    try:
        while loop.is_alive():
            loop.join(timeout=0.5)
    except KeyboardInterrupt:
        logger.info("Stopping...")
    finally:
        loop.stop()
        loop.join(timeout=10)
        logger.info("Stopped.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
