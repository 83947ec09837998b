"""
Store Swapper - atomic store replacement and artifact destruction.

A store is a main SQLite file plus optional side files (``-wal``, ``-shm``,
``-journal``). Replacement copies the new store next to the target and
renames it over the target, so a crash at any point leaves either the old
or the new store, never a mix.
"""

import os
import shutil
import tempfile
from pathlib import Path
from typing import Union

import structlog

from storechain.core.errors import StoreIOError

log = structlog.get_logger()

PathLike = Union[str, Path]

SIDE_FILE_SUFFIXES = ("-wal", "-shm", "-journal")


def side_files(path: PathLike) -> list[Path]:
    """Auxiliary files SQLite may keep next to a store."""
    path = Path(path)
    return [path.with_name(path.name + suffix) for suffix in SIDE_FILE_SUFFIXES]


def _fsync_directory(directory: Path) -> None:
    """Persist a rename; a no-op where directories cannot be opened."""
    if not hasattr(os, "O_DIRECTORY"):
        return
    fd = os.open(directory, os.O_RDONLY | os.O_DIRECTORY)
    try:
        os.fsync(fd)
    finally:
        os.close(fd)


class StoreSwapper:
    """Replaces and destroys store artifacts.

    Usage:
        swapper = StoreSwapper()
        swapper.atomic_replace(target=store_path, source=migrated_path)
        swapper.destroy(migrated_path)
    """

    def __init__(self) -> None:
        self._log = log.bind(component="store_swapper")

    def atomic_replace(self, target: PathLike, source: PathLike) -> None:
        """Replace ``target``'s content with ``source``'s, atomically.

        The copy is written to a hidden sibling of ``target``, fsynced, and
        renamed over ``target``. ``source`` is left in place.

        Syncing the parent directory after the rename is best effort; a
        failure there is logged, since ``target`` already holds the new
        content.

        Raises:
            StoreIOError: If staging or the rename fails. ``target`` is
                unchanged in that case.
        """
        target = Path(target)
        source = Path(source)
        if not source.is_file():
            raise StoreIOError(f"replacement store not found: {source}", path=source)

        staging_path = None
        success = False
        try:
            with tempfile.NamedTemporaryFile(
                mode="wb",
                dir=target.parent,
                prefix=f".{target.name}.",
                suffix=".swap",
                delete=False,
            ) as staging:
                staging_path = Path(staging.name)
                with open(source, "rb") as src:
                    shutil.copyfileobj(src, staging)
                staging.flush()
                os.fsync(staging.fileno())

            # NamedTemporaryFile creates 0600; keep the store's own mode
            if target.exists():
                shutil.copymode(target, staging_path)

            # Leftover journals belong to the old content
            for side in side_files(target):
                side.unlink(missing_ok=True)

            os.replace(staging_path, target)
            success = True
        except OSError as e:
            raise StoreIOError(
                f"failed to replace store {target} with {source}", path=target, cause=e
            ) from e
        finally:
            if staging_path is not None and not success:
                try:
                    staging_path.unlink(missing_ok=True)
                except OSError as cleanup_error:
                    self._log.warning(
                        "swap_staging_cleanup_failed",
                        path=str(staging_path),
                        error=str(cleanup_error),
                    )

        # The rename is committed; a failed directory sync cannot undo it
        try:
            _fsync_directory(target.parent)
        except OSError as e:
            self._log.warning("swap_directory_sync_failed", directory=str(target.parent), error=str(e))

        self._log.info(
            "store_replaced",
            target=str(target),
            source=str(source),
            size_bytes=target.stat().st_size,
        )

    def destroy(self, path: PathLike) -> None:
        """Remove a store and its side files. Missing files are not an error.

        Raises:
            StoreIOError: If a file exists but cannot be removed.
        """
        path = Path(path)
        removed = []
        for artifact in [path, *side_files(path)]:
            try:
                if artifact.exists():
                    artifact.unlink()
                    removed.append(artifact.name)
            except FileNotFoundError:
                continue
            except OSError as e:
                raise StoreIOError(f"cannot remove {artifact}", path=artifact, cause=e) from e

        if removed:
            self._log.debug("store_destroyed", path=str(path), removed=removed)
