"""Filesystem output sink with atomic generation swaps.

Each successful build is written to its own directory under
``<state_dir>/generations``. The serving root is a symlink to the live
generation; promotion replaces that symlink with ``os.replace`` so readers
see either the whole previous generation or the whole new one.
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
import re
import shutil
import tempfile
import threading
import uuid
from datetime import UTC, datetime
from pathlib import Path, PurePosixPath

from pydantic import BaseModel

from quire.core.exceptions import WriteFailureError
from quire.core.types import BuildOutput

logger = logging.getLogger(__name__)

MANIFEST_NAME = ".quire-generation.json"
POINTER_NAME = "current.json"
COUNTER_NAME = "generation"
STATIC_PREFIX = "static"

_GENERATION_DIR = re.compile(r"^gen-(\d+)-")

# Serialises promotions across every sink of the process.
_promote_lock = threading.Lock()


class GenerationRecord(BaseModel):
    """Pointer record describing the live generation."""

    generation_id: int
    path: str
    page_count: int
    published_at: datetime


def _atomic_write_text(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_name(f".{path.name}.{uuid.uuid4().hex}.tmp")
    try:
        tmp.write_text(text, encoding="utf-8")
        os.replace(tmp, path)
    finally:
        tmp.unlink(missing_ok=True)


class GenerationCounter:
    """Persistent, monotonically increasing generation ids."""

    def __init__(self, state_dir: Path) -> None:
        self.path = Path(state_dir) / COUNTER_NAME
        self._lock = threading.Lock()

    def peek(self) -> int:
        """Return the last issued id, or 0 if none was issued yet."""
        try:
            return int(self.path.read_text(encoding="utf-8").strip() or 0)
        except FileNotFoundError:
            return 0
        except ValueError:
            logger.warning("Ignoring unreadable generation counter at %s", self.path)
            return 0

    def next(self) -> int:
        with self._lock:
            generation_id = self.peek() + 1
            _atomic_write_text(self.path, f"{generation_id}\n")
            return generation_id


class GenerationSink:
    """Writes build outputs to staging directories and promotes them.

    Implements the ``OutputSink`` protocol.
    """

    def __init__(self, state_dir: Path, serve_root: Path, static_dir: Path | None = None) -> None:
        """Initialize the sink.

        Args:
            state_dir: Directory holding generations and the pointer record
            serve_root: Path of the symlink the web server serves from
            static_dir: Optional directory of assets copied into ``static/``
                of every generation

        """
        self.state_dir = Path(state_dir)
        self.serve_root = Path(serve_root)
        self.static_dir = Path(static_dir) if static_dir is not None else None

    @property
    def generations_dir(self) -> Path:
        return self.state_dir / "generations"

    @property
    def pointer_path(self) -> Path:
        return self.state_dir / POINTER_NAME

    def static_assets(self) -> dict[str, Path]:
        """Map output paths (``static/css/site.css``) to the asset files."""
        if self.static_dir is None or not self.static_dir.is_dir():
            return {}
        assets = {}
        for path in sorted(self.static_dir.rglob("*")):
            if path.is_file():
                relative = path.relative_to(self.static_dir).as_posix()
                assets[f"{STATIC_PREFIX}/{relative}"] = path
        return assets

    # -- Writing -------------------------------------------------------------
    def write(self, output: BuildOutput) -> Path:
        """Write every page and static asset of ``output`` to a fresh directory.

        Raises:
            WriteFailureError: If anything cannot be persisted. The partial
                directory is removed before raising.

        """
        if not output.is_publishable:
            msg = f"Generation {output.generation_id} is {output.status.value}; only successful builds are written"
            raise ValueError(msg)

        try:
            self.generations_dir.mkdir(parents=True, exist_ok=True)
            staging = Path(
                tempfile.mkdtemp(prefix=f"gen-{output.generation_id:06d}-", dir=self.generations_dir)
            )
            staging.chmod(0o755)
        except OSError as exc:
            raise WriteFailureError(self.generations_dir, str(exc)) from exc

        target = staging
        try:
            for relative, data in output.pages.items():
                target = self._target(staging, relative)
                target.parent.mkdir(parents=True, exist_ok=True)
                target.write_bytes(data)

            for relative, source in self.static_assets().items():
                if relative in output.pages:
                    continue
                target = self._target(staging, relative)
                target.parent.mkdir(parents=True, exist_ok=True)
                shutil.copyfile(source, target)

            target = staging / MANIFEST_NAME
            manifest = {
                "generation_id": output.generation_id,
                "page_count": len(output.pages),
                "pages": {path: hashlib.sha256(data).hexdigest() for path, data in output.pages.items()},
            }
            target.write_text(json.dumps(manifest, indent=2, sort_keys=True) + "\n", encoding="utf-8")
        except WriteFailureError:
            shutil.rmtree(staging, ignore_errors=True)
            raise
        except OSError as exc:
            shutil.rmtree(staging, ignore_errors=True)
            raise WriteFailureError(target, str(exc)) from exc

        logger.info("Wrote generation %d to %s", output.generation_id, staging)
        return staging

    def _target(self, staging: Path, relative: str) -> Path:
        posix = PurePosixPath(relative)
        if posix.is_absolute() or ".." in posix.parts:
            raise WriteFailureError(relative, "output path escapes the generation directory")
        return staging.joinpath(*posix.parts)

    # -- Promotion -----------------------------------------------------------
    def promote(self, generation_dir: Path) -> Path:
        """Atomically point the serving root at ``generation_dir``.

        Raises:
            WriteFailureError: If the swap fails, or the serving root is a real
                directory that would have to be deleted.

        """
        generation_dir = Path(generation_dir)
        with _promote_lock:
            if self.serve_root.exists() and not self.serve_root.is_symlink():
                raise WriteFailureError(self.serve_root, "serving root is a real directory, not a generation link")

            link_target = os.path.relpath(generation_dir.resolve(), self.serve_root.parent.resolve())
            tmp_link = self.serve_root.with_name(f".{self.serve_root.name}.{uuid.uuid4().hex}.tmp")
            try:
                self.serve_root.parent.mkdir(parents=True, exist_ok=True)
                os.symlink(link_target, tmp_link, target_is_directory=True)
                os.replace(tmp_link, self.serve_root)
            except OSError as exc:
                if tmp_link.is_symlink():
                    tmp_link.unlink()
                raise WriteFailureError(self.serve_root, str(exc)) from exc

            record = self._read_manifest(generation_dir)
            try:
                _atomic_write_text(self.pointer_path, record.model_dump_json(indent=2) + "\n")
            except OSError as exc:
                logger.warning("Generation %d is live but its pointer record was not updated: %s", record.generation_id, exc)

        logger.info("Generation %d is live at %s", record.generation_id, self.serve_root)
        return self.serve_root

    def _read_manifest(self, generation_dir: Path) -> GenerationRecord:
        manifest = json.loads((generation_dir / MANIFEST_NAME).read_text(encoding="utf-8"))
        return GenerationRecord(
            generation_id=manifest["generation_id"],
            path=str(generation_dir.resolve()),
            page_count=manifest["page_count"],
            published_at=datetime.now(UTC),
        )

    # -- Inspection and cleanup ------------------------------------------------
    def live_dir(self) -> Path | None:
        """Directory the serving root currently points at."""
        if not self.serve_root.is_symlink():
            return None
        return self.serve_root.resolve()

    def current_generation(self) -> GenerationRecord | None:
        """Read the pointer record of the live generation, if any."""
        if not self.pointer_path.is_file():
            return None
        return GenerationRecord.model_validate_json(self.pointer_path.read_text(encoding="utf-8"))

    def list_generations(self) -> list[tuple[int, Path]]:
        """Retained generation directories, newest first."""
        if not self.generations_dir.is_dir():
            return []
        found = []
        for path in self.generations_dir.iterdir():
            match = _GENERATION_DIR.match(path.name)
            if match and path.is_dir():
                found.append((int(match.group(1)), path))
        return sorted(found, key=lambda entry: (entry[0], entry[1].name), reverse=True)

    def discard(self, generation_dir: Path) -> None:
        """Delete a generation that will not be published. The live one is kept."""
        generation_dir = Path(generation_dir)
        if generation_dir.resolve() == self.live_dir():
            logger.warning("Refusing to discard the live generation %s", generation_dir)
            return
        shutil.rmtree(generation_dir, ignore_errors=True)

    def prune(self, keep: int) -> list[Path]:
        """Delete all but the ``keep`` newest generations, never the live one."""
        live = self.live_dir()
        removed = []
        for _, path in self.list_generations()[keep:]:
            if path.resolve() == live:
                continue
            shutil.rmtree(path, ignore_errors=True)
            removed.append(path)
        if removed:
            logger.info("Pruned %d old generation(s)", len(removed))
        return removed
