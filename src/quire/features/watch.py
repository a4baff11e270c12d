"""Change detection on the primary branch of the content repository."""

from __future__ import annotations

import logging
import shutil
import subprocess
import threading
from pathlib import Path
from typing import TYPE_CHECKING

from quire.core.exceptions import QuireError

if TYPE_CHECKING:
    from quire.features.trigger import PublishTrigger

logger = logging.getLogger(__name__)


class GitError(QuireError):
    """Raised when a git command cannot be run or fails."""


class GitBranchWatcher:
    """Polls the head commit of the primary branch.

    With ``fetch`` enabled each poll fetches the branch from the remote and
    fast-forwards the local branch before reading its head, so a push to the
    remote becomes a change event.
    """

    def __init__(
        self,
        repo_dir: Path,
        branch: str = "main",
        remote: str = "origin",
        *,
        fetch: bool = True,
        git_bin: str = "git",
    ) -> None:
        self.repo_dir = Path(repo_dir)
        self.branch = branch
        self.remote = remote
        self.fetch = fetch
        self._git_bin = git_bin
        self.last_seen: str | None = None

    def _git(self, *args: str) -> str:
        git_path = shutil.which(self._git_bin)
        if not git_path:
            raise GitError(f"'{self._git_bin}' is not available on PATH")
        command = [git_path, "-C", str(self.repo_dir), *args]
        try:
            completed = subprocess.run(command, check=True, capture_output=True, text=True)
        except subprocess.CalledProcessError as exc:
            detail = (exc.stderr or "").strip() or f"exit code {exc.returncode}"
            raise GitError(f"git {' '.join(args)} failed: {detail}") from exc
        return completed.stdout.strip()

    def sync(self) -> None:
        """Fetch the primary branch and fast-forward the local copy."""
        self._git("fetch", "--quiet", self.remote, self.branch)
        current = self._git("rev-parse", "--abbrev-ref", "HEAD")
        if current != self.branch:
            logger.warning("Checkout is on '%s', not '%s'; not fast-forwarding", current, self.branch)
            return
        self._git("merge", "--ff-only", "--quiet", f"{self.remote}/{self.branch}")

    def head(self) -> str:
        """Commit id of the local primary branch."""
        return self._git("rev-parse", "--verify", f"refs/heads/{self.branch}")

    def poll(self) -> str | None:
        """Return the new head commit if it changed since the last poll.

        The first poll always reports the current head so the initial state
        gets built.
        """
        if self.fetch:
            self.sync()
        head = self.head()
        if head == self.last_seen:
            return None
        self.last_seen = head
        return head

    def watch(
        self,
        trigger: PublishTrigger,
        interval: float,
        stop: threading.Event | None = None,
        max_polls: int | None = None,
    ) -> None:
        """Poll until ``stop`` is set, notifying ``trigger`` once per new head.

        Git failures are logged and the next poll retries; they never stop the
        loop.
        """
        stop = stop or threading.Event()
        polls = 0
        while not stop.is_set():
            try:
                head = self.poll()
            except GitError as exc:
                logger.warning("Polling %s failed: %s", self.repo_dir, exc)
            else:
                if head is not None:
                    trigger.notify(f"{self.branch}@{head[:12]}")
            polls += 1
            if max_polls is not None and polls >= max_polls:
                break
            stop.wait(interval)
