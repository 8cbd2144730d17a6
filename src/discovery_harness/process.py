"""
Subject Process Control

Starts the reverse proxy under test with an injected configuration file
and guarantees its termination. Starting never waits for readiness; the
caller polls the proxy's listening port for that.

Combined stdout/stderr is spooled to an anonymous temporary file rather
than a pipe, so a chatty proxy cannot stall on a full pipe buffer. The
output is kept for diagnostics and logged when a test case fails.
"""

import logging
import os
import subprocess
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import IO, Iterator, List, Optional, Sequence

import psutil

logger = logging.getLogger(__name__)

KILL_WAIT_SECONDS = 10


def config_file_argument(config_file: str | Path) -> str:
    return f"--configFile={config_file}"


class SubjectProcess:
    """A single spawned instance of the proxy under test."""

    def __init__(
        self,
        binary: str,
        config_file: str | Path,
        extra_args: Optional[Sequence[str]] = None,
        env: Optional[dict] = None,
    ):
        self.binary = binary
        self.config_file = Path(config_file)
        self.extra_args = list(extra_args or [])
        self.env = env
        self.process: Optional[subprocess.Popen] = None
        self._output: Optional[IO[bytes]] = None

    @property
    def command(self) -> List[str]:
        return [self.binary, config_file_argument(self.config_file), *self.extra_args]

    @property
    def pid(self) -> Optional[int]:
        return self.process.pid if self.process else None

    def start(self) -> "SubjectProcess":
        """
        Launch the process without waiting for it to become ready.

        Raises:
            RuntimeError: If the process was already started
            OSError: If the binary cannot be executed
        """
        if self.process is not None:
            raise RuntimeError(f"Subject process already started (pid {self.pid})")

        self._output = tempfile.TemporaryFile()
        logger.debug(f"Starting subject process: {' '.join(self.command)}")
        try:
            self.process = subprocess.Popen(  # nosec B603 - binary comes from harness configuration
                self.command,
                stdout=self._output,
                stderr=subprocess.STDOUT,
                stdin=subprocess.DEVNULL,
                env=self.env,
            )
        except OSError:
            self._output.close()
            self._output = None
            raise

        logger.info(f"Started {self.binary} (pid {self.process.pid}) with {self.config_file}")
        return self

    def is_running(self) -> bool:
        return self.process is not None and self.process.poll() is None

    def kill(self) -> Optional[int]:
        """
        Forcefully terminate the process and any children it spawned.

        Safe to call repeatedly and after the process exited on its own.

        Returns:
            The exit code, or None if the process was never started
        """
        if self.process is None:
            return None

        if self.process.poll() is None:
            try:
                children = psutil.Process(self.process.pid).children(recursive=True)
            except psutil.NoSuchProcess:
                children = []
            for child in children:
                try:
                    child.kill()
                except psutil.NoSuchProcess:
                    pass
            self.process.kill()
            logger.debug(f"Killed subject process {self.process.pid}")

        try:
            return self.process.wait(timeout=KILL_WAIT_SECONDS)
        except subprocess.TimeoutExpired:
            logger.error(f"Subject process {self.process.pid} did not exit after SIGKILL")
            return None

    def output(self) -> str:
        """Return everything the process wrote so far."""
        if self._output is None:
            return ""
        # The child shares the file offset, so read positionally.
        fd = self._output.fileno()
        data = os.pread(fd, os.fstat(fd).st_size, 0)
        return data.decode("utf-8", errors="replace")

    def close(self) -> None:
        """Kill the process and discard its captured output."""
        self.kill()
        if self._output is not None:
            self._output.close()
            self._output = None

    def __repr__(self) -> str:
        return f"SubjectProcess({self.binary}, pid={self.pid})"


@contextmanager
def running(
    binary: str,
    config_file: str | Path,
    extra_args: Optional[Sequence[str]] = None,
    env: Optional[dict] = None,
) -> Iterator[SubjectProcess]:
    """
    Run the subject process for the duration of a block.

    The process is killed on every exit path. When the block raises, the
    captured output is logged before the exception propagates.
    """
    subject = SubjectProcess(binary, config_file, extra_args, env).start()
    try:
        yield subject
    except BaseException:
        subject.kill()
        logger.error(f"{binary} output:\n{subject.output()}")
        raise
    finally:
        subject.close()
