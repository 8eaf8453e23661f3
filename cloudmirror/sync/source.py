"""rclone-backed content source.

This is the only module that spawns processes: ``rclone lsjson`` for
listings and ``rclone cat`` for file content.
"""

from __future__ import annotations

import logging
import subprocess
import tempfile
from collections.abc import Iterator
from contextlib import contextmanager
from typing import IO, Optional

from ..exceptions import ContentTooLargeError, EnumerationError, StreamTransferError
from ..models import RemoteContext, RemoteEntry
from ..utils import DEFAULT_STREAM_CHUNK_SIZE
from .scanner import parse_listing

logger = logging.getLogger(__name__)


class RemoteStream:
    """Readable stream over the stdout of an ``rclone cat`` process.

    The process exit code is checked when the stream reaches EOF, so a
    failed transfer raises StreamTransferError from the final ``read()``
    instead of silently ending the content early.
    """

    def __init__(
        self,
        process: subprocess.Popen,
        path: str,
        max_bytes: Optional[int] = None,
        stderr_file: Optional[IO[bytes]] = None,
    ):
        self.path = path
        self.max_bytes = max_bytes
        self.bytes_read = 0
        self._process = process
        self._stderr_file = stderr_file
        self._finished = False

    def read(self, size: int = -1) -> bytes:
        """Read up to ``size`` bytes (everything when size is negative).

        Raises:
            StreamTransferError: If the process exited non-zero
            ContentTooLargeError: If more than max_bytes were produced
        """
        if self._finished:
            return b""

        stdout = self._process.stdout
        assert stdout is not None
        data = stdout.read(size) if size is not None and size >= 0 else stdout.read()

        if data:
            self.bytes_read += len(data)
            if self.max_bytes is not None and self.bytes_read > self.max_bytes:
                self._finished = True
                self._kill()
                raise ContentTooLargeError(self.path, self.bytes_read, self.max_bytes)
            return data

        self._finish()
        return b""

    def __iter__(self) -> Iterator[bytes]:
        while True:
            chunk = self.read(DEFAULT_STREAM_CHUNK_SIZE)
            if not chunk:
                return
            yield chunk

    def _stderr_text(self) -> str:
        if self._stderr_file is None:
            return ""
        self._stderr_file.seek(0)
        return self._stderr_file.read().decode("utf-8", errors="replace")

    def _finish(self) -> None:
        self._finished = True
        returncode = self._process.wait()
        if returncode != 0:
            stderr = self._stderr_text()
            logger.error(f"rclone cat failed for {self.path} ({returncode}): {stderr}")
            raise StreamTransferError(self.path, returncode=returncode, stderr=stderr)

    def _kill(self) -> None:
        if self._process.poll() is None:
            self._process.kill()
            self._process.wait()

    def close(self) -> None:
        """Stop the process if it is still running and release its pipes."""
        self._kill()
        if self._process.stdout is not None:
            self._process.stdout.close()
        if self._stderr_file is not None:
            self._stderr_file.close()


class RcloneSource:
    """ContentSource implementation driving the rclone CLI."""

    def __init__(
        self,
        binary: str = "rclone",
        config_path: Optional[str] = None,
        extra_args: Optional[list[str]] = None,
        list_timeout: Optional[float] = None,
    ):
        """Initialize the rclone source.

        Args:
            binary: rclone executable name or path
            config_path: Optional rclone config file (``--config``)
            extra_args: Extra global flags passed to every invocation
            list_timeout: Timeout for listing commands in seconds (None = no limit)
        """
        self.binary = binary
        self.config_path = config_path
        self.extra_args = extra_args or []
        self.list_timeout = list_timeout

    def _command(self, *args: str) -> list[str]:
        cmd = [self.binary]
        if self.config_path:
            cmd.extend(["--config", self.config_path])
        cmd.extend(self.extra_args)
        cmd.extend(args)
        return cmd

    def list(
        self,
        context: RemoteContext,
        path: str = "",
        recursive: bool = True,
        dirs_only: bool = False,
        files_only: bool = False,
    ) -> list[RemoteEntry]:
        """List remote entries with ``rclone lsjson``.

        Args:
            context: Remote profile and root
            path: Sub-path relative to the context root
            recursive: List the whole subtree in one call
            dirs_only: Only return directories
            files_only: Only return files

        Returns:
            List of RemoteEntry, paths relative to ``path``

        Raises:
            EnumerationError: If rclone fails or prints unparsable output
        """
        if dirs_only and files_only:
            raise ValueError("dirs_only and files_only are mutually exclusive")

        args = ["lsjson"]
        if recursive:
            args.append("--recursive")
        if dirs_only:
            args.append("--dirs-only")
        if files_only:
            args.append("--files-only")
        args.append(context.remote_path(path))
        cmd = self._command(*args)

        logger.info(f"Listing remote: {' '.join(cmd)}")
        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=self.list_timeout,
                check=False,
            )
        except FileNotFoundError as e:
            raise EnumerationError(
                f"rclone executable not found: {self.binary}"
            ) from e
        except subprocess.TimeoutExpired as e:
            raise EnumerationError(
                f"Listing {context.remote_path(path)} timed out "
                f"after {self.list_timeout}s"
            ) from e

        if result.returncode != 0:
            stderr = (result.stderr or "").strip()
            logger.error(f"rclone lsjson failed ({result.returncode}): {stderr}")
            raise EnumerationError(
                f"Listing {context.remote_path(path)} failed with exit code "
                f"{result.returncode}: {stderr}",
                returncode=result.returncode,
                stderr=stderr,
            )
        if result.stderr:
            logger.warning(f"rclone stderr: {result.stderr.strip()}")

        return parse_listing(result.stdout)

    @contextmanager
    def open(
        self,
        context: RemoteContext,
        path: str,
        max_bytes: Optional[int] = None,
    ) -> Iterator[RemoteStream]:
        """Stream a remote file with ``rclone cat``.

        Args:
            context: Remote profile and root
            path: File path relative to the context root
            max_bytes: Abort once more than this many bytes were read

        Yields:
            RemoteStream over the process output
        """
        cmd = self._command("cat", context.remote_path(path))
        logger.debug(f"Streaming {context.remote_path(path)}")

        stderr_file = tempfile.TemporaryFile()
        try:
            process = subprocess.Popen(
                cmd, stdout=subprocess.PIPE, stderr=stderr_file
            )
        except OSError as e:
            stderr_file.close()
            raise StreamTransferError(
                path, message=f"Could not start {self.binary}: {e}"
            ) from e

        stream = RemoteStream(process, path, max_bytes=max_bytes, stderr_file=stderr_file)
        try:
            yield stream
        finally:
            stream.close()
