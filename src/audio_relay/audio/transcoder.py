from __future__ import annotations

import abc
import asyncio
import logging
from dataclasses import dataclass
from typing import Optional, Sequence

from .buffers import BufferPool, PooledBuffer

logger = logging.getLogger(__name__)

_READ_CHUNK = 64 * 1024


@dataclass(frozen=True, slots=True)
class TranscodeProfile:
    """Named argument list handed to the transcoder binary."""

    name: str
    args: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class TranscodeOutcome:
    output: bytes
    diagnostics: str
    exit_status: int


class TranscoderTimeout(RuntimeError):
    def __init__(self, timeout: float, diagnostics: str = "") -> None:
        super().__init__(f"transcoder did not finish within {timeout:g}s")
        self.timeout = timeout
        self.diagnostics = diagnostics


class Transcoder(abc.ABC):
    """Runs a single transcode: bytes in, encoded bytes plus diagnostics out."""

    @abc.abstractmethod
    async def transcode(self, data: bytes, profile: TranscodeProfile) -> TranscodeOutcome:
        raise NotImplementedError


class FfmpegTranscoder(Transcoder):
    """Pipes audio through an ffmpeg subprocess (stdin in, stdout out)."""

    def __init__(
        self,
        *,
        binary: str = "ffmpeg",
        timeout: Optional[float] = 300.0,
        pool: Optional[BufferPool] = None,
        global_args: Sequence[str] = ("-hide_banner", "-nostdin"),
    ) -> None:
        self._binary = binary
        self._timeout = timeout if timeout and timeout > 0 else None
        self._pool = pool or BufferPool()
        self._global_args = tuple(global_args)

    def command(self, profile: TranscodeProfile) -> list[str]:
        return [self._binary, *self._global_args, *profile.args]

    async def transcode(self, data: bytes, profile: TranscodeProfile) -> TranscodeOutcome:
        cmd = self.command(profile)
        logger.debug("transcoder.spawn", extra={"profile": profile.name, "input_bytes": len(data)})
        process = await asyncio.create_subprocess_exec(
            *cmd,
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )

        out_hint = len(data)
        out_buffer = self._pool.acquire(out_hint)
        err_buffer = self._pool.acquire()
        try:
            try:
                await asyncio.wait_for(
                    asyncio.gather(
                        self._feed(process, data),
                        self._drain(process.stdout, out_buffer),
                        self._drain(process.stderr, err_buffer),
                        process.wait(),
                    ),
                    timeout=self._timeout,
                )
            except asyncio.TimeoutError:
                await self._kill(process)
                raise TranscoderTimeout(self._timeout or 0.0, _decode(err_buffer)) from None
            except BaseException:
                await self._kill(process)
                raise
            return TranscodeOutcome(
                output=out_buffer.getvalue(),
                diagnostics=_decode(err_buffer),
                exit_status=process.returncode if process.returncode is not None else -1,
            )
        finally:
            self._pool.release(out_buffer, out_hint)
            self._pool.release(err_buffer)

    async def _feed(self, process: asyncio.subprocess.Process, data: bytes) -> None:
        stdin = process.stdin
        if stdin is None:
            return
        try:
            stdin.write(data)
            await stdin.drain()
        except (BrokenPipeError, ConnectionResetError):
            # ffmpeg may exit before consuming all input; its exit status reports why
            pass
        finally:
            stdin.close()

    async def _drain(self, stream: Optional[asyncio.StreamReader], buffer: PooledBuffer) -> None:
        if stream is None:
            return
        while True:
            chunk = await stream.read(_READ_CHUNK)
            if not chunk:
                return
            buffer.write(chunk)

    async def _kill(self, process: asyncio.subprocess.Process) -> None:
        if process.returncode is not None:
            return
        try:
            process.kill()
        except ProcessLookupError:
            return
        await process.wait()


def _decode(buffer: PooledBuffer) -> str:
    return buffer.getvalue().decode("utf-8", errors="replace")
