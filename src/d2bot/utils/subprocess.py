from __future__ import annotations

import logging
import subprocess
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from os import PathLike
from typing import Any

import anyio
from anyio.abc import Process

logger = logging.getLogger(__name__)

TERMINATE_GRACE_S = 2.0


@dataclass(frozen=True, slots=True)
class CompletedRun:
    args: tuple[str, ...]
    returncode: int
    stdout: bytes
    stderr: bytes


async def _terminate(proc: Process) -> None:
    if proc.returncode is not None:
        return
    try:
        proc.terminate()
    except ProcessLookupError:
        return
    with anyio.move_on_after(TERMINATE_GRACE_S):
        await proc.wait()
        return
    try:
        proc.kill()
    except ProcessLookupError:
        return
    await proc.wait()


@asynccontextmanager
async def manage_subprocess(
    *args: str, cwd: str | PathLike[str] | None = None, **kwargs: Any
) -> AsyncIterator[Process]:
    """Open a process and make sure it is gone when the block exits, even on cancel."""
    proc = await anyio.open_process(list(args), cwd=cwd, **kwargs)
    try:
        yield proc
    finally:
        with anyio.CancelScope(shield=True):
            await _terminate(proc)
            await proc.aclose()


async def run_captured(
    *args: str, cwd: str | PathLike[str] | None = None
) -> CompletedRun:
    async with manage_subprocess(
        *args,
        cwd=cwd,
        stdin=subprocess.DEVNULL,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
    ) as proc:
        assert proc.stdout is not None and proc.stderr is not None
        stdout = bytearray()
        stderr = bytearray()

        async def drain(stream, buf: bytearray) -> None:
            async for chunk in stream:
                buf.extend(chunk)

        logger.debug("[subprocess] spawn pid=%s args=%r", proc.pid, args)
        async with anyio.create_task_group() as tg:
            tg.start_soon(drain, proc.stdout, stdout)
            tg.start_soon(drain, proc.stderr, stderr)
        rc = await proc.wait()
        logger.debug("[subprocess] exit pid=%s rc=%s", proc.pid, rc)
    return CompletedRun(
        args=tuple(args), returncode=rc, stdout=bytes(stdout), stderr=bytes(stderr)
    )
