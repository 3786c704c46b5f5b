from __future__ import annotations

import logging
import tempfile
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Literal, Protocol, TypeAlias

import anyio

from .config import BotConfig
from .constants import (
    DEFAULT_RENDER_TIMEOUT_S,
    RENDER_LAYOUT,
    RENDER_PADDING,
    RENDER_SCALE,
)
from .png import PlaywrightRasterizer, Rasterizer
from .utils.subprocess import CompletedRun, run_captured

logger = logging.getLogger(__name__)

StageName = Literal["compile", "export", "rasterize"]
FailureKind = Literal["stage", "timeout"]

SOURCE_FILENAME = "diagram.d2"
SVG_FILENAME = "diagram.svg"


@dataclass(frozen=True, slots=True)
class RenderStyle:
    theme_id: int = 0
    sketch: bool = False
    pad: int = RENDER_PADDING
    scale: float = RENDER_SCALE
    layout: str = RENDER_LAYOUT

    @classmethod
    def from_config(cls, cfg: BotConfig) -> RenderStyle:
        return cls(theme_id=cfg.theme_id, sketch=cfg.sketch)

    def d2_flags(self) -> list[str]:
        flags = [
            f"--layout={self.layout}",
            f"--theme={self.theme_id}",
            f"--pad={self.pad}",
            f"--scale={self.scale:g}",
        ]
        if self.sketch:
            flags.append("--sketch")
        return flags


@dataclass(frozen=True, slots=True)
class RenderOk:
    image: bytes


@dataclass(frozen=True, slots=True)
class RenderFailure:
    kind: FailureKind
    reason: str
    stage: StageName | None = None

    def describe(self) -> str:
        if self.kind == "timeout":
            return self.reason
        return f"{self.stage} failed: {self.reason}"


RenderResult: TypeAlias = RenderOk | RenderFailure


class StageError(Exception):
    pass


Stage = Callable[[bytes], Awaitable[bytes]]


class Renderer(Protocol):
    async def render(self, source: str) -> RenderResult: ...


def _process_error(run: CompletedRun) -> str:
    text = run.stderr.decode("utf-8", errors="replace").strip()
    if not text:
        text = run.stdout.decode("utf-8", errors="replace").strip()
    return text or f"d2 exited with rc={run.returncode}"


async def run_stages(
    data: bytes, stages: Sequence[tuple[StageName, Stage]]
) -> RenderResult:
    """Feed `data` through each stage in turn, stopping at the first failure."""
    for name, stage in stages:
        try:
            data = await stage(data)
        except StageError as e:
            logger.debug("[render] %s failed: %s", name, e)
            return RenderFailure(kind="stage", stage=name, reason=str(e))
    return RenderOk(image=data)


class D2Renderer:
    def __init__(
        self,
        *,
        d2_cmd: str,
        style: RenderStyle,
        timeout_s: float = DEFAULT_RENDER_TIMEOUT_S,
        rasterizer: Rasterizer | None = None,
    ) -> None:
        self.d2_cmd = d2_cmd
        self.style = style
        self.timeout_s = timeout_s
        self.rasterizer = rasterizer or PlaywrightRasterizer()

    @classmethod
    def from_config(cls, cfg: BotConfig) -> D2Renderer:
        return cls(
            d2_cmd=cfg.d2_cmd,
            style=RenderStyle.from_config(cfg),
            timeout_s=cfg.render_timeout_s,
        )

    async def render(self, source: str) -> RenderResult:
        try:
            with anyio.fail_after(self.timeout_s):
                with tempfile.TemporaryDirectory(prefix="d2bot-") as tmp:
                    return await self._render_in(Path(tmp), source)
        except TimeoutError:
            logger.info("[render] timed out after %ss", self.timeout_s)
            return RenderFailure(
                kind="timeout",
                reason=f"rendering timed out after {self.timeout_s:g} seconds",
            )

    async def _render_in(self, workdir: Path, source: str) -> RenderResult:
        source_path = workdir / SOURCE_FILENAME
        svg_path = workdir / SVG_FILENAME

        async def compile_stage(data: bytes) -> bytes:
            await anyio.Path(source_path).write_bytes(data)
            await self._d2("validate", SOURCE_FILENAME, cwd=workdir)
            return data

        async def export_stage(_data: bytes) -> bytes:
            await self._d2(
                *self.style.d2_flags(), SOURCE_FILENAME, SVG_FILENAME, cwd=workdir
            )
            try:
                return await anyio.Path(svg_path).read_bytes()
            except OSError as e:
                raise StageError(f"no svg output: {e}") from e

        async def rasterize_stage(svg: bytes) -> bytes:
            try:
                return await self.rasterizer.rasterize(svg)
            except Exception as e:
                raise StageError(str(e) or type(e).__name__) from e

        return await run_stages(
            source.encode("utf-8"),
            [
                ("compile", compile_stage),
                ("export", export_stage),
                ("rasterize", rasterize_stage),
            ],
        )

    async def _d2(self, *args: str, cwd: Path) -> CompletedRun:
        try:
            run = await run_captured(self.d2_cmd, *args, cwd=cwd)
        except OSError as e:
            raise StageError(f"failed to run {self.d2_cmd}: {e}") from e
        if run.returncode != 0:
            raise StageError(_process_error(run))
        return run
