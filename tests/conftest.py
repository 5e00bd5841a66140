from __future__ import annotations

import os
from pathlib import Path

import pytest

from ggif.runner import CommandResult

# Minimal RIFF/AVI header; enough for content sniffing to call it a video.
AVI_HEADER = b"RIFF\x00\x00\x00\x00AVI LIST" + b"\x00" * 64


class FakeRunner:
    """Stands in for CommandRunner; pretends to be ffmpeg, gifski and the cloud CLIs."""

    def __init__(self, fail: tuple[str, ...] = (), frame_count: int = 3):
        self.calls: list[list[str]] = []
        self.cwds: list[Path | None] = []
        self.fail = fail
        self.frame_count = frame_count
        self.scratch_dirs: list[Path] = []
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True

    def run(self, *args: str, cwd: Path | str | None = None) -> CommandResult:
        args = [str(a) for a in args]
        self.calls.append(args)
        self.cwds.append(Path(cwd) if cwd is not None else None)
        tool = Path(args[0]).name
        if tool in self.fail:
            return CommandResult(args=args, returncode=1, output=f"{tool} failed")

        if tool == "ffmpeg":
            scratch = Path(args[-1]).parent
            self.scratch_dirs.append(scratch)
            for n in range(1, self.frame_count + 1):
                (scratch / f"frame{n:04d}.png").write_bytes(b"png")
        elif tool == "gifski":
            Path(args[args.index("-o") + 1]).write_bytes(b"GIF89a")
        return CommandResult(args=args, returncode=0)

    def calls_to(self, tool: str) -> list[list[str]]:
        return [c for c in self.calls if Path(c[0]).name == tool]


class FakeClipboard:
    def __init__(self, ok: bool = True):
        self.ok = ok
        self.contents: str | None = None

    def __call__(self, text: str) -> bool:
        if self.ok:
            self.contents = text
        return self.ok


@pytest.fixture
def runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def clipboard() -> FakeClipboard:
    return FakeClipboard()


@pytest.fixture
def make_video(tmp_path):
    def _make(name: str, directory: Path | None = None, mtime: float | None = None) -> Path:
        path = (directory or tmp_path) / name
        path.write_bytes(AVI_HEADER)
        if mtime is not None:
            os.utime(path, (mtime, mtime))
        return path

    return _make
