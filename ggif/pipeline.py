"""
Video to GIF conversion pipeline for ggif.

One call to :meth:`ConversionPipeline.process` runs a single job:

1. extract every frame of the video into a fresh scratch directory (ffmpeg)
2. encode the frames into one GIF in the output folder (gifski)
3. remove the scratch directory
4. upload the GIF to every configured bucket

Failed external commands are logged and the job carries on with the next
step; only a missing input or an unusable scratch area stops it.
"""

import logging
import shutil
import tempfile
import threading
import time
from collections import deque
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

from ggif.config import Config
from ggif.errors import NoInputError, ScratchDirError
from ggif.runner import CommandRunner
from ggif.uploader import Uploader, UploadResult

logger = logging.getLogger(__name__)

OUTPUT_EXT = ".gif"
FRAME_PATTERN = "frame%04d.png"
FRAME_GLOB = "frame*.png"
FRAME_PREFIX = "frame"

# Recently written outputs remembered so watch mode can skip them.
_PRODUCED_LIMIT = 64


def _frame_number(path: Path) -> int:
    return int(path.stem[len(FRAME_PREFIX):])


def sorted_frames(scratch_dir: Path) -> list[Path]:
    """Return the extracted frames in playback order.

    ffmpeg pads numbers to four digits only, so frame10000 must sort
    numerically after frame9999 rather than after frame1000.
    """
    return sorted(scratch_dir.glob(FRAME_GLOB), key=_frame_number)


@dataclass
class ConversionJob:
    """State of a single conversion."""
    source_path: Path
    scratch_dir: Path
    output_path: Path
    output_name: str


class OutputNamer:
    """
    Hands out ``<unix-ts><ext>`` names that never repeat.

    A name already issued by this instance within the current second, or
    already present in the target folder, gets an incrementing ``_<n>``
    suffix.  Names from earlier seconds cannot repeat and are forgotten.
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._issued: set[str] = set()
        self._issued_ts: int | None = None
        self._lock = threading.Lock()

    def next_name(self, directory: Path | None, ext: str, stem: str = "") -> str:
        ts = int(self._clock())
        base = f"{stem}_{ts}" if stem else str(ts)
        with self._lock:
            if ts != self._issued_ts:
                self._issued.clear()
                self._issued_ts = ts
            name = f"{base}{ext}"
            n = 1
            while name in self._issued or (
                directory is not None and (directory / name).exists()
            ):
                name = f"{base}_{n}{ext}"
                n += 1
            self._issued.add(name)
        return name


class ConversionPipeline:
    """
    Converts videos to GIFs and dispatches them to the uploader.

    Parameters
    ----------
    config : Config
        Encoder settings, folders, buckets and tool names.
    runner : CommandRunner
        Runs ffmpeg, gifski and the upload tools.
    uploader : Uploader, optional
        Defaults to an :class:`Uploader` sharing *runner*.
    namer : OutputNamer, optional
        Source of collision-free output names.
    log : logging.Logger, optional
        Logger to report progress to.
    """

    def __init__(
        self,
        config: Config,
        runner: CommandRunner,
        uploader: Uploader | None = None,
        namer: OutputNamer | None = None,
        log: logging.Logger | None = None,
    ):
        self._config = config
        self._runner = runner
        self._log = log or logger
        self._uploader = uploader or Uploader(config, runner, log=self._log)
        self._namer = namer or OutputNamer()
        self._produced: deque[Path] = deque(maxlen=_PRODUCED_LIMIT)
        self._lock = threading.Lock()

    def is_own_output(self, path: Path) -> bool:
        """
        Return True if *path* is a GIF this pipeline wrote.

        A match is forgotten once reported, since each output announces
        its creation once.
        """
        path = Path(path).absolute()
        with self._lock:
            if path in self._produced:
                self._produced.remove(path)
                return True
        return False

    def process(self, source_path: Path | str | None) -> list[UploadResult]:
        """Run one job for *source_path* and return the upload results."""
        if not source_path:
            raise NoInputError("No file specified and no video found in the source folder")
        source_path = Path(source_path)
        self._log.info("Processing %s", source_path)

        if self._config.upload_only:
            key = self._namer.next_name(None, source_path.suffix, stem=source_path.stem)
            return self._upload(source_path, key)

        job = self._new_job(source_path)
        try:
            self._extract_frames(job)
            self._encode(job)
        finally:
            self._cleanup(job)
        return self._upload(job.output_path, job.output_name)

    # ---- steps ----

    def _new_job(self, source_path: Path) -> ConversionJob:
        output_dir = self._config.output_dir
        try:
            output_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            self._log.error("Cannot create output folder %s: %s", output_dir, exc)
        try:
            scratch_dir = Path(tempfile.mkdtemp(prefix="ggif-frames-"))
        except OSError as exc:
            raise ScratchDirError(f"Cannot create scratch directory: {exc}") from exc

        output_name = self._namer.next_name(output_dir, OUTPUT_EXT)
        output_path = output_dir / output_name
        with self._lock:
            self._produced.append(output_path.absolute())
        self._log.debug("Scratch directory for %s: %s", source_path.name, scratch_dir)
        return ConversionJob(
            source_path=source_path,
            scratch_dir=scratch_dir,
            output_path=output_path,
            output_name=output_name,
        )

    def _extract_frames(self, job: ConversionJob) -> None:
        result = self._runner.run(
            self._config.ffmpeg,
            "-i", str(job.source_path),
            str(job.scratch_dir / FRAME_PATTERN),
        )
        if not result.ok:
            self._log.error("Frame extraction failed for %s", job.source_path)

    def _encode(self, job: ConversionJob) -> None:
        # Relative names keep the argv short; gifski runs inside the scratch dir.
        frames = [p.name for p in sorted_frames(job.scratch_dir)]
        self._log.debug("Encoding %d frames into %s", len(frames), job.output_path)
        result = self._runner.run(
            self._config.gifski,
            "-W", str(self._config.width),
            "-r", str(self._config.frames),
            "-Q", str(self._config.quality),
            "-o", str(job.output_path.absolute()),
            *frames,
            cwd=job.scratch_dir,
        )
        if result.ok:
            self._log.info("Wrote %s", job.output_path)
        else:
            self._log.error("Encoding failed for %s", job.source_path)

    def _cleanup(self, job: ConversionJob) -> None:
        try:
            shutil.rmtree(job.scratch_dir)
        except OSError as exc:
            self._log.error("Could not remove %s: %s", job.scratch_dir, exc)

    def _upload(self, artifact_path: Path, object_key: str) -> list[UploadResult]:
        results = []
        for store, bucket in self._config.buckets():
            try:
                result = self._uploader.upload(store, bucket, artifact_path, object_key)
            except Exception:
                self._log.exception("Upload to %s bucket %s failed", store, bucket)
                continue
            if result is not None:
                results.append(result)
        return results
