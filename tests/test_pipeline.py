from __future__ import annotations

from pathlib import Path

import pytest

from ggif.config import Config
from ggif.errors import NoInputError, ScratchDirError
from ggif.pipeline import ConversionPipeline, OutputNamer
from ggif.uploader import Uploader


def build_pipeline(runner, clipboard, clock=lambda: 1_700_000_000, **overrides):
    config = Config.resolve(overrides=overrides)
    uploader = Uploader(config, runner, clipboard=clipboard)
    return ConversionPipeline(config, runner, uploader=uploader, namer=OutputNamer(clock))


def test_output_goes_to_src_without_dist(tmp_path, runner, clipboard, make_video):
    video = make_video("clip.avi")
    pipeline = build_pipeline(runner, clipboard, src=str(tmp_path))

    pipeline.process(video)

    gifski = runner.calls_to("gifski")[0]
    output = Path(gifski[gifski.index("-o") + 1])
    assert output == tmp_path / "1700000000.gif"
    assert output.exists()


def test_output_goes_to_dist(tmp_path, runner, clipboard, make_video):
    video = make_video("clip.avi")
    dist = tmp_path / "gifs"
    pipeline = build_pipeline(runner, clipboard, src=str(tmp_path), dist=str(dist))

    pipeline.process(video)

    assert (dist / "1700000000.gif").exists()
    assert not (tmp_path / "1700000000.gif").exists()


def test_commands_use_encoder_settings(tmp_path, runner, clipboard, make_video):
    video = make_video("clip.avi")
    pipeline = build_pipeline(
        runner, clipboard, src=str(tmp_path), width=320, frames=15, quality=70
    )

    pipeline.process(video)

    ffmpeg = runner.calls_to("ffmpeg")[0]
    assert ffmpeg[:3] == ["ffmpeg", "-i", str(video)]
    assert ffmpeg[3].endswith("frame%04d.png")

    gifski = runner.calls_to("gifski")[0]
    assert gifski[:7] == ["gifski", "-W", "320", "-r", "15", "-Q", "70"]
    frames = [Path(p).name for p in gifski[9:]]
    assert frames == ["frame0001.png", "frame0002.png", "frame0003.png"]


def test_scratch_dir_is_removed(tmp_path, runner, clipboard, make_video):
    pipeline = build_pipeline(runner, clipboard, src=str(tmp_path))

    pipeline.process(make_video("clip.avi"))

    assert runner.scratch_dirs
    assert not runner.scratch_dirs[0].exists()


def test_scratch_dir_is_removed_after_failures(tmp_path, runner, clipboard, make_video, caplog):
    runner.fail = ("gifski",)
    pipeline = build_pipeline(runner, clipboard, src=str(tmp_path))

    pipeline.process(make_video("clip.avi"))

    assert not runner.scratch_dirs[0].exists()
    assert "Encoding failed" in caplog.text


def test_failed_extraction_does_not_stop_encoding(tmp_path, runner, clipboard, make_video, caplog):
    runner.fail = ("ffmpeg",)
    pipeline = build_pipeline(runner, clipboard, src=str(tmp_path))

    pipeline.process(make_video("clip.avi"))

    assert len(runner.calls_to("gifski")) == 1
    assert "Frame extraction failed" in caplog.text


def test_no_buckets_means_no_upload(tmp_path, runner, clipboard, make_video):
    pipeline = build_pipeline(runner, clipboard, src=str(tmp_path))

    assert pipeline.process(make_video("clip.avi")) == []

    assert runner.calls_to("gsutil") == []
    assert runner.calls_to("aws") == []
    assert clipboard.contents is None


def test_uploads_to_every_configured_store(tmp_path, runner, clipboard, make_video):
    pipeline = build_pipeline(
        runner, clipboard, src=str(tmp_path), gcp_bucket="g", s3_bucket="s"
    )

    results = pipeline.process(make_video("clip.avi"))

    assert [r.public_url for r in results] == [
        "https://storage.googleapis.com/g/1700000000.gif",
        "https://s.s3.amazonaws.com/1700000000.gif",
    ]
    assert clipboard.contents == "https://s.s3.amazonaws.com/1700000000.gif"


def test_failed_upload_does_not_stop_the_next(tmp_path, runner, clipboard, make_video):
    runner.fail = ("gsutil",)
    pipeline = build_pipeline(
        runner, clipboard, src=str(tmp_path), gcp_bucket="g", s3_bucket="s"
    )

    results = pipeline.process(make_video("clip.avi"))

    assert [r.ok for r in results] == [False, True]


def test_upload_only_skips_conversion(tmp_path, runner, clipboard, make_video):
    video = make_video("clip.avi")
    pipeline = build_pipeline(
        runner, clipboard, src=str(tmp_path), upload_only=True, gcp_bucket="g"
    )

    results = pipeline.process(video)

    assert runner.calls_to("ffmpeg") == []
    assert runner.calls_to("gifski") == []
    assert results[0].object_key == "clip_1700000000.avi"
    assert runner.calls_to("gsutil")[0][-2:] == [str(video), "gs://g/clip_1700000000.avi"]


@pytest.mark.parametrize("source", [None, ""])
def test_empty_source_raises(runner, clipboard, source):
    pipeline = build_pipeline(runner, clipboard)

    with pytest.raises(NoInputError):
        pipeline.process(source)
    assert runner.calls == []


def test_scratch_dir_failure_raises(tmp_path, runner, clipboard, make_video, monkeypatch):
    def broken(*args, **kwargs):
        raise OSError("disk full")

    monkeypatch.setattr("ggif.pipeline.tempfile.mkdtemp", broken)
    pipeline = build_pipeline(runner, clipboard, src=str(tmp_path))

    with pytest.raises(ScratchDirError):
        pipeline.process(make_video("clip.avi"))


def test_rapid_jobs_get_distinct_names(tmp_path, runner, clipboard, make_video):
    pipeline = build_pipeline(runner, clipboard, src=str(tmp_path))
    video = make_video("clip.avi")

    pipeline.process(video)
    pipeline.process(video)

    outputs = [c[c.index("-o") + 1] for c in runner.calls_to("gifski")]
    assert [Path(o).name for o in outputs] == ["1700000000.gif", "1700000000_1.gif"]


def test_namer_skips_existing_files(tmp_path):
    (tmp_path / "42.gif").write_bytes(b"")
    namer = OutputNamer(clock=lambda: 42.9)

    assert namer.next_name(tmp_path, ".gif") == "42_1.gif"


def test_knows_its_own_output(tmp_path, runner, clipboard, make_video):
    pipeline = build_pipeline(runner, clipboard, src=str(tmp_path))
    video = make_video("clip.avi")

    pipeline.process(video)

    assert pipeline.is_own_output(tmp_path / "1700000000.gif")
    assert not pipeline.is_own_output(video)
    # Each output announces its creation once; after that it is forgotten.
    assert not pipeline.is_own_output(tmp_path / "1700000000.gif")


def test_frames_past_9999_keep_playback_order(tmp_path, runner, clipboard, make_video):
    runner.frame_count = 10_001
    pipeline = build_pipeline(runner, clipboard, src=str(tmp_path))

    pipeline.process(make_video("long.avi"))

    gifski = runner.calls_to("gifski")[0]
    frames = gifski[9:]
    assert len(frames) == 10_001
    assert frames[999] == "frame1000.png"
    assert frames[9_999] == "frame10000.png"
    assert frames[-1] == "frame10001.png"


def test_gifski_runs_in_scratch_dir_with_relative_frames(tmp_path, runner, clipboard, make_video):
    pipeline = build_pipeline(runner, clipboard, src=str(tmp_path))

    pipeline.process(make_video("clip.avi"))

    gifski_index = [Path(c[0]).name for c in runner.calls].index("gifski")
    assert runner.cwds[gifski_index] == runner.scratch_dirs[0]
    gifski = runner.calls[gifski_index]
    assert Path(gifski[gifski.index("-o") + 1]).is_absolute()
    assert all("/" not in f and "\\" not in f for f in gifski[9:])


def test_namer_forgets_names_from_earlier_seconds():
    now = [100.0]
    namer = OutputNamer(clock=lambda: now[0])

    assert namer.next_name(None, ".gif") == "100.gif"
    assert namer.next_name(None, ".gif") == "100_1.gif"
    now[0] = 101.0
    assert namer.next_name(None, ".gif") == "101.gif"
    assert namer._issued == {"101.gif"}


def test_remembered_outputs_are_bounded(tmp_path, runner, clipboard, make_video):
    clock = iter(range(1, 1_000))
    pipeline = build_pipeline(
        runner, clipboard, clock=lambda: next(clock), src=str(tmp_path)
    )
    video = make_video("clip.avi")

    for _ in range(80):
        pipeline.process(video)

    assert len(pipeline._produced) <= 64
    assert pipeline.is_own_output(tmp_path / "80.gif")
    assert not pipeline.is_own_output(tmp_path / "1.gif")
