"""End-to-end runs of the pipeline with a fake ffmpeg and a fake transcription service."""

import os
import threading

import pytest

from chunkscribe.exceptions import (
    FileSystemError,
    PipelineTimeoutError,
    TranscriptionError,
    UnsupportedFormatError,
)
from chunkscribe.models import TranscriptionRequest
from chunkscribe.subtitle_generator import SubtitleGenerator
from chunkscribe.transcriber import Transcriber


class ScriptedTranscriber(Transcriber):
    """Returns canned results keyed by uploaded file name."""

    def __init__(self, results, fail_on=None):
        self.results = results
        self.fail_on = fail_on
        self.uploaded = []
        self.lock = threading.Lock()

    def transcribe(self, audio_path):
        name = os.path.basename(audio_path)
        assert os.path.exists(audio_path), f"{name} was deleted before upload"
        with self.lock:
            self.uploaded.append(name)
        if name == self.fail_on:
            raise TranscriptionError(f"service unavailable for {name}")
        return self.results[name]


def _segment_aware_writer(fake_ffmpeg, chunk_count):
    def on_run(output, args):
        if "segment" in args:
            for i in range(chunk_count):
                fake_ffmpeg.write_output(output % i, args)
        else:
            fake_ffmpeg.write_output(output, args)
    return on_run


@pytest.fixture
def temp_root(tmp_path):
    path = tmp_path / "tmp"
    path.mkdir()
    return str(path)


@pytest.fixture
def pipeline_config(config, temp_root):
    config['temp_dir'] = temp_root
    config['max_workers'] = 2
    return config


def test_long_video_is_chunked_and_reconciled(fake_ffmpeg, tmp_path, temp_root, pipeline_config, make_result):
    video = tmp_path / "lecture.mp4"
    video.write_bytes(b"\0" * 4096)
    fake_ffmpeg.on_run = _segment_aware_writer(fake_ffmpeg, 3)
    # 60 original minutes at 1.2x = 3000 optimized seconds, split into 1000s chunks
    fake_ffmpeg.durations.update({
        "lecture_audio_x1.2.mp3": 3000.0,
        "lecture_audio_x1.2_chunk_0000.mp3": 1000.0,
        "lecture_audio_x1.2_chunk_0001.mp3": 1000.0,
        "lecture_audio_x1.2_chunk_0002.mp3": 1000.0,
    })
    transcriber = ScriptedTranscriber({
        "lecture_audio_x1.2_chunk_0000.mp3": make_result([(0.0, 2.0, " Welcome. ")], language="en"),
        "lecture_audio_x1.2_chunk_0001.mp3": make_result([(2.0, 3.0, "Bonjour.")], language="fr"),
        "lecture_audio_x1.2_chunk_0002.mp3": make_result([(1.0, 2.0, "Goodbye.")], language="fr"),
    })
    generator = SubtitleGenerator.from_config(pipeline_config, transcriber=transcriber)

    result = generator.generate(TranscriptionRequest(input_path=str(video), api_key="unused"))

    assert result.subtitle_path == str(tmp_path / "lecture.srt")
    assert result.language == "en"
    assert result.duration == pytest.approx(3600.0)
    assert result.text == "Welcome.\nBonjour.\nGoodbye."
    assert sorted(transcriber.uploaded) == [
        "lecture_audio_x1.2_chunk_0000.mp3",
        "lecture_audio_x1.2_chunk_0001.mp3",
        "lecture_audio_x1.2_chunk_0002.mp3",
    ]
    with open(result.subtitle_path, encoding="utf-8") as f:
        assert f.read() == (
            "1\n00:00:00,000 --> 00:00:02,400\nWelcome.\n\n"
            "2\n00:20:02,400 --> 00:20:03,600\nBonjour.\n\n"
            "3\n00:40:01,200 --> 00:40:02,400\nGoodbye.\n\n"
        )
    assert video.exists()
    assert os.listdir(temp_root) == []


def test_short_raw_audio_is_sent_whole_with_offset(fake_ffmpeg, tmp_path, temp_root, pipeline_config, make_result):
    audio = tmp_path / "memo.mp3"
    audio.write_bytes(b"\0" * 2048)
    fake_ffmpeg.durations["memo.mp3"] = 600.0
    transcriber = ScriptedTranscriber({"memo.mp3": make_result([(0.0, 3.42, " Hello ")], language="en")})
    output = tmp_path / "out" / "memo.srt"
    output.parent.mkdir()
    generator = SubtitleGenerator.from_config(pipeline_config, transcriber=transcriber)

    result = generator.generate(TranscriptionRequest(
        input_path=str(audio), api_key="unused", output_path=str(output),
        optimize=False, offset_seconds=1.5,
    ))

    assert transcriber.uploaded == ["memo.mp3"]
    assert fake_ffmpeg.runs == [] # no extraction, no speed-up, no split
    assert output.read_text(encoding="utf-8") == "1\n00:00:01,500 --> 00:00:04,920\nHello\n\n"
    assert result.duration == pytest.approx(600.0)
    assert audio.exists()
    assert os.listdir(temp_root) == []


def test_explicit_chunk_size_splits_raw_input(fake_ffmpeg, tmp_path, temp_root, pipeline_config, make_result):
    audio = tmp_path / "memo.wav"
    audio.write_bytes(b"\0" * 2048)
    fake_ffmpeg.on_run = _segment_aware_writer(fake_ffmpeg, 2)
    fake_ffmpeg.durations.update({"memo.wav": 150.0, "memo_chunk_0000.wav": 120.0, "memo_chunk_0001.wav": 30.0})
    transcriber = ScriptedTranscriber({
        "memo_chunk_0000.wav": make_result([(0.0, 1.0, "one")]),
        "memo_chunk_0001.wav": make_result([(0.5, 1.0, "two")]),
    })
    generator = SubtitleGenerator.from_config(pipeline_config, transcriber=transcriber)

    result = generator.generate(TranscriptionRequest(
        input_path=str(audio), api_key="unused", optimize=False, chunk_minutes=2,
    ))

    args = fake_ffmpeg.runs[0]
    assert args[args.index("-segment_time") + 1] == "120.000"
    assert result.text == "one\ntwo"
    with open(result.subtitle_path, encoding="utf-8") as f:
        assert "00:02:00,500 --> 00:02:01,000" in f.read()
    assert audio.exists()
    assert os.listdir(temp_root) == []


def test_failure_still_cleans_up(fake_ffmpeg, tmp_path, temp_root, pipeline_config, make_result):
    video = tmp_path / "lecture.mp4"
    video.write_bytes(b"\0" * 4096)
    fake_ffmpeg.on_run = _segment_aware_writer(fake_ffmpeg, 2)
    fake_ffmpeg.durations.update({
        "lecture_audio_x1.2.mp3": 3000.0,
        "lecture_audio_x1.2_chunk_0000.mp3": 1500.0,
        "lecture_audio_x1.2_chunk_0001.mp3": 1500.0,
    })
    transcriber = ScriptedTranscriber(
        {"lecture_audio_x1.2_chunk_0000.mp3": make_result([(0.0, 1.0, "ok")])},
        fail_on="lecture_audio_x1.2_chunk_0001.mp3",
    )
    generator = SubtitleGenerator.from_config(pipeline_config, transcriber=transcriber)

    with pytest.raises(TranscriptionError):
        generator.generate(TranscriptionRequest(input_path=str(video), api_key="unused"))

    assert not (tmp_path / "lecture.srt").exists()
    assert video.exists()
    assert os.listdir(temp_root) == []


def test_unsupported_extension(tmp_path, pipeline_config):
    path = tmp_path / "notes.txt"
    path.write_text("not media")
    generator = SubtitleGenerator.from_config(pipeline_config, transcriber=ScriptedTranscriber({}))
    with pytest.raises(UnsupportedFormatError, match="Supported formats"):
        generator.generate(TranscriptionRequest(input_path=str(path), api_key="unused"))


def test_missing_input(tmp_path, pipeline_config):
    generator = SubtitleGenerator.from_config(pipeline_config, transcriber=ScriptedTranscriber({}))
    with pytest.raises(FileSystemError):
        generator.generate(TranscriptionRequest(input_path=str(tmp_path / "gone.mp3"), api_key="unused"))


def test_run_deadline(fake_ffmpeg, tmp_path, temp_root, pipeline_config):
    audio = tmp_path / "memo.mp3"
    audio.write_bytes(b"\0" * 2048)
    pipeline_config['run_timeout_seconds'] = 1e-9
    transcriber = ScriptedTranscriber({})
    generator = SubtitleGenerator.from_config(pipeline_config, transcriber=transcriber)

    with pytest.raises(PipelineTimeoutError):
        generator.generate(TranscriptionRequest(input_path=str(audio), api_key="unused"))
    assert transcriber.uploaded == []
    assert os.listdir(temp_root) == []


def test_missing_temp_dir_is_classified(tmp_path, pipeline_config):
    audio = tmp_path / "memo.mp3"
    audio.write_bytes(b"\0" * 2048)
    pipeline_config['temp_dir'] = str(tmp_path / "no_such_dir")
    generator = SubtitleGenerator.from_config(pipeline_config, transcriber=ScriptedTranscriber({}))

    with pytest.raises(FileSystemError, match="work directory"):
        generator.generate(TranscriptionRequest(input_path=str(audio), api_key="unused"))
