import os

import ffmpeg
import pytest

from chunkscribe.config_loader import ConfigLoader
from chunkscribe.models import TranscriptSegment, TranscriptionResult, Word


@pytest.fixture
def config():
    cfg = ConfigLoader().load_config(None)
    cfg['show_progress'] = False
    return cfg


@pytest.fixture
def make_result():
    """Builds a TranscriptionResult from (start_s, end_s, text) tuples."""
    def _make(segments, text=None, language="en", duration=0.0, words=None):
        segs = []
        for i, (start, end, seg_text) in enumerate(segments):
            seg_words = tuple(
                Word(text=w, start_ms=int(round(ws * 1000)), end_ms=int(round(we * 1000)))
                for (w, ws, we) in (words or {}).get(i, ())
            )
            segs.append(TranscriptSegment(
                start_ms=int(round(start * 1000)),
                end_ms=int(round(end * 1000)),
                text=seg_text,
                words=seg_words,
            ))
        if text is None:
            text = " ".join(s[2].strip() for s in segments)
        return TranscriptionResult(text=text, language=language, duration=duration, segments=segs)
    return _make


class FakeFFmpeg:
    """
    Stands in for the ffmpeg/ffprobe binaries.

    ``durations`` maps a file path (or basename) to the duration ffprobe reports;
    ``on_run`` is called with the output path and full argument list and may
    create files or raise ``ffmpeg.Error``.
    """

    def __init__(self):
        self.durations = {}
        self.runs = []
        self.on_run = self.write_output

    @staticmethod
    def output_path(args):
        return [a for a in args if a != '-y'][-1]

    @staticmethod
    def write_output(output, args, size=1024):
        with open(output, 'wb') as f:
            f.write(b'\0' * size)

    def probe(self, filename, cmd='ffprobe', **kwargs):
        for key in (filename, os.path.basename(filename)):
            if key in self.durations:
                value = self.durations[key]
                if isinstance(value, Exception):
                    raise value
                return {'format': {'duration': str(value)}, 'streams': []}
        raise ffmpeg.Error(cmd, b'', f'{filename}: No such file or directory'.encode())

    def run(self, stream, cmd='ffmpeg', capture_stdout=False, capture_stderr=False, **kwargs):
        args = ffmpeg.get_args(stream)
        self.runs.append(args)
        self.on_run(self.output_path(args), args)
        return b'', b''


@pytest.fixture
def fake_ffmpeg(monkeypatch):
    fake = FakeFFmpeg()
    monkeypatch.setattr(ffmpeg, 'probe', fake.probe)
    monkeypatch.setattr(ffmpeg.nodes.OutputStream, 'run', lambda self, **kw: fake.run(self, **kw))
    return fake
