from call_transcriber.audio.format import (
    DEFAULT_EXTENSION,
    detect_extension,
    extension_from_content_type,
    extension_from_signature,
    extension_from_url,
)

WAV_HEADER = b"RIFF\x24\x08\x00\x00WAVEfmt "


def test_content_type_wins_over_url():
    assert detect_extension(b"", "audio/wav", "https://cdn.example.com/a.mp3") == "wav"


def test_content_type_wins_over_signature():
    assert detect_extension(WAV_HEADER, "audio/mpeg", None) == "mp3"


def test_url_extension_with_query_string():
    assert detect_extension(b"", None, "https://cdn.example.com/path/clip.flac?x=1") == "flac"


def test_signature_used_when_no_hints():
    assert detect_extension(WAV_HEADER, None, "https://cdn.example.com/download?id=7") == "wav"


def test_unmapped_content_type_falls_through_to_url():
    assert detect_extension(b"", "application/octet-stream", "https://x.example/r.ogg") == "ogg"


def test_default_extension_when_nothing_matches():
    assert detect_extension(b"\x00" * 16, None, None) == DEFAULT_EXTENSION


def test_audio_mp4_maps_to_m4a_and_video_mp4_to_mp4():
    assert extension_from_content_type("audio/mp4") == "m4a"
    assert extension_from_content_type("video/mp4") == "mp4"
    assert extension_from_content_type("audio/wave; charset=binary") == "wav"
    assert extension_from_content_type("text/html") is None


def test_url_extension_requires_terminal_position():
    assert extension_from_url("https://x.example/a.mp3") == "mp3"
    assert extension_from_url("https://X.EXAMPLE/A.WAV") == "wav"
    assert extension_from_url("https://x.example/a.mp3.backup") is None


def test_signatures():
    assert extension_from_signature(b"ID3\x04\x00\x00\x00\x00\x00\x00\x00\x00") == "mp3"
    assert extension_from_signature(b"\xff\xfb\x90\x64" + b"\x00" * 8) == "mp3"
    assert extension_from_signature(b"OggS" + b"\x00" * 8) == "ogg"
    assert extension_from_signature(b"\x00\x00\x00\x20ftypM4A ") == "mp4"
    assert extension_from_signature(b"fLaC" + b"\x00" * 8) == "flac"


def test_signature_needs_twelve_bytes():
    assert extension_from_signature(b"RIFF") is None
    assert extension_from_signature(b"") is None
