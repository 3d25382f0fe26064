"""Audio download, format detection and scoped persistence."""

from .artifact import AudioArtifact, scoped_artifact
from .download import AudioDownloader, DownloadedAudio
from .format import detect_extension

__all__ = [
    "AudioArtifact",
    "scoped_artifact",
    "AudioDownloader",
    "DownloadedAudio",
    "detect_extension",
]
