"""
longscribe.validation - Dependency checks used by `longscribe doctor`.
"""

from __future__ import annotations

import importlib.util
import shutil
import subprocess

from longscribe.config import TranscriptionConfig
from longscribe.exceptions import DependencyError


def _binary_version(name: str) -> str:
    path = shutil.which(name)
    if not path:
        raise DependencyError(
            name,
            f"{name} not found in PATH",
            "Install with: brew install ffmpeg (macOS) or apt install ffmpeg (Linux)",
        )
    try:
        proc = subprocess.run(
            [path, "-version"],
            capture_output=True,
            text=True,
            timeout=5,
        )
        version_line = proc.stdout.split("\n")[0]
        return version_line.split()[2] if version_line else "unknown"
    except (subprocess.TimeoutExpired, IndexError):
        return "unknown"


def check_ffmpeg() -> dict[str, str]:
    """Check if FFmpeg and FFprobe are installed and get versions.

    Returns:
        Dict with 'ffmpeg_version' and 'ffprobe_version'

    Raises:
        DependencyError: If FFmpeg or FFprobe not found
    """
    return {
        "ffmpeg_version": _binary_version("ffmpeg"),
        "ffprobe_version": _binary_version("ffprobe"),
    }


def check_whisper() -> str:
    """Check that faster-whisper can be imported for on-device recognition.

    Raises:
        DependencyError: If faster-whisper is not installed
    """
    if importlib.util.find_spec("faster_whisper") is None:
        raise DependencyError(
            "faster-whisper",
            "not installed",
            "Install with: pip install faster-whisper",
        )
    return "installed"


def check_online_backend(config: TranscriptionConfig) -> str:
    """Describe the online fallback backend.

    Raises:
        DependencyError: If AssemblyAI is selected but no API key is set
    """
    if config.online_backend == "none":
        return "disabled"
    if not config.resolve_api_key():
        raise DependencyError(
            "assemblyai",
            "no API key configured",
            "Set ASSEMBLYAI_API_KEY or assemblyai_api_key in longscribe.yaml",
        )
    return "API key configured"
