"""FFmpeg subprocess wrappers for peak volume detection and loudness encoding.

ffmpeg writes its diagnostics (including the volumedetect report) to
stderr, so that is the stream parsed here.
"""

import re
import subprocess
from pathlib import Path

from loguru import logger

from .errors import ExternalToolError, VolumeParseError
from .models import VolumeMeasurement

log = logger.bind(stage="ffmpeg")

# Attenuate first so loudnorm has headroom
NORMALIZE_FILTER = "volume=-1dB, loudnorm"

_VOLUME_LINE_RE = re.compile(r"volume:\s*([-\d.]+)\s*dB")
_DECIBEL_RE = re.compile(r"^([+-]?(?:\d+(?:\.\d*)?|\.\d+))\s*(?:dB)?$", re.IGNORECASE)


def _run_ffmpeg(
    args: list[str],
    ffmpeg_bin: str = "ffmpeg",
    timeout: float | None = None,
) -> subprocess.CompletedProcess:
    """Run ffmpeg, capturing both streams. Raises ExternalToolError on failure."""
    cmd = [ffmpeg_bin] + args
    log.debug(f"Running: {' '.join(cmd)}")
    try:
        result = subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            timeout=timeout,
        )
    except subprocess.TimeoutExpired as exc:
        raise ExternalToolError(
            tool=ffmpeg_bin,
            exit_code=-1,
            stderr=f"timed out after {exc.timeout}s",
        ) from exc
    except FileNotFoundError as exc:
        raise ExternalToolError(
            tool=ffmpeg_bin,
            exit_code=127,
            stderr=f"executable not found: {ffmpeg_bin}",
        ) from exc

    if result.returncode != 0:
        raise ExternalToolError(
            tool=ffmpeg_bin,
            exit_code=result.returncode,
            stderr=result.stderr[-500:],
        )
    return result


def extract_max_volume(output: str) -> str:
    """Pull the raw max_volume text out of a volumedetect report.

    Uses the text after the last colon on the first line mentioning
    max_volume. Lines without a usable colon fall back to their last two
    whitespace-separated tokens (number + unit).
    """
    for line in output.splitlines():
        if not line.strip() or "max_volume" not in line:
            continue

        colon = line.rfind(":")
        if 0 < colon < len(line) - 1:
            value = line[colon + 1 :].strip()
            if value:
                return value

        parts = line.split()
        if len(parts) >= 2:
            return f"{parts[-2]} {parts[-1]}"

    raise VolumeParseError("No max_volume line in ffmpeg output")


def parse_volume_value(text: str) -> float:
    """Convert '-7.3 dB', '-7.3dB', 'max_volume: -7.3 dB' or '-7.3' to a float."""
    if not text or not text.strip():
        raise VolumeParseError("Volume string is empty")

    value = text.strip()
    match = _VOLUME_LINE_RE.search(value)
    if match:
        value = match.group(1)
    elif ":" in value:
        value = value[value.rfind(":") + 1 :].strip()

    decibels = _DECIBEL_RE.match(value)
    if not decibels:
        raise VolumeParseError(f"Invalid volume format: {text!r}")
    try:
        return float(decibels.group(1))
    except ValueError as exc:
        raise VolumeParseError(f"Invalid volume format: {text!r}") from exc


def measure_volume(
    file: Path,
    ffmpeg_bin: str = "ffmpeg",
    timeout: float | None = None,
) -> VolumeMeasurement:
    """Measure the peak volume of an audio file with the volumedetect filter."""
    result = _run_ffmpeg(
        ["-i", str(file), "-af", "volumedetect", "-f", "null", "-"],
        ffmpeg_bin=ffmpeg_bin,
        timeout=timeout,
    )
    measurement = VolumeMeasurement(parse_volume_value(extract_max_volume(result.stderr)))
    log.debug(f"Measured {file.name}: {measurement}")
    return measurement


def encode_normalized(
    source: Path,
    output: Path,
    ffmpeg_bin: str = "ffmpeg",
    timeout: float | None = None,
) -> None:
    """Re-encode source into output with the attenuate + loudnorm filter chain."""
    _run_ffmpeg(
        ["-i", str(source), "-af", NORMALIZE_FILTER, "-y", str(output)],
        ffmpeg_bin=ffmpeg_bin,
        timeout=timeout,
    )
