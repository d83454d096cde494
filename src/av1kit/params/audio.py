"""
Audio transcoding plan.

Audio already in the target codec, or of unknown codec, is copied as-is.
Everything else is re-encoded at 256 kbps for mono/stereo or 80 kbps per
channel for multichannel, never above the source bitrate.
"""
from dataclasses import dataclass
from typing import Optional, Union

from av1kit.params.probe import ProbeRecord, as_record
from av1kit.utils import logger, LogLevel
from av1kit.utils.constants import (
    AUDIO_CHANNEL_LAYOUTS,
    AUDIO_DEFAULT_CHANNELS,
    AUDIO_PER_CHANNEL_KBPS,
    AUDIO_STEREO_KBPS,
)


@dataclass(frozen=True)
class Passthrough:
    """Copy the source audio stream without re-encoding."""


@dataclass(frozen=True)
class Transcode:
    """Re-encode audio to ``codec`` at ``bitrate_kbps``."""
    codec: str
    bitrate_kbps: int
    channel_layout: Optional[str] = None


AudioPlan = Union[Passthrough, Transcode]

PASSTHROUGH = Passthrough()


def _parse_int(value: Optional[str]) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        return None


def resolve_audio_plan(probe: Union[str, ProbeRecord, None], target_codec: str) -> AudioPlan:
    """Decide between passthrough and a transcode for the first audio stream."""
    record = as_record(probe)
    if not record:
        return PASSTHROUGH

    codec = record.find("codec_name")
    if codec is None or codec == target_codec:
        return PASSTHROUGH

    channels = _parse_int(record.find("channels"))
    if channels is None or channels <= 0:
        channels = AUDIO_DEFAULT_CHANNELS

    if channels <= 2:
        bitrate = AUDIO_STEREO_KBPS
    else:
        bitrate = channels * AUDIO_PER_CHANNEL_KBPS

    source_bps = _parse_int(record.find("bit_rate"))
    if source_bps is not None:
        source_kbps = source_bps // 1000
        if 0 < source_kbps < bitrate:
            bitrate = source_kbps

    plan = Transcode(codec=target_codec,
                     bitrate_kbps=bitrate,
                     channel_layout=AUDIO_CHANNEL_LAYOUTS.get(channels))
    logger.log("audio.plan", LogLevel.DEBUG,
               source_codec=codec,
               channels=channels,
               source_bit_rate=source_bps,
               target=plan.codec,
               kbps=plan.bitrate_kbps,
               layout=plan.channel_layout)
    return plan
