"""
Aggregation of resolved parameters into one encode job description.

`EncodeParameterSet` is everything the invocation layer needs to build the
ffmpeg command line for one file. It is built once per file from the video and
audio probe text and the caller's quality settings, and is never mutated.
"""
from dataclasses import dataclass
from typing import Optional, Union

from av1kit.params.audio import AudioPlan, PASSTHROUGH, resolve_audio_plan
from av1kit.params.color import ResolvedColorParams, resolve_color_params
from av1kit.params.gop import estimate_gop
from av1kit.params.probe import ProbeRecord, as_record
from av1kit.utils.constants import DEFAULT_AUDIO_CODEC


@dataclass(frozen=True)
class EncodeParameterSet:
    color: ResolvedColorParams
    gop: int
    audio: AudioPlan
    crf: int
    preset: int


def build_encode_parameters(
        video_probe: Union[str, ProbeRecord],
        audio_probe: Optional[Union[str, ProbeRecord]],
        crf: int,
        preset: int,
        target_audio_codec: str = DEFAULT_AUDIO_CODEC,
        transcode_audio: bool = True,
) -> EncodeParameterSet:
    """
    Resolve color, GOP and audio plan for one file.

    Args:
        video_probe: Flat ffprobe output for the first video stream
        audio_probe: Flat ffprobe output for the first audio stream ("" or None if there is none)
        crf: Constant Rate Factor handed to the video encoder
        preset: Encoder speed preset
        target_audio_codec: Codec name audio is normalized to (ffprobe naming, e.g. "opus")
        transcode_audio: When False, audio is always copied

    Returns:
        The complete, immutable parameter set for the encode.

    Raises:
        MetadataError: A color fallback was needed but the height is unusable.
    """
    video = as_record(video_probe)
    audio = resolve_audio_plan(audio_probe, target_audio_codec) if transcode_audio else PASSTHROUGH
    return EncodeParameterSet(
        color=resolve_color_params(video),
        gop=estimate_gop(video),
        audio=audio,
        crf=crf,
        preset=preset,
    )
