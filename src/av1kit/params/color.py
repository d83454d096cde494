"""
Color metadata resolution for the encoded stream.

Probed color values are passed to the encoder verbatim. When ffprobe reports a
value as missing, ``unknown`` or ``N/A``, a fallback is picked from the stream
height: UHD sources are assumed to be BT.2020/PQ, HD sources BT.709 and SD
sources SMPTE 170M. Range always falls back to ``tv`` (limited).
"""
import re
from dataclasses import dataclass
from enum import Enum
from typing import Union

from av1kit.params.errors import InvalidAttribute, MetadataError
from av1kit.params.probe import ProbeRecord, as_record
from av1kit.utils import logger, LogLevel
from av1kit.utils.constants import COLOR_SENTINELS

_HEIGHT_RE = re.compile(r"^[0-9]+$")

UHD_HEIGHT = 2160
HD_HEIGHT = 720


class ColorAttribute(Enum):
    """Color attributes that can be resolved, valued by their ffprobe key."""
    RANGE = "color_range"
    SPACE = "color_space"
    TRANSFER = "color_transfer"
    PRIMARIES = "color_primaries"

    @property
    def probe_key(self) -> str:
        return self.value


# attribute -> (height >= 2160, 720 <= height < 2160, height < 720)
FALLBACK_TABLE = {
    ColorAttribute.RANGE: ("tv", "tv", "tv"),
    ColorAttribute.SPACE: ("bt2020nc", "bt709", "smpte170m"),
    ColorAttribute.TRANSFER: ("smpte2084", "bt709", "bt709"),
    ColorAttribute.PRIMARIES: ("bt2020", "bt709", "smpte170m"),
}


@dataclass(frozen=True)
class ResolvedColorParams:
    range: str
    space: str
    transfer: str
    primaries: str


def _coerce_attribute(attribute: Union[ColorAttribute, str]) -> ColorAttribute:
    if isinstance(attribute, ColorAttribute):
        return attribute
    if isinstance(attribute, str):
        for member in ColorAttribute:
            if attribute in (member.value, member.name.lower()):
                return member
    raise InvalidAttribute(attribute)


def fallback_for_height(attribute: Union[ColorAttribute, str], height: int) -> str:
    """Pick the fallback value for ``attribute`` from the height band table."""
    uhd, hd, sd = FALLBACK_TABLE[_coerce_attribute(attribute)]
    if height >= UHD_HEIGHT:
        return uhd
    if height >= HD_HEIGHT:
        return hd
    return sd


def resolve_color(probe: Union[str, ProbeRecord], attribute: Union[ColorAttribute, str]) -> str:
    """
    Resolve one color attribute from video probe metadata.

    Args:
        probe: Flat ffprobe text (or parsed record) for the video stream
        attribute: A `ColorAttribute`, its probe key or its lower-case name

    Returns:
        The probed value when usable, otherwise the height-based fallback.

    Raises:
        InvalidAttribute: ``attribute`` is not a recognized color attribute.
        MetadataError: A fallback is needed but ``height`` is missing or invalid.
    """
    attr = _coerce_attribute(attribute)
    record = as_record(probe)

    value = record.find(attr.probe_key)
    if value and value not in COLOR_SENTINELS:
        return value

    height = record.find("height")
    if height is None or not _HEIGHT_RE.match(height):
        raise MetadataError("height", height, attribute=attr.probe_key)

    try:
        height_px = int(height)
    except ValueError:
        raise MetadataError("height", height, attribute=attr.probe_key)

    fallback = fallback_for_height(attr, height_px)
    logger.log("color.fallback", LogLevel.DEBUG,
               attribute=attr.probe_key,
               probed=value,
               height=height_px,
               value=fallback)
    return fallback


def resolve_color_params(probe: Union[str, ProbeRecord]) -> ResolvedColorParams:
    """Resolve all four color attributes for one video stream."""
    record = as_record(probe)
    return ResolvedColorParams(
        range=resolve_color(record, ColorAttribute.RANGE),
        space=resolve_color(record, ColorAttribute.SPACE),
        transfer=resolve_color(record, ColorAttribute.TRANSFER),
        primaries=resolve_color(record, ColorAttribute.PRIMARIES),
    )
