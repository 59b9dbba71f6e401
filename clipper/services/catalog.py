"""Stream variant ranking and selection.

Everything here is pure: functions take the provider's advertised
variants and return a choice, or None when nothing fits.
"""

from typing import Iterable, List, Optional, Sequence, Tuple

from clipper.models.video import SelectionResult, StreamVariant

# Preferred preview height when a progressive variant offers it
PREFERRED_HEIGHT = 720

SPLIT_CONTAINERS = ("mp4", "webm")


def _is_h264(variant: StreamVariant) -> bool:
    return bool(variant.video_codec) and variant.video_codec.startswith("avc1")


def _is_aac(variant: StreamVariant) -> bool:
    return bool(variant.audio_codec) and variant.audio_codec.startswith("mp4a")


def is_browser_compatible(variant: StreamVariant) -> bool:
    """True for a progressive MP4 carrying H.264 video and AAC audio."""
    return variant.container == "mp4" and _is_h264(variant) and _is_aac(variant)


def needs_video_transcode(variant: StreamVariant) -> bool:
    """True when the video track cannot be stream-copied into an MP4 for playback."""
    return variant.container == "webm" or not _is_h264(variant)


def needs_audio_transcode(variant: StreamVariant) -> bool:
    """True when the audio track cannot be stream-copied into an MP4 for playback."""
    return variant.container == "webm" or not _is_aac(variant)


def _pick_preferred(candidates: Sequence[StreamVariant]) -> Optional[StreamVariant]:
    """Pick by preferred height, then greater height, then greater bitrate.

    A 720p candidate beats every other height. The first candidate wins
    full ties.
    """
    if not candidates:
        return None

    best = candidates[0]
    for candidate in candidates[1:]:
        if candidate.height == PREFERRED_HEIGHT and best.height != PREFERRED_HEIGHT:
            best = candidate
            continue
        if best.height == PREFERRED_HEIGHT and candidate.height != PREFERRED_HEIGHT:
            continue
        if candidate.height > best.height:
            best = candidate
        elif candidate.height == best.height and candidate.bitrate > best.bitrate:
            best = candidate
    return best


def _pick_tallest(candidates: Sequence[StreamVariant]) -> Optional[StreamVariant]:
    if not candidates:
        return None

    best = candidates[0]
    for candidate in candidates[1:]:
        if candidate.height > best.height:
            best = candidate
        elif candidate.height == best.height and candidate.bitrate > best.bitrate:
            best = candidate
    return best


def _pick_highest_bitrate(candidates: Sequence[StreamVariant]) -> Optional[StreamVariant]:
    if not candidates:
        return None

    best = candidates[0]
    for candidate in candidates[1:]:
        if candidate.bitrate > best.bitrate:
            best = candidate
    return best


def select_progressive(variants: Iterable[StreamVariant]) -> Optional[StreamVariant]:
    """
    Choose the best single variant carrying both video and audio.

    Tiers are tried in order and the first non-empty one wins:
    MP4 with H.264 and AAC, then any MP4, then any container, and as a
    last resort any variant that has video at all.
    Variants served through a manifest are never chosen.

    Args:
        variants: Advertised stream variants

    Returns:
        The chosen variant, or None if no variant has video
    """
    variants = [v for v in variants if v.is_direct]
    muxed = [v for v in variants if v.has_video and v.has_audio]
    mp4 = [v for v in muxed if v.container == "mp4"]
    mp4_h264 = [v for v in mp4 if _is_h264(v) and _is_aac(v)]

    for tier in (mp4_h264, mp4, muxed):
        best = _pick_preferred(tier)
        if best is not None:
            return best

    return _pick_preferred([v for v in variants if v.has_video])


def select_split_pair(
    variants: Iterable[StreamVariant],
) -> Tuple[Optional[StreamVariant], Optional[StreamVariant]]:
    """
    Choose the best video-only and audio-only variants for muxing.

    Only MP4 and WebM containers are considered. Video is ranked by height
    then bitrate, audio by bitrate.

    Args:
        variants: Advertised stream variants

    Returns:
        ``(video, audio)``; either side may be None, in which case the pair
        is unusable
    """
    variants = [v for v in variants if v.is_direct]
    video_only: List[StreamVariant] = [
        v
        for v in variants
        if v.has_video and not v.has_audio and v.container in SPLIT_CONTAINERS
    ]
    audio_only: List[StreamVariant] = [
        v
        for v in variants
        if v.has_audio and not v.has_video and v.container in SPLIT_CONTAINERS
    ]
    return _pick_tallest(video_only), _pick_highest_bitrate(audio_only)


def select(variants: Iterable[StreamVariant], allow_split: bool = True) -> Optional[SelectionResult]:
    """
    Choose a full selection, preferring a split pair when muxing is possible.

    Args:
        variants: Advertised stream variants
        allow_split: Whether a video-only/audio-only pair may be returned
            (requires an encoder to mux it)

    Returns:
        SelectionResult, or None when no variant with video exists
    """
    variants = list(variants)
    if allow_split:
        video, audio = select_split_pair(variants)
        if video is not None and audio is not None:
            return SelectionResult(video=video, audio=audio)

    progressive = select_progressive(variants)
    if progressive is None:
        return None
    return SelectionResult(progressive=progressive)
