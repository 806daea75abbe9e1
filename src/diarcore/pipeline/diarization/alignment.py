"""Map chunk-local speaker labels onto a session-wide set of speakers.

The first chunk seeds the global registry.  Every later chunk is matched
greedily against it; anything left over becomes a new global speaker.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field

from .config import AlignmentConfig
from .logger import logger
from .models import AlignmentMap, SpeakerProfile, new_id

__all__ = ["AlignmentResult", "profile_distance", "align", "align_chunk"]


@dataclass
class AlignmentResult:
    alignment_map: AlignmentMap = field(default_factory=dict)
    global_profiles: list[SpeakerProfile] = field(default_factory=list)


def profile_distance(
    local: SpeakerProfile,
    other: SpeakerProfile,
    config: AlignmentConfig | None = None,
) -> tuple[float, float]:
    """Return ``(distance, threshold)`` for a profile pair.

    Embedding cosine distance is used when both sides carry an embedding,
    the weighted legacy distance otherwise.
    """

    cfg = config or AlignmentConfig()
    if local.embedding is not None and other.embedding is not None:
        return local.embedding.cosine_distance(other.embedding), cfg.embedding_distance_threshold
    return local.centroid.distance(other.centroid), cfg.legacy_distance_threshold


def align_chunk(
    chunk_index: int,
    local_profiles: Sequence[SpeakerProfile],
    global_profiles: Sequence[SpeakerProfile],
    alignment_map: Mapping[int, Mapping[int, int]] | None = None,
    config: AlignmentConfig | None = None,
) -> AlignmentResult:
    """Match one chunk against ``global_profiles``.

    Inputs are never mutated; the returned result holds fresh copies of the
    map and the profile list with this chunk's entry added.
    """

    cfg = config or AlignmentConfig()
    new_map: AlignmentMap = {int(k): dict(v) for k, v in (alignment_map or {}).items()}
    updated = list(global_profiles)

    if not updated:
        # Empty registry: this chunk seeds it under its own labels.
        seeded = list(local_profiles)
        new_map[int(chunk_index)] = {p.speaker_index: p.speaker_index for p in seeded}
        return AlignmentResult(alignment_map=new_map, global_profiles=seeded)

    pairs: list[tuple[float, float, SpeakerProfile, int]] = []
    for local in local_profiles:
        for pos, glob in enumerate(updated):
            dist, threshold = profile_distance(local, glob, cfg)
            pairs.append((dist, threshold, local, pos))
    # sorted() is stable, so ties keep local-major order.
    pairs.sort(key=lambda item: item[0])

    local_to_global: dict[int, int] = {}
    matched_global: set[int] = set()
    for dist, threshold, local, pos in pairs:
        if local.speaker_index in local_to_global or pos in matched_global:
            continue
        if dist > threshold:
            continue
        glob = updated[pos]
        local_to_global[local.speaker_index] = glob.speaker_index
        matched_global.add(pos)
        updated[pos] = glob.merging(local)

    for local in local_profiles:
        if local.speaker_index in local_to_global:
            continue
        next_index = max((p.speaker_index for p in updated), default=-1) + 1
        local_to_global[local.speaker_index] = next_index
        updated.append(
            SpeakerProfile(
                id=new_id(),
                speaker_index=next_index,
                centroid=local.centroid,
                sample_count=local.sample_count,
                embedding=local.embedding,
            )
        )
        logger.info("[align] chunk %d: new global speaker %d", chunk_index, next_index)

    new_map[int(chunk_index)] = local_to_global
    return AlignmentResult(alignment_map=new_map, global_profiles=updated)


def align(
    chunk_profiles: Mapping[int, Sequence[SpeakerProfile]],
    config: AlignmentConfig | None = None,
) -> AlignmentResult:
    """Align every chunk in ascending chunk-index order."""

    result = AlignmentResult()
    if not chunk_profiles:
        return result
    for chunk_index in sorted(chunk_profiles):
        result = align_chunk(
            chunk_index,
            chunk_profiles[chunk_index],
            result.global_profiles,
            result.alignment_map,
            config,
        )
    logger.info(
        "[align] %d chunks aligned onto %d global speakers",
        len(chunk_profiles),
        len(result.global_profiles),
    )
    return result
