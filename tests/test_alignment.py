"""Tests for cross-chunk speaker alignment."""

from __future__ import annotations

import pytest

from diarcore.pipeline.diarization.alignment import align, align_chunk, profile_distance
from diarcore.pipeline.diarization.config import AlignmentConfig
from synth import profile


def test_empty_input() -> None:
    result = align({})

    assert result.alignment_map == {}
    assert result.global_profiles == []


def test_first_chunk_is_identity() -> None:
    chunk = [profile(0, [1.0, 0.0, 0.0]), profile(1, [0.0, 1.0, 0.0])]

    result = align({0: chunk})

    assert result.alignment_map == {0: {0: 0, 1: 1}}
    assert [p.speaker_index for p in result.global_profiles] == [0, 1]


def test_lowest_chunk_seeds_registry_with_its_own_labels() -> None:
    chunk = [profile(3, [1.0, 0.0]), profile(5, [0.0, 1.0])]

    result = align({7: [profile(0, [1.0, 0.05])], 2: chunk})

    assert result.alignment_map[2] == {3: 3, 5: 5}
    assert [p.speaker_index for p in result.global_profiles] == [3, 5]
    assert result.alignment_map[7] == {0: 3}


def test_seed_with_label_gap_keeps_identity_map() -> None:
    chunk0 = [profile(0, [1.0, 0.0, 0.0]), profile(2, [0.0, 1.0, 0.0])]
    chunk1 = [profile(0, [0.0, 0.0, 1.0])]

    result = align({0: chunk0, 1: chunk1})

    assert result.alignment_map[0] == {0: 0, 2: 2}
    assert result.alignment_map[1] == {0: 3}
    assert [p.speaker_index for p in result.global_profiles] == [0, 2, 3]


def test_matching_speakers_keep_their_global_index() -> None:
    chunk0 = [profile(0, [1.0, 0.0, 0.0], sample_count=2), profile(1, [0.0, 1.0, 0.0])]
    # Local labels are swapped relative to chunk 0.
    chunk1 = [profile(0, [0.02, 1.0, 0.0]), profile(1, [1.0, 0.03, 0.0], sample_count=2)]

    result = align({0: chunk0, 1: chunk1})

    assert result.alignment_map[1] == {0: 1, 1: 0}
    assert len(result.global_profiles) == 2
    assert result.global_profiles[0].sample_count == 4
    assert result.global_profiles[0].speaker_index == 0


def test_unmatched_speaker_gets_next_index() -> None:
    chunk0 = [profile(0, [1.0, 0.0, 0.0]), profile(1, [0.0, 1.0, 0.0])]
    chunk1 = [profile(0, [1.0, 0.0, 0.0]), profile(1, [0.0, 0.0, 1.0])]

    result = align({0: chunk0, 1: chunk1})

    assert result.alignment_map[1] == {0: 0, 1: 2}
    assert [p.speaker_index for p in result.global_profiles] == [0, 1, 2]
    assert result.global_profiles[2].id != chunk1[1].id


def test_each_global_speaker_matches_at_most_once() -> None:
    chunk0 = [profile(0, [1.0, 0.0])]
    chunk1 = [profile(0, [1.0, 0.01]), profile(1, [1.0, 0.02])]

    result = align({0: chunk0, 1: chunk1})

    assert result.alignment_map[1] == {0: 0, 1: 1}


def test_legacy_distance_when_embedding_missing() -> None:
    glob = profile(0, None, pitch=200.0)
    close = profile(0, None, pitch=260.0)
    far = profile(1, None, pitch=600.0)

    dist, threshold = profile_distance(close, glob)
    assert threshold == pytest.approx(2.0)
    assert dist == pytest.approx((2.0 * (60.0 / 150.0) ** 2) ** 0.5)

    result = align_chunk(1, [close, far], [glob], {0: {0: 0}})
    assert result.alignment_map[1] == {0: 0, 1: 1}


def test_inputs_are_not_mutated() -> None:
    glob = [profile(0, [1.0, 0.0])]
    amap = {0: {0: 0}}

    result = align_chunk(1, [profile(0, [1.0, 0.0], sample_count=3)], glob, amap)

    assert amap == {0: {0: 0}}
    assert glob[0].sample_count == 1
    assert result.global_profiles[0].sample_count == 4
    assert result.alignment_map == {0: {0: 0}, 1: {0: 0}}


def test_thresholds_come_from_config() -> None:
    chunk0 = [profile(0, [1.0, 0.0])]
    chunk1 = [profile(0, [1.0, 1.0])]  # cosine distance ~0.29

    strict = align({0: chunk0, 1: chunk1}, AlignmentConfig(embedding_distance_threshold=0.1))
    loose = align({0: chunk0, 1: chunk1})

    assert strict.alignment_map[1] == {0: 1}
    assert loose.alignment_map[1] == {0: 0}
