from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field

import numpy as np
from sklearn.metrics.pairwise import cosine_distances

from .config import DiarizationConfig
from .models import SpeakerEmbedding

__all__ = ["ClusteringResult", "cosine_distance_matrix", "cluster"]


@dataclass
class ClusteringResult:
    labels: list[int] = field(default_factory=list)
    cluster_count: int = 0


def cosine_distance_matrix(embeddings: Sequence[SpeakerEmbedding]) -> np.ndarray:
    if not embeddings:
        return np.zeros((0, 0), dtype=np.float64)
    X = np.vstack([emb.values for emb in embeddings])
    dist = cosine_distances(X)
    np.fill_diagonal(dist, 0.0)
    return dist.astype(np.float64, copy=False)


def cluster(
    embeddings: Sequence[SpeakerEmbedding],
    config: DiarizationConfig | None = None,
) -> ClusteringResult:
    """Average-linkage agglomerative clustering over cosine distances.

    Merging continues unconditionally while more than ``max_clusters`` are
    active; at or below the cap it stops as soon as the closest pair is
    further apart than ``max_distance_threshold``.  Ties go to the first pair
    in ascending cluster order.
    """

    cfg = config or DiarizationConfig()
    n = len(embeddings)
    if n == 0:
        return ClusteringResult([], 0)
    if n == 1:
        return ClusteringResult([0], 1)

    dist = cosine_distance_matrix(embeddings)
    members: dict[int, list[int]] = {i: [i] for i in range(n)}
    active = list(range(n))

    while len(active) > 1:
        best_i, best_j = -1, -1
        min_dist = np.inf
        for a_pos, i in enumerate(active):
            for j in active[a_pos + 1 :]:
                if dist[i, j] < min_dist:
                    min_dist = dist[i, j]
                    best_i, best_j = i, j
        if best_i < 0:
            break
        if len(active) <= cfg.max_clusters and min_dist > cfg.max_distance_threshold:
            break

        size_i = len(members[best_i])
        size_j = len(members[best_j])
        total = float(size_i + size_j)
        for k in active:
            if k == best_i or k == best_j:
                continue
            merged = (size_i * dist[best_i, k] + size_j * dist[best_j, k]) / total
            dist[best_i, k] = merged
            dist[k, best_i] = merged
        members[best_i].extend(members.pop(best_j))
        active.remove(best_j)

    labels = [0] * n
    for label, cid in enumerate(sorted(active)):
        for idx in members[cid]:
            labels[idx] = label
    return ClusteringResult(labels, len(active))
