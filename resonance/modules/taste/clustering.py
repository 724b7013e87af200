"""
TasteClusteringEngine - discovers distinct taste clusters in a user's history.

Algorithm:
    1. embeddings -> float matrix (all vectors must share one dimension)
    2. for each candidate k: k-means (fixed seed), reject tiny clusters,
       score with the silhouette coefficient
    3. keep the best-scoring k if it beats the acceptance threshold,
       otherwise return one "General Taste" cluster holding every track

CPU-bound and synchronous: callers run it off the event loop.
"""

import time
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

import numpy as np
from sklearn.cluster import KMeans
from sklearn.metrics import silhouette_samples, silhouette_score

from resonance.common.logging import get_logger
from resonance.core.config import Settings, get_settings
from resonance.core.errors import DimensionMismatchError, ValidationError
from resonance.core.models import TrackFeatureRecord
from resonance.core.monitoring import clustering_duration_seconds, record_clustering

from .models import TasteCluster
from .naming import collect_attributes, find_dominant, generate_cluster_name

logger = get_logger(__name__)

GENERAL_TASTE_NAME = "General Taste"

# Silhouette is O(n^2); above this size it is estimated on a sample
SILHOUETTE_SAMPLE_THRESHOLD = 500
SILHOUETTE_SAMPLE_SIZE = 300

MAX_ITERATIONS = 100
TOLERANCE = 1e-4


@dataclass
class _Assignment:
    k: int
    labels: np.ndarray
    centroids: np.ndarray
    score: float


class TasteClusteringEngine:
    """Chooses k by silhouette and names the resulting clusters."""

    def __init__(self, settings: Optional[Settings] = None):
        settings = settings or get_settings()
        self.candidate_ks = tuple(sorted(set(settings.cluster_candidate_ks)))
        self.silhouette_threshold = settings.cluster_silhouette_threshold
        self.min_cluster_size = max(1, settings.cluster_min_size)
        self.seed = settings.cluster_seed

    def cluster(
        self,
        points: Sequence[Tuple[str, Sequence[float]]],
        features: Optional[Mapping[str, TrackFeatureRecord]] = None,
    ) -> List[TasteCluster]:
        """
        Cluster (track_id, embedding) pairs.

        Args:
            points: Track IDs with their embeddings, in history order
            features: Optional records used for naming (genres, moods, energy, valence)

        Returns:
            Clusters ordered by id; ids follow first appearance in `points`.
            Empty input yields an empty list.

        Raises:
            DimensionMismatchError: embeddings of different lengths
        """
        if not points:
            return []

        features = features or {}
        track_ids = [track_id for track_id, _ in points]
        data = self._as_matrix(points)
        started = time.perf_counter()

        try:
            distinct = len(np.unique(data, axis=0))
            if distinct < 2:
                record_clustering("degenerate", 1)
                return [self._general_taste(track_ids, data, features)]

            try:
                best = self._select(data, distinct)
            except (ValueError, ArithmeticError, np.linalg.LinAlgError) as e:
                logger.warning(
                    "Clustering failed, falling back to a single cluster",
                    data={"points": len(track_ids), "error": str(e)},
                )
                record_clustering("failed", 1)
                return [self._general_taste(track_ids, data, features)]

            if best is None or not best.score > self.silhouette_threshold:
                logger.info("No clustering beat the silhouette threshold", data={
                    "points": len(track_ids),
                    "best_k": best.k if best else None,
                    "best_score": round(best.score, 4) if best else None,
                    "threshold": self.silhouette_threshold,
                })
                record_clustering("below_threshold", 1)
                return [self._general_taste(track_ids, data, features)]

            clusters = self._build(track_ids, data, best, features)
            logger.info("Taste clusters computed", data={
                "points": len(track_ids),
                "k": best.k,
                "silhouette": round(best.score, 4),
                "sizes": [c.size for c in clusters],
            })
            record_clustering("clustered", best.k)
            return clusters
        finally:
            clustering_duration_seconds.observe(time.perf_counter() - started)

    # ============== Internals ==============

    @staticmethod
    def _as_matrix(points: Sequence[Tuple[str, Sequence[float]]]) -> np.ndarray:
        dims = {len(vector) for _, vector in points}
        if len(dims) > 1:
            raise DimensionMismatchError(
                "Embeddings have inconsistent dimensions",
                data={"dimensions": sorted(dims)},
            )
        if dims == {0}:
            raise ValidationError("Embeddings must not be empty")
        return np.asarray([list(vector) for _, vector in points], dtype=np.float64)

    def _select(self, data: np.ndarray, distinct: int) -> Optional[_Assignment]:
        n = len(data)
        sample_size = SILHOUETTE_SAMPLE_SIZE if n > SILHOUETTE_SAMPLE_THRESHOLD else None
        best: Optional[_Assignment] = None

        for k in self.candidate_ks:
            if k < 2 or k > distinct or n < k * self.min_cluster_size:
                logger.debug("Skipping k", data={"k": k, "points": n, "distinct": distinct})
                continue

            km = KMeans(
                n_clusters=k,
                random_state=self.seed,
                n_init=10,
                max_iter=MAX_ITERATIONS,
                tol=TOLERANCE,
            )
            labels = km.fit_predict(data)

            sizes = np.bincount(labels, minlength=k)
            if sizes.min() < self.min_cluster_size:
                logger.debug("Rejecting k with undersized cluster", data={"k": k, "sizes": sizes.tolist()})
                continue

            score = float(silhouette_score(data, labels, sample_size=sample_size, random_state=self.seed))
            logger.debug("Candidate k scored", data={"k": k, "silhouette": round(score, 4)})

            # Strict comparison keeps the smaller k on ties
            if best is None or score > best.score:
                best = _Assignment(k=k, labels=labels, centroids=km.cluster_centers_, score=score)

        return best

    def _build(
        self,
        track_ids: List[str],
        data: np.ndarray,
        best: _Assignment,
        features: Mapping[str, TrackFeatureRecord],
    ) -> List[TasteCluster]:
        # Renumber by first appearance so ids do not depend on k-means internals
        order: Dict[int, int] = {}
        for label in best.labels.tolist():
            if label not in order:
                order[label] = len(order)

        samples = silhouette_samples(data, best.labels)
        clusters = []
        for old_label, cluster_id in sorted(order.items(), key=lambda item: item[1]):
            mask = best.labels == old_label
            members = [tid for tid, keep in zip(track_ids, mask.tolist()) if keep]
            clusters.append(self._make_cluster(
                cluster_id=cluster_id,
                centroid=best.centroids[old_label],
                track_ids=members,
                validity=float(samples[mask].mean()),
                features=features,
            ))
        return clusters

    def _general_taste(
        self,
        track_ids: List[str],
        data: np.ndarray,
        features: Mapping[str, TrackFeatureRecord],
    ) -> TasteCluster:
        cluster = self._make_cluster(
            cluster_id=0,
            centroid=data.mean(axis=0),
            track_ids=list(track_ids),
            validity=0.0,
            features=features,
        )
        cluster.suggested_name = GENERAL_TASTE_NAME
        return cluster

    @staticmethod
    def _make_cluster(
        cluster_id: int,
        centroid: np.ndarray,
        track_ids: List[str],
        validity: float,
        features: Mapping[str, TrackFeatureRecord],
    ) -> TasteCluster:
        attributes = collect_attributes(track_ids, features)
        return TasteCluster(
            cluster_id=cluster_id,
            centroid=[float(x) for x in centroid],
            track_ids=track_ids,
            suggested_name=generate_cluster_name(attributes, cluster_id),
            validity_score=validity,
            dominant_genre=find_dominant(attributes.genres),
            dominant_mood=find_dominant(attributes.moods),
            average_energy=attributes.average_energy,
            average_valence=attributes.average_valence,
        )
