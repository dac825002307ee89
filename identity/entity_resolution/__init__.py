"""
Entity Resolution Module

Name-level matching for employer identities:
- Deterministic name normalization shared by every component
- Edit-distance similarity (rapidfuzz Levenshtein) for duplicate clustering
- Trigram similarity for alias conflict warnings
"""

from identity.entity_resolution.duplicates import (
    ClusterMember,
    DetectorConfig,
    DuplicateCluster,
    DuplicateDetector,
    DuplicateScan,
    PendingEmployerRecord,
    cluster_pending,
)
from identity.entity_resolution.matchers import (
    name_similarity,
    normalize_employer_name,
    trigram_similarity,
)

__all__ = [
    "ClusterMember",
    "DetectorConfig",
    "DuplicateCluster",
    "DuplicateDetector",
    "DuplicateScan",
    "PendingEmployerRecord",
    "cluster_pending",
    "name_similarity",
    "normalize_employer_name",
    "trigram_similarity",
]
