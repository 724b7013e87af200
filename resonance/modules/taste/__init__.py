"""
Taste - groups a user's listening history into named taste clusters.
"""

from .models import ClusterAttributes, TasteCluster
from .naming import (
    collect_attributes,
    combined_descriptor,
    energy_descriptor,
    find_dominant,
    generate_cluster_name,
    valence_descriptor,
)
from .clustering import GENERAL_TASTE_NAME, TasteClusteringEngine

__all__ = [
    'ClusterAttributes',
    'TasteCluster',
    'collect_attributes',
    'combined_descriptor',
    'energy_descriptor',
    'find_dominant',
    'generate_cluster_name',
    'valence_descriptor',
    'GENERAL_TASTE_NAME',
    'TasteClusteringEngine',
]
