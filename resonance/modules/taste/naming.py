"""
Cluster naming from dominant attributes.

    mood + genre  -> "Energetic Rock"
    mood only     -> energy descriptor + mood   ("Chill Melancholic")
    genre only    -> energy/valence descriptor + genre ("Upbeat Pop")
    neither       -> "{descriptor} Mix #{n}"
"""

from collections import Counter
from typing import Iterable, Mapping, Optional, Sequence

from resonance.core.models import TrackFeatureRecord

from .models import ClusterAttributes

NEUTRAL_LEVEL = 0.5


def find_dominant(items: Iterable[str]) -> Optional[str]:
    """Most frequent item; ties go to the lexically smallest."""
    counts = Counter(items)
    if not counts:
        return None
    return min(counts.items(), key=lambda item: (-item[1], item[0]))[0]


def energy_descriptor(energy: float) -> str:
    if energy < 0.35:
        return "chill"
    if energy < 0.65:
        return "moderate"
    return "energetic"


def valence_descriptor(valence: float) -> str:
    if valence < 0.35:
        return "melancholic"
    if valence < 0.65:
        return "neutral"
    return "uplifting"


def combined_descriptor(energy: float, valence: float) -> str:
    low_energy = energy < 0.5
    low_valence = valence < 0.5
    if low_energy and low_valence:
        return "mellow"
    if low_energy:
        return "peaceful"
    if low_valence:
        return "intense"
    return "upbeat"


def _capitalize(word: str) -> str:
    return word[:1].upper() + word[1:]


def generate_cluster_name(attributes: ClusterAttributes, cluster_id: int) -> str:
    """Human-readable label for a cluster."""
    mood = find_dominant(attributes.moods)
    genre = find_dominant(attributes.genres)
    energy, valence = attributes.average_energy, attributes.average_valence

    if mood and genre:
        return f"{_capitalize(mood)} {_capitalize(genre)}"
    if mood:
        return f"{_capitalize(energy_descriptor(energy))} {_capitalize(mood)}"
    if genre:
        return f"{_capitalize(combined_descriptor(energy, valence))} {_capitalize(genre)}"
    return f"{_capitalize(combined_descriptor(energy, valence))} Mix #{cluster_id + 1}"


def collect_attributes(
    track_ids: Sequence[str],
    features: Mapping[str, TrackFeatureRecord],
) -> ClusterAttributes:
    """Flatten member genres/moods and average energy/valence where known."""
    genres, moods, energies, valences = [], [], [], []
    for track_id in track_ids:
        record = features.get(track_id)
        if record is None:
            continue
        genres.extend(sorted(record.genres))
        moods.extend(sorted(record.moods))
        if record.acoustic.energy is not None:
            energies.append(record.acoustic.energy)
        if record.acoustic.valence is not None:
            valences.append(record.acoustic.valence)

    return ClusterAttributes(
        genres=genres,
        moods=moods,
        average_energy=sum(energies) / len(energies) if energies else NEUTRAL_LEVEL,
        average_valence=sum(valences) / len(valences) if valences else NEUTRAL_LEVEL,
    )
