# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Edit-distance scoring shared by the local matcher and the global locator.
"""

from rapidfuzz.distance import Levenshtein


def edit_distance(a: str, b: str) -> int:
    """Levenshtein distance (insert, delete, substitute; unit costs).

    rapidfuzz trims the common prefix and suffix before running the
    dynamic programme and keeps only a single row in memory.
    """
    return Levenshtein.distance(a, b)


def similarity(a: str, b: str, score_cutoff: float | None = None) -> float:
    """Normalised similarity in [0, 1].

    Identical strings score 1.0, an empty string against a non-empty one
    scores 0.0, otherwise ``1 - distance / max(len(a), len(b))``.
    """
    if a == b:
        return 1.0
    if not a or not b:
        return 0.0
    return Levenshtein.normalized_similarity(a, b, score_cutoff=score_cutoff)


def match_confidence(recognized: str, reference: str) -> float:
    """Case-insensitive similarity of recognized speech against script text."""
    if not recognized or not reference:
        return 0.0
    return max(0.0, similarity(recognized.lower(), reference.lower()))
