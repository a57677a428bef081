"""
Region merging for overlapping detections.
"""

from statistics import fmean
from typing import List, Sequence

from playpilot.geometry import BoundingBox
from playpilot.perception.models import DetectedElement


def group_overlapping(elements: Sequence[DetectedElement]) -> List[List[DetectedElement]]:
    """
    Greedy single-pass grouping of overlapping elements.

    Each unassigned element seeds a group; every later unassigned element
    that overlaps any current member joins it. Elements already skipped
    are not revisited when the group grows, so unusual geometries can
    leave adjacent groups unmerged.
    """
    groups = []
    used = [False] * len(elements)

    for i, seed in enumerate(elements):
        if used[i]:
            continue
        used[i] = True
        group = [seed]

        for j in range(i + 1, len(elements)):
            if used[j]:
                continue
            if any(member.bbox.overlaps(elements[j].bbox) for member in group):
                group.append(elements[j])
                used[j] = True

        groups.append(group)

    return groups


def merge_group(group: Sequence[DetectedElement]) -> DetectedElement:
    """Collapse a group into one covering element with mean confidence."""
    return DetectedElement(
        type=group[0].type,
        bbox=BoundingBox.covering(e.bbox for e in group),
        confidence=fmean(e.confidence for e in group),
        merged_from=len(group),
    )


def merge_overlapping(elements: Sequence[DetectedElement]) -> List[DetectedElement]:
    """
    Consolidate overlapping detections.

    Singleton groups pass through unchanged; merged results are not
    re-checked against each other.
    """
    return [
        merge_group(group) if len(group) > 1 else group[0]
        for group in group_overlapping(elements)
    ]
