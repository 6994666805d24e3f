"""ORB feature extraction, two-view triangulation helpers and loop-candidate consistency checks."""

__version__ = "0.1.0"

__all__ = [
    "consistency",
    "keypoint",
    "octree",
    "orb_descriptor",
    "orb_extractor",
    "orb_grid",
    "orb_pattern",
    "triangulation",
]