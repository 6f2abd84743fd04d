"""Leaf disease triage: pixel-level disease segmentation engine."""

__version__ = "1.0.0"
