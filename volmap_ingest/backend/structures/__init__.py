"""Data structures: stamped/posed point clouds, ingestion queue, pose buffer."""

__all__ = []
