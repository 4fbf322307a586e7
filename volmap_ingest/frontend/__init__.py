"""
Frontend package for volmap_ingest.

This is pure I/O and data wrangling: raw message adapters and ROS 2 plumbing.
All pose/undistortion logic lives in backend/.
"""

__all__ = []
