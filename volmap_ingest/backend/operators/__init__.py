"""Operators acting on stamped point clouds (motion undistortion)."""

__all__ = []
