"""SE(3) geometry (numpy) for 6D poses [x, y, z, rx, ry, rz]."""
