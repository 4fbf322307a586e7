"""
volmap_ingest constants only.

=============================================================================
CONVENTION QUICK REFERENCE
=============================================================================

TIME:
  All stamps inside the pipeline are integer nanoseconds (uint64 range).
  Per-point time offsets are nanoseconds relative to the cloud timebase.
  Configuration durations (time_offset, max_wait_for_pose, ...) are seconds.

SE(3) POSES:
  Internal 6D: [trans(3), rotvec(3)] = [x, y, z, rx, ry, rz]
  T_W_C maps sensor-frame points into the world frame:
    p_W = R_W_C @ p_C + t_W_C

POINTS:
  positions: (N, 3) float32, sensor frame, arrival order preserved
  offsets:   (N,) int64 nanoseconds
=============================================================================
"""

# =============================================================================
# TIME
# =============================================================================

NS_PER_SEC = 1_000_000_000

# =============================================================================
# POINTCLOUD TOPIC TYPES (message adapter selection)
# =============================================================================

TOPIC_TYPE_POINTCLOUD2 = "PointCloud2"
TOPIC_TYPE_OUSTER = "Ouster"
TOPIC_TYPE_LIVOX = "Livox"
TOPIC_TYPES = (TOPIC_TYPE_POINTCLOUD2, TOPIC_TYPE_OUSTER, TOPIC_TYPE_LIVOX)

# Per-point time field carried by Ouster PointCloud2 drivers (uint32, ns)
OUSTER_TIME_FIELD = "t"

# =============================================================================
# sensor_msgs/PointField datatype codes (fixed by the message definition)
# =============================================================================

POINTFIELD_INT8 = 1
POINTFIELD_UINT8 = 2
POINTFIELD_INT16 = 3
POINTFIELD_UINT16 = 4
POINTFIELD_INT32 = 5
POINTFIELD_UINT32 = 6
POINTFIELD_FLOAT32 = 7
POINTFIELD_FLOAT64 = 8

# =============================================================================
# INPUT HANDLER DEFAULTS
# =============================================================================

POINTCLOUD_TOPIC_DEFAULT = "/lidar/points"
WORLD_FRAME_DEFAULT = "odom"
TOPIC_QUEUE_LENGTH_DEFAULT = 10
PROCESSING_RETRY_PERIOD_DEFAULT = 0.05  # s
MAX_WAIT_FOR_POSE_DEFAULT = 1.0  # s

# Interior pose samples per cloud used for undistortion interpolation
UNDISTORTION_INTERVALS_PER_CLOUD_DEFAULT = 100

# Transform history retained by the in-memory pose buffer (tf2 default)
POSE_CACHE_DURATION_DEFAULT = 10.0  # s

# =============================================================================
# EXECUTION
# =============================================================================

EXECUTOR_THREADS_DEFAULT = 4
QOS_DEPTH_DEBUG_OUTPUT = 5

# =============================================================================
# DEBUG OUTPUT (rerun)
# =============================================================================

RERUN_APPLICATION_ID = "volmap_ingest"
RERUN_TIMELINE = "sensor_time"
RERUN_POINTCLOUD_ENTITY = "world/reprojected_pointcloud"
RERUN_RANGE_IMAGE_ENTITY = "sensor/projected_range_image"
