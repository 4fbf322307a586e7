"""
Pointcloud input launch file.

Starts pointcloud_input_node with the YAML config at `config_path`
(default: share/volmap_ingest/config/pointcloud_input.yaml).
"""

import os

from launch import LaunchDescription
from launch.actions import DeclareLaunchArgument
from launch.substitutions import LaunchConfiguration
from launch_ros.actions import Node

from ament_index_python.packages import get_package_share_directory


def generate_launch_description():
    """Generate launch description for the pointcloud input node."""

    default_config = os.path.join(
        get_package_share_directory("volmap_ingest"), "config", "pointcloud_input.yaml"
    )

    config_path_arg = DeclareLaunchArgument(
        "config_path",
        default_value=default_config,
        description="Path to the pointcloud_input_node YAML config",
    )
    use_sim_time_arg = DeclareLaunchArgument(
        "use_sim_time",
        default_value="false",
        description="Use /clock (rosbag playback)",
    )

    pointcloud_input_node = Node(
        package="volmap_ingest",
        executable="pointcloud_input_node",
        name="pointcloud_input_node",
        output="screen",
        parameters=[
            {
                "config_path": LaunchConfiguration("config_path"),
                "use_sim_time": LaunchConfiguration("use_sim_time"),
            }
        ],
    )

    return LaunchDescription([
        config_path_arg,
        use_sim_time_arg,
        pointcloud_input_node,
    ])
