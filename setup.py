from setuptools import find_packages, setup

package_name = "volmap_ingest"

setup(
    name=package_name,
    version="0.1.0",
    packages=find_packages(exclude=["test"]),
    data_files=[
        ("share/ament_index/resource_index/packages", ["resource/" + package_name]),
        ("share/" + package_name, ["package.xml"]),
        (
            "share/" + package_name + "/launch",
            [
                "launch/pointcloud_input.launch.py",
            ],
        ),
        (
            "share/" + package_name + "/config",
            [
                "config/pointcloud_input.yaml",
            ],
        ),
    ],
    install_requires=["setuptools", "numpy", "scipy", "pydantic>=2", "pyyaml", "rerun-sdk"],
    extras_require={"test": ["pytest"]},
    zip_safe=True,
    maintainer="Will Haber",
    maintainer_email="whab13@mit.edu",
    description="Point cloud ingestion, motion undistortion and map-integration dispatch (ROS 2 Jazzy)",
    license="Apache-2.0",
    tests_require=["pytest"],
    entry_points={
        "console_scripts": [
            # Subscribes to one LiDAR topic, resolves poses over TF and feeds the map integrators
            "pointcloud_input_node = volmap_ingest.frontend.sensors.pointcloud_input_node:main",
        ],
    },
)
