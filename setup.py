"""Setup script for the diskguard package."""

from setuptools import find_packages, setup

setup(
    name="diskguard",
    version="0.1.0",
    description="Pre-checkout disk space guard and workspace recycler for CI build nodes",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.9",
    install_requires=[
        "pyyaml",
        "python-dotenv",
        "paho-mqtt>=2.0.0",
        "rich",
    ],
    extras_require={
        "dev": [
            "pytest",
            "black",
            "isort",
            "mypy",
        ],
    },
    entry_points={
        "console_scripts": [
            "diskguard-check=diskguard.guard:main",
            "diskguard-monitor=diskguard.monitor:main",
        ],
    },
)
