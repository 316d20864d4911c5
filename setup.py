"""
Setup configuration for server-manager package.
"""

from setuptools import setup
from pathlib import Path

# Read the README file
this_directory = Path(__file__).parent
long_description = (this_directory / "README.md").read_text() if (this_directory / "README.md").exists() else ""

setup(
    name="server-manager",
    version="0.1.0",
    description="Start, stop and schedule shutdown of workstation services (Sunshine, Tailscale)",
    long_description=long_description,
    long_description_content_type="text/markdown",

    # Package discovery
    py_modules=[
        "config",
        "models",
        "rgb_off",
    ],
    packages=["servermanager"],

    # Dependencies
    install_requires=[
        "apscheduler>=3.11,<4",
        "tzlocal>=4.0",
        "python-dotenv>=1.0.0",
    ],

    # Optional dependencies
    extras_require={
        "dev": [
            "pytest>=7.4.0",
            "black>=23.0.0",
            "flake8>=6.0.0",
        ],
    },

    # Python version requirement
    python_requires=">=3.9",

    # CLI entry points
    entry_points={
        "console_scripts": [
            "server-manager=servermanager.cli:main",
            "rgb-off=rgb_off:main",
        ],
    },

    # Classification
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Environment :: Console",
        "Intended Audience :: End Users/Desktop",
        "Operating System :: POSIX :: Linux",
        "Topic :: System :: Systems Administration",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],

    # Keywords
    keywords="systemd scheduling shutdown sunshine tailscale openrgb",

    include_package_data=True,
)
