"""Build and install the odid package."""

from setuptools import setup, find_packages

setup(
    name="odid",
    version="0.1.0",
    description="Remote ID broadcast telemetry decoder",
    python_requires=">=3.9",
    package_dir={"": "python"},
    packages=find_packages("python", include=["odid", "odid.*"]),
    install_requires=[
        "numpy",
    ],
    extras_require={
        "serial": ["pyserial"],
        "test": ["pytest"],
    },
    entry_points={
        "console_scripts": [
            "odid = odid.cli:main",
        ],
    },
)
