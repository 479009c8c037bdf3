#!/usr/bin/env python
"""
WaWi -> BI Synchronization Setup
"""

from setuptools import setup, find_packages

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

with open("requirements.txt", "r", encoding="utf-8") as fh:
    requirements = [line.strip() for line in fh if line.strip() and not line.startswith("#")]

setup(
    name="wawi-bi-sync",
    version="1.0.0",
    description="Synchronizes warehouse-management (WaWi) data into a BI star schema",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests", "tests.*"]),
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Database",
        "Topic :: Scientific/Engineering :: Information Analysis",
    ],
    python_requires=">=3.11",
    install_requires=requirements,
    extras_require={
        "dev": [
            "pytest>=7.4.0",
            "pytest-cov>=4.1.0",
            "pytest-asyncio>=0.23.0",
            "aiosqlite>=0.19.0",
            "black>=23.0.0",
            "ruff>=0.1.0",
            "mypy>=1.5.0",
        ],
        "postgres": [
            "asyncpg>=0.29.0",
        ],
        "scheduler": [
            "prefect>=2.14.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "bisync=bisync.cli:main",
        ],
    },
    include_package_data=True,
    zip_safe=False,
    keywords=[
        "bi",
        "etl",
        "star-schema",
        "data-sync",
        "mysql",
        "sqlalchemy",
    ],
)
