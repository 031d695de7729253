#!/usr/bin/env python3

# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: MIT-0

"""
Setup configuration for harvest_common package.

This library provides a two-tier web content harvester including:
- Static HTML fetching and extraction (httpx, BeautifulSoup, lxml, readability)
- Playwright rendering fallback for incomplete pages
- Completeness judging and two-phase work routing
- Local JSON Lines and S3 dataset storage
"""

from setuptools import find_packages, setup

setup(
    name="harvest_common",
    version="0.1.0",
    description="Two-tier web content harvester",
    package_dir={"": "lib"},
    packages=find_packages(where="lib"),
    python_requires=">=3.11",
    install_requires=[
        "boto3>=1.34.0",
        # Scraping dependencies
        "httpx>=0.27.0",
        "beautifulsoup4>=4.12.0",
        "lxml>=5.0.0",
        "readability-lxml>=0.8.4",
        "playwright>=1.40.0",
    ],
    extras_require={
        "test": [
            "pytest>=8.0.0",
            "pytest-asyncio>=0.23.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "harvest=harvest_common.cli:main",
        ],
    },
    author="Development Team",
    license="MIT-0",
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.12",
        "Programming Language :: Python :: 3.13",
    ],
)
