#!/usr/bin/env python3
# -*- coding: utf-8 -*-

from setuptools import setup, find_packages

# Read version from __init__.py
with open("src/lead_discovery/__init__.py", "r") as f:
    for line in f:
        if line.startswith("__version__"):
            version = line.split("=")[1].strip().strip('"').strip("'")
            break
    else:
        version = "0.0.1"

# Read long description from README.md
with open("README.md", "r", encoding="utf-8") as f:
    long_description = f.read()

setup(
    name="lead-discovery",
    version=version,
    description="Scheduled multi-source discovery of hospitality construction project leads",
    long_description=long_description,
    long_description_content_type="text/markdown",
    package_dir={"": "src"},
    packages=find_packages(where="src"),
    include_package_data=True,
    python_requires=">=3.9",
    install_requires=[
        "beautifulsoup4>=4.12.2",
        "requests>=2.31.0",
        "python-dotenv>=1.0.1",
        "pydantic>=2.6.1",
        "sqlalchemy>=2.0.23",
        "tenacity>=8.2.3",
        "apscheduler>=3.10.4,<4",
        "pytz>=2024.1",
        "python-dateutil>=2.8.2",
        "feedparser>=6.0.11",
        "fastapi>=0.110.0",
        "uvicorn>=0.27.1",
        "psutil>=5.9.8",
    ],
    extras_require={
        "dev": [
            "pytest>=8.0.0",
            "pytest-cov>=4.1.0",
            "httpx>=0.27.0",
            "black>=24.1.0",
            "ruff>=0.1.15",
            "mypy>=1.8.0",
            "isort>=5.13.2",
        ],
    },
    entry_points={
        "console_scripts": [
            "lead-discovery=lead_discovery.main:main",
        ],
    },
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
    ],
)
