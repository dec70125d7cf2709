"""Setup configuration for svcclient package."""

from setuptools import setup, find_packages
from pathlib import Path

# Read the README file
readme_file = Path(__file__).parent / "README.md"
long_description = readme_file.read_text(encoding="utf-8") if readme_file.exists() else ""

setup(
    name="svcclient",
    version="1.0.0",
    description="Non-blocking request/response engine for remote services",
    long_description=long_description,
    long_description_content_type="text/markdown",
    package_dir={"": "src"},
    packages=find_packages("src"),
    classifiers=[
        # Development Status
        "Development Status :: 4 - Beta",
        # Intended Audience
        "Intended Audience :: Developers",
        # Framework
        "Framework :: AsyncIO",
        # Topic
        "Topic :: Internet :: WWW/HTTP",
        "Topic :: Software Development :: Libraries :: Python Modules",
        # Operating System
        "Operating System :: OS Independent",
        # Programming Language
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Programming Language :: Python :: 3.13",
        "Programming Language :: Python :: 3 :: Only",
        # Typing
        "Typing :: Typed",
    ],
    python_requires=">=3.9",
    install_requires=[
        "aiohttp>=3.9.0",
        "pydantic>=2.0.0",
        "rich>=13.0.0",
    ],
    extras_require={
        "yaml": ["pyyaml>=6.0"],
        "test": [
            "pytest>=7.0.0,<9",
            "pytest-asyncio>=0.21.0",
            "pyyaml>=6.0",
        ],
        "dev": [
            "pytest>=7.0.0,<9",
            "pytest-asyncio>=0.21.0",
            "pyyaml>=6.0",
            "black>=23.0.0",
            "mypy>=1.0.0",
            "ruff>=0.1.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "svcclient=svcclient.cli:main",
        ],
    },
)
