"""Setup script for PureTrans."""

from setuptools import setup, find_packages
from pathlib import Path

# Read the README
readme = Path("README.md").read_text(encoding="utf-8")

setup(
    name="puretrans-legal",
    version="1.0.0",
    description="Purity-enforcing Arabic/French legal translation pipeline",
    long_description=readme,
    long_description_content_type="text/markdown",
    author="PureTrans Team",
    license="MIT",

    packages=find_packages(exclude=["tests*", "docs*"]),
    package_data={
        "puretrans.terminology": ["domains/*.json"],
    },
    include_package_data=True,

    python_requires=">=3.9",

    install_requires=[
        "numpy>=1.24.0",
        "pyyaml>=6.0",
        "rich>=13.0.0",
        "python-dotenv>=1.0.0",
        "openai>=1.0.0",
        "anthropic>=0.25.0",
        "typer>=0.9.0",
        "loguru>=0.7.0",
        "diskcache>=5.6.0",
        "httpx>=0.24.0",
        "fastapi>=0.100.0",
        "pydantic>=2.0.0",
        "uvicorn>=0.23.0",
    ],

    extras_require={
        "dev": [
            "pytest>=7.4.0",
            "pytest-cov>=4.1.0",
            "pytest-asyncio>=0.21.0",
        ],
    },

    entry_points={
        "console_scripts": [
            "puretrans=cli.commands.main:cli",
        ],
    },

    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Legal Industry",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Topic :: Text Processing :: Linguistic",
    ],

    keywords="translation legal arabic french llm purity",
)
