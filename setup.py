"""Setup configuration for the SHIVA factor engine."""
from setuptools import setup, find_packages
from pathlib import Path

# Read README for long description
readme_file = Path(__file__).parent / "README.md"
long_description = readme_file.read_text(encoding="utf-8") if readme_file.exists() else ""

setup(
    name="shiva-factor-engine",
    version="1.0.0",
    description="NBA factor-scoring engine: weighted, tanh-saturated edge signals for totals and spreads",
    long_description=long_description,
    long_description_content_type="text/markdown",
    author="Green Bier Ventures",
    python_requires=">=3.11",
    packages=find_packages(where=".", include=["src", "src.*", "scripts"]),
    package_dir={"": "."},
    install_requires=[
        "httpx==0.27.2",
        "python-dotenv==1.0.1",
        "pandas==2.2.3",
        "numpy>=1.26.4,<3",
        "pydantic==2.9.2",
        "tenacity==9.0.0",
    ],
    extras_require={
        "dev": [
            "pytest==8.3.3",
            "pytest-asyncio==0.24.0",
            "black",
            "flake8",
            "mypy",
        ],
    },
    entry_points={
        "console_scripts": [
            "shiva-score=scripts.score_game:main",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Topic :: Scientific/Engineering :: Information Analysis",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
)
