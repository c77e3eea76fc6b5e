"""
Setup script for quizgen.

quizgen assembles phase-based quizzes from a question bank. It serves
three roles:

1. Library - QuizAssembler and its collaborators, injected with any
   question repository and exam history store
2. Service - FastAPI endpoints backed by PostgreSQL
3. Tooling - the 'quizgen' command for JSON question banks

The 'quizgen' command is the primary entry point; 'quizgen-api' serves
the FastAPI app.
"""

from setuptools import find_packages, setup

setup(
    name="quizgen",
    version="0.1.0",
    description="Adaptive quiz assembly: topic balancing, passage groups and phase-2 personalization",
    long_description=open("README.md", encoding="utf-8").read() if __import__("os").path.exists("README.md") else "",
    long_description_content_type="text/markdown",
    packages=find_packages(include=["quizgen", "quizgen.*"]),
    py_modules=["config"],
    python_requires=">=3.10",
    install_requires=[
        # CLI
        "typer>=0.9.0",
        "rich>=13.0.0",
        # Database
        "sqlalchemy[asyncio]>=2.0.0",
        "asyncpg>=0.29.0",
        # Config & Validation
        "pydantic>=2.0.0",
        "pydantic-settings>=2.0.0",
        # API
        "fastapi>=0.100.0",
        "uvicorn>=0.23.0",
        "httpx>=0.25.0",
        # Logging
        "loguru>=0.7.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-asyncio>=0.21.0",
            "pytest-cov>=4.0.0",
            "ruff>=0.1.0",
            "mypy>=1.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "quizgen=quizgen.cli.quiz_cli:main",
            "quizgen-api=quizgen.api.main:run",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Environment :: Console",
        "Intended Audience :: Education",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Education",
        "Topic :: Education :: Testing",
    ],
    keywords="quiz assessment question-bank education",
)
