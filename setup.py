"""Setup configuration for the Modwatch autonomous chat monitor."""

from setuptools import setup, find_packages

setup(
    name="modwatch",
    version="0.1.0",
    description="Autonomous live-stream chat moderation and engagement monitor",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    python_requires=">=3.11",
    install_requires=[
        "openai>=1.0",
        "PyYAML>=6.0",
        "python-dotenv>=1.0",
        "prompt_toolkit>=3.0",
        "jsonschema>=4.0",
    ],
    extras_require={
        "test": [
            "pytest>=8.0",
            "pytest-asyncio>=0.23",
        ],
    },
    entry_points={
        "console_scripts": [
            "modwatch=modwatch.main:main",
        ],
    },
)
