"""
dashstore setup.py — Package configuration.
"""

from setuptools import find_packages, setup

setup(
    name="dashstore",
    version="1.0.0",
    description="dashstore — Dashboard & folder persistence and query layer",
    packages=find_packages(include=["dashstore", "dashstore.*"]),
    python_requires=">=3.11",
    install_requires=[
        "sqlalchemy>=2.0",
        "psycopg2-binary>=2.9",
        "pydantic>=2.5",
        "pyyaml>=6.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.4",
        ],
    },
)
