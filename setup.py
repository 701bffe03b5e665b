"""
setup.py

Installs this repository as the `capseg_package` Python package.

Importable code lives under:
    src/capseg_package/

so setuptools must be told about the src/ layout:
1) package_dir={"": "src"}
2) find_packages("src")

The FastAPI app in api/ is NOT installed; run it from the repo root:
    uvicorn api.fast:app

Dependency rule:
- Runtime deps (FastAPI / models / images) go in requirements.txt
- Test deps go in requirements_dev.txt and are only installed with
  pip install ".[dev]"
"""

import os
from setuptools import setup, find_packages

HERE = os.path.dirname(os.path.abspath(__file__))


# ------------------------------------------------------------
# Helper: read a requirements file safely
# ------------------------------------------------------------
def read_requirements(filename: str):
    """
    Return the requirement lines of `filename` (relative to this file).

    Skipped: blank lines, comments, "-r" includes and git+ URLs.
    A missing file yields an empty list.
    """
    path = os.path.join(HERE, filename)
    if not os.path.isfile(path):
        return []

    reqs = []
    with open(path, "r") as f:
        for raw in f:
            line = raw.split("#", 1)[0].strip()
            if not line or line.startswith("-r") or "git+" in line:
                continue
            reqs.append(line)
    return reqs


setup(
    name="capseg_package",
    version="0.1.0",
    description="Image captioning + background removal pipeline",

    # src/ layout
    package_dir={"": "src"},
    packages=find_packages("src"),

    install_requires=read_requirements("requirements.txt"),
    extras_require={
        "dev": read_requirements("requirements_dev.txt"),
    },

    # asyncio.to_thread
    python_requires=">=3.9",

    include_package_data=True,
    zip_safe=False,
)
