"""
Service name and version stamped on log records and on the OpenAPI document.

The installed distribution wins (containers ship without pyproject.toml); in a
source checkout the nearest pyproject.toml above the package is read instead.
"""
from functools import lru_cache
from importlib import metadata as importlib_metadata
from pathlib import Path
from typing import NamedTuple
import tomllib

DISTRIBUTION = "convention-messenger"


class ProjectInfo(NamedTuple):
    name: str | None
    version: str | None


def find_pyproject(start: Path, max_up: int = 5) -> Path | None:
    for folder in [start, *start.parents][:max_up]:
        candidate = folder / "pyproject.toml"
        if candidate.exists():
            return candidate
    return None


def read_pyproject_info(start: Path) -> ProjectInfo:
    pyproject = find_pyproject(start)
    if pyproject is None:
        return ProjectInfo(None, None)
    try:
        with pyproject.open("rb") as f:
            project = tomllib.load(f).get("project", {})
    except (OSError, tomllib.TOMLDecodeError):
        return ProjectInfo(None, None)
    return ProjectInfo(project.get("name"), project.get("version"))


@lru_cache(maxsize=1)
def project_info() -> ProjectInfo:
    try:
        return ProjectInfo(DISTRIBUTION, importlib_metadata.version(DISTRIBUTION))
    except importlib_metadata.PackageNotFoundError:
        return read_pyproject_info(Path(__file__).resolve().parent)


def get_project_name(default: str | None = None) -> str | None:
    return project_info().name or default


def get_project_version(default: str = "unknown") -> str:
    return project_info().version or default
