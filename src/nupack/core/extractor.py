"""Archive extraction and cleanup of installed package directories."""

from pathlib import Path
from typing import Callable
import logging
import os
import shutil
import stat
import zipfile

from nupack.core.frameworks import UNITY_LIB_FRAMEWORKS, RuntimeProfile, select_best_framework
from nupack.errors import ExtractionError
from nupack.models.identifier import PackageIdentifier

logger = logging.getLogger(__name__)

# Package contents that have no use once the package is installed
UNUSED_DIRECTORIES = ("_rels", "package", "build", "src", "runtimes", "docs", "ref")

Cleaner = Callable[[PackageIdentifier, Path, Path, RuntimeProfile], None]


def make_writable(path: Path) -> None:
    """Clear the read-only flag on a file or directory."""
    mode = path.stat().st_mode
    os.chmod(path, mode | stat.S_IWUSR)


def make_read_only(path: Path) -> None:
    mode = path.stat().st_mode
    os.chmod(path, mode & ~(stat.S_IWUSR | stat.S_IWGRP | stat.S_IWOTH))


def delete_directory(directory: Path) -> None:
    """Delete a directory tree, including read-only files. Missing is fine."""
    if not directory.is_dir():
        return
    # Files marked read-only at install time need their flag cleared first
    for item in directory.rglob("*"):
        if not item.is_symlink():
            make_writable(item)
    shutil.rmtree(directory)


def delete_file(path: Path) -> None:
    if path.is_file():
        make_writable(path)
        path.unlink()


def extract_package(nupkg_path: Path, dest_dir: Path, read_only: bool = False) -> list[Path]:
    """Unzip a .nupkg into dest_dir, overwriting existing files.

    Returns the extracted file paths.
    """
    dest_dir.mkdir(parents=True, exist_ok=True)
    extracted = []

    try:
        with zipfile.ZipFile(nupkg_path, "r") as zf:
            for member in zf.infolist():
                target = dest_dir / member.filename
                if target.exists() and target.is_file():
                    make_writable(target)
                zf.extract(member, dest_dir)
                if member.is_dir():
                    continue
                if read_only:
                    make_read_only(target)
                extracted.append(target)
    except (zipfile.BadZipFile, OSError) as e:
        raise ExtractionError(f"Failed to extract {nupkg_path}: {e}")

    return extracted


def tools_directory(project_dir: Path, package: PackageIdentifier) -> Path:
    """Where a package's tools/ folder is moved to, outside the repository path."""
    return project_dir / "Packages" / package.folder_name


def _select_lib_directories(lib_dir: Path, profile: RuntimeProfile) -> list[Path]:
    lib_directories = [d for d in lib_dir.iterdir() if d.is_dir()]
    best = select_best_framework((d.name.lower() for d in lib_directories), profile)
    if best is None:
        return []

    if best in UNITY_LIB_FRAMEWORKS:
        return [d for d in lib_directories if d.name.lower() in UNITY_LIB_FRAMEWORKS]
    return [d for d in lib_directories if d.name.lower() == best]


def clean_package(
    package: PackageIdentifier,
    install_dir: Path,
    project_dir: Path,
    profile: RuntimeProfile,
) -> None:
    """Strip an extracted package down to what the project can use."""
    logger.debug("Cleaning %s", install_dir)

    for name in UNUSED_DIRECTORIES:
        delete_directory(install_dir / name)
    delete_file(install_dir / f"{package.id}.nuspec")
    delete_file(install_dir / "[Content_Types].xml")

    lib_dir = install_dir / "lib"
    if lib_dir.is_dir():
        selected = _select_lib_directories(lib_dir, profile)
        for directory in selected:
            logger.debug("Using %s", directory)
        for directory in list(lib_dir.iterdir()):
            if directory.is_dir() and directory not in selected:
                delete_directory(directory)

    tools_dir = install_dir / "tools"
    if tools_dir.is_dir():
        destination = tools_directory(project_dir, package) / "tools"
        logger.debug("Moving %s to %s", tools_dir, destination)
        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
            delete_directory(destination)
            shutil.move(str(tools_dir), str(destination))
        except OSError as e:
            logger.warning("%s couldn't be moved: %s", tools_dir, e)

    # Debug symbols are not loadable by the target runtime
    for pdb in list(install_dir.rglob("*.pdb")):
        delete_file(pdb)
