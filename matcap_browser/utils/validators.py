"""Input validation and file-name utilities."""
import re
from pathlib import Path
from typing import Optional

_SKIP_WORDS = ("readme", "license", "example", "test", "thumb")


def is_valid_matcap_file_name(file_name: str) -> bool:
    """Return True if `file_name` looks like a MatCap texture in the source repo.

    Args:
        file_name: Bare file name (e.g. "3B3C3F_DAD9D5_929290_ABACA8.png").

    Returns:
        False for non-PNG files, stems shorter than 3 characters, and
        repository housekeeping images (readme, license, example, ...).
    """
    if not file_name or not file_name.lower().endswith(".png"):
        return False
    stem = Path(file_name).stem
    if len(stem) < 3:
        return False
    lowered = stem.lower()
    return not any(word in lowered for word in _SKIP_WORDS)


def clean_file_name(file_name: str) -> str:
    """Strip the preview marker used by the repository's preview images.

    "ABC-preview.png" -> "ABC.png"; a trailing "-" is dropped as well.
    """
    cleaned = file_name.replace("-preview", "")
    return cleaned.rstrip("-")


def alternative_file_names(file_name: str) -> list[str]:
    """Candidate names to try when a full-resolution download 404s.

    Returns:
        Distinct names in the order they should be tried; the input comes first.
    """
    stem = Path(file_name).stem
    candidates = [file_name]
    if not file_name.lower().endswith(".png"):
        candidates.append(f"{stem}.png")
    candidates.append(file_name.lower())
    candidates.append(f"{stem.lower()}.png")
    if "_" in file_name:
        candidates.append(file_name.replace("_", "-"))
        candidates.append(f"{stem.replace('_', '-')}.png")
    return list(dict.fromkeys(candidates))


def validate_download_dir(raw: str) -> tuple[Optional[Path], str]:
    """Validate a download directory entered in the settings tab.

    Returns:
        (path, error_message). path is None on error.
    """
    value = (raw or "").strip()
    if not value:
        return None, "Download path must not be empty."
    if re.search(r"[<>\"|?*\x00]", value):
        return None, f"Invalid characters in download path: '{value}'"
    path = Path(value).expanduser()
    if path.exists() and not path.is_dir():
        return None, f"Not a directory: '{value}'"
    return path, ""
