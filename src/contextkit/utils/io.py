from pathlib import Path

from contextkit.exceptions import ResourceNotFoundError
from domain_models.constants import DOCUMENT_EXTENSION


def resolve_resource(
    name: str, directory: str | Path, extension: str = DOCUMENT_EXTENSION
) -> Path:
    """
    Locate a named resource file.

    Args:
        name: Resource name without extension.
        directory: Directory the resource lives in.
        extension: File extension (without the dot).

    Raises:
        ResourceNotFoundError: If the file does not exist or is not a regular file.
    """
    path = Path(directory) / f"{name}.{extension}"

    if not path.exists():
        msg = f"Resource not found: {path}"
        raise ResourceNotFoundError(msg)

    if not path.is_file():
        msg = f"Resource is not a file: {path}"
        raise ResourceNotFoundError(msg)

    return path
