"""
Small JSON file helpers shared by the storage classes.
"""

import json
import os
from pathlib import Path
from typing import Any

from ...domain.errors import DecodeError, NotFoundError, StorageIOError


def read_json(path: Path) -> Any:
    """
    Read and parse a JSON file.

    Raises:
        NotFoundError: file does not exist
        DecodeError: content is not valid JSON
        StorageIOError: any other read failure
    """
    try:
        with open(path, 'r', encoding='utf-8') as f:
            return json.load(f)
    except FileNotFoundError as e:
        raise NotFoundError(f"File not found: {path}") from e
    except json.JSONDecodeError as e:
        raise DecodeError(f"Invalid JSON in {path}: {e}") from e
    except (OSError, UnicodeDecodeError) as e:
        raise StorageIOError(f"Failed to read {path}: {e}") from e


def write_json(path: Path, data: Any, indent: int = 2) -> None:
    """
    Write ``data`` as JSON, replacing the file in one step.

    Raises:
        StorageIOError: the file could not be written
    """
    path = Path(path)
    tmp_path = path.with_name(f".{path.name}.tmp")
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(tmp_path, 'w', encoding='utf-8') as f:
            json.dump(data, f, indent=indent, ensure_ascii=False)
        os.replace(tmp_path, path)
    except OSError as e:
        try:
            tmp_path.unlink()
        except OSError:
            pass
        raise StorageIOError(f"Failed to write {path}: {e}") from e
