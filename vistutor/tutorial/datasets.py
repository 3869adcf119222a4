#!/usr/bin/env python3
"""
Dataset context for tutorial exercises.
Loads named tabular datasets once and hands out copies, so exercise code
can never change what another exercise sees.
"""

import io
import logging
from collections.abc import Mapping
from importlib import resources
from pathlib import Path
from typing import Dict, Iterator, List, Optional

import httpx
import pandas as pd

from ..errors import LoadError

logger = logging.getLogger(__name__)

BUILTIN_PACKAGE = 'vistutor.content.data'
BUILTIN_PREFIX = 'builtin:'


def list_builtin_datasets() -> List[str]:
    """Names of the datasets bundled with the package"""
    names = []
    for entry in resources.files(BUILTIN_PACKAGE).iterdir():
        if entry.name.endswith('.csv'):
            names.append(entry.name[:-len('.csv')])
    return sorted(names)


def _read_frame(buffer, suffix: str, source: str) -> pd.DataFrame:
    """Parse raw bytes/text by file extension"""
    if suffix == '.csv':
        return pd.read_csv(buffer)
    if suffix == '.tsv':
        return pd.read_csv(buffer, sep='\t')
    if suffix == '.json':
        return pd.read_json(buffer)
    if suffix == '.parquet':
        return pd.read_parquet(buffer)
    raise LoadError(f"Unsupported dataset format '{suffix or '?'}' for {source}")


def _fetch(url: str) -> bytes:
    """Download a remote dataset"""
    logger.info("Downloading dataset from %s", url)
    try:
        with httpx.Client(follow_redirects=True, timeout=60.0) as client:
            response = client.get(url)
            response.raise_for_status()
            return response.content
    except httpx.HTTPError as e:
        raise LoadError(f"Failed to download dataset {url}: {e}") from e


def load_dataset(source: str, base_dir: Optional[Path] = None) -> pd.DataFrame:
    """
    Load one dataset.

    Args:
        source: 'builtin:<name>', an http(s) URL, or a file path
        base_dir: Directory relative paths are resolved against

    Returns:
        The loaded DataFrame
    """
    source = str(source).strip()
    if not source:
        raise LoadError("Dataset source is empty")

    if source.startswith(BUILTIN_PREFIX):
        name = source[len(BUILTIN_PREFIX):]
        entry = resources.files(BUILTIN_PACKAGE) / f"{name}.csv"
        if not entry.is_file():
            raise LoadError(
                f"Unknown builtin dataset '{name}'. Available: {', '.join(list_builtin_datasets())}"
            )
        return pd.read_csv(io.StringIO(entry.read_text(encoding='utf-8')))

    suffix = Path(source.split('?', 1)[0]).suffix.lower()

    if source.startswith(('http://', 'https://')):
        return _read_frame(io.BytesIO(_fetch(source)), suffix, source)

    path = Path(source).expanduser()
    if not path.is_absolute() and base_dir is not None:
        path = Path(base_dir) / path
    if not path.is_file():
        raise LoadError(f"Dataset file not found: {path}")
    try:
        return _read_frame(path, suffix, source)
    except (ValueError, OSError) as e:
        raise LoadError(f"Could not read dataset {path}: {e}") from e


class DatasetContext(Mapping):
    """
    Read-only mapping of dataset name to DataFrame.

    Populated once when a document loads. Every lookup returns a deep copy,
    so the stored frames are never exposed to exercise code.
    """

    def __init__(self, frames: Optional[Dict[str, pd.DataFrame]] = None):
        self._frames: Dict[str, pd.DataFrame] = {}
        for name, frame in (frames or {}).items():
            if not isinstance(frame, pd.DataFrame):
                raise LoadError(f"Dataset '{name}' is not tabular")
            self._frames[name] = frame.copy(deep=True)

    @classmethod
    def from_declarations(cls, declarations: Dict[str, str], base_dir: Optional[Path] = None) -> 'DatasetContext':
        """Load every declared dataset (name -> source)"""
        frames = {}
        for name, source in declarations.items():
            logger.debug("Loading dataset %s from %s", name, source)
            frames[name] = load_dataset(source, base_dir)
        return cls(frames)

    def __getitem__(self, name: str) -> pd.DataFrame:
        return self._frames[name].copy(deep=True)

    def __iter__(self) -> Iterator[str]:
        return iter(self._frames)

    def __len__(self) -> int:
        return len(self._frames)

    def snapshot(self) -> Dict[str, pd.DataFrame]:
        """Fresh copies of every dataset, for one exercise run"""
        return {name: self[name] for name in self._frames}

    def describe(self, name: str) -> Dict:
        """Shape and columns of a dataset without copying it"""
        frame = self._frames[name]
        return {
            'name': name,
            'rows': int(frame.shape[0]),
            'columns': [str(column) for column in frame.columns],
        }
