# src/tracecheck/plugins/sources/filesystem.py
"""Trace source reading one decompressed trace file per height.

Files are named ``traces_<height, zero-padded to 12 digits>.json`` and
hold the nested execution trace JSON of that height.
"""

from pathlib import Path
from typing import Any, ClassVar, Self

from pydantic import BaseModel, ValidationError

from tracecheck.contracts.errors import SetupError, TraceFetchError
from tracecheck.core.logging import get_logger

logger = get_logger(__name__)


class FilesystemSourceOptions(BaseModel):
    """Options of the filesystem trace source."""

    model_config = {"extra": "forbid", "frozen": True}

    directory: Path
    file_template: str = "traces_{height:012d}.json"

    @classmethod
    def from_dict(cls, options: dict[str, Any]) -> Self:
        try:
            return cls.model_validate(options)
        except ValidationError as e:
            raise SetupError(f"Invalid configuration for filesystem trace source: {e}") from e


class FilesystemTraceSource:
    """Serves trace bytes from a local directory."""

    name: ClassVar[str] = "filesystem"

    def __init__(self, options: dict[str, Any]) -> None:
        self._options = FilesystemSourceOptions.from_dict(options)

    def path_for(self, height: int) -> Path:
        return self._options.directory / self._options.file_template.format(height=height)

    def get_trace(self, height: int) -> bytes:
        """Raw trace bytes of height.

        Raises:
            TraceFetchError: If the file is missing or unreadable
        """
        path = self.path_for(height)
        try:
            data = path.read_bytes()
        except OSError as e:
            raise TraceFetchError(f"cannot read trace of height {height} from {path}: {e}") from e
        logger.debug("Read trace file", height=height, path=str(path), size=len(data))
        return data
