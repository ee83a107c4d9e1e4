"""Common type definitions."""

from typing import BinaryIO, Union
from pathlib import Path

# What a job accepts as its file: a path, raw bytes or an open binary file
FilePayload = Union[str, Path, bytes, BinaryIO]
