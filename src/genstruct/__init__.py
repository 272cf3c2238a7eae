"""genstruct - Generate Python modules that declare dataclass records as static data."""

from genstruct.config import Config, enhance_config
from genstruct.datasets import Dataset, DatasetNaming
from genstruct.errors import (
    EmptySequenceError,
    GenstructError,
    MixedElementKindError,
    NotASequenceError,
    RenderError,
    UnsupportedElementKindError,
)
from genstruct.generator import Generator, generate
from genstruct.naming import pluralize, slug_to_identifier
from genstruct.reference import ReferenceBinding, binding_for, ref

__all__ = [
    # Main API
    "Generator",
    "generate",
    "Config",
    "enhance_config",
    "ref",
    # Datasets
    "Dataset",
    "DatasetNaming",
    "ReferenceBinding",
    "binding_for",
    # Naming
    "slug_to_identifier",
    "pluralize",
    # Errors
    "GenstructError",
    "NotASequenceError",
    "EmptySequenceError",
    "UnsupportedElementKindError",
    "MixedElementKindError",
    "RenderError",
]

__version__ = "0.1.0"
