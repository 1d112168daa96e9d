"""Generate per-package struct listings for the dedis protobuf generator."""

from .config import GeneratorConfig, load_config
from .walker import TreeWalker, WalkResult

__version__ = "0.1.0"

__all__ = ["GeneratorConfig", "TreeWalker", "WalkResult", "load_config"]
