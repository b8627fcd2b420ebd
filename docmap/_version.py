"""
Detecting the library's own version.

The codebase does not contain the version directly: it belongs to
the packaging metadata, and is read from there once the code is loaded.
"""
import importlib.metadata
from typing import Optional

version: Optional[str] = None

try:
    name, *_ = __name__.split('.')  # usually "docmap", unless renamed/forked.
    version = importlib.metadata.version(name)
except importlib.metadata.PackageNotFoundError:
    pass  # not installed, e.g. run from the source tree.
