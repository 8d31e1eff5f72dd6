from __future__ import annotations

import importlib.metadata

try:
    __version__ = importlib.metadata.version("proof-explore")
except importlib.metadata.PackageNotFoundError:
    __version__ = "unknown"
