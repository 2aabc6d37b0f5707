"""peerkeeper version information.

Package version, also sent in the HTTP User-Agent. Keep ``pyproject.toml``
in step when bumping it.
"""

from __future__ import annotations

__version__ = "0.1.0.dev0"
