"""Component identity for the filesystem blob substrate."""

from __future__ import annotations

RESOURCE_COMPONENT_ID = "substrate_filesystem"
