"""
Asset resolution.

Client-supplied asset identifiers are reduced to their basename before they
are joined to the asset directory, so `../../etc/passwd` is looked up as the
plain file name `passwd` inside the asset directory and nothing outside it
is ever served.
"""
import logging
import mimetypes
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from ..core.config import get_settings

logger = logging.getLogger(__name__)


class AssetError(Exception):
    """Base exception for asset errors."""
    error_code: str = "ASSET_ERROR"


class InvalidAssetNameError(AssetError):
    """Raised when an identifier has no usable basename."""
    error_code = "BAD_REQUEST"


class AssetNotFoundError(AssetError):
    """Raised when the asset file does not exist or is not readable."""
    error_code = "ASSET_NOT_FOUND"


def safe_basename(name: str) -> str:
    """
    Reduce an asset identifier to its final path component.

    Both separators are honoured so Windows-style input cannot smuggle a
    directory through on POSIX hosts.

    Raises:
        InvalidAssetNameError: If nothing usable remains
    """
    if name is None:
        raise InvalidAssetNameError("Asset name is required")

    basename = os.path.basename(name.replace("\\", "/")).strip()

    if not basename or basename in (".", "..") or "\0" in basename:
        raise InvalidAssetNameError("Asset name is invalid")

    return basename


@dataclass(frozen=True)
class Asset:
    """A downloadable file inside the asset directory."""
    name: str
    path: Path
    size: int

    @property
    def media_type(self) -> str:
        media_type, _ = mimetypes.guess_type(self.name)
        return media_type or "application/octet-stream"


class AssetStore:
    """Read-only view of the asset directory."""

    def __init__(self, asset_dir: Path = None):
        self._asset_dir = Path(asset_dir if asset_dir is not None else get_settings().ASSET_DIR)

    @property
    def asset_dir(self) -> Path:
        return self._asset_dir

    def resolve(self, name: str) -> Asset:
        """
        Resolve a client-supplied identifier to an existing asset.

        Raises:
            InvalidAssetNameError: If the identifier has no usable basename
            AssetNotFoundError: If no readable regular file by that name exists
        """
        basename = safe_basename(name)
        path = self._asset_dir / basename

        # Symlinks inside the directory must not point outside it
        try:
            resolved = path.resolve()
            inside = resolved.is_relative_to(self._asset_dir.resolve())
        except (OSError, ValueError):
            inside = False

        if not inside or not path.is_file() or not os.access(path, os.R_OK):
            raise AssetNotFoundError(f"Asset not found: {basename}")

        return Asset(name=basename, path=path, size=path.stat().st_size)


# Singleton instance
_asset_store: Optional[AssetStore] = None


def get_asset_store() -> AssetStore:
    """Get the asset store singleton."""
    global _asset_store
    if _asset_store is None:
        _asset_store = AssetStore()
    return _asset_store


def reset_asset_store():
    """Reset the asset store singleton (for testing)."""
    global _asset_store
    _asset_store = None
