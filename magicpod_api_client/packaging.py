"""Preparation of app files before upload."""

import logging
import shutil
from pathlib import Path

from magicpod_api_client.errors import UploadError

log = logging.getLogger(__name__)


def prepare_upload_path(app_path: Path) -> Path:
    """Return the file to upload for an app, zipping ``.app`` bundles.

    Raises:
        UploadError: If the path does not exist or is a plain directory

    """
    if not app_path.exists():
        raise UploadError(f"{app_path} does not exist")

    if not app_path.is_dir():
        return app_path

    if app_path.suffix != ".app":
        raise UploadError(f"{app_path} is not file but directory.")

    return zip_app_dir(app_path)


def zip_app_dir(app_dir: Path) -> Path:
    """Zip an ``.app`` bundle next to it, replacing any previous archive."""
    zip_path = app_dir.with_name(app_dir.name + ".zip")
    zip_path.unlink(missing_ok=True)

    log.info("Zipping %s to %s", app_dir, zip_path)
    archive = shutil.make_archive(
        str(app_dir),
        "zip",
        root_dir=app_dir.parent,
        base_dir=app_dir.name,
    )
    return Path(archive)
