# Overview: Product image storage on the local filesystem (served under /images).

from __future__ import annotations

import os
import time

from flask import current_app
from werkzeug.datastructures import FileStorage
from werkzeug.utils import secure_filename

from ..validation import ValidationError


def images_dir() -> str:
    path = current_app.config.get("IMAGES_DIR") or os.path.join(current_app.instance_path, "images")
    os.makedirs(path, exist_ok=True)
    return path


def _extension_of(filename: str) -> str:
    return os.path.splitext(secure_filename(filename or ""))[1].lower()


def save_image(upload: FileStorage) -> str:
    """
    Store an uploaded image and return the generated filename.

    Names are img_<epoch millis><ext>; a numeric suffix avoids collisions
    when two uploads land in the same millisecond.
    """
    ext = _extension_of(upload.filename)
    allowed = current_app.config.get("ALLOWED_IMAGE_EXTENSIONS") or set()
    if ext not in allowed:
        raise ValidationError(
            "imagen must be one of: " + ", ".join(sorted(allowed)),
            details={"extension": ext or None},
        )

    directory = images_dir()
    stem = f"img_{int(time.time() * 1000)}"
    filename = f"{stem}{ext}"
    n = 1
    while os.path.exists(os.path.join(directory, filename)):
        filename = f"{stem}_{n}{ext}"
        n += 1

    upload.save(os.path.join(directory, filename))
    return filename


def delete_image(filename: str | None) -> bool:
    """Remove a stored image. Missing files are not an error."""
    if not filename:
        return False
    path = os.path.join(images_dir(), secure_filename(filename))
    try:
        os.remove(path)
    except FileNotFoundError:
        return False
    except OSError:
        current_app.logger.warning("Could not remove image %s", path)
        return False
    return True
