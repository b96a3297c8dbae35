"""
Content fingerprint of the generation backend's code bundle.
Used as the resource version: any change to the handler's files changes the
hash and forces a re-application of an otherwise unchanged spec.
"""

import hashlib
import os


def hash_file_or_directory(path: str) -> str:
    """SHA-256 over every file under *path* (or *path* itself), in sorted order.

    Relative paths are hashed together with contents, so renames count as changes.

    Raises:
        FileNotFoundError: if *path* does not exist.
    """
    if not os.path.exists(path):
        raise FileNotFoundError(path)
    digest = hashlib.sha256()
    if os.path.isfile(path):
        _update_with_file(digest, path, os.path.basename(path))
        return digest.hexdigest()

    for root, dirs, files in os.walk(path):
        dirs.sort()
        for name in sorted(files):
            full = os.path.join(root, name)
            _update_with_file(digest, full, os.path.relpath(full, path).replace(os.sep, "/"))
    return digest.hexdigest()


def _update_with_file(digest: "hashlib._Hash", full_path: str, relative: str) -> None:
    digest.update(relative.encode("utf-8"))
    digest.update(b"\0")
    with open(full_path, "rb") as fh:
        for block in iter(lambda: fh.read(65536), b""):
            digest.update(block)
    digest.update(b"\0")
