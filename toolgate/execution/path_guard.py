"""Workspace path confinement.

``resolve_safe`` is the only boundary used by the read, write, replace and
execute paths to turn a model-supplied path into an absolute one.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Union

from toolgate.errors import PathOutOfBoundsError

PathLike = Union[str, "os.PathLike[str]"]


def resolve_safe(root: PathLike, relative_path: PathLike) -> Path:
    """Resolve ``relative_path`` under ``root`` or fail closed.

    The path is normalized lexically (``.`` and ``..`` collapsed) and joined
    under ``root``. The result is accepted only when it is ``root`` itself or
    a descendant on a path-segment boundary, so root ``/work/app`` never
    accepts ``/work/app2/secret``.

    No filesystem access happens here: symlinks are not followed and the path
    does not need to exist.

    Args:
        root: Absolute workspace root.
        relative_path: Path supplied by the caller, usually workspace-relative.

    Returns:
        The normalized absolute path.

    Raises:
        PathOutOfBoundsError: If the normalized path escapes ``root``.
    """
    root_str = os.path.normpath(os.path.abspath(os.fspath(root)))
    rel_str = os.fspath(relative_path)
    candidate = os.path.normpath(os.path.join(root_str, rel_str))

    try:
        common = os.path.commonpath([root_str, candidate])
    except ValueError as e:
        # Different drives on Windows.
        raise PathOutOfBoundsError(root_str, rel_str) from e
    if common != root_str:
        raise PathOutOfBoundsError(root_str, rel_str)
    return Path(candidate)


def is_within(root: PathLike, relative_path: PathLike) -> bool:
    try:
        resolve_safe(root, relative_path)
    except PathOutOfBoundsError:
        return False
    return True
