"""Slash-separated document paths: "{collection...}/{document_id}"."""

from shared.dal.exceptions import InvalidPathError

PATH_SEPARATOR = "/"


def split_path(path: str) -> list[str]:
    """Split and validate a path. Rejects empty, dot and whitespace-padded segments."""
    if not isinstance(path, str) or not path:
        raise InvalidPathError(f"path must be a non-empty string, got {path!r}")
    segments = path.split(PATH_SEPARATOR)
    for segment in segments:
        if not segment or segment in {".", ".."} or segment != segment.strip():
            raise InvalidPathError(f"invalid segment {segment!r} in path {path!r}")
    return segments


def join_path(*segments: str) -> str:
    path = PATH_SEPARATOR.join(segments)
    split_path(path)
    return path


def parent_collection(path: str) -> str:
    """Return the collection path that holds a document path."""
    segments = split_path(path)
    if len(segments) < 2:
        raise InvalidPathError(f"document path needs a collection and an id: {path!r}")
    return PATH_SEPARATOR.join(segments[:-1])


def is_direct_child(collection: str, path: str) -> bool:
    return path.startswith(collection + PATH_SEPARATOR) and PATH_SEPARATOR not in path[len(collection) + 1 :]
