import plistlib
from pathlib import Path
from typing import Any, Dict, Optional, Sequence, Union

# PlistBuddy-style separator; plist keys themselves routinely contain dots
KEY_SEPARATOR = ":"

KeyPath = Union[str, Sequence[str]]

_MISSING = object()


def _split_key_path(key_path: KeyPath) -> list:
    if isinstance(key_path, str):
        parts = key_path.split(KEY_SEPARATOR)
    else:
        parts = list(key_path)
    if not parts or any(p == "" for p in parts):
        raise ValueError(f"Invalid key path: {key_path!r}")
    return parts


class PlistDocument:
    """A property list held in memory with key-path get/set.

    Key paths address nested dictionaries, e.g.
    ``"Entitlements:com.apple.developer.team-identifier"``.
    The on-disk format (XML or binary) is remembered and reused on save.
    """

    def __init__(
        self,
        data: Optional[Dict[str, Any]] = None,
        path: Optional[Path] = None,
        fmt: plistlib.PlistFormat = plistlib.FMT_XML,
    ):
        self.data: Dict[str, Any] = data if data is not None else {}
        self.path = path
        self.fmt = fmt

    @classmethod
    def from_bytes(cls, content: bytes, path: Optional[Path] = None) -> "PlistDocument":
        binary = content.startswith(b"bplist00")
        fmt = plistlib.FMT_BINARY if binary else plistlib.FMT_XML
        data = plistlib.loads(content)
        if not isinstance(data, dict):
            raise ValueError("Property list root is not a dictionary")
        return cls(data, path=path, fmt=fmt)

    @classmethod
    def load(cls, path: Path) -> "PlistDocument":
        """Read a plist file from disk"""
        path = Path(path)
        with open(path, "rb") as f:
            return cls.from_bytes(f.read(), path=path)

    def get(self, key_path: KeyPath, default: Any = _MISSING) -> Any:
        """Return the value at ``key_path``; raise if absent and no default given"""
        node: Any = self.data
        for part in _split_key_path(key_path):
            if not isinstance(node, dict) or part not in node:
                if default is _MISSING:
                    raise KeyError(key_path)
                return default
            node = node[part]
        return node

    def set(self, key_path: KeyPath, value: Any) -> None:
        """Set the value at ``key_path``, creating intermediate dictionaries"""
        parts = _split_key_path(key_path)
        node = self.data
        for part in parts[:-1]:
            child = node.get(part)
            if child is None:
                child = node[part] = {}
            elif not isinstance(child, dict):
                raise ValueError(
                    f"Cannot descend into non-dictionary value at {part!r}"
                )
            node = child
        node[parts[-1]] = value

    def save(self, path: Optional[Path] = None) -> Path:
        """Write the document back to ``path`` or to where it was loaded from"""
        target = Path(path) if path else self.path
        if target is None:
            raise ValueError("No path to save property list to")
        with open(target, "wb") as f:
            plistlib.dump(self.data, f, fmt=self.fmt, sort_keys=False)
        self.path = target
        return target
