import asyncio
from pathlib import Path
from typing import Dict, List, Optional, Protocol, Union

Blob = Union[bytes, str]


class BlobStore(Protocol):
    """Opaque key-value blob storage for document inputs and outputs."""

    async def get(self, key: str) -> Optional[bytes]: ...

    async def put(self, key: str, data: Blob) -> None: ...

    async def list(self, prefix: str = "") -> List[str]: ...

    async def delete(self, key: str) -> None: ...


def _as_bytes(data: Blob) -> bytes:
    return data.encode("utf-8") if isinstance(data, str) else bytes(data)


class InMemoryBlobStore:
    def __init__(self):
        self._blobs: Dict[str, bytes] = {}

    async def get(self, key: str) -> Optional[bytes]:
        return self._blobs.get(key)

    async def put(self, key: str, data: Blob) -> None:
        self._blobs[key] = _as_bytes(data)

    async def list(self, prefix: str = "") -> List[str]:
        return sorted(k for k in self._blobs if k.startswith(prefix))

    async def delete(self, key: str) -> None:
        self._blobs.pop(key, None)


class FileBlobStore:
    """Blobs as files under a root directory; keys map to relative paths."""

    def __init__(self, root: Union[str, Path]):
        self.root = Path(root)

    def _path(self, key: str) -> Path:
        path = (self.root / key).resolve()
        if self.root.resolve() not in path.parents:
            raise ValueError(f"Blob key escapes store root: {key}")
        return path

    async def get(self, key: str) -> Optional[bytes]:
        path = self._path(key)
        if not path.is_file():
            return None
        return await asyncio.to_thread(path.read_bytes)

    async def put(self, key: str, data: Blob) -> None:
        path = self._path(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_name(path.name + ".tmp")
        await asyncio.to_thread(tmp.write_bytes, _as_bytes(data))
        tmp.replace(path)

    async def list(self, prefix: str = "") -> List[str]:
        if not self.root.exists():
            return []
        keys = (
            p.relative_to(self.root).as_posix()
            for p in self.root.rglob("*")
            if p.is_file() and not p.name.endswith(".tmp")
        )
        return sorted(k for k in keys if k.startswith(prefix))

    async def delete(self, key: str) -> None:
        path = self._path(key)
        if path.is_file():
            path.unlink()


def results_key(document_id: str) -> str:
    return f"documents/{document_id}/results.json"
