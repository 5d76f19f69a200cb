import json
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Any, List, Optional
from uuid import uuid4

from coach_core.config.settings import settings
from coach_core.domain.documents import DocumentStore
from coach_core.domain.exceptions import BusinessError


def server_timestamp() -> str:
    """当前 UTC 时间的 ISO 字符串，作为文档的服务端时间戳。"""
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def _as_datetime(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str):
        try:
            dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


class JsonDocumentStore(DocumentStore):
    """本地 JSON 文档存储：每个文档一个文件，位于 root/<集合路径>/<id>.json。"""

    def __init__(self, root: str | Path | None = None):
        self._root = Path(root or settings.storage_root).resolve()
        self._root.mkdir(parents=True, exist_ok=True)

    def add(self, collection: str, data: Dict[str, Any]) -> str:
        cdir = self._collection_dir(collection)
        doc_id = uuid4().hex
        try:
            cdir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise BusinessError(code="STORE_WRITE_ERROR", message=str(e))
        self._write_doc(cdir, doc_id, data)
        return doc_id

    def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        path = self._collection_dir(collection) / f"{doc_id}.json"
        if not path.exists():
            return None
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise BusinessError(code="STORE_READ_ERROR", message=str(e))

    def list(self, collection: str) -> List[Dict[str, Any]]:
        cdir = self._collection_dir(collection)
        items: List[Dict[str, Any]] = []
        if not cdir.exists():
            return items
        for path in sorted(cdir.glob("*.json")):
            try:
                data = json.loads(path.read_text(encoding="utf-8"))
            except (OSError, ValueError) as e:
                raise BusinessError(code="STORE_READ_ERROR", message=f"{path.name}: {e}")
            if isinstance(data, dict):
                items.append(data)
        return items

    def query_since(self, collection: str, field: str, since: datetime) -> List[Dict[str, Any]]:
        """返回 field >= since 的文档；字段缺失或无法解析为时间的文档被跳过。"""
        threshold = _as_datetime(since)
        items: List[Dict[str, Any]] = []
        for data in self.list(collection):
            value = _as_datetime(data.get(field))
            if value is not None and threshold is not None and value >= threshold:
                items.append(data)
        return items

    def _collection_dir(self, collection: str) -> Path:
        parts = [p for p in collection.strip("/").split("/") if p]
        if not parts or any(p in (".", "..") for p in parts):
            raise BusinessError(code="INVALID_COLLECTION", message=collection)
        return self._root.joinpath(*parts)

    def _write_doc(self, cdir: Path, doc_id: str, data: Dict[str, Any]) -> None:
        doc_path = cdir / f"{doc_id}.json"
        tmp_path = cdir / f"{doc_id}.{uuid4().hex}.json.tmp"
        try:
            tmp_path.write_text(json.dumps(data, ensure_ascii=False, default=str), encoding="utf-8")
            os.replace(tmp_path, doc_path)
        except (OSError, TypeError, ValueError) as e:
            raise BusinessError(code="STORE_WRITE_ERROR", message=str(e))
