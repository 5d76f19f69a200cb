from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol


class DocumentStore(Protocol):
    """按集合路径组织的文档存储，例如 "userProfiles/u1/workoutLogs"。"""

    def add(self, collection: str, data: Dict[str, Any]) -> str:
        ...

    def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        ...

    def list(self, collection: str) -> List[Dict[str, Any]]:
        ...

    def query_since(self, collection: str, field: str, since: datetime) -> List[Dict[str, Any]]:
        ...


def user_collection(uid: str, name: str) -> str:
    return f"userProfiles/{uid}/{name}"
