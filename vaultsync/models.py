"""Data models for remote object store responses."""

from dataclasses import dataclass
from typing import Any, Optional

FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"


@dataclass(frozen=True)
class RemoteObject:
    """A single object in the flat remote namespace.

    The store has no real hierarchy: ``name`` is the full relative path of
    the file (e.g. ``notes/daily.md``) used verbatim as the object name.
    """

    id: str
    """Opaque object identifier"""

    name: str
    """Full relative path used as the object name"""

    modified_time: str = ""
    """ISO-8601 modification time reported by the store"""

    mime_type: Optional[str] = None
    """MIME type reported by the store"""

    @property
    def is_folder(self) -> bool:
        """Whether the object is a folder node."""
        return self.mime_type == FOLDER_MIME_TYPE

    @classmethod
    def from_api_response(cls, data: dict[str, Any]) -> "RemoteObject":
        """Create a RemoteObject from a files resource returned by the API."""
        return cls(
            id=str(data["id"]),
            name=data.get("name", ""),
            modified_time=data.get("modifiedTime", ""),
            mime_type=data.get("mimeType"),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON output."""
        return {
            "id": self.id,
            "name": self.name,
            "modifiedTime": self.modified_time,
            "mimeType": self.mime_type,
        }


def index_by_name(objects: list[RemoteObject]) -> dict[str, RemoteObject]:
    """Map object names to objects.

    If several objects share a name the first one listed wins.
    """
    index: dict[str, RemoteObject] = {}
    for obj in objects:
        index.setdefault(obj.name, obj)
    return index
