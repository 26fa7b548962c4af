"""
Client session: the bearer token and the signed-in user.

The session is an explicit object handed to the API client. It can be
persisted to a JSON file so a CLI or script keeps its login between runs.
"""
import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Union

from formdesk.core.logging import client_logger


@dataclass
class SessionContext:
    access_token: Optional[str] = None
    user: Optional[Dict[str, Any]] = None
    path: Optional[Path] = field(default=None, repr=False)

    @property
    def is_authenticated(self) -> bool:
        return bool(self.access_token)

    @property
    def user_id(self) -> Optional[str]:
        return (self.user or {}).get("id")

    def auth_headers(self) -> Dict[str, str]:
        if not self.access_token:
            return {}
        return {"Authorization": f"Bearer {self.access_token}"}

    def set(self, access_token: Optional[str], user: Optional[Dict[str, Any]]) -> None:
        self.access_token = access_token
        self.user = user
        self.save()

    def clear(self) -> None:
        self.access_token = None
        self.user = None
        if self.path and self.path.exists():
            self.path.unlink()
        client_logger.info("Session cleared")

    def save(self) -> None:
        if not self.path:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps({"access_token": self.access_token, "user": self.user}))

    @classmethod
    def load(cls, path: Union[str, Path]) -> "SessionContext":
        """Load a saved session; a missing or unreadable file gives an empty one."""
        path = Path(path)
        if not path.exists():
            return cls(path=path)
        try:
            data = json.loads(path.read_text())
        except ValueError:
            client_logger.warning("Ignoring unreadable session file", path=str(path))
            return cls(path=path)
        if not isinstance(data, dict):
            return cls(path=path)
        return cls(access_token=data.get("access_token"), user=data.get("user"), path=path)
