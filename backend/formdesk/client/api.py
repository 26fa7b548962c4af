"""
Async REST client for the Formdesk API.

Wraps httpx.AsyncClient: attaches the session's bearer token, maps error
responses onto the client error taxonomy and clears the session when a
protected call comes back 401.
"""
import json
from datetime import date, datetime, time
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

import httpx

from formdesk.client.errors import NetworkError, ValidationError, error_from_response
from formdesk.client.session import SessionContext
from formdesk.core.logging import client_logger
from formdesk.forms.submission import serialize_values, submitter_errors, validate_submission

# (filename, content, content_type)
UploadTuple = Tuple[str, bytes, Optional[str]]
DateLike = Union[date, datetime, str, None]


def day_start(value: DateLike) -> Optional[str]:
    if value is None or isinstance(value, str):
        return value
    if not isinstance(value, datetime):
        value = datetime.combine(value, time.min)
    return value.isoformat()


def day_end(value: DateLike) -> Optional[str]:
    """Inclusive upper bound: a bare date covers the whole day."""
    if value is None or isinstance(value, str):
        return value
    if not isinstance(value, datetime):
        value = datetime.combine(value, time.max)
    return value.isoformat()


class FormdeskClient:
    def __init__(
        self,
        base_url: str = "http://localhost:8000/api/v1",
        session: Optional[SessionContext] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 10.0,
    ):
        self.session = session or SessionContext()
        self._http = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            transport=transport,
            timeout=timeout,
        )

    async def __aenter__(self) -> "FormdeskClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _request(self, method: str, path: str, *, public: bool = False, **kwargs) -> Any:
        """Send one request. ``public`` routes keep the session on a 401."""
        headers = dict(kwargs.pop("headers", None) or {})
        headers.update(self.session.auth_headers())

        try:
            response = await self._http.request(method, path, headers=headers, **kwargs)
        except httpx.RequestError as e:
            client_logger.warning(f"{method} {path} failed", error=str(e))
            raise NetworkError(f"Could not reach the server: {e}") from e

        if response.status_code >= 400:
            error = error_from_response(response)
            if response.status_code == 401 and not public:
                self.session.clear()
            client_logger.debug(f"{method} {path} -> {response.status_code}", detail=error.message)
            raise error

        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------

    async def register(self, email: str, password: str, name: str, is_admin: bool = True) -> dict:
        """Register; approved accounts are signed in right away."""
        data = await self._request(
            "POST", "/auth/register", public=True,
            json={"email": email, "password": password, "name": name, "is_admin": is_admin},
        )
        if data.get("access_token"):
            self.session.set(data["access_token"], data.get("user"))
        return data

    async def login(self, email: str, password: str) -> dict:
        data = await self._request(
            "POST", "/auth/login", public=True,
            json={"email": email, "password": password},
        )
        self.session.set(data["access_token"], data.get("user"))
        return data

    def logout(self) -> None:
        self.session.clear()

    async def me(self) -> dict:
        return await self._request("GET", "/auth/me")

    async def change_password(self, old_password: str, new_password: str) -> dict:
        return await self._request(
            "POST", "/auth/change-password",
            json={"old_password": old_password, "new_password": new_password},
        )

    # ------------------------------------------------------------------
    # Forms
    # ------------------------------------------------------------------

    async def create_form(self, creator_id: str, payload: Mapping[str, Any]) -> dict:
        return await self._request("POST", "/forms", params={"creator_id": creator_id}, json=dict(payload))

    async def get_form(self, form_id: str) -> dict:
        return await self._request("GET", f"/forms/{form_id}", public=True)

    async def list_forms(self, creator_id: str, skip: int = 0, limit: int = 10) -> List[dict]:
        return await self._request("GET", f"/admin/{creator_id}/forms", params={"skip": skip, "limit": limit})

    async def update_form(self, form_id: str, payload: Mapping[str, Any]) -> dict:
        return await self._request("PUT", f"/forms/{form_id}", json=dict(payload))

    async def delete_form(self, form_id: str) -> None:
        await self._request("DELETE", f"/forms/{form_id}")

    async def move_field(self, form_id: str, field_id: str, direction: str) -> dict:
        return await self._request(
            "POST", f"/forms/{form_id}/fields/{field_id}/move", params={"direction": direction}
        )

    async def submission_count(self, form_id: str) -> int:
        data = await self._request("GET", f"/forms/{form_id}/submissions/count")
        return data["count"]

    # ------------------------------------------------------------------
    # Submissions
    # ------------------------------------------------------------------

    async def submit_form(
        self,
        form: Mapping[str, Any],
        user_name: str,
        values: Mapping[str, Any],
        files: Optional[Mapping[str, Iterable[UploadTuple]]] = None,
        user_email: Optional[str] = None,
    ) -> dict:
        """Validate locally, then post the multipart submission.

        ``form`` is the definition returned by ``get_form``. Invalid values
        raise ValidationError without any request being sent.
        """
        files = {field_id: list(attached) for field_id, attached in (files or {}).items()}
        errors = submitter_errors(user_name, user_email)
        errors.update(validate_submission(form.get("fields", []), values, files).errors)
        if errors:
            raise ValidationError(errors, "Submission is invalid")

        data = {
            "user_name": user_name,
            "field_values_json": json.dumps(serialize_values(form.get("fields", []), values)),
        }
        if user_email:
            data["user_email"] = user_email

        upload_parts = []
        mapping: Dict[str, str] = {}
        for field_id, attached in files.items():
            for filename, content, content_type in attached:
                mapping[str(len(upload_parts))] = field_id
                upload_parts.append(("files", (filename, content, content_type or "application/octet-stream")))
        if upload_parts:
            data["file_fields_json"] = json.dumps(mapping)

        return await self._request(
            "POST", f"/forms/{form['id']}/submit", public=True,
            data=data, files=upload_parts or None,
        )

    async def form_submissions(self, form_id: str) -> List[dict]:
        return await self._request("GET", f"/forms/{form_id}/submissions")

    async def admin_submissions(
        self,
        admin_id: str,
        skip: int = 0,
        limit: int = 10,
        *,
        date_from: DateLike = None,
        date_to: DateLike = None,
        user_name: Optional[str] = None,
        user_email: Optional[str] = None,
        field_value_search: Optional[str] = None,
        form_id: Optional[str] = None,
    ) -> List[dict]:
        params: Dict[str, Any] = {"skip": skip, "limit": limit}
        optional = {
            "date_from": day_start(date_from),
            "date_to": day_end(date_to),
            "user_name": user_name,
            "user_email": user_email,
            "field_value_search": field_value_search,
            "form_id": form_id,
        }
        params.update({k: v for k, v in optional.items() if v})
        return await self._request("GET", f"/admin/{admin_id}/submissions", params=params)

    async def delete_submission(self, submission_id: str) -> None:
        await self._request("DELETE", f"/submissions/{submission_id}")

    async def download_file(self, file_id: str) -> bytes:
        headers = self.session.auth_headers()
        try:
            response = await self._http.get(f"/files/{file_id}", headers=headers)
        except httpx.RequestError as e:
            raise NetworkError(f"Could not reach the server: {e}") from e
        if response.status_code >= 400:
            if response.status_code == 401:
                self.session.clear()
            raise error_from_response(response)
        return response.content

    # ------------------------------------------------------------------
    # Super admin
    # ------------------------------------------------------------------

    async def unapproved_admins(self) -> List[dict]:
        data = await self._request("GET", "/super-admin/unapproved-admins")
        return data["admins"]

    async def approve_admin(self, user_id: str) -> dict:
        data = await self._request("POST", f"/super-admin/admins/{user_id}/approve")
        return data["user"]

    async def reject_admin(self, user_id: str) -> dict:
        return await self._request("POST", f"/super-admin/admins/{user_id}/reject")

    # ------------------------------------------------------------------
    # Account settings
    # ------------------------------------------------------------------

    async def update_email(self, user_id: str, email: str) -> dict:
        return await self._request("PUT", f"/users/{user_id}", json={"email": email})

    async def upload_avatar(self, user_id: str, filename: str, content: bytes,
                            content_type: str = "image/png") -> dict:
        return await self._request(
            "POST", f"/users/{user_id}/avatar",
            files={"file": (filename, content, content_type)},
        )

    async def notification_settings(self, user_id: str) -> dict:
        return await self._request("GET", f"/users/{user_id}/notification-settings")

    async def update_notification_settings(self, user_id: str, changes: Mapping[str, Any]) -> dict:
        return await self._request("PUT", f"/users/{user_id}/notification-settings", json=dict(changes))
