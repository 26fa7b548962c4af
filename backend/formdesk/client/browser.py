"""
Submission Browser

Paginated, filterable views over an admin's forms and submissions, built
on FormdeskClient. Pages are cached under the filter that produced them,
so a slow response for an old filter can never show up in the current
view.
"""
import asyncio
from dataclasses import dataclass, astuple
from datetime import date, datetime, time
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from formdesk.client.api import DateLike, FormdeskClient
from formdesk.core.logging import client_logger

FetchPage = Callable[[int, int], Awaitable[List[Any]]]


async def paginate(fetch_page: FetchPage, page_size: int = 10) -> List[Any]:
    """Collect every page by offset.

    Page N+1 is requested only after page N arrived; a short page ends the
    walk.
    """
    if page_size < 1:
        raise ValueError("page_size must be positive")
    items: List[Any] = []
    skip = 0
    while True:
        page = await fetch_page(skip, page_size)
        items.extend(page)
        if len(page) < page_size:
            return items
        skip += page_size


def _parse_timestamp(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime):
        return value
    if not value:
        return None
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))


def _as_day(value: Optional[date]) -> Optional[date]:
    if isinstance(value, datetime):
        return value.date()
    return value


class FormsBrowser:
    """All forms of one creator with client-side filters and submission counts."""

    def __init__(self, client: FormdeskClient, creator_id: str, page_size: int = 10):
        self.client = client
        self.creator_id = creator_id
        self.page_size = page_size
        self.forms: List[dict] = []
        self.counts: Dict[str, int] = {}

    async def load(self) -> List[dict]:
        self.forms = await paginate(
            lambda skip, limit: self.client.list_forms(self.creator_id, skip, limit),
            self.page_size,
        )
        return self.forms

    def filter(self, title: Optional[str] = None, date_from: Optional[date] = None,
               date_to: Optional[date] = None) -> List[dict]:
        """Title substring (case-insensitive) and inclusive created_at day range."""
        needle = (title or "").strip().lower()
        start, end = _as_day(date_from), _as_day(date_to)
        matched = []
        for form in self.forms:
            if needle and needle not in (form.get("title") or "").lower():
                continue
            if start or end:
                created = _parse_timestamp(form.get("created_at"))
                if created is None:
                    continue
                day = created.date()
                if start and day < start:
                    continue
                if end and day > end:
                    continue
            matched.append(form)
        return matched

    async def load_counts(self, forms: Optional[List[dict]] = None) -> Dict[str, int]:
        """Fetch submission counts concurrently; results keyed by form id."""
        forms = self.forms if forms is None else forms
        ids = [f["id"] for f in forms]
        counts = await asyncio.gather(*(self.client.submission_count(form_id) for form_id in ids))
        self.counts.update(dict(zip(ids, counts)))
        return {form_id: self.counts[form_id] for form_id in ids}


@dataclass(frozen=True)
class SubmissionQuery:
    date_from: DateLike = None
    date_to: DateLike = None
    user_name: Optional[str] = None
    user_email: Optional[str] = None
    field_value_search: Optional[str] = None
    form_id: Optional[str] = None

    def key(self) -> Tuple:
        return tuple(v.isoformat() if isinstance(v, (date, datetime, time)) else v for v in astuple(self))

    def params(self) -> Dict[str, Any]:
        return {
            "date_from": self.date_from,
            "date_to": self.date_to,
            "user_name": self.user_name,
            "user_email": self.user_email,
            "field_value_search": self.field_value_search,
            "form_id": self.form_id,
        }


class SubmissionBrowser:
    def __init__(self, client: FormdeskClient, admin_id: str, page_size: int = 10):
        self.client = client
        self.admin_id = admin_id
        self.page_size = page_size
        self.query = SubmissionQuery()
        self._pages: Dict[Tuple, List[dict]] = {}
        self._exhausted: Dict[Tuple, bool] = {}
        self._details: Dict[str, dict] = {}

    @property
    def items(self) -> List[dict]:
        return list(self._pages.get(self.query.key(), []))

    @property
    def has_more(self) -> bool:
        return not self._exhausted.get(self.query.key(), False)

    def detail(self, submission_id: str) -> Optional[dict]:
        return self._details.get(submission_id)

    async def _fetch(self, query: SubmissionQuery, skip: int) -> List[dict]:
        page = await self.client.admin_submissions(
            self.admin_id, skip, self.page_size, **query.params()
        )
        for submission in page:
            self._details[submission["id"]] = submission
        return page

    async def load_first(self, query: Optional[SubmissionQuery] = None) -> List[dict]:
        """Switch to ``query`` (or reload the current one) from the first page."""
        query = query or self.query
        self.query = query
        key = query.key()

        page = await self._fetch(query, 0)
        self._pages[key] = list(page)
        self._exhausted[key] = len(page) < self.page_size
        if key != self.query.key():
            client_logger.debug("Stale submission page cached for an old filter")
        return self._pages[key]

    async def load_more(self) -> List[dict]:
        query = self.query
        key = query.key()
        if key not in self._pages:
            return await self.load_first(query)
        if self._exhausted.get(key):
            return []

        page = await self._fetch(query, len(self._pages[key]))
        known = {s["id"] for s in self._pages[key]}
        self._pages[key].extend(s for s in page if s["id"] not in known)
        self._exhausted[key] = len(page) < self.page_size
        return page

    async def delete(self, submission_id: str) -> None:
        await self.client.delete_submission(submission_id)
        for key, page in self._pages.items():
            self._pages[key] = [s for s in page if s["id"] != submission_id]
        self._details.pop(submission_id, None)
