"""Case list and search calls against the Civil Case API."""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional

from services.api_client import CaseApiClient
from services.errors import AuthError, CaseApiError
from services.formatting import build_ordering
from services.transforms import is_record, transform_case_item, transform_search_item

logger = logging.getLogger("mycc.cases")

DEFAULT_PAGE = 1
_PAGE_RE = re.compile(r"[?&]page=(\d+)")


@dataclass(frozen=True)
class CaseTab:
    name: str
    api_state: str
    default_sort_by: str
    default_sort_order: str
    title: str


CASE_TABS: Dict[str, CaseTab] = {
    "new": CaseTab("new", "new", "provider_assigned_at", "desc", "New"),
    "pending": CaseTab("pending", "opened", "modified", "desc", "Pending"),
    "advising": CaseTab("advising", "accepted", "modified", "desc", "Advising"),
    "closed": CaseTab("closed", "rejected", "provider_closed", "desc", "Closed"),
    "completed": CaseTab("completed", "closed", "provider_closed", "desc", "Completed"),
}

SORTABLE_FIELDS = (
    "full_name",
    "reference",
    "laa_reference",
    "date_of_birth",
    "provider_assigned_at",
    "provider_viewed",
    "provider_accepted",
    "provider_closed",
    "modified",
)


def extract_results(body: Any) -> List[Any]:
    if is_record(body) and isinstance(body.get("results"), list):
        return body["results"]
    return body if isinstance(body, list) else []


def _page_from_url(url: Any) -> Optional[int]:
    if not isinstance(url, str):
        return None
    match = _PAGE_RE.search(url)
    return int(match.group(1)) if match else None


def _int_header(headers: Mapping[str, str], key: str) -> Optional[int]:
    raw = headers.get(key)
    if raw is None:
        return None
    try:
        return int(raw)
    except (TypeError, ValueError):
        return None


def extract_pagination_from_body(body: Any, page: int, limit: int) -> Optional[Dict[str, Any]]:
    if not is_record(body):
        return None
    count = body.get("count")
    if not isinstance(count, int) or isinstance(count, bool):
        return None

    current = page
    if isinstance(body.get("next"), str):
        next_page = _page_from_url(body["next"])
        if next_page is not None:
            current = next_page - 1
    elif isinstance(body.get("previous"), str):
        previous_page = _page_from_url(body["previous"])
        if previous_page is not None:
            current = previous_page + 1

    return {
        "total": count,
        "page": current,
        "limit": limit,
        "totalPages": math.ceil(count / limit) if limit > 0 else 0,
    }


def extract_pagination_from_headers(headers: Mapping[str, str], page: int, limit: int) -> Dict[str, Any]:
    total = _int_header(headers, "x-total-count")
    total_pages = _int_header(headers, "x-total-pages")
    header_page = _int_header(headers, "x-page")
    header_limit = _int_header(headers, "x-per-page")

    if total is None and total_pages is not None:
        total = total_pages * limit

    return {
        "total": total,
        "page": header_page if header_page is not None else page,
        "limit": header_limit if header_limit is not None else limit,
        "totalPages": total_pages,
    }


def extract_pagination(body: Any, headers: Mapping[str, str], page: int, limit: int) -> Dict[str, Any]:
    return extract_pagination_from_body(body, page, limit) or extract_pagination_from_headers(headers, page, limit)


def _transform_rows(rows: List[Any], transform) -> List[Dict[str, Any]]:
    return [transform(row) for row in rows if is_record(row)]


def get_cases(
    client: CaseApiClient,
    case_type: str,
    sort_order: str = "desc",
    sort_by: str = "modified",
    page: int = DEFAULT_PAGE,
    page_size: int = 20,
) -> Dict[str, Any]:
    """Fetch one page of a case tab; failures come back as an empty error result."""
    params = {
        "only": case_type,
        "ordering": build_ordering(sort_by, sort_order),
        "page": page,
        "page_size": page_size,
    }
    try:
        response = client.send("GET", "/case", params=params)
        body = response.json() if response.content else None
    except AuthError:
        raise
    except (CaseApiError, ValueError) as exc:
        message = getattr(exc, "message", None) or "Unable to load cases."
        logger.warning("Failed to load %s cases: %s", case_type, message)
        return {
            "data": [],
            "pagination": {"total": 0, "page": page, "limit": page_size, "totalPages": 0},
            "status": "error",
            "message": message,
            "status_code": getattr(exc, "status_code", None),
        }

    return {
        "data": _transform_rows(extract_results(body), transform_case_item),
        "pagination": extract_pagination(body, response.headers, page, page_size),
        "status": "success",
    }


def search_cases(
    client: CaseApiClient,
    keyword: str,
    status: str = "",
    page: int = DEFAULT_PAGE,
    page_size: int = 4,
    sort_by: str = "modified",
    sort_order: str = "desc",
    timeout: Optional[float] = None,
) -> Dict[str, Any]:
    params: Dict[str, Any] = {
        "page": page,
        "page_size": page_size,
        "ordering": build_ordering(sort_by, sort_order),
    }
    keyword = (keyword or "").strip()
    if keyword:
        params["search"] = keyword
    if status:
        params["only"] = status

    response = client.send("GET", "/case/", params=params, timeout=timeout)
    try:
        body = response.json() if response.content else None
    except ValueError as exc:
        raise CaseApiError("Invalid response from the case service.", response.status_code) from exc

    return {
        "data": _transform_rows(extract_results(body), transform_search_item),
        "pagination": extract_pagination(body, response.headers, page, page_size),
        "status": "success",
    }
