"""
Async HTTP client for the Lab Records REST API.

Wraps an ``httpx.AsyncClient`` (owned by the caller) and speaks the same
camelCase JSON the server emits. Responses are parsed into the server's
own response schemas; any non-2xx answer raises ``ApiError``.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx
from pydantic.alias_generators import to_camel

from app.models.schemas import (
    AuthResponse,
    LabRecordResponse,
    SectionResponse,
    TemplateResponse,
)

logger = logging.getLogger(__name__)


class ApiError(Exception):
    """Non-2xx response from the API."""

    def __init__(self, status_code: int, detail: Any = None) -> None:
        self.status_code = status_code
        self.detail = detail
        super().__init__(f"{status_code}: {detail}")


class LabRecordApiClient:
    """Typed wrapper around the lab record endpoints."""

    def __init__(self, http: httpx.AsyncClient, token: Optional[str] = None) -> None:
        self.http = http
        self.token = token

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _headers(self) -> Dict[str, str]:
        if not self.token:
            return {}
        return {"Authorization": f"Bearer {self.token}"}

    async def _request(
        self,
        method: str,
        path: str,
        json: Optional[Dict[str, Any]] = None,
    ) -> httpx.Response:
        response = await self.http.request(method, path, json=json, headers=self._headers())
        if response.is_error:
            try:
                detail = response.json().get("detail")
            except ValueError:
                detail = response.text
            logger.warning("%s %s failed with %d: %s", method, path, response.status_code, detail)
            raise ApiError(response.status_code, detail)
        return response

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------

    async def register(
        self,
        email: str,
        password: str,
        first_name: str,
        last_name: str,
    ) -> AuthResponse:
        response = await self._request(
            "POST",
            "/api/auth/register",
            json={"email": email, "password": password, "firstName": first_name, "lastName": last_name},
        )
        auth = AuthResponse.model_validate(response.json())
        self.token = auth.token
        return auth

    async def login(self, email: str, password: str) -> AuthResponse:
        response = await self._request(
            "POST", "/api/auth/login", json={"email": email, "password": password}
        )
        auth = AuthResponse.model_validate(response.json())
        self.token = auth.token
        return auth

    # ------------------------------------------------------------------
    # Lab records
    # ------------------------------------------------------------------

    async def list_templates(self) -> List[TemplateResponse]:
        response = await self._request("GET", "/api/templates")
        return [TemplateResponse.model_validate(t) for t in response.json()]

    async def list_lab_records(self) -> List[LabRecordResponse]:
        response = await self._request("GET", "/api/lab-records")
        return [LabRecordResponse.model_validate(r) for r in response.json()]

    async def get_lab_record(self, record_id: str) -> LabRecordResponse:
        response = await self._request("GET", f"/api/lab-records/{record_id}")
        return LabRecordResponse.model_validate(response.json())

    async def create_lab_record(self, title: str, template_type: str) -> LabRecordResponse:
        response = await self._request(
            "POST", "/api/lab-records", json={"title": title, "templateType": template_type}
        )
        return LabRecordResponse.model_validate(response.json())

    async def update_lab_record(self, record_id: str, **fields: Any) -> LabRecordResponse:
        response = await self._request(
            "PATCH", f"/api/lab-records/{record_id}", json=_camel(fields)
        )
        return LabRecordResponse.model_validate(response.json())

    async def delete_lab_record(self, record_id: str) -> None:
        await self._request("DELETE", f"/api/lab-records/{record_id}")

    # ------------------------------------------------------------------
    # Sections
    # ------------------------------------------------------------------

    async def list_sections(self, record_id: str) -> List[SectionResponse]:
        response = await self._request("GET", f"/api/lab-records/{record_id}/sections")
        return [SectionResponse.model_validate(s) for s in response.json()]

    async def create_section(self, record_id: str, **fields: Any) -> SectionResponse:
        response = await self._request(
            "POST", f"/api/lab-records/{record_id}/sections", json=_camel(fields)
        )
        return SectionResponse.model_validate(response.json())

    async def update_section(self, section_id: str, **fields: Any) -> SectionResponse:
        response = await self._request(
            "PATCH", f"/api/sections/{section_id}", json=_camel(fields)
        )
        return SectionResponse.model_validate(response.json())

    async def delete_section(self, section_id: str) -> None:
        await self._request("DELETE", f"/api/sections/{section_id}")

    async def reorder_sections(self, record_id: str, section_ids: List[str]) -> None:
        await self._request(
            "POST",
            f"/api/lab-records/{record_id}/sections/reorder",
            json={"sectionOrders": [{"id": sid, "order": i} for i, sid in enumerate(section_ids)]},
        )


def _camel(fields: Dict[str, Any]) -> Dict[str, Any]:
    """snake_case keyword arguments → camelCase JSON keys."""
    return {to_camel(key): value for key, value in fields.items()}
