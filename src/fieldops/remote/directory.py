"""
Remote directory service: the authoritative source for users, companies
and projects.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any

import httpx
from pydantic import BaseModel, ValidationError

from fieldops.errors import RecordNotFoundError, RemoteServiceError
from fieldops.schema.records import CompanyRecord, ProjectRecord, UserRecord


class RemoteDirectoryService(ABC):
    """Operations the core invokes on the system of record."""

    @abstractmethod
    async def fetch_user(self, user_id: str) -> UserRecord:
        pass

    @abstractmethod
    async def fetch_company(self, company_id: str) -> CompanyRecord:
        pass

    @abstractmethod
    async def update_company_seats(self, company_id: str, seated_employee_ids: list[str]) -> CompanyRecord:
        """Replace the company's seat list. Returns the server's post-update record."""
        pass

    @abstractmethod
    async def fetch_company_projects(self, company_id: str) -> list[ProjectRecord]:
        pass

    async def close(self) -> None:
        pass


class HttpDirectoryService(RemoteDirectoryService):
    """
    JSON-over-HTTP client for the directory service.

    Every failure, whether transport, HTTP status or payload validation, is
    raised as ``RemoteServiceError``.
    """

    def __init__(
        self,
        base_url: str,
        api_token: str = "",
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
        logger: logging.Logger | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_token = api_token
        self.timeout = timeout
        self._transport = transport
        self.logger = logger or logging.getLogger(__name__)

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.api_token:
            headers["Authorization"] = f"Bearer {self.api_token}"
        return headers

    async def _request(self, method: str, path: str, json: dict[str, Any] | None = None) -> Any:
        url = f"{self.base_url}{path}"
        try:
            async with httpx.AsyncClient(
                headers=self._headers(),
                timeout=self.timeout,
                transport=self._transport,
            ) as client:
                response = await client.request(method, url, json=json)
        except httpx.HTTPError as e:
            self.logger.error("%s %s failed: %s", method, path, e)
            raise RemoteServiceError(f"Could not reach directory service: {e}") from e

        if response.status_code == 404:
            raise RecordNotFoundError(f"{path} not found", status_code=404)
        if response.status_code >= 400:
            self.logger.error("%s %s returned %d", method, path, response.status_code)
            raise RemoteServiceError(
                f"Directory service returned {response.status_code}",
                status_code=response.status_code,
            )

        try:
            return response.json()
        except ValueError as e:
            raise RemoteServiceError("Directory service returned invalid JSON") from e

    @staticmethod
    def _parse(model: type[BaseModel], data: Any) -> Any:
        try:
            return model.model_validate(data)
        except ValidationError as e:
            raise RemoteServiceError(f"Invalid {model.__name__} payload: {e.error_count()} errors") from e

    async def fetch_user(self, user_id: str) -> UserRecord:
        data = await self._request("GET", f"/api/users/{user_id}")
        return self._parse(UserRecord, data)

    async def fetch_company(self, company_id: str) -> CompanyRecord:
        data = await self._request("GET", f"/api/companies/{company_id}")
        return self._parse(CompanyRecord, data)

    async def update_company_seats(self, company_id: str, seated_employee_ids: list[str]) -> CompanyRecord:
        data = await self._request(
            "PATCH",
            f"/api/companies/{company_id}/seats",
            json={"seatedEmployeeIds": seated_employee_ids},
        )
        return self._parse(CompanyRecord, data)

    async def fetch_company_projects(self, company_id: str) -> list[ProjectRecord]:
        data = await self._request("GET", f"/api/companies/{company_id}/projects")
        if isinstance(data, dict):
            data = data.get("projects", [])
        if not isinstance(data, list):
            raise RemoteServiceError("Directory service returned a malformed project list")
        return [self._parse(ProjectRecord, item) for item in data]
