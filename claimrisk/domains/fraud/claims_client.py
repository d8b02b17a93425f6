"""Read access to claims, members and providers owned by the claims service."""

from abc import ABC, abstractmethod
from datetime import datetime

import httpx
import structlog

from .models import ClaimRecord, MemberInfo, ProviderInfo

logger = structlog.get_logger()


class ClaimsReader(ABC):
    @abstractmethod
    async def get_claim(self, claim_id: str) -> ClaimRecord | None:
        ...

    @abstractmethod
    async def get_member_history(self, member_id: str, since: datetime | None = None) -> list[ClaimRecord]:
        ...

    @abstractmethod
    async def get_provider_history(self, provider_id: str, since: datetime | None = None) -> list[ClaimRecord]:
        ...

    @abstractmethod
    async def get_member(self, member_id: str) -> MemberInfo | None:
        ...

    @abstractmethod
    async def get_provider(self, provider_id: str) -> ProviderInfo | None:
        ...


class HttpClaimsReader(ClaimsReader):
    """Claims service REST client.

    Single records answer 404 when unknown and are returned as None. History
    endpoints return a JSON list, possibly empty.
    """

    def __init__(self, base_url: str, client: httpx.AsyncClient | None = None, timeout_seconds: float = 5.0) -> None:
        self._client = client or httpx.AsyncClient(base_url=base_url, timeout=timeout_seconds)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _get_one(self, path: str) -> dict | None:
        resp = await self._client.get(path)
        if resp.status_code == 404:
            return None
        resp.raise_for_status()
        return resp.json()

    async def _get_list(self, path: str, since: datetime | None) -> list[ClaimRecord]:
        params = {"since": since.isoformat()} if since else None
        resp = await self._client.get(path, params=params)
        if resp.status_code == 404:
            return []
        resp.raise_for_status()
        rows = resp.json() or []
        return [ClaimRecord.model_validate(row) for row in rows]

    async def get_claim(self, claim_id: str) -> ClaimRecord | None:
        body = await self._get_one(f"/claims/{claim_id}")
        return ClaimRecord.model_validate(body) if body else None

    async def get_member_history(self, member_id: str, since: datetime | None = None) -> list[ClaimRecord]:
        return await self._get_list(f"/members/{member_id}/claims", since)

    async def get_provider_history(self, provider_id: str, since: datetime | None = None) -> list[ClaimRecord]:
        return await self._get_list(f"/providers/{provider_id}/claims", since)

    async def get_member(self, member_id: str) -> MemberInfo | None:
        body = await self._get_one(f"/members/{member_id}")
        return MemberInfo.model_validate(body) if body else None

    async def get_provider(self, provider_id: str) -> ProviderInfo | None:
        body = await self._get_one(f"/providers/{provider_id}")
        return ProviderInfo.model_validate(body) if body else None
