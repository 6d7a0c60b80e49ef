"""
Read-only Filecoin chain access: Lotus JSON-RPC for actor id resolution, Filfox REST for
multisig signers and threshold. Every call is bounded by a timeout and goes through a
circuit breaker.
"""

import logging
from typing import Any, Dict, Optional

import httpx

from filplus.application.exceptions import CollaboratorUnavailableError, NotFoundError
from filplus.scalability.circuit_breaker import CircuitBreaker
from filplus.services.interface import MultisigInfo

logger = logging.getLogger(__name__)


class FilecoinChainClient:
    """Implements BlockchainClient."""

    def __init__(
        self,
        *,
        lotus_rpc_url: str,
        filfox_api_url: str,
        lotus_rpc_token: str = "",
        circuit_breaker: Optional[CircuitBreaker] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = 10.0,
    ) -> None:
        self._lotus_url = lotus_rpc_url
        self._filfox_url = filfox_api_url.rstrip("/")
        self._token = lotus_rpc_token
        self._breaker = circuit_breaker or CircuitBreaker(timeout_seconds=timeout, name="filecoin_chain")
        self._http = http_client or httpx.AsyncClient(timeout=timeout)

    async def resolve_actor_id(self, address: str) -> str:
        return await self._breaker.call(self._lookup_id, address)

    async def get_multisig_info(self, address: str) -> MultisigInfo:
        return await self._breaker.call(self._fetch_multisig, address)

    async def close(self) -> None:
        await self._http.aclose()

    async def _lookup_id(self, address: str) -> str:
        headers = {"Authorization": f"Bearer {self._token}"} if self._token else {}
        body = {
            "jsonrpc": "2.0",
            "method": "Filecoin.StateLookupID",
            "params": [address, None],
            "id": 1,
        }
        response = await self._send("POST", self._lotus_url, json=body, headers=headers)
        data = self._json(response, "lotus")
        if data.get("error"):
            message = (data["error"] or {}).get("message", "")
            if "not found" in message.lower():
                raise NotFoundError(f"Actor not found for {address}")
            raise CollaboratorUnavailableError(f"Lotus StateLookupID failed: {message}")
        actor_id = data.get("result")
        if not actor_id:
            raise CollaboratorUnavailableError(f"Lotus returned no actor id for {address}")
        return actor_id

    async def _fetch_multisig(self, address: str) -> MultisigInfo:
        response = await self._send("GET", f"{self._filfox_url}/address/{address}")
        if response.status_code == 404:
            raise NotFoundError(f"Address not found on Filfox: {address}")
        multisig = self._json(response, "filfox").get("multisig") or {}
        return MultisigInfo(
            signers=list(multisig.get("signers") or []),
            approval_threshold=int(multisig.get("approvalThreshold") or 0),
        )

    async def _send(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            return await self._http.request(method, url, **kwargs)
        except httpx.RequestError as e:
            logger.warning("chain_request_failed", extra={"url": url, "error": str(e)})
            raise CollaboratorUnavailableError(f"Request to {url} failed: {e}") from e

    @staticmethod
    def _json(response: httpx.Response, source: str) -> Dict[str, Any]:
        if response.status_code >= 400:
            raise CollaboratorUnavailableError(f"{source} returned HTTP {response.status_code}")
        try:
            return response.json()
        except ValueError as e:
            raise CollaboratorUnavailableError(f"{source} returned invalid JSON") from e
