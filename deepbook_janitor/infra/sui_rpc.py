"""
Async Sui JSON-RPC client implementing the object gateway over HTTP/2.

Reads retry with jittered backoff; submissions are sent exactly once.
"""

from __future__ import annotations

import asyncio
import itertools
import random
from typing import Any, Dict, List, Optional, Sequence

import httpx

from deepbook_janitor.core.errors import FetchError, NotFoundError, WrongKindError
from deepbook_janitor.core.types import (
    BalanceChange,
    BatchDescriptor,
    ChildRef,
    CostBreakdown,
    MoveCall,
    ObjectData,
    ObjectPage,
    Page,
    Signer,
    SubmitOutcome,
)

_MISSING_CODES = {"notExists", "deleted", "dynamicFieldNotFound"}


class SuiRpcGateway:
    def __init__(
        self,
        rpc_url: str,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
        retries: int = 2,
    ) -> None:
        self.rpc_url = rpc_url.rstrip("/")
        self._retries = retries
        self._ids = itertools.count(1)
        # A caller-supplied client is shared; we only close clients we created.
        if client is not None:
            self.client = client
            self._owns_client = False
        else:
            self.client = httpx.AsyncClient(base_url=self.rpc_url, http2=True, timeout=timeout)
            self._owns_client = True

    async def close(self) -> None:
        if self._owns_client:
            await self.client.aclose()

    async def get_object(self, object_id: str, *, with_rebate: bool = False) -> ObjectData:
        result = await self._read("sui_getObject", [object_id, _object_options(with_rebate)])
        return _parse_object(object_id, result)

    async def get_children(self, parent_id: str, cursor: Optional[str] = None, limit: Optional[int] = None) -> Page:
        result = await self._read("suix_getDynamicFields", [parent_id, cursor, limit])
        if not isinstance(result, dict):
            raise FetchError(f"suix_getDynamicFields: unexpected result for {parent_id}")
        items = []
        for entry in result.get("data") or []:
            name = entry.get("name") or {}
            items.append(ChildRef(
                object_id=entry.get("objectId", ""),
                name_type=str(name.get("type", "")),
                name_value=name.get("value"),
            ))
        return Page(
            items=tuple(items),
            next_cursor=result.get("nextCursor"),
            has_more=bool(result.get("hasNextPage")),
        )

    async def multi_get_objects(self, object_ids: Sequence[str], *, with_rebate: bool = False) -> List[Optional[ObjectData]]:
        if not object_ids:
            return []
        result = await self._read("sui_multiGetObjects", [list(object_ids), _object_options(with_rebate)])
        if not isinstance(result, list) or len(result) != len(object_ids):
            raise FetchError(f"sui_multiGetObjects: expected {len(object_ids)} entries")
        out: List[Optional[ObjectData]] = []
        for object_id, entry in zip(object_ids, result):
            try:
                out.append(_parse_object(object_id, entry))
            except (NotFoundError, WrongKindError):
                out.append(None)
        return out

    async def get_owned_objects(
        self, owner: str, struct_type: str, cursor: Optional[str] = None, limit: Optional[int] = None
    ) -> ObjectPage:
        query = {"filter": {"StructType": struct_type}, "options": _object_options(False)}
        result = await self._read("suix_getOwnedObjects", [owner, query, cursor, limit])
        if not isinstance(result, dict):
            raise FetchError(f"suix_getOwnedObjects: unexpected result for {owner}")
        items = []
        for entry in result.get("data") or []:
            data = entry.get("data") if isinstance(entry, dict) else None
            object_id = data.get("objectId", "") if isinstance(data, dict) else ""
            try:
                items.append(_parse_object(object_id, entry))
            except (NotFoundError, WrongKindError):
                continue
        return ObjectPage(
            items=tuple(items),
            next_cursor=result.get("nextCursor"),
            has_more=bool(result.get("hasNextPage")),
        )

    async def submit(self, signer: Signer, descriptor: BatchDescriptor) -> SubmitOutcome:
        built = await self._rpc("unsafe_batchTransaction", [
            signer.address,
            [_move_call_params(call) for call in descriptor.calls],
            None,
            str(descriptor.gas_budget),
            "Commit",
        ])
        if not isinstance(built, dict) or not built.get("txBytes"):
            raise FetchError("unsafe_batchTransaction: no txBytes in response")
        tx_bytes = built["txBytes"]
        signature = signer.sign_transaction(tx_bytes)
        result = await self._rpc("sui_executeTransactionBlock", [
            tx_bytes,
            [signature],
            {"showEffects": True, "showBalanceChanges": True},
            "WaitForLocalExecution",
        ])
        return _parse_outcome(result)

    async def _read(self, method: str, params: List[Any]) -> Any:
        backoff = 0.2
        for attempt in range(self._retries + 1):
            try:
                return await self._rpc(method, params)
            except FetchError:
                if attempt >= self._retries:
                    raise
                await asyncio.sleep(backoff + random.uniform(0, backoff * 0.5))
                backoff *= 2

    async def _rpc(self, method: str, params: List[Any]) -> Any:
        payload = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": params}
        try:
            resp = await self.client.post("", json=payload)
            resp.raise_for_status()
            data = resp.json()
        except httpx.HTTPError as exc:
            raise FetchError(f"{method}: {exc}") from exc
        except ValueError as exc:
            raise FetchError(f"{method}: invalid JSON response") from exc
        if not isinstance(data, dict):
            raise FetchError(f"{method}: unexpected response shape")
        error = data.get("error")
        if error:
            message = error.get("message") if isinstance(error, dict) else str(error)
            raise FetchError(f"{method}: {message}")
        return data.get("result")


def _object_options(with_rebate: bool) -> Dict[str, bool]:
    return {"showContent": True, "showType": True, "showStorageRebate": with_rebate}


def _parse_object(object_id: str, entry: Any) -> ObjectData:
    if not isinstance(entry, dict):
        raise NotFoundError(object_id, "empty response")
    error = entry.get("error")
    if error:
        code = error.get("code") if isinstance(error, dict) else None
        if code in _MISSING_CODES:
            raise NotFoundError(object_id, str(code))
        raise FetchError(f"object {object_id}: {error}")
    data = entry.get("data")
    if not isinstance(data, dict):
        raise NotFoundError(object_id, "no data")
    content = data.get("content") or {}
    kind = content.get("dataType") if isinstance(content, dict) else None
    if kind != "moveObject":
        raise WrongKindError(object_id, kind)
    fields = content.get("fields")
    if not isinstance(fields, dict):
        raise WrongKindError(object_id, "moveObject without fields")
    rebate = data.get("storageRebate")
    return ObjectData(
        object_id=data.get("objectId") or object_id,
        type_tag=data.get("type") or content.get("type"),
        fields=fields,
        storage_rebate=int(rebate) if rebate is not None else None,
    )


def _json_arg(value: Any) -> Any:
    # u128/u64 travel as decimal strings
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return str(value)
    if isinstance(value, (list, tuple)):
        return [_json_arg(v) for v in value]
    return value


def _move_call_params(call: MoveCall) -> Dict[str, Any]:
    return {
        "moveCallRequestParams": {
            "packageObjectId": call.package,
            "module": call.module,
            "function": call.function,
            "typeArguments": list(call.type_arguments),
            "arguments": [_json_arg(a) for a in call.arguments],
        }
    }


def _parse_outcome(result: Any) -> SubmitOutcome:
    if not isinstance(result, dict):
        raise FetchError("sui_executeTransactionBlock: unexpected result")
    effects = result.get("effects") or {}
    status = effects.get("status") or {}
    gas = effects.get("gasUsed") or {}
    changes = []
    for bc in result.get("balanceChanges") or []:
        owner = bc.get("owner")
        address = owner.get("AddressOwner") if isinstance(owner, dict) else None
        changes.append(BalanceChange(owner=address, coin_type=bc.get("coinType", ""), amount=int(bc.get("amount", 0))))
    return SubmitOutcome(
        digest=result.get("digest"),
        status=status.get("status", "unknown"),
        error=status.get("error"),
        cost=CostBreakdown(
            computation=int(gas.get("computationCost", 0)),
            storage=int(gas.get("storageCost", 0)),
            storage_rebate=int(gas.get("storageRebate", 0)),
        ),
        balance_changes=changes,
    )
