"""on-chain contract fetching: verified source from the explorer, bytecode and account state over json-rpc"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import requests

from quorum.agent.chain_config import ChainCfg, get_chain, normalize_chain
from quorum.errors import InvalidInputError

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 15
WEI_PER_ETHER = 10 ** 18


@dataclass(frozen=True)
class FetchedContract:
    address: str
    chain: str
    chain_id: int
    bytecode: str
    source_text: Optional[str] = None
    contract_name: Optional[str] = None
    balance: str = "0"
    tx_count: int = 0
    explorer_metadata: Dict[str, Any] = field(default_factory=dict, compare=False, hash=False)

    @property
    def has_source(self) -> bool:
        return bool(self.source_text and self.source_text.strip())

    def contract_info(self) -> Dict[str, Any]:
        return {
            "address": self.address,
            "chain": self.chain,
            "chainId": self.chain_id,
            "balance": self.balance,
            "transactionCount": self.tx_count,
        }


class ContractFetcher(ABC):
    @abstractmethod
    def fetch_contract(self, address: str, chain: str) -> FetchedContract:
        """fetch bytecode, state and (when verified) source for an address"""


def _flatten_source(raw: str) -> str:
    """explorer multi-file payloads arrive as json, sometimes wrapped in an extra brace pair"""
    text = raw.strip()
    if not text.startswith("{"):
        return raw
    if text.startswith("{{") and text.endswith("}}"):
        text = text[1:-1]
    try:
        payload = json.loads(text)
    except ValueError:
        return raw
    sources = payload.get("sources", payload) if isinstance(payload, dict) else {}
    parts: List[str] = []
    for path in sorted(sources):
        entry = sources[path]
        content = entry.get("content") if isinstance(entry, dict) else None
        if isinstance(content, str):
            parts.append(f"// File: {path}\n{content}")
    return "\n\n".join(parts) if parts else raw


def _format_ether(wei: int) -> str:
    whole, frac = divmod(wei, WEI_PER_ETHER)
    if not frac:
        return f"{whole}.0"
    return f"{whole}.{str(frac).rjust(18, '0').rstrip('0')}"


class EtherscanFetcher(ContractFetcher):
    """etherscan-style explorer for source, chain rpc for bytecode, balance and nonce"""

    def __init__(self, session: Optional[requests.Session] = None, timeout: int = REQUEST_TIMEOUT):
        self.session = session or requests.Session()
        self.timeout = timeout

    def _rpc(self, cfg: ChainCfg, method: str, params: list) -> Any:
        body = {"jsonrpc": "2.0", "id": 1, "method": method, "params": params}
        response = self.session.post(cfg.rpc_url(), json=body, timeout=self.timeout)
        response.raise_for_status()
        payload = response.json()
        if payload.get("error"):
            raise RuntimeError(f"{method} failed: {payload['error']}")
        return payload.get("result")

    def _verified_source(self, cfg: ChainCfg, address: str) -> Optional[Dict[str, Any]]:
        params = {
            "module": "contract",
            "action": "getsourcecode",
            "address": address,
        }
        api_key = cfg.etherscan_key()
        if api_key:
            params["apikey"] = api_key
        try:
            response = self.session.get(cfg.etherscan_base, params=params, timeout=self.timeout)
            if response.status_code != 200:
                return None
            payload = response.json()
        except (requests.RequestException, ValueError) as e:
            logger.warning(f"Explorer lookup failed for {address}: {e}")
            return None
        result = payload.get("result")
        if payload.get("status") != "1" or not isinstance(result, list) or not result:
            return None
        entry = result[0]
        if not isinstance(entry, dict) or not entry.get("SourceCode"):
            return None
        return entry

    def fetch_contract(self, address: str, chain: str) -> FetchedContract:
        chain_key = normalize_chain(chain)
        try:
            cfg = get_chain(chain_key)
        except KeyError as e:
            raise InvalidInputError(f"Unsupported chain: {chain}") from e

        try:
            bytecode = self._rpc(cfg, "eth_getCode", [address, "latest"]) or "0x"
            balance = int(self._rpc(cfg, "eth_getBalance", [address, "latest"]) or "0x0", 16)
            tx_count = int(self._rpc(cfg, "eth_getTransactionCount", [address, "latest"]) or "0x0", 16)
        except (requests.RequestException, ValueError) as e:
            raise RuntimeError(f"RPC request to {chain_key} failed: {e}") from e

        if bytecode in ("0x", "0x0", ""):
            raise InvalidInputError("No contract found at this address")

        explorer = self._verified_source(cfg, address)
        source_text = _flatten_source(explorer["SourceCode"]) if explorer else None
        logger.info(
            f"Fetched {address} on {chain_key}: {len(bytecode) // 2 - 1} bytes, "
            f"{'verified source' if source_text else 'bytecode only'}"
        )
        return FetchedContract(
            address=address,
            chain=chain_key,
            chain_id=cfg.chain_id,
            bytecode=bytecode,
            source_text=source_text,
            contract_name=explorer.get("ContractName") if explorer else None,
            balance=_format_ether(balance),
            tx_count=tx_count,
            explorer_metadata={
                k: explorer.get(k) for k in ("CompilerVersion", "OptimizationUsed", "Proxy", "Implementation")
            } if explorer else {},
        )
