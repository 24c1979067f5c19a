"""tests for the explorer/rpc contract fetcher"""

import json
import unittest
from unittest.mock import MagicMock

import requests

from quorum.agent.chain_config import get_chain, normalize_chain
from quorum.agent.fetcher import EtherscanFetcher, _flatten_source, _format_ether
from quorum.errors import InvalidInputError

ADDRESS = "0x" + "ab" * 20


def rpc_response(result):
    response = MagicMock()
    response.json.return_value = {"jsonrpc": "2.0", "id": 1, "result": result}
    response.raise_for_status.return_value = None
    return response


def explorer_response(entries, status="1", http_status=200):
    response = MagicMock()
    response.status_code = http_status
    response.json.return_value = {"status": status, "result": entries}
    return response


def make_session(code="0x6080", balance="0xde0b6b3a7640000", nonce="0x5", explorer=None):
    session = MagicMock(spec=requests.Session)
    results = {
        "eth_getCode": code,
        "eth_getBalance": balance,
        "eth_getTransactionCount": nonce,
    }
    session.post.side_effect = lambda url, json, timeout: rpc_response(results[json["method"]])
    session.get.return_value = explorer or explorer_response([])
    return session


class TestFetchContract(unittest.TestCase):

    def test_verified_source(self):
        explorer = explorer_response([{
            "SourceCode": "contract Vault {}",
            "ContractName": "Vault",
            "CompilerVersion": "v0.8.20",
        }])
        fetcher = EtherscanFetcher(session=make_session(explorer=explorer))
        fetched = fetcher.fetch_contract(ADDRESS, "mainnet")

        self.assertEqual(fetched.chain, "ethereum")
        self.assertEqual(fetched.chain_id, 1)
        self.assertTrue(fetched.has_source)
        self.assertEqual(fetched.source_text, "contract Vault {}")
        self.assertEqual(fetched.contract_name, "Vault")
        self.assertEqual(fetched.balance, "1.0")
        self.assertEqual(fetched.tx_count, 5)
        self.assertEqual(fetched.explorer_metadata["CompilerVersion"], "v0.8.20")
        self.assertEqual(fetched.contract_info()["transactionCount"], 5)

    def test_unverified_contract_is_bytecode_only(self):
        explorer = explorer_response([{"SourceCode": "", "ContractName": ""}])
        fetched = EtherscanFetcher(session=make_session(explorer=explorer)).fetch_contract(ADDRESS, "polygon")
        self.assertFalse(fetched.has_source)
        self.assertEqual(fetched.bytecode, "0x6080")
        self.assertEqual(fetched.chain_id, 137)

    def test_explorer_error_status_means_no_source(self):
        explorer = explorer_response("Invalid API Key", status="0")
        fetched = EtherscanFetcher(session=make_session(explorer=explorer)).fetch_contract(ADDRESS, "ethereum")
        self.assertIsNone(fetched.source_text)

    def test_explorer_network_error_means_no_source(self):
        session = make_session()
        session.get.side_effect = requests.ConnectionError("down")
        fetched = EtherscanFetcher(session=session).fetch_contract(ADDRESS, "ethereum")
        self.assertFalse(fetched.has_source)

    def test_no_code_at_address(self):
        fetcher = EtherscanFetcher(session=make_session(code="0x"))
        with self.assertRaisesRegex(InvalidInputError, "No contract found at this address"):
            fetcher.fetch_contract(ADDRESS, "ethereum")

    def test_unknown_chain(self):
        with self.assertRaises(InvalidInputError):
            EtherscanFetcher(session=make_session()).fetch_contract(ADDRESS, "solana")

    def test_rpc_failure(self):
        session = make_session()
        session.post.side_effect = requests.ConnectionError("rpc down")
        with self.assertRaises(RuntimeError):
            EtherscanFetcher(session=session).fetch_contract(ADDRESS, "ethereum")

    def test_rpc_error_payload(self):
        session = make_session()
        error = MagicMock()
        error.json.return_value = {"error": {"code": -32000, "message": "header not found"}}
        session.post.side_effect = lambda url, json, timeout: error
        with self.assertRaises(RuntimeError):
            EtherscanFetcher(session=session).fetch_contract(ADDRESS, "ethereum")


class TestHelpers(unittest.TestCase):

    def test_flatten_multi_file_source(self):
        raw = "{" + json.dumps({
            "language": "Solidity",
            "sources": {
                "contracts/B.sol": {"content": "contract B {}"},
                "contracts/A.sol": {"content": "contract A {}"},
            },
        }) + "}"
        flattened = _flatten_source(raw)
        self.assertEqual(
            flattened,
            "// File: contracts/A.sol\ncontract A {}\n\n// File: contracts/B.sol\ncontract B {}",
        )

    def test_flatten_plain_source_untouched(self):
        self.assertEqual(_flatten_source("pragma solidity ^0.8.0;"), "pragma solidity ^0.8.0;")

    def test_format_ether(self):
        self.assertEqual(_format_ether(0), "0.0")
        self.assertEqual(_format_ether(1500000000000000000), "1.5")
        self.assertEqual(_format_ether(1), "0.000000000000000001")

    def test_chain_aliases(self):
        self.assertEqual(normalize_chain(" BNB "), "bsc")
        self.assertEqual(get_chain("op").chain_id, 10)
        with self.assertRaises(KeyError):
            get_chain("solana")


if __name__ == "__main__":
    unittest.main()
