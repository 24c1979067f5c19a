"""input validation utilities"""

from typing import Any, List, Optional
from dataclasses import dataclass, field
import re

from quorum.agent.chain_config import CHAINS, normalize_chain
from quorum.errors import InvalidInputError


@dataclass
class ValidationResult:
    """result of input validation."""
    valid: bool
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def __bool__(self) -> bool:
        return self.valid

    def __str__(self) -> str:
        lines = []
        if self.errors:
            lines.append("ERRORS:")
            for error in self.errors:
                lines.append(f"  - {error}")
        if self.warnings:
            lines.append("WARNINGS:")
            for warning in self.warnings:
                lines.append(f"  - {warning}")
        return "\n".join(lines) if lines else "Validation passed"

    def add_error(self, error: str) -> None:
        """add an error and mark as invalid."""
        self.errors.append(error)
        self.valid = False

    def add_warning(self, warning: str) -> None:
        self.warnings.append(warning)


class InputValidator:
    """validates user inputs before processing."""

    # at least one top-level declaration keyword
    DECLARATION_PATTERN = re.compile(r'\b(?:abstract\s+)?(?:contract|interface|library)\s+[A-Za-z_$][\w$]*')

    SOLIDITY_PRAGMA_PATTERN = re.compile(r'pragma\s+solidity\s+[\^~>=<\s\d.|]+;')

    SPDX_PATTERN = re.compile(r'//\s*SPDX-License-Identifier:\s*[\w\-\+\.]+')

    ADDRESS_PATTERN = re.compile(r'^0x[0-9a-fA-F]{40}$')

    def __init__(self, max_contract_size: Optional[int] = None):
        if max_contract_size is None:
            from quorum.config import config
            max_contract_size = config.MAX_CONTRACT_SIZE_BYTES
        self.max_contract_size = max_contract_size

    def validate_contract_source(self, source: Any) -> ValidationResult:
        result = ValidationResult(valid=True)

        if not isinstance(source, str) or not source.strip():
            result.add_error("Contract code must be a non-empty string")
            return result

        size = len(source.encode("utf-8"))
        if size > self.max_contract_size:
            result.add_error(f"Contract size exceeds maximum limit of {self.max_contract_size} bytes")
            return result

        if not self.DECLARATION_PATTERN.search(source):
            result.add_error("Invalid Solidity code - no contract, interface, or library found")
            return result

        if not self.SOLIDITY_PRAGMA_PATTERN.search(source):
            result.add_warning("No pragma solidity directive found")
        if not self.SPDX_PATTERN.search(source):
            result.add_warning("No SPDX license identifier found")
        return result

    def validate_address(self, address: Any) -> ValidationResult:
        result = ValidationResult(valid=True)
        if not isinstance(address, str) or not self.ADDRESS_PATTERN.match(address.strip()):
            result.add_error(f"Invalid contract address: {address!r} (expected 0x followed by 40 hex characters)")
        return result

    def validate_chain(self, chain: Any) -> ValidationResult:
        result = ValidationResult(valid=True)
        if not isinstance(chain, str) or normalize_chain(chain) not in CHAINS:
            result.add_error(f"Unsupported chain: {chain!r} (supported: {', '.join(sorted(CHAINS))})")
        return result


def _raise_if_invalid(result: ValidationResult) -> ValidationResult:
    if not result.valid:
        raise InvalidInputError("; ".join(result.errors))
    return result


def require_valid_source(source: Any, max_contract_size: Optional[int] = None) -> ValidationResult:
    """validate contract source or raise invalidinputerror with the joined errors"""
    return _raise_if_invalid(InputValidator(max_contract_size).validate_contract_source(source))


def require_valid_address(address: Any, chain: Any) -> None:
    validator = InputValidator(max_contract_size=0)
    _raise_if_invalid(validator.validate_address(address))
    _raise_if_invalid(validator.validate_chain(chain))
