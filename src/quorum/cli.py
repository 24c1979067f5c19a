"""command line interface for the multi-agent contract auditor

usage:
    quorum --contract path/to/Contract.sol
    quorum --address 0x... --chain polygon --output-format json
    quorum --contract Token.sol --agents security defi --mode deep
"""
import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from quorum.auditor import AuditEngine, AuditOptions
from quorum.config import config
from quorum.errors import InvalidInputError
from quorum.models.findings import AgentType, AnalysisMode
from quorum.utils.caching import NullCache
from quorum.utils.llm_backend import create_backend
from quorum.utils.logging_setup import configure_logging
from quorum.utils.output_formats import OutputFormat, get_formatter
from quorum.utils.validation import InputValidator

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_INVALID_INPUT = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Quorum - multi-agent smart contract auditor with consensus aggregation"
    )

    input_group = parser.add_mutually_exclusive_group(required=True)
    input_group.add_argument(
        "--contract",
        type=Path,
        help="Path to a Solidity source file"
    )
    input_group.add_argument(
        "--address",
        type=str,
        help="Deployed contract address (0x + 40 hex chars)"
    )

    parser.add_argument(
        "--chain",
        type=str,
        default="ethereum",
        help="Chain for --address (ethereum, polygon, arbitrum, optimism, base, bsc; aliases accepted)"
    )
    parser.add_argument(
        "--agents",
        nargs="+",
        metavar="AGENT",
        default=None,
        help=f"Override reviewer selection ({', '.join(a.value for a in AgentType)})"
    )
    parser.add_argument(
        "--mode",
        type=str,
        choices=[m.value for m in AnalysisMode],
        default=config.DEFAULT_ANALYSIS_MODE,
        help="comprehensive: short per-agent timeout; deep: full pipeline timeout per agent"
    )
    parser.add_argument(
        "--backend",
        type=str,
        choices=config.SUPPORTED_BACKENDS,
        default=config.DEFAULT_BACKEND_TYPE,
        help="Generation backend"
    )
    parser.add_argument(
        "--model",
        type=str,
        default=None,
        help="Model override (e.g., 'x-ai/grok-4.1-fast')"
    )
    parser.add_argument(
        "--output-format",
        type=str,
        choices=[f.value for f in OutputFormat],
        default=OutputFormat.TEXT.value,
        help="Report format"
    )
    parser.add_argument(
        "--output",
        type=Path,
        default=None,
        help="Write the report to this file instead of stdout"
    )
    parser.add_argument(
        "--no-cache",
        action="store_true",
        help="Disable the response cache for this run"
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Debug logging and full tracebacks on failure"
    )
    parser.add_argument(
        "--validate-only",
        action="store_true",
        help="Validate inputs and configuration, then exit without auditing"
    )
    return parser


def _validate(args: argparse.Namespace, source: Optional[str]) -> List[str]:
    validator = InputValidator()
    errors: List[str] = []
    warnings: List[str] = []
    if source is not None:
        result = validator.validate_contract_source(source)
    else:
        result = validator.validate_address(args.address)
        chain_result = validator.validate_chain(args.chain)
        result.errors.extend(chain_result.errors)
    errors.extend(result.errors)
    warnings.extend(result.warnings)
    if args.agents:
        unknown = [a for a in args.agents if AgentType.parse(a) is None]
        if len(unknown) == len(args.agents):
            errors.append(f"No supported agent types in: {', '.join(args.agents)}")
        elif unknown:
            warnings.append(f"Ignoring unknown agent types: {', '.join(unknown)}")

    for warning in warnings:
        print(f"  warning: {warning}", file=sys.stderr)
    return errors


async def _run(args: argparse.Namespace, source: Optional[str]):
    backend = create_backend(args.backend, args.model)
    engine = AuditEngine(backend, cache=NullCache() if args.no_cache else None)
    options = AuditOptions(
        agents=tuple(args.agents) if args.agents else None,
        analysis_mode=args.mode,
        chain=args.chain,
        use_cache=not args.no_cache,
    )
    try:
        if source is not None:
            return await engine.audit_from_source(source, options)
        return await engine.audit_from_address(args.address, args.chain, options)
    finally:
        await engine.aclose()


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(verbose=args.verbose)

    source = None
    if args.contract is not None:
        try:
            source = args.contract.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            print(f"Error: cannot read {args.contract}: {e}", file=sys.stderr)
            return EXIT_INVALID_INPUT

    errors = _validate(args, source)
    if errors:
        print("\n" + "=" * 70, file=sys.stderr)
        print("VALIDATION ERRORS:", file=sys.stderr)
        print("=" * 70, file=sys.stderr)
        for error in errors:
            print(f"  {error}", file=sys.stderr)
        print("=" * 70 + "\n", file=sys.stderr)
        return EXIT_INVALID_INPUT

    if args.validate_only:
        print("\n" + "=" * 70)
        print("VALIDATION SUCCESSFUL")
        print("=" * 70)
        print(json.dumps(config.summary(), indent=2))
        for problem in config.validate():
            print(f"  note: {problem}")
        print("=" * 70 + "\n")
        return EXIT_OK

    try:
        report = asyncio.run(_run(args, source))
    except InvalidInputError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_INVALID_INPUT
    except Exception as e:
        if args.verbose:
            logger.exception("Audit failed")
        print(f"Error: audit failed ({type(e).__name__}). Re-run with --verbose for details.", file=sys.stderr)
        return EXIT_FAILURE

    output = get_formatter(OutputFormat(args.output_format)).format(report)
    if args.output:
        args.output.parent.mkdir(parents=True, exist_ok=True)
        args.output.write_text(output, encoding="utf-8")
        print(f"Report written to {args.output}")
    else:
        print(output)
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
