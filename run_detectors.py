#!/usr/bin/env python3
"""CLI to replay pre-decoded chain events through the configured detectors."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from detector_engine import (
    BlockEvent,
    FileAbiLoader,
    Orchestrator,
    Services,
    TransactionEvent,
    Web3ContractReader,
    load_config,
)


def load_events(path: Path) -> List[Dict[str, Any]]:
    with path.open(encoding="utf-8") as fp:
        events = json.load(fp)
    if not isinstance(events, list):
        raise ValueError(f"{path} must contain a JSON list of events")
    return events


async def replay(orchestrator: Orchestrator, events: Sequence[Dict[str, Any]]) -> List[Dict[str, object]]:
    await orchestrator.initialize()

    emitted: List[Dict[str, object]] = []
    for index, payload in enumerate(events):
        kind = str(payload.get("kind", "transaction")).lower()
        if kind == "block":
            block_event = BlockEvent.from_dict(payload)
            findings = await orchestrator.handle_block(block_event)
            label = f"block {block_event.block_number}"
        elif kind == "transaction":
            tx_event = TransactionEvent.from_dict(payload)
            findings = await orchestrator.handle_transaction(tx_event)
            label = f"tx {tx_event.hash or index}"
        else:
            raise ValueError(f"Event {index} has unknown kind '{kind}'")

        for failure in orchestrator.last_failures:
            print(f"  ! {failure.detector_name} ({failure.detector_type}) failed: {failure.error}")
        print(f"Event {index} ({label}): {len(findings)} finding(s)")
        emitted.extend(finding.to_dict() for finding in findings)
    return emitted


def main(argv: Optional[Sequence[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Run protocol detectors against an event file")
    parser.add_argument("--config", required=True, help="Path to YAML or JSON detector configuration")
    parser.add_argument("--events", required=True, help="Path to JSON list of transaction/block events")
    parser.add_argument("--abi-dir", help="Directory holding ABI files (defaults to the config directory)")
    parser.add_argument("--rpc-url", default=os.getenv("RPC_URL"), help="JSON-RPC endpoint for contract reads")
    parser.add_argument("--call-timeout", type=float, default=10.0, help="Per-call deadline in seconds")
    parser.add_argument("--output-json", help="Path to write findings JSON")
    parser.add_argument("--isolate-failures", action="store_true", help="Keep going when one detector fails")
    parser.add_argument("--log-level", default="INFO")

    args = parser.parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )

    config_path = Path(args.config)
    abi_dir = Path(args.abi_dir) if args.abi_dir else config_path.parent
    output_path = Path(args.output_json) if args.output_json else None

    config = load_config(config_path)
    events = load_events(Path(args.events))
    if not events:
        print("No events to replay.")
        return

    services = Services(
        abi_loader=FileAbiLoader(abi_dir),
        contract_reader=Web3ContractReader.from_url(args.rpc_url) if args.rpc_url else None,
        call_timeout=args.call_timeout,
    )
    orchestrator = Orchestrator(config, services=services, isolate_failures=args.isolate_failures)
    findings = asyncio.run(replay(orchestrator, events))

    if findings and output_path:
        payload = {
            "protocolName": config.get("protocolName"),
            "findings": findings,
        }
        output_path.parent.mkdir(parents=True, exist_ok=True)
        with output_path.open("w", encoding="utf-8") as fp:
            json.dump(payload, fp, indent=2, ensure_ascii=False)
        print(f"Findings written to {output_path}")
    elif findings:
        print("Findings identified but no --output-json path provided.")


if __name__ == "__main__":  # pragma: no cover
    main()
