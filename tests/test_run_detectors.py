from __future__ import annotations

import json
from pathlib import Path

import yaml

from conftest import GOVERNOR_ABI, GOVERNOR_ADDRESS, GOVERNOR_SIGNATURES, WATCHED_ADDRESS
import run_detectors


def test_cli_replays_events_and_writes_findings(tmp_path: Path, capsys):
    (tmp_path / "Governor.json").write_text(json.dumps(GOVERNOR_ABI), encoding="utf-8")
    config = {
        "developerAbbreviation": "DEVTEST",
        "protocolName": "PROTOTEST",
        "protocolAbbreviation": "PT",
        "agents": [
            {
                "agentType": "governance",
                "name": "governor-watch",
                "contracts": {
                    "Governor": {"address": GOVERNOR_ADDRESS, "governance": {"abiFile": "Governor.json"}},
                },
            },
            {
                "agentType": "address-watch",
                "name": "treasury-watch",
                "contracts": {
                    "treasury": {"name": "Treasury", "address": WATCHED_ADDRESS, "watch": {"type": "Info", "severity": "Medium"}},
                },
            },
        ],
    }
    config_path = tmp_path / "agent-config.yml"
    config_path.write_text(yaml.safe_dump(config), encoding="utf-8")

    events = [
        {"kind": "transaction", "hash": "0x01", "addresses": {"0x" + "22" * 20: True}},
        {
            "kind": "transaction",
            "hash": "0x02",
            "addresses": {WATCHED_ADDRESS: True},
            "logs": [
                {
                    "name": "ProposalQueued",
                    "signature": GOVERNOR_SIGNATURES["ProposalQueued"],
                    "address": GOVERNOR_ADDRESS,
                    "args": {"proposalId": 9, "eta": 1700000000},
                },
            ],
        },
    ]
    events_path = tmp_path / "events.json"
    events_path.write_text(json.dumps(events), encoding="utf-8")
    output_path = tmp_path / "out" / "findings.json"

    run_detectors.main([
        "--config", str(config_path),
        "--events", str(events_path),
        "--output-json", str(output_path),
        "--log-level", "WARNING",
    ])

    printed = capsys.readouterr().out
    assert "Event 0 (tx 0x01): 0 finding(s)" in printed
    assert "Event 1 (tx 0x02): 2 finding(s)" in printed

    payload = json.loads(output_path.read_text(encoding="utf-8"))
    assert payload["protocolName"] == "PROTOTEST"
    assert [f["alertId"] for f in payload["findings"]] == [
        "DEVTEST-PT-GOVERNANCE-PROPOSAL-QUEUED",
        "DEVTEST-PT-ADDRESS-WATCH",
    ]
    assert payload["findings"][0]["metadata"]["eta"] == "1700000000"
    assert payload["findings"][1]["severity"] == "Medium"
