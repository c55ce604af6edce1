from __future__ import annotations

import json

import pytest

from core.state import company_from_mapping, company_to_dict
from engine.config import EngineConfig
from engine.logging import EXPORT_VERSION, day_log_entry, dumps_run_export, loads_run_export, make_run_export
from engine.pipeline import create_company, end_day, start_day


def _short_run(content):
    cfg = EngineConfig(base_seed=8, anomaly_chance=1.0, broadcast_start_day=1)
    company = create_company(cfg, company_id="log-1", name="Logged Inc", content=content, role="cmo")
    initial = company
    logs = []
    for _ in range(3):
        started = start_day(company, content, cfg)
        ended = end_day(started.company, content, cfg)
        assert ended.ok
        logs.append(day_log_entry(start=started.to_log(), steps=[], end=ended.to_log()))
        company = ended.company
    return cfg, initial, company, logs


def test_company_dict_round_trip(content) -> None:
    _, _, final, _ = _short_run(content)
    assert company_from_mapping(json.loads(json.dumps(company_to_dict(final)))) == final


def test_export_and_resume(content) -> None:
    cfg, initial, final, logs = _short_run(content)
    export = make_run_export(
        seed=cfg.base_seed, config=cfg.to_dict(), initial_company=initial, day_logs=logs, final_company=final
    )
    text = dumps_run_export(export)
    loaded, company = loads_run_export(text)
    assert loaded["version"] == EXPORT_VERSION
    assert loaded["seed"] == 8
    assert [d["day"] for d in loaded["day_logs"]] == [1, 2, 3]
    assert company == final


def test_export_without_final_resumes_from_initial(content) -> None:
    cfg, initial, _, _ = _short_run(content)
    text = dumps_run_export(make_run_export(seed=1, config=cfg.to_dict(), initial_company=initial, day_logs=[]))
    _, company = loads_run_export(text)
    assert company == initial


def test_day_log_entry_shape() -> None:
    entry = day_log_entry(start={"day": 4, "actions": []}, steps=[{"type": "action"}], end={"day": 4})
    assert entry["day"] == 4
    assert entry["steps"] == [{"type": "action"}]


@pytest.mark.parametrize(
    "text",
    ["[]", json.dumps({"version": 99, "initial_company": {}}), json.dumps({"version": EXPORT_VERSION})],
)
def test_bad_exports_raise(text: str) -> None:
    with pytest.raises(ValueError):
        loads_run_export(text)
