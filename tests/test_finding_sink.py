import pathlib

from finding_sink import FindingList
from scanner import ScanOrchestrator
from walker import Finding


def _finding(path: str, size: int, rule_id: str = "r", explain: str = "R") -> Finding:
    return Finding(path=path, bytes=size, rule_id=rule_id, explain=explain)


def test_collects_in_order_and_totals() -> None:
    sink = FindingList()
    sink.add(_finding("/a", 10))
    sink.add(_finding("/b", 0))
    sink.add(_finding("/c", 5, rule_id="other", explain="Other"))

    assert [f.path for f in sink] == ["/a", "/b", "/c"]
    assert sink.count == len(sink) == 3
    assert sink.total_bytes == 15
    assert sink[1].path == "/b"


def test_largest_and_by_rule() -> None:
    sink = FindingList()
    for path, size, rule in [("/a", 1, "x"), ("/b", 30, "y"), ("/c", 7, "x"), ("/d", 30, "x")]:
        sink.add(_finding(path, size, rule_id=rule, explain=rule.upper()))

    assert [f.path for f in sink.largest(3)] == ["/b", "/d", "/c"]
    assert sink.largest(0) == []
    assert sink.by_rule() == {
        "x": {"explain": "X", "count": 3, "bytes": 38},
        "y": {"explain": "Y", "count": 1, "bytes": 30},
    }


def test_count_changed_signal() -> None:
    sink = FindingList()
    counts = []
    sink.count_changed.connect(counts.append)

    sink.add(_finding("/a", 1))
    sink.add(_finding("/b", 1))
    sink.clear()

    assert counts == [1, 2, 0]
    assert sink.count == 0


def test_connect_to_orchestrator(tmp_path: pathlib.Path) -> None:
    (tmp_path / "one").write_bytes(b"12345")
    orch = ScanOrchestrator()
    orch.load_rules_text(f"- id: t\n  path: {tmp_path}\n  explain: Temp\n")
    sink = FindingList()
    sink.connect(orch)

    orch.run()

    assert [(f.rule_id, f.explain, f.bytes) for f in sink] == [("t", "Temp", 5)]

    sink.disconnect(orch)
    orch.run()
    assert sink.count == 1
