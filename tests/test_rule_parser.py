import pathlib
import textwrap

import pytest

from rule_parser import ParseStatus, Rule, load_rules_file, parse_rules


def _dedent(text: str) -> str:
    return textwrap.dedent(text).lstrip()


def test_empty_text_fails() -> None:
    result = parse_rules("")
    assert not result.ok
    assert result.rules == ()
    assert result.status is ParseStatus.EMPTY


def test_comment_only_text_is_empty_not_malformed() -> None:
    result = parse_rules("# nothing here\n\n   \n")
    assert not result.ok
    assert result.status is ParseStatus.EMPTY


def test_non_list_text_is_malformed() -> None:
    result = parse_rules("rules:\n  id: cache1\n  path: /tmp\n")
    assert not result.ok
    assert result.rules == ()
    assert result.status is ParseStatus.MALFORMED


def test_single_record_strips_quotes_and_whitespace() -> None:
    text = _dedent(
        """
        - id: "cache1"
          path:   "$HOME/cache"
          min_age_days: 7
          explain: "Browser caches"
        """
    )
    result = parse_rules(text)

    assert result.ok
    assert result.status is ParseStatus.OK
    assert result.rules == (Rule(id="cache1", path="$HOME/cache", min_age_days=7, explain="Browser caches"),)


def test_consecutive_records_do_not_leak_fields() -> None:
    text = _dedent(
        """
        - id: first
          path: /a
          min_age_days: 3
          explain: First
        - id: second
          path: /b
        """
    )
    rules = parse_rules(text).rules

    assert len(rules) == 2
    assert rules[0] == Rule(id="first", path="/a", min_age_days=3, explain="First")
    assert rules[1] == Rule(id="second", path="/b", min_age_days=0, explain="")


def test_field_order_is_irrelevant() -> None:
    text = "- explain: Logs\n  min_age_days: 2\n  path: /var/log\n  id: logs\n"
    assert parse_rules(text).rules == (Rule(id="logs", path="/var/log", min_age_days=2, explain="Logs"),)


@pytest.mark.parametrize("value", ["", "seven", "7.5", "7 days", "1_000", "\u0667", "0x10"])
def test_bad_min_age_days_keeps_default(value: str) -> None:
    rules = parse_rules(f"- id: x\n  min_age_days: {value}\n").rules
    assert rules[0].min_age_days == 0


def test_bad_min_age_days_keeps_previous_value() -> None:
    rules = parse_rules("- id: x\n  min_age_days: 4\n  min_age_days: soon\n").rules
    assert rules[0].min_age_days == 4


def test_negative_min_age_days_is_clamped() -> None:
    assert parse_rules("- id: x\n  min_age_days: -3\n").rules[0].min_age_days == 0


def test_signed_min_age_days_is_accepted() -> None:
    assert parse_rules("- id: x\n  min_age_days: +7\n").rules[0].min_age_days == 7


def test_mismatched_quotes_are_kept() -> None:
    text = "- id: 'half\n  path: \"/tmp'\n  explain: \"quoted\" tail\n"
    rule = parse_rules(text).rules[0]
    assert rule.id == "'half"
    assert rule.path == "\"/tmp'"
    assert rule.explain == '"quoted" tail'


def test_single_quotes_are_stripped() -> None:
    assert parse_rules("- id: x\n  explain: 'Old logs'\n").rules[0].explain == "Old logs"


def test_unknown_keys_and_lines_before_first_record_are_ignored() -> None:
    text = _dedent(
        """
        version: 2
        id: ignored
        - id: kept
          owner: someone
          just some text
          path: C:/Temp/cache
        """
    )
    rules = parse_rules(text).rules
    assert rules == (Rule(id="kept", path="C:/Temp/cache"),)


def test_bare_marker_does_not_start_record() -> None:
    result = parse_rules("-\n  id: a\n")
    assert result.rules == ()
    assert result.status is ParseStatus.MALFORMED


def test_bare_marker_line_inside_record_is_ignored() -> None:
    rules = parse_rules("- id: a\n-\n  path: /x\n").rules
    assert rules == (Rule(id="a", path="/x"),)


def test_duplicate_ids_are_kept_in_order() -> None:
    rules = parse_rules("- id: a\n  path: /1\n- id: a\n  path: /2\n").rules
    assert [r.path for r in rules] == ["/1", "/2"]


def test_load_rules_file(tmp_path: pathlib.Path) -> None:
    rules_file = tmp_path / "rules.yaml"
    rules_file.write_text("- id: tmp\n  path: /tmp\n  min_age_days: 1\n  explain: Temp\n", encoding="utf-8")

    result = load_rules_file(rules_file)

    assert result.ok
    assert result.rules[0].id == "tmp"


def test_load_rules_file_missing_raises(tmp_path: pathlib.Path) -> None:
    with pytest.raises(OSError):
        load_rules_file(tmp_path / "missing.yaml")


def test_bundled_rules_file_parses() -> None:
    bundled = pathlib.Path(__file__).resolve().parent.parent / "rules" / "safe_caches.yaml"
    result = load_rules_file(bundled)
    assert result.ok
    assert all(rule.id and rule.path and rule.explain for rule in result.rules)
