from coach_core.parsing import (
    ParseFailure,
    SanitizationError,
    SanitizedText,
    is_failure,
    parse,
    recover_json,
    sanitize,
)


def test_parse_scenario_nutrition_targets():
    raw = '```json\n{"targetCalories": 2200, "targetProtein": 180}\n```'
    value = parse(sanitize(raw, expect_json=True))
    assert value == {"targetCalories": 2200, "targetProtein": 180}


def test_parse_failure_keeps_raw_text():
    res = parse(SanitizedText("{'a': 1}"))
    assert isinstance(res, ParseFailure)
    assert res.raw == "{'a': 1}"
    assert res.error


def test_parse_rejects_non_standard_constants():
    res = parse(SanitizedText('{"a": NaN}'))
    assert isinstance(res, ParseFailure)


def test_parse_checks_top_level_shape_only():
    assert isinstance(parse(SanitizedText("[1, 2]")), ParseFailure)
    assert parse(SanitizedText("[1, 2]"), shape=list) == [1, 2]
    # 字段不做校验
    assert parse(SanitizedText('{"unexpected": true}')) == {"unexpected": True}


def test_sanitization_error_passes_through():
    err = sanitize("nothing here", expect_json=True)
    assert parse(err) is err
    assert is_failure(recover_json("nothing here"))


def test_parse_is_idempotent():
    inputs = [
        'Sure: {"a": 1}',
        "no json",
        "{broken}",
        '```json\n{"x": [1, 2]}\n```',
    ]
    for raw in inputs:
        first = parse(sanitize(raw, expect_json=True))
        second = parse(sanitize(raw, expect_json=True))
        assert first == second
        assert type(first) is type(second)


def test_recover_json_accepts_plain_string():
    assert parse('{"k": "v"}') == {"k": "v"}
    assert recover_json('here {"k": 1}') == {"k": 1}
    assert isinstance(recover_json("no braces"), SanitizationError)
