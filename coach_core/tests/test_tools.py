import tempfile
from pathlib import Path

import pytest

from coach_core.domain.exceptions import ActionExecutionError, BusinessError, ValidationError
from coach_core.infrastructure.storage.json_store import JsonDocumentStore
from coach_core.tools.definitions import ActionOutcome, ToolDef, ToolManifest
from coach_core.tools.executor import ActionExecutor
from coach_core.tools.workout_program import CREATE_PROGRAM_TOOL, TOOL_NAME, register_workout_tools


def test_manifest_rejects_duplicate_names():
    tool = ToolDef(name="t", description="", params={})
    with pytest.raises(ValidationError) as exc:
        ToolManifest([tool, ToolDef(name="t", description="other", params={})])
    assert exc.value.code == "DUPLICATE_TOOL"


def test_manifest_lookup():
    manifest = ToolManifest([CREATE_PROGRAM_TOOL])
    assert TOOL_NAME in manifest
    assert manifest.names == [TOOL_NAME]
    assert manifest.get(TOOL_NAME).params["days"].required


def test_outcome_payload_includes_success_flag():
    outcome = ActionOutcome(tool_name="t", success=True, fields={"name": "Push Pull"})
    assert outcome.as_payload() == {"name": "Push Pull", "success": True}


def test_create_program_tool_persists_program():
    with tempfile.TemporaryDirectory() as d:
        store = JsonDocumentStore(root=Path(d) / ".storage")
        executor = register_workout_tools(ActionExecutor(), store)
        outcome = executor.execute(TOOL_NAME, {"name": "Upper Lower", "days": 3.0}, uid="u1")
        assert outcome.success
        assert outcome.as_payload() == {"name": "Upper Lower", "success": True}
        programs = store.list("userProfiles/u1/workoutPrograms")
        assert len(programs) == 1
        assert programs[0]["name"] == "Upper Lower"
        assert [day["dayName"] for day in programs[0]["days"]] == ["Day 1", "Day 2", "Day 3"]
        assert all(day["exercises"] == [] for day in programs[0]["days"])


def test_executor_rejects_unknown_fields_and_bad_types():
    with tempfile.TemporaryDirectory() as d:
        executor = register_workout_tools(ActionExecutor(), JsonDocumentStore(root=d))
        with pytest.raises(ActionExecutionError) as exc:
            executor.execute(TOOL_NAME, {"name": "A", "days": 2, "color": "red"}, uid="u1")
        assert exc.value.code == "INVALID_TOOL_ARGUMENTS"
        with pytest.raises(ActionExecutionError):
            executor.execute(TOOL_NAME, {"name": "A", "days": "many"}, uid="u1")
        with pytest.raises(ActionExecutionError):
            executor.execute(TOOL_NAME, {"name": "A"}, uid="u1")


def test_executor_unknown_tool():
    executor = ActionExecutor()
    with pytest.raises(ActionExecutionError) as exc:
        executor.execute("deleteEverything", {})
    assert exc.value.code == "UNKNOWN_TOOL"


def test_executor_wraps_persistence_failure():
    class BrokenStore:
        def add(self, collection, data):
            raise BusinessError(code="STORE_WRITE_ERROR", message="disk full")

    executor = register_workout_tools(ActionExecutor(), BrokenStore())
    with pytest.raises(ActionExecutionError) as exc:
        executor.execute(TOOL_NAME, {"name": "A", "days": 1}, uid="u1")
    assert exc.value.code == "ACTION_FAILED"


def test_executor_manifest_lists_registered_tools():
    with tempfile.TemporaryDirectory() as d:
        executor = register_workout_tools(ActionExecutor(), JsonDocumentStore(root=d))
        assert executor.manifest().names == [TOOL_NAME]
        with pytest.raises(ActionExecutionError) as exc:
            executor.register(CREATE_PROGRAM_TOOL, object, lambda a, u: {})
        assert exc.value.code == "DUPLICATE_TOOL"


def test_executor_wraps_unexpected_store_exception():
    class FlakyStore:
        def add(self, collection, data):
            raise OSError("connection reset by document store")

    executor = register_workout_tools(ActionExecutor(), FlakyStore())
    with pytest.raises(ActionExecutionError) as exc:
        executor.execute(TOOL_NAME, {"name": "A", "days": 1}, uid="u1")
    assert exc.value.code == "ACTION_FAILED"
    assert exc.value.extra["cause"] == "OSError"
    assert isinstance(exc.value.__cause__, OSError)


def test_create_program_accepts_long_programs():
    with tempfile.TemporaryDirectory() as d:
        store = JsonDocumentStore(root=d)
        executor = register_workout_tools(ActionExecutor(), store)
        outcome = executor.execute(TOOL_NAME, {"name": "30 day challenge", "days": 30}, uid="u1")
        assert outcome.success
        programs = store.list("userProfiles/u1/workoutPrograms")
        assert len(programs[0]["days"]) == 30
        assert programs[0]["days"][-1]["dayName"] == "Day 30"
        with pytest.raises(ActionExecutionError) as exc:
            executor.execute(TOOL_NAME, {"name": "Nothing", "days": 0}, uid="u1")
        assert exc.value.code == "INVALID_TOOL_ARGUMENTS"
