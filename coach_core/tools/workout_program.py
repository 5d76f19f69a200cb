"""createNewWorkoutProgram 工具：为用户创建一个空的训练计划。"""

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

from coach_core.domain.documents import DocumentStore, user_collection
from coach_core.domain.exceptions import ActionExecutionError
from .definitions import ToolDef, ToolParam
from .executor import ActionExecutor


TOOL_NAME = "createNewWorkoutProgram"

CREATE_PROGRAM_TOOL = ToolDef(
    name=TOOL_NAME,
    description="Creates a new, empty workout program for the user.",
    params={
        "name": ToolParam(name="name", description="Program name", required=True, schema={"type": "STRING"}),
        "days": ToolParam(name="days", description="Number of training days", required=True, schema={"type": "NUMBER"}),
    },
)


class CreateProgramArgs(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str = Field(min_length=1)
    # 模型常把 NUMBER 返回成 3.0，整数值的浮点数按 int 接收
    days: int = Field(ge=1)


def make_create_program_handler(store: DocumentStore):
    def _run(args: CreateProgramArgs, uid: Optional[str]) -> Dict[str, Any]:
        if not uid:
            raise ActionExecutionError(code="MISSING_UID", message="createNewWorkoutProgram requires a user")
        program = {
            "name": args.name,
            "days": [{"dayName": f"Day {i + 1}", "exercises": []} for i in range(args.days)],
        }
        store.add(user_collection(uid, "workoutPrograms"), program)
        return {"name": args.name}

    return _run


def register_workout_tools(executor: ActionExecutor, store: DocumentStore) -> ActionExecutor:
    executor.register(CREATE_PROGRAM_TOOL, CreateProgramArgs, make_create_program_handler(store))
    return executor
