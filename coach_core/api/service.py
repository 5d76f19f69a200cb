"""对外 API 服务模块。

CoachService 在进程启动时由 create_service() 构造一次，持有模型网关、
文档存储与动作执行器，退出时调用 close() 释放连接。

每个操作都遵循同样的约定：
1. 未认证 -> Unauthenticated（在任何模型调用之前）。
2. 缺少必填字段 -> InvalidArgument。
3. 其余任何失败 -> Internal，诊断细节只写日志，不返回给调用方。
"""

import functools
import json
import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional
from uuid import uuid4

from coach_core.api.context import AuthContext
from coach_core.config.settings import settings
from coach_core.domain.documents import DocumentStore, user_collection
from coach_core.domain.exceptions import (
    Internal,
    InvalidArgument,
    OperationError,
    Unauthenticated,
    ValidationError,
)
from coach_core.domain.models import ModelResponse, TextResponse
from coach_core.flows.orchestrator import ToolCallOrchestrator
from coach_core.infrastructure.logging.logger import logger
from coach_core.infrastructure.storage.json_store import JsonDocumentStore, server_timestamp
from coach_core.parsing import NO_JSON_FOUND, ParseFailure, SanitizationError, parse, sanitize
from coach_core.prompts import load_prompt
from coach_core.providers import create_provider
from coach_core.providers.gateway import ModelGateway
from coach_core.tools.executor import ActionExecutor
from coach_core.tools.workout_program import register_workout_tools


LBS_TO_KG = 0.453592
IN_TO_CM = 2.54
WORKOUT_FALLBACK_MESSAGE = "Sorry, I had trouble with that."

Payload = Dict[str, Any]


def operation(name: str, failure_message: str):
    """把方法注册为可调用操作，并统一认证检查与错误映射。"""

    def wrap(func: Callable[..., Payload]):
        @functools.wraps(func)
        def _run(self: "CoachService", data: Optional[Payload], auth: Optional[AuthContext]) -> Payload:
            if auth is None or not getattr(auth, "uid", None):
                raise Unauthenticated()
            if data is not None and not isinstance(data, dict):
                raise InvalidArgument("Request data must be an object.")
            log_ctx = {"trace_id": f"tr-{uuid4().hex}", "operation": name, "uid": auth.uid}
            try:
                return func(self, data or {}, auth.uid, log_ctx)
            except OperationError:
                raise
            except Exception as exc:
                logger.error(
                    f"Error in {name}",
                    exc_info=True,
                    extra={"extra": {**log_ctx, "error": str(exc), "error_type": type(exc).__name__}},
                )
                raise Internal(failure_message) from exc

        _run.operation_name = name
        return _run

    return wrap


def _require(data: Payload, fields, message: str) -> None:
    # 与调用方约定一致：None、空字符串、0、False 都视为缺失
    if any(not data.get(f) for f in fields):
        raise InvalidArgument(message)


def _text_of(response: ModelResponse) -> str:
    if isinstance(response, TextResponse):
        return response.text
    return ""


class CoachService:
    def __init__(
        self,
        gateway: ModelGateway,
        store: DocumentStore,
        executor: ActionExecutor,
        orchestrator: Optional[ToolCallOrchestrator] = None,
        cfg=settings,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._gateway = gateway
        self._store = store
        self._executor = executor
        self._orchestrator = orchestrator or ToolCallOrchestrator(gateway, executor)
        self._settings = cfg
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._operations: Dict[str, Callable[[Optional[Payload], Optional[AuthContext]], Payload]] = {}
        for attr in dir(type(self)):
            member = getattr(self, attr)
            op_name = getattr(member, "operation_name", None)
            if op_name:
                self._operations[op_name] = member

    # ---- 分发 ----

    @property
    def operation_names(self):
        return sorted(self._operations)

    def call(self, name: str, data: Optional[Payload], auth: Optional[AuthContext]) -> Payload:
        """按名称调用操作；返回结果字典或抛出 OperationError。"""
        handler = self._operations.get(name)
        if handler is None:
            raise InvalidArgument(f"Unknown operation: {name}")
        return handler(data, auth)

    def call_envelope(self, name: str, data: Optional[Payload], auth: Optional[AuthContext]) -> Payload:
        """可调用函数协议的响应包：{"result": ...} 或 {"error": {...}}。"""
        try:
            return {"result": self.call(name, data, auth)}
        except OperationError as err:
            return {"error": err.to_dict()}

    def close(self) -> None:
        self._gateway.close()

    def __enter__(self) -> "CoachService":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    # ---- 操作 ----

    @operation("generateWeeklyInsight", "Failed to generate weekly insight.")
    def generate_weekly_insight(self, data: Payload, uid: str, log_ctx: Dict[str, Any]) -> Payload:
        days = self._settings.insight_window_days
        since = self._clock() - timedelta(days=days)
        # 两次读取互不依赖，并发执行后再汇合
        with ThreadPoolExecutor(max_workers=2) as pool:
            workout_future = pool.submit(self._store.query_since, user_collection(uid, "workoutLogs"), "date", since)
            nutrition_future = pool.submit(self._store.query_since, user_collection(uid, "nutritionLogs"), "date", since)
            workout_data = workout_future.result()
            nutrition_data = nutrition_future.result()

        if not workout_data and not nutrition_data:
            return {"message": f"No data found for the last {days} days."}

        prompt = load_prompt(
            "weekly_insight",
            days=days,
            workout_logs=json.dumps(workout_data, ensure_ascii=False, default=str),
            nutrition_logs=json.dumps(nutrition_data, ensure_ascii=False, default=str),
        )
        summary = _text_of(self._gateway.generate(prompt, log_ctx=log_ctx))
        self._store.add(
            user_collection(uid, "insights"),
            {"generatedAt": server_timestamp(), "summaryText": summary, "type": "weekly"},
        )
        self._log(logging.INFO, "Stored weekly insight", log_ctx, workout_logs=len(workout_data), nutrition_logs=len(nutrition_data))
        return {"message": "Insight generated successfully!"}

    @operation("suggestNutritionGoals", "Failed to generate nutrition goals.")
    def suggest_nutrition_goals(self, data: Payload, uid: str, log_ctx: Dict[str, Any]) -> Payload:
        _require(data, ("primaryGoal", "biologicalSex", "weight", "height", "activityLevel"), "Missing required profile data.")
        weight, height = data["weight"], data["height"]
        try:
            weight_kg = float(weight["value"])
            height_cm = float(height["value"])
        except (TypeError, KeyError, ValueError):
            raise InvalidArgument("Missing required profile data.")
        if weight.get("unit") == "lbs":
            weight_kg *= LBS_TO_KG
        if height.get("unit") in ("in", "inches"):
            height_cm *= IN_TO_CM

        prompt = load_prompt(
            "nutrition_goals",
            primary_goal=data["primaryGoal"],
            biological_sex=data["biologicalSex"],
            weight_kg=f"{weight_kg:.2f}",
            height_cm=f"{height_cm:.2f}",
            activity_level=data["activityLevel"],
            exercise_days=data.get("exerciseDaysPerWeek", "not specified"),
            diet_preference="Prefers Low-Carb" if data.get("prefersLowCarb") else "Standard",
            weekly_loss=data.get("weeklyWeightLossGoal", "not specified"),
        )
        return self._generate_json(prompt, log_ctx)

    @operation("generateMealInsight", "Failed to generate AI meal insight.")
    def generate_meal_insight(self, data: Payload, uid: str, log_ctx: Dict[str, Any]) -> Payload:
        _require(data, ("primaryGoal", "meal"), "Missing required profile goal or meal data.")
        meal = data["meal"]
        if not isinstance(meal, dict):
            raise InvalidArgument("Missing required profile goal or meal data.")
        prompt = load_prompt(
            "meal_insight",
            primary_goal=data["primaryGoal"],
            calories=meal.get("calories"),
            protein=meal.get("protein"),
            carbs=meal.get("carbs"),
            fat=meal.get("fat"),
        )
        text = _text_of(self._gateway.generate(prompt, log_ctx=log_ctx))
        return {"insightText": text.strip()}

    @operation("aiAssistant", "The AI assistant encountered an error.")
    def ai_assistant(self, data: Payload, uid: str, log_ctx: Dict[str, Any]) -> Payload:
        _require(data, ("userPrompt",), "A prompt is required.")
        text = self._orchestrator.run(
            str(data["userPrompt"]),
            self._executor.manifest(),
            uid=uid,
            log_ctx=log_ctx,
        )
        return {"responseText": text.strip()}

    @operation("processWorkoutUserInput", "Failed to process workout input.")
    def process_workout_user_input(self, data: Payload, uid: str, log_ctx: Dict[str, Any]) -> Payload:
        _require(data, ("userInput", "currentWorkout"), "Missing required workout data.")
        prompt = load_prompt(
            "workout_input",
            current_workout=json.dumps(data["currentWorkout"], ensure_ascii=False),
            user_input=data["userInput"],
            chat_history=json.dumps(data.get("chatHistory"), ensure_ascii=False),
        )
        raw = _text_of(self._gateway.generate(prompt, log_ctx=log_ctx))
        sanitized = sanitize(raw, expect_json=True)
        if isinstance(sanitized, SanitizationError):
            self._log(logging.WARNING, "No JSON in model output, degrading", log_ctx, raw_preview=raw[:200])
            return {"response_message": WORKOUT_FALLBACK_MESSAGE}
        result = parse(sanitized)
        if isinstance(result, ParseFailure):
            raise ValidationError(code="UNPARSEABLE_MODEL_OUTPUT", message=result.error, raw=result.raw[:200])
        return result

    @operation("getMealFromText", "Failed to parse meal data.")
    def get_meal_from_text(self, data: Payload, uid: str, log_ctx: Dict[str, Any]) -> Payload:
        _require(data, ("inputText",), "Input text is required.")
        prompt = load_prompt("meal_from_text", input_text=data["inputText"])
        return self._generate_json(prompt, log_ctx)

    @operation("getWorkoutInsights", "Failed to generate workout insights.")
    def get_workout_insights(self, data: Payload, uid: str, log_ctx: Dict[str, Any]) -> Payload:
        _require(data, ("completedWorkout", "lastSessionData", "userProfile"), "Missing required data for insights.")
        if not all(isinstance(data[f], dict) for f in ("completedWorkout", "lastSessionData", "userProfile")):
            raise InvalidArgument("Missing required data for insights.")
        unit = "kg" if data["userProfile"].get("unitSystem") == "metric" else "lbs"

        def _sets(sets) -> str:
            return ", ".join(f"{s['weight']}{unit} x {s['reps']}reps" for s in sets or [])

        current_summary = "\n".join(
            f"{e['name']}: {_sets(e.get('sets'))}" for e in data["completedWorkout"].get("exercises", [])
        )
        previous_lines = []
        for key, value in data["lastSessionData"].items():
            if not value:
                previous_lines.append(f"{key}: No data")
            else:
                previous_lines.append(f"{value['name']}: {_sets(value.get('sets'))}")

        prompt = load_prompt(
            "workout_insights",
            unit=unit,
            current_summary=current_summary,
            previous_summary="\n".join(previous_lines),
        )
        return {"insightText": _text_of(self._gateway.generate(prompt, log_ctx=log_ctx))}

    @operation("generateAiWorkoutProgram", "Failed to generate AI workout program.")
    def generate_ai_workout_program(self, data: Payload, uid: str, log_ctx: Dict[str, Any]) -> Payload:
        _require(data, ("prompt", "equipmentInfo"), "A prompt and equipment info are required.")
        prompt = load_prompt("workout_program", request=data["prompt"], equipment=data["equipmentInfo"])
        program = self._generate_json(prompt, log_ctx)
        if not program.get("name") or not program.get("days"):
            raise ValidationError(code="INVALID_PROGRAM", message="AI response was not a valid program structure.")
        return program

    # ---- 辅助方法 ----

    def _generate_json(self, prompt: str, log_ctx: Dict[str, Any]) -> Payload:
        """单轮生成并恢复 JSON 对象；清洗或解析失败按业务错误抛出。"""
        raw = _text_of(self._gateway.generate(prompt, log_ctx=log_ctx))
        result = parse(sanitize(raw, expect_json=True))
        if isinstance(result, SanitizationError):
            raise ValidationError(code=NO_JSON_FOUND, message="No JSON object in model output", raw=raw[:200])
        if isinstance(result, ParseFailure):
            raise ValidationError(code="UNPARSEABLE_MODEL_OUTPUT", message=result.error, raw=result.raw[:200])
        return result

    @staticmethod
    def _log(level: int, message: str, log_ctx: Dict[str, Any], **fields: Any) -> None:
        payload = dict(log_ctx)
        payload.update(fields)
        logger.log(level, message, extra={"extra": payload})


def create_service(cfg=settings, *, store: Optional[DocumentStore] = None, provider=None) -> CoachService:
    """进程启动时构造一次服务实例；关闭时调用 service.close()。"""

    provider_client = provider or create_provider(cfg=cfg)
    gateway = ModelGateway(provider_client, model=cfg.default_model)
    doc_store = store or JsonDocumentStore(root=cfg.storage_root)
    executor = register_workout_tools(ActionExecutor(), doc_store)
    return CoachService(gateway, doc_store, executor, cfg=cfg)
