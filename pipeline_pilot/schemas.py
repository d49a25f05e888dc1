"""
Pydantic data models.

Rationale:
- One explicit contract for what the analyzer produces and what the page consumes.
- The LLM's JSON summary is validated leniently: small drift (casing, a missing
  list, "yes"/true) is coerced instead of discarding the whole summary.
"""

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

TaskType = Literal["classification", "regression", "multilabel", "time_series", "clustering", "unknown"]
Confidence = Literal["high", "medium", "low"]
YesNo = Literal["yes", "no"]

_TASK_TYPES = {"classification", "regression", "multilabel", "time_series", "clustering", "unknown"}
_CONFIDENCE_LEVELS = {"high", "medium", "low"}


def _as_str_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return [str(v) for v in value if v is not None]
    return [str(value)]


class DatasetInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    filename: str
    row_count: int
    col_count: int
    columns: List[str] = []
    sample: str = ""


class SummaryWarnings(BaseModel):
    model_config = ConfigDict(extra="allow")

    pii_warning: YesNo = "no"
    sensitive_domain_warning: YesNo = "no"
    data_quality_notes: List[str] = []

    @field_validator("pii_warning", "sensitive_domain_warning", mode="before")
    @classmethod
    def _yes_no(cls, v: Any) -> str:
        if isinstance(v, bool):
            return "yes" if v else "no"
        if isinstance(v, str) and v.strip().lower() in ("yes", "true", "y"):
            return "yes"
        return "no"

    @field_validator("data_quality_notes", mode="before")
    @classmethod
    def _notes(cls, v: Any) -> List[str]:
        return _as_str_list(v)


class JSONSummary(BaseModel):
    model_config = ConfigDict(extra="allow")

    task_type: TaskType = "unknown"
    target_column: Optional[str] = None
    problem_statement: str = ""
    recommended_pipeline_steps: List[str] = []
    main_model_choices: List[str] = []
    expected_eval_metrics: List[str] = []
    optimization_techniques: List[str] = []
    extra_eval_metrics: List[str] = []
    warnings: SummaryWarnings = Field(default_factory=SummaryWarnings)
    assumptions: List[str] = []
    confidence: Confidence = "low"

    @field_validator("task_type", mode="before")
    @classmethod
    def _task_type(cls, v: Any) -> str:
        norm = str(v or "").strip().lower().replace("-", "_").replace(" ", "_")
        return norm if norm in _TASK_TYPES else "unknown"

    @field_validator("confidence", mode="before")
    @classmethod
    def _confidence(cls, v: Any) -> str:
        norm = str(v or "").strip().lower()
        return norm if norm in _CONFIDENCE_LEVELS else "low"

    @field_validator("target_column", mode="before")
    @classmethod
    def _target(cls, v: Any) -> Optional[str]:
        return None if v is None else str(v)

    @field_validator("problem_statement", mode="before")
    @classmethod
    def _statement(cls, v: Any) -> str:
        return "" if v is None else str(v)

    @field_validator(
        "recommended_pipeline_steps",
        "main_model_choices",
        "expected_eval_metrics",
        "optimization_techniques",
        "extra_eval_metrics",
        "assumptions",
        mode="before",
    )
    @classmethod
    def _lists(cls, v: Any) -> List[str]:
        return _as_str_list(v)

    @field_validator("warnings", mode="before")
    @classmethod
    def _warnings(cls, v: Any) -> Any:
        return v if isinstance(v, dict) else {}


class MLAnalysisResult(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    json_summary: Optional[JSONSummary] = None
    human_summary: str = ""
    python_code: str = ""
    model_code_map: Dict[str, str] = {}
    raw_response: str = ""


class ModelSelection(BaseModel):
    model: str


class SessionView(BaseModel):
    phase: Literal["input", "loading", "result"]
    error: Optional[str] = None
    result: Optional[MLAnalysisResult] = None
    selected_model: Optional[str] = None
    active_code: str = ""
