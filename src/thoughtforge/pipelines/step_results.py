"""
Tagged Step Results

Each research step produces one explicit result type instead of a free-form dict.
Raw collaborator output (an instance, a dict, or text expected to hold JSON) is
validated once at the boundary by ``parse_step_result``; anything that does not fit
is reported and replaced by the step's deterministic fallback (``is_fallback=True``).
"""

from dataclasses import dataclass, field, fields
from datetime import datetime
from typing import Any, ClassVar, Dict, List, Optional, Tuple, Type, Union

from ..utils.error_handling import StructuredResponseError, handle_json_parse_failure
from ..utils.text_utils import clamp, coerce_float, get_field, safe_json_parse


def _require(data: Dict[str, Any], name: str, expected: Union[type, Tuple[type, ...]], kind: str):
    value = get_field(data, name)
    if value is None:
        raise StructuredResponseError(f"{kind} result is missing '{name}'")
    if not isinstance(value, expected):
        raise StructuredResponseError(
            f"{kind} result field '{name}' has type {type(value).__name__}")
    return value


def _string_list(data: Dict[str, Any], name: str, kind: str, required: bool = False) -> List[str]:
    value = get_field(data, name)
    if value is None:
        if required:
            raise StructuredResponseError(f"{kind} result is missing '{name}'")
        return []
    if isinstance(value, str):
        return [value]
    if not isinstance(value, list):
        raise StructuredResponseError(f"{kind} result field '{name}' must be a list")
    return [str(item) for item in value if item is not None and str(item).strip()]


@dataclass(frozen=True)
class StepResult:
    kind: ClassVar[str] = "step"

    is_fallback: bool = False
    error: Optional[str] = None
    timestamp: str = field(default_factory=lambda: datetime.now().isoformat())

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StepResult":
        raise NotImplementedError

    @classmethod
    def from_text(cls, text: str) -> "StepResult":
        parsed = safe_json_parse(text)
        if parsed is None:
            raise StructuredResponseError(f"{cls.kind} response is not valid JSON", raw_text=text)
        return cls.from_value(parsed)

    @classmethod
    def from_value(cls, value: Any) -> "StepResult":
        if isinstance(value, dict):
            return cls.from_dict(value)
        raise StructuredResponseError(f"{cls.kind} response must be a JSON object")

    @classmethod
    def fallback(cls, error: str) -> "StepResult":
        return cls(is_fallback=True, error=str(error))

    def to_dict(self) -> Dict[str, Any]:
        result = {"kind": self.kind}
        for f in fields(self):
            value = getattr(self, f.name)
            result[f.name] = list(value) if isinstance(value, tuple) else value
        return result


@dataclass(frozen=True)
class PlanningResult(StepResult):
    kind: ClassVar[str] = "planning"

    approach: str = ""
    subtopics: Tuple[str, ...] = ()
    queries: Tuple[str, ...] = ()
    selected_thought: Optional[Dict[str, Any]] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PlanningResult":
        return cls(
            approach=str(get_field(data, "approach", default="")),
            subtopics=tuple(_string_list(data, "subtopics", cls.kind)),
            queries=tuple(_string_list(data, "queries", cls.kind, required=True)),
            selected_thought=get_field(data, "selected_thought"),
        )


@dataclass(frozen=True)
class GatheringResult(StepResult):
    kind: ClassVar[str] = "gathering"

    query: str = ""
    results: Tuple[Dict[str, Any], ...] = ()

    @classmethod
    def from_value(cls, value: Any) -> "GatheringResult":
        if isinstance(value, list):
            return cls.from_dict({"results": value})
        return super().from_value(value)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GatheringResult":
        raw_results = _require(data, "results", list, cls.kind)
        results = []
        for item in raw_results:
            if not isinstance(item, dict):
                raise StructuredResponseError("gathering results must be objects")
            results.append({
                "title": str(item.get("title", "")),
                "snippet": str(item.get("snippet") or item.get("abstract") or ""),
                "url": str(item.get("url", "")),
            })
        return cls(query=str(get_field(data, "query", default="")), results=tuple(results))


@dataclass(frozen=True)
class AnalysisResult(StepResult):
    kind: ClassVar[str] = "analysis"

    is_information_sufficient: bool = False
    missing_information: Tuple[str, ...] = ()
    follow_up_queries: Tuple[str, ...] = ()
    confidence: float = 0.0
    summary: str = ""
    reason: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AnalysisResult":
        sufficient = _require(data, "is_information_sufficient", bool, cls.kind)
        confidence = coerce_float(get_field(data, "confidence", "confidence_score"), 0.0)
        return cls(
            is_information_sufficient=sufficient,
            missing_information=tuple(_string_list(data, "missing_information", cls.kind)),
            follow_up_queries=tuple(_string_list(data, "follow_up_queries", cls.kind)),
            confidence=clamp(confidence),
            summary=str(get_field(data, "summary", default="")),
            reason=str(get_field(data, "reason", "reason_for_decision", default="")),
        )

    @classmethod
    def fallback(cls, error: str) -> "AnalysisResult":
        # Unknown sufficiency is treated as insufficient; the iteration ceiling still applies
        return cls(is_fallback=True, error=str(error), is_information_sufficient=False,
                   reason="analysis could not be parsed")


@dataclass(frozen=True)
class InsightResult(StepResult):
    kind: ClassVar[str] = "insight"

    insights: Tuple[str, ...] = ()
    confidence: float = 0.0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "InsightResult":
        return cls(
            insights=tuple(_string_list(data, "insights", cls.kind, required=True)),
            confidence=clamp(coerce_float(get_field(data, "confidence"), 0.0)),
        )


@dataclass(frozen=True)
class ReportResult(StepResult):
    kind: ClassVar[str] = "report"

    title: str = ""
    summary: str = ""
    content: str = ""

    @classmethod
    def from_text(cls, text: str) -> "ReportResult":
        parsed = safe_json_parse(text)
        if isinstance(parsed, dict):
            return cls.from_dict(parsed)
        # Plain prose is an acceptable report body
        if text and text.strip():
            return cls(content=text.strip())
        raise StructuredResponseError("report response is empty", raw_text=text or "")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ReportResult":
        return cls(
            title=str(get_field(data, "title", default="")),
            summary=str(get_field(data, "summary", default="")),
            content=str(_require(data, "content", str, cls.kind)),
        )


STEP_RESULT_TYPES: Dict[str, Type[StepResult]] = {
    cls.kind: cls
    for cls in (PlanningResult, GatheringResult, AnalysisResult, InsightResult, ReportResult)
}


def parse_step_result(raw: Any, kind: str, logger=None, context: Dict[str, Any] = None) -> StepResult:
    """
    Validate raw collaborator output into the tagged result for ``kind``.

    Never raises for malformed data: the failure is reported through
    handle_json_parse_failure and the step's fallback variant is returned.
    Unknown kinds are a programming error and raise ValueError.
    """
    if kind not in STEP_RESULT_TYPES:
        raise ValueError(f"Unknown step kind: {kind}")
    result_cls = STEP_RESULT_TYPES[kind]

    if isinstance(raw, result_cls):
        return raw

    raw_text = raw if isinstance(raw, str) else repr(raw)
    try:
        if isinstance(raw, str):
            return result_cls.from_text(raw)
        if raw is None:
            raise StructuredResponseError(f"{kind} response is empty")
        return result_cls.from_value(raw)
    except StructuredResponseError as e:
        marker = handle_json_parse_failure(e, raw_text, {"step": kind, **(context or {})}, logger=logger)
        return result_cls.fallback(marker["error"])
