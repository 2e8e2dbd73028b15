"""
Text processing utilities for agents
"""

import re
import json
from typing import Any, Dict, List, Optional


def extract_bullet_points(text: str, max_points: int = 5) -> List[str]:
    """
    Extract bullet points from text

    Args:
        text: Text containing bullet points
        max_points: Maximum number of points to return

    Returns:
        List of extracted bullet points
    """
    lines = text.split('\n')
    bullet_points = []

    for line in lines:
        line = line.strip()
        if line and re.match(r'^([-•*]|\d+[.)])\s*', line):
            cleaned = re.sub(r'^([-•*]|\d+[.)])\s*', '', line)
            if cleaned:
                bullet_points.append(cleaned)
        elif line and not bullet_points and len(line) > 20:
            # If no bullet points, treat meaningful sentences as points
            sentences = re.split(r'[.!?]+', line)
            bullet_points.extend([s.strip() for s in sentences if s.strip()])

    return bullet_points[:max_points]


def safe_json_parse(text: str, fallback=None) -> Any:
    """
    Safely parse JSON from text with error handling

    Args:
        text: Text that may contain JSON
        fallback: Value to return if parsing fails

    Returns:
        Parsed JSON object or fallback value
    """
    if not isinstance(text, str):
        return fallback

    text = text.strip()
    if not text:
        return fallback

    try:
        return json.loads(text)
    except json.JSONDecodeError:
        pass

    # Markdown code blocks
    code_block_patterns = [
        r'```json\s*(.*?)\s*```',
        r'```\s*(.*?)\s*```'
    ]

    for pattern in code_block_patterns:
        matches = re.findall(pattern, text, re.DOTALL | re.IGNORECASE)
        for match in matches:
            try:
                return json.loads(match.strip())
            except json.JSONDecodeError:
                continue

    # Fix for LLMs that return JSON content without braces
    if text[0] == '"' and '{' not in text[:20]:
        fixed_text = '{' + text.rstrip().rstrip(',')
        if not fixed_text.endswith('}'):
            fixed_text += '}'
        try:
            return json.loads(fixed_text)
        except json.JSONDecodeError:
            pass

    # Outermost object or array embedded in prose
    for opener, closer in (('{', '}'), ('[', ']')):
        start = text.find(opener)
        end = text.rfind(closer)
        if start != -1 and end > start:
            try:
                return json.loads(text[start:end + 1])
            except json.JSONDecodeError:
                continue

    return fallback


def get_field(data: Dict[str, Any], *names: str, default: Any = None) -> Any:
    """Return the first present key among names, also trying snake_case/camelCase variants"""
    for name in names:
        candidates = [name, to_snake_case(name), to_camel_case(name)]
        for key in candidates:
            if key in data:
                return data[key]
    return default


def to_snake_case(name: str) -> str:
    return re.sub(r'(?<!^)(?=[A-Z])', '_', name).lower()


def to_camel_case(name: str) -> str:
    head, *rest = name.split('_')
    return head + ''.join(part[:1].upper() + part[1:] for part in rest)


def truncate_text(text: str, max_length: int = 100, suffix: str = "...") -> str:
    """Truncate text to max_length characters, appending suffix when cut"""
    if text is None:
        return ""
    return text if len(text) <= max_length else text[:max_length] + suffix


def clamp(value: float, lower: float = 0.0, upper: float = 1.0) -> float:
    return max(lower, min(upper, value))


def coerce_float(value: Any, default: Optional[float] = None) -> Optional[float]:
    """Convert value to float, returning default when not numeric"""
    if isinstance(value, bool):
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default
