"""
Template rendering for notification subjects and bodies

Placeholders use {{name}} or dotted paths such as {{business.phone}}.
Unknown placeholders are left in the output untouched.
"""

import math
import re
from typing import Any, Optional

from pydantic import BaseModel

from ... import config

PLACEHOLDER_PATTERN = re.compile(r"\{\{([^}]+)\}\}")

SMS_SINGLE_SEGMENT_LENGTH = 160
SMS_MULTI_SEGMENT_LENGTH = 153


class RenderedTemplate(BaseModel):
    subject: Optional[str] = None
    html: Optional[str] = None
    text: str
    character_count: int
    segment_count: int
    warnings: list[str] = []


def _lookup(data: dict, path: str) -> Any:
    current: Any = data
    for key in path.split("."):
        if not isinstance(current, dict):
            return None
        current = current.get(key)
        if current is None:
            return None
    return current


def render(template: str, data: dict, business_context: Optional[dict] = None) -> str:
    context = {**data, "business": business_context or config.BUSINESS_CONTEXT}

    def replace(match):
        value = _lookup(context, match.group(1).strip())
        if value is None:
            return match.group(0)
        return str(value)

    return PLACEHOLDER_PATTERN.sub(replace, template)


def extract_variables(template: str) -> list[str]:
    variables = []
    for match in PLACEHOLDER_PATTERN.finditer(template or ""):
        name = match.group(1).strip()
        if name not in variables:
            variables.append(name)
    return variables


def missing_required_variables(variables: list, data: dict) -> list[str]:
    """Names of required template variables with no usable value in `data`"""
    missing = []
    for variable in variables or []:
        if not variable.get("required"):
            continue
        name = variable.get("name")
        value = data.get(name)
        if value is None or value == "":
            missing.append(name)
    return missing


def calculate_segment_count(text: str) -> int:
    length = len(text)
    if length == 0:
        return 0
    if length <= SMS_SINGLE_SEGMENT_LENGTH:
        return 1
    return math.ceil(length / SMS_MULTI_SEGMENT_LENGTH)


def render_template(template, data: dict) -> RenderedTemplate:
    """Render all parts of a NotificationTemplate row"""
    subject = render(template.subject_template, data) if template.subject_template else None
    html = render(template.html_template, data) if template.html_template else None
    text = render(template.text_template, data)

    segments = calculate_segment_count(text)
    warnings = []
    if template.channel == "sms" and len(text) > SMS_SINGLE_SEGMENT_LENGTH:
        warnings.append(f"Message is {len(text)} characters (will use {segments} segments)")
    unresolved = extract_variables(text)
    if unresolved:
        warnings.append(f"Unresolved placeholders: {', '.join(unresolved)}")

    return RenderedTemplate(
        subject=subject,
        html=html,
        text=text,
        character_count=len(text),
        segment_count=segments,
        warnings=warnings,
    )
