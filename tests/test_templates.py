from __future__ import annotations

from types import SimpleNamespace

from app.domain.notifications.templates import (
    calculate_segment_count,
    extract_variables,
    missing_required_variables,
    render,
    render_template,
)


def test_render_replaces_variables_and_business_context() -> None:
    text = render(
        "Hi {{customer_name}}, call {{business.phone}}",
        {"customer_name": "Jamie"},
        business_context={"phone": "(657) 252-2903"},
    )
    assert text == "Hi Jamie, call (657) 252-2903"


def test_unresolved_placeholders_are_kept() -> None:
    assert render("Hello {{ unknown }}", {}) == "Hello {{ unknown }}"


def test_extract_variables_is_unique_and_ordered() -> None:
    assert extract_variables("{{a}} {{b}} {{a}} {{business.name}}") == ["a", "b", "business.name"]


def test_missing_required_variables_ignores_optional() -> None:
    variables = [
        {"name": "customer_name", "required": True},
        {"name": "pet_name", "required": True},
        {"name": "notes", "required": False},
    ]
    assert missing_required_variables(variables, {"customer_name": "Jamie", "pet_name": ""}) == ["pet_name"]


def test_segment_count() -> None:
    assert calculate_segment_count("") == 0
    assert calculate_segment_count("x" * 160) == 1
    assert calculate_segment_count("x" * 161) == 2
    assert calculate_segment_count("x" * 306) == 2
    assert calculate_segment_count("x" * 307) == 3


def test_render_template_warns_on_long_sms() -> None:
    template = SimpleNamespace(
        channel="sms",
        subject_template=None,
        html_template=None,
        text_template="{{body}}",
    )
    rendered = render_template(template, {"body": "x" * 200})

    assert rendered.character_count == 200
    assert rendered.segment_count == 2
    assert any("segments" in warning for warning in rendered.warnings)
