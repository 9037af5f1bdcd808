import pytest

from bmf_graph.patterns import extract_reference, iter_references, normalize_target


@pytest.mark.parametrize(
    "text, expected",
    [
        ("$screen:onboarding:welcome", ("screen:onboarding:welcome", "screen")),
        ("$screen.onboarding.welcome", ("screen:onboarding:welcome", "screen")),
        ("$dialog.legal:terms", ("dialog:legal:terms", "dialog")),
        ("go to $action:t:finish ( score: 10 )", ("action:t:finish", "action")),
        ("for each item: component:shop:card", ("component:shop:card", "component")),
    ],
)
def test_extract_reference_normalizes_separators(text, expected):
    assert extract_reference(text) == expected


def test_extract_reference_prefers_sigil_over_bare_component():
    text = "component:shop:card then $screen:shop:detail"
    assert extract_reference(text) == ("screen:shop:detail", "screen")


@pytest.mark.parametrize(
    "text",
    [
        "",
        "plain label",
        "$Screen:home:main",
        "$ screen:home:main",
        "costs $5",
        "mycomponent:shop:card",
    ],
)
def test_extract_reference_rejects_non_references(text):
    assert extract_reference(text) is None


def test_iter_references_yields_sigils_then_bare_components():
    text = "component:a:b, $screen:x:y and $event.x.z"
    assert list(iter_references(text)) == [
        ("screen:x:y", "screen"),
        ("event:x:z", "event"),
        ("component:a:b", "component"),
    ]


def test_normalize_target_keeps_hyphens_and_underscores():
    assert normalize_target("action", "sign-up.send_code") == "action:sign-up:send_code"
