import pytest

from webpilot.core.security import SecurityGate


class Confirmer:
    def __init__(self, reply):
        self.reply = reply
        self.prompts = []

    def __call__(self, prompt):
        self.prompts.append(prompt)
        return self.reply


@pytest.mark.parametrize(
    "reply,expected",
    [("y", True), ("Y", True), (" y\n", True), ("n", False), ("yes", False), ("", False), (None, False)],
)
def test_sensitive_action_needs_affirmative(reply, expected):
    confirm = Confirmer(reply)
    gate = SecurityGate(confirm=confirm)

    assert gate.check("click", "Buy now", "finish the task") is expected
    assert len(confirm.prompts) == 1
    assert "Buy now" in confirm.prompts[0]


@pytest.mark.parametrize(
    "action,target,reasoning",
    [
        ("click", "Delete account", "user asked"),
        ("type", "comment box", "Publish the draft"),
        ("click", "CHECKOUT", "proceed"),
    ],
)
def test_keyword_anywhere_in_triple(action, target, reasoning):
    gate = SecurityGate(confirm=Confirmer("n"))
    assert gate.analyze(action, target, reasoning).requires_confirmation
    assert gate.check(action, target, reasoning) is False


def test_harmless_action_never_prompts():
    confirm = Confirmer("n")
    gate = SecurityGate(confirm=confirm)

    assert gate.check("scroll", None, "look for the search box") is True
    assert gate.check("click", "Next page", "browse the list") is True
    assert confirm.prompts == []
