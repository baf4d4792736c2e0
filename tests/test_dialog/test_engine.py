import logging

import pytest

from spindle.core.config import EngineConfig
from spindle.core.errors import (
    ChoiceError,
    DialogueRuntimeError,
    DuplicateNodeError,
    ParseError,
    UnknownNodeError,
    UnknownVariableError,
)
from spindle.dialog.engine import Choose, Command, EndConversation, Say
from spindle.dialog.parser import parse_expression
from spindle.dialog.values import Value

MINIMAL_SCRIPT = """
title: Start
---
Hello there
===
"""

BRANCHING_SCRIPT = """
title: Start
---
Hi
[[go1|End1]]
[[go2|End2]]
===
title: End1
---
You went one way.
===
title: End2
---
You went the other.
===
"""


def node(body, title="Start"):
    return f"title: {title}\n---\n{body}\n===\n"


def test_minimal_conversation(load_engine):
    engine = load_engine(MINIMAL_SCRIPT)

    assert engine.next_event() == Say("Hello there")
    assert engine.next_event() == EndConversation()
    assert engine.next_event() is None
    assert not engine.is_active


def test_nothing_happens_before_activation(engine):
    engine.load(MINIMAL_SCRIPT)
    assert engine.next_event() is None
    assert engine.current_node is None


def test_iterating_drains_the_conversation(load_engine):
    engine = load_engine(MINIMAL_SCRIPT)
    assert list(engine) == [Say("Hello there"), EndConversation()]


def test_branching_conversation(load_engine):
    engine = load_engine(BRANCHING_SCRIPT)

    assert engine.next_event() == Choose("Hi", ("go1", "go2"))
    assert engine.next_event() == Choose("Hi", ("go1", "go2"))

    engine.choose(1)
    assert engine.current_node == "End2"
    assert engine.next_event() == Say("You went the other.")
    assert engine.next_event() == EndConversation()
    assert engine.next_event() is None

    assert engine.visited("Start")
    assert engine.visited("End2")
    assert not engine.visited("End1")


def test_activate_unknown_node(engine):
    engine.load(MINIMAL_SCRIPT)
    with pytest.raises(UnknownNodeError):
        engine.activate("Missing")


def test_lazy_activation_ends_immediately(load_engine, caplog):
    engine = load_engine(MINIMAL_SCRIPT, start=None, config=EngineConfig(validate_activation=False))

    with caplog.at_level(logging.WARNING):
        engine.activate("Missing")

    assert "Missing" in caplog.text
    assert engine.next_event() == EndConversation()


def test_activate_restarts_the_conversation(load_engine):
    engine = load_engine(MINIMAL_SCRIPT)
    list(engine)

    engine.activate("Start")
    assert engine.is_active
    assert engine.next_event() == Say("Hello there")


def test_choice_errors(engine):
    engine.load(BRANCHING_SCRIPT)
    with pytest.raises(ChoiceError):
        engine.choose(0)

    engine.activate("Start")
    with pytest.raises(ChoiceError):
        engine.choose(2)
    with pytest.raises(ChoiceError):
        engine.choose(-1)

    engine.activate("End1")
    with pytest.raises(ChoiceError):
        engine.choose(0)

    list(engine)
    with pytest.raises(ChoiceError):
        engine.choose(0)


def test_commands_are_passed_through(load_engine):
    engine = load_engine(node("<<play_sound door>>\nDone"))

    assert engine.next_event() == Command("play_sound door")
    assert engine.next_event() == Say("Done")


def test_assignments_are_silent(load_engine):
    engine = load_engine(node("<<set $gold to 5>>\n<<set $gold = $gold + 1>>\nDone"))

    assert engine.next_event() == Say("Done")
    assert engine.get_variable("gold") == Value.number(6)
    assert engine.get_variable("$gold") == Value.number(6)


def test_only_the_matching_branch_runs(load_engine):
    engine = load_engine(node(
        "<<set $x = 2>>\n"
        "<<if $x == 1>>\nA\n"
        "<<elseif $x == 2>>\nB\n"
        "<<else>>\nC\n"
        "<<endif>>\n"
        "After"
    ))

    assert list(engine) == [Say("B"), EndConversation()]


def test_else_branch(load_engine):
    engine = load_engine(node("<<if false>>\nA\n<<else>>\nC\n<<endif>>"))
    assert list(engine) == [Say("C"), EndConversation()]


def test_inline_choice_body_ends_the_conversation(load_engine):
    engine = load_engine(node("Q?\n-> Yes\n    Great.\n-> No\n    Oh.\nDone"))

    assert engine.next_event() == Choose("Q?", ("Yes", "No"))
    engine.choose(0)
    assert list(engine) == [Say("Great."), EndConversation()]


def test_nested_inline_choices(load_engine):
    engine = load_engine(node(
        "Q?\n"
        "-> Ask\n"
        "    Sure?\n"
        "    -> Yes\n"
        "        Fine.\n"
        "    -> No\n"
        "-> Leave"
    ))

    engine.choose(0)
    assert engine.next_event() == Choose("Sure?", ("Yes", "No"))
    engine.choose(0)
    assert list(engine) == [Say("Fine."), EndConversation()]


def test_jump_marks_target_visited(load_engine):
    script = node("<<set $n = 1>>\n[[Next]]") + node(
        '<<if visited("Start") and visited("Next")>>\nSeen both.\n<<endif>>', title="Next"
    )
    engine = load_engine(script)

    assert engine.next_event() == Say("Seen both.")
    assert engine.current_node == "Next"


def test_jump_to_missing_node_ends(load_engine):
    engine = load_engine(node("[[Nowhere]]"))
    assert list(engine) == [EndConversation()]


def test_stop(load_engine):
    engine = load_engine(node("A\n<<stop>>\nB"))
    assert list(engine) == [Say("A"), EndConversation()]


def test_evaluation_errors_are_recoverable(load_engine):
    engine = load_engine(node("<<if $flag>>\nYes\n<<else>>\nNo\n<<endif>>"))

    with pytest.raises(UnknownVariableError):
        engine.next_event()
    assert engine.is_active

    engine.set_variable("flag", True)
    assert engine.next_event() == Say("Yes")


def test_runaway_jumps_are_stopped(load_engine):
    engine = load_engine(node("[[Start]]"), config=EngineConfig(max_silent_steps=50))

    with pytest.raises(DialogueRuntimeError):
        engine.next_event()


def test_duplicate_titles_replace_by_default(engine, caplog):
    engine.load(MINIMAL_SCRIPT)
    with caplog.at_level(logging.WARNING):
        engine.load(node("Replaced"))

    assert "Replacing node 'Start'" in caplog.text
    engine.activate("Start")
    assert engine.next_event() == Say("Replaced")


def test_duplicate_titles_can_be_refused():
    from spindle.dialog.engine import DialogueEngine

    engine = DialogueEngine(EngineConfig(duplicate_titles="error"))
    engine.load(MINIMAL_SCRIPT)

    with pytest.raises(DuplicateNodeError):
        engine.load(node("Other") + node("Replaced"))
    assert engine.node_titles() == ["Start"]

    with pytest.raises(DuplicateNodeError):
        engine.load(node("A", title="Twice") + node("B", title="Twice"))
    assert not engine.has_node("Twice")


def test_failed_load_leaves_registry_untouched(engine):
    assert engine.load(MINIMAL_SCRIPT) == ["Start"]

    with pytest.raises(ParseError):
        engine.load(node("Fine", title="Other") + node("<<endif>>", title="Broken"))

    assert engine.node_titles() == ["Start"]


def test_node_metadata(engine):
    engine.load("title: Start\ntags: intro\n---\nHi\n===\n")

    assert engine.node_metadata("Start") == {"tags": "intro"}
    with pytest.raises(UnknownNodeError):
        engine.node_metadata("Missing")


def test_variables(engine):
    engine.set_variable("$name", "Ada")
    engine.set_variable("count", 2)

    assert engine.get_variable("name") == Value.string("Ada")
    assert engine.get_variable("missing") is None

    snapshot = engine.variables()
    snapshot["count"] = Value.number(99)
    assert engine.get_variable("count") == Value.number(2)


def test_host_functions(engine):
    engine.register_function("double", 1, lambda args, nodes: args[0].as_number() * 2)
    assert engine.evaluate(parse_expression("double(4) + 1")) == Value.number(9)

    with pytest.raises(ValueError):
        engine.register_function("bad", -1, lambda args, nodes: 0)


def test_host_functions_in_conditions(load_engine):
    engine = load_engine(node("<<if is_night()>>\nDark.\n<<else>>\nBright.\n<<endif>>"), start=None)
    engine.register_function("is_night", 0, lambda args, nodes: True)
    engine.activate("Start")

    assert engine.next_event() == Say("Dark.")


@pytest.mark.parametrize("condition", ["$gold > 5", "$gold >= 10", "$gold gt 5", "$gold gte 10"])
def test_greater_than_in_conditions(load_engine, condition):
    engine = load_engine(node(f"<<set $gold = 10>>\n<<if {condition}>>\nRich\n<<else>>\nPoor\n<<endif>>"))
    assert list(engine) == [Say("Rich"), EndConversation()]


def test_greater_than_in_assignments(load_engine):
    engine = load_engine(node("<<set $x = 3>>\n<<set $b = $x > 1>>\n<<set $c = $x >= 4>>\nDone"))

    assert engine.next_event() == Say("Done")
    assert engine.get_variable("b") == Value.boolean(True)
    assert engine.get_variable("c") == Value.boolean(False)
