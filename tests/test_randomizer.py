import random

import pytest

from factories import make_template, randomized_template
from attempt_engine.services.randomizer import authored_order, randomize_sections


class NoShuffleRandom(random.Random):
    def shuffle(self, x):
        raise AssertionError("0/1개 항목은 섞지 않아야 한다")


def _layout(planned):
    return [(p.section.title, [q.question_ref for q in p.questions]) for p in planned]


def test_no_randomization_keeps_authored_order():
    template = make_template(
        "t",
        [("A", [("q1", 1), ("q2", 1), ("q3", 1)], False), ("B", [("q4", 1), ("q5", 1)], False)],
    )
    planned = randomize_sections(template.sections, False, random.Random(1))
    assert _layout(planned) == [("A", ["q1", "q2", "q3"]), ("B", ["q4", "q5"])]


def test_authored_order_follows_order_field():
    template = make_template("t", [("A", [("q1", 1)], False), ("B", [("q2", 1)], False)])
    template.sections[0].order = 5
    assert [s.title for s in authored_order(template.sections)] == ["B", "A"]


def test_randomization_is_a_permutation_within_each_section():
    template = randomized_template()
    before = template.model_dump()

    for seed in range(20):
        planned = randomize_sections(template.sections, True, random.Random(seed))
        layout = dict(_layout(planned))
        assert sorted(layout) == ["Section A", "Section B"]
        assert sorted(layout["Section A"]) == ["q1", "q2", "q3"]
        assert sorted(layout["Section B"]) == ["q4", "q5", "q6"]

    assert template.model_dump() == before


def test_randomization_produces_different_orders_across_attempts():
    template = randomized_template()
    layouts = {
        str(_layout(randomize_sections(template.sections, True, random.Random(seed))))
        for seed in range(20)
    }
    assert len(layouts) > 1


def test_unrandomized_section_keeps_order_while_sibling_is_shuffled():
    template = make_template(
        "t",
        [("Fixed", [("q1", 1), ("q2", 1), ("q3", 1)], False),
         ("Mixed", [("q4", 1), ("q5", 1), ("q6", 1)], True)],
    )
    for seed in range(10):
        layout = dict(_layout(randomize_sections(template.sections, False, random.Random(seed))))
        assert layout["Fixed"] == ["q1", "q2", "q3"]


def test_empty_and_single_element_short_circuit():
    template = make_template(
        "t",
        [("Only", [("q1", 1)], True), ("Empty", [], True)],
    )
    single = make_template("t2", [("Solo", [("q1", 1), ("q2", 1)], False)])

    planned = randomize_sections(template.sections[:1], True, NoShuffleRandom())
    assert _layout(planned) == [("Only", ["q1"])]

    planned = randomize_sections(template.sections[1:], True, NoShuffleRandom())
    assert _layout(planned) == [("Empty", [])]

    assert randomize_sections([], True, NoShuffleRandom()) == []
    assert len(randomize_sections(single.sections, True, NoShuffleRandom())) == 1


def test_default_rng_is_used_when_none_given():
    planned = randomize_sections(randomized_template().sections, True)
    assert len(planned) == 2
