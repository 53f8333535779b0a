"""Tests for the draw engine in santadraw.derangement."""

import random

import pytest

from santadraw.derangement import (
    DerangementGenerationError,
    DuplicateParticipantError,
    InsufficientParticipantsError,
    Participant,
    generate,
    restricted_shuffle,
    uniform_shuffle,
)


def _people(*names):
    return [Participant(id=n, name=n) for n in names]


def _assert_valid(result, participants):
    ids = {p.id for p in participants}
    givers = [a.giver.id for a in result.assignments]
    receivers = [a.receiver.id for a in result.assignments]

    assert len(result.assignments) == len(participants)
    assert set(givers) == ids and len(givers) == len(ids)
    assert set(receivers) == ids and len(receivers) == len(ids)
    assert all(g != r for g, r in zip(givers, receivers))


@pytest.mark.parametrize("count", [0, 1, 2])
def test_too_few_participants_rejected(count):
    people = _people(*"ABCDEFG"[:count])

    with pytest.raises(InsufficientParticipantsError) as exc:
        generate(people)

    assert exc.value.count == count
    assert exc.value.min_size == 3


def test_custom_minimum():
    with pytest.raises(InsufficientParticipantsError):
        generate(_people("A", "B", "C", "D"), min_size=5)


def test_three_participants_always_form_a_three_cycle():
    people = _people("A", "B", "C")
    valid = [
        {"A": "B", "B": "C", "C": "A"},
        {"A": "C", "C": "B", "B": "A"},
    ]

    for seed in range(200):
        result = generate(people, rng=seed)
        _assert_valid(result, people)
        assert result.as_mapping() in valid


def test_giver_order_follows_input():
    people = _people("D", "A", "C", "B")
    result = generate(people, rng=3)
    assert [a.giver.id for a in result.assignments] == ["D", "A", "C", "B"]


def test_input_is_not_mutated():
    people = _people("A", "B", "C", "D", "E")
    snapshot = list(people)

    generate(people, rng=11)

    assert people == snapshot


def test_accepts_tuple_input():
    people = tuple(_people("A", "B", "C"))
    _assert_valid(generate(people, rng=1), people)


def test_same_seed_gives_same_pairs():
    people = _people(*"ABCDEFGH")
    assert generate(people, rng=42).as_pairs() == generate(people, rng=42).as_pairs()


def test_random_instance_is_used():
    people = _people(*"ABCDEFGH")
    first = generate(people, rng=random.Random(5)).as_pairs()
    second = generate(people, rng=random.Random(5)).as_pairs()
    assert first == second


def test_repeated_calls_vary():
    people = _people(*"ABCDEFGH")
    seen = {tuple(generate(people).as_pairs()) for _ in range(30)}
    assert len(seen) > 1


def test_result_has_seed_and_timestamps():
    people = _people("A", "B", "C", "D")
    result = generate(people, rng=2)

    assert result.seed
    assert result.attempts == 1
    assert all(a.created_at.tzinfo is not None for a in result.assignments)
    assert generate(people, rng=2).seed != result.seed


def test_duplicate_ids_rejected():
    people = [Participant(id=1, name="Ann"), Participant(id=2, name="Bo"), Participant(id=1, name="Ann again")]
    with pytest.raises(DuplicateParticipantError):
        generate(people)


def test_retry_bound_is_exact_when_shuffle_always_fails():
    calls = []

    def identity_shuffle(seq, rng):
        calls.append(list(seq))

    with pytest.raises(DerangementGenerationError) as exc:
        generate(_people("A", "B", "C", "D"), max_attempts=10, shuffle=identity_shuffle)

    assert len(calls) == 10
    assert exc.value.attempts == 10


def test_retry_recovers_after_rejected_attempts():
    attempts = {"n": 0}

    def flaky_shuffle(seq, rng):
        attempts["n"] += 1
        if attempts["n"] >= 3:
            restricted_shuffle(seq, rng)

    people = _people("A", "B", "C", "D")
    result = generate(people, shuffle=flaky_shuffle, rng=0)

    _assert_valid(result, people)
    assert result.attempts == 3


def test_each_attempt_shuffles_a_fresh_copy():
    seen = []

    def recording_shuffle(seq, rng):
        seen.append([p.id for p in seq])

    with pytest.raises(DerangementGenerationError):
        generate(_people("A", "B", "C"), max_attempts=3, shuffle=recording_shuffle)

    assert seen == [["A", "B", "C"]] * 3


def test_restricted_shuffle_leaves_no_fixed_points():
    rng = random.Random(9)
    for n in range(2, 30):
        items = list(range(n))
        restricted_shuffle(items, rng)
        assert sorted(items) == list(range(n))
        assert all(i != v for i, v in enumerate(items))


def test_restricted_shuffle_produces_single_cycle():
    rng = random.Random(4)
    items = list(range(12))
    restricted_shuffle(items, rng)

    # Follow the permutation from 0; a single cycle visits every index.
    visited, i = set(), 0
    while i not in visited:
        visited.add(i)
        i = items[i]
    assert len(visited) == 12


def test_uniform_strategy_reaches_two_cycle_derangements():
    people = _people("A", "B", "C", "D")
    rng = random.Random(123)
    mappings = set()
    for _ in range(300):
        try:
            result = generate(people, shuffle=uniform_shuffle, rng=rng, max_attempts=50)
        except DerangementGenerationError:
            continue
        _assert_valid(result, people)
        mappings.add(tuple(sorted(result.as_mapping().items())))

    swaps = (("A", "B"), ("B", "A"), ("C", "D"), ("D", "C"))
    assert swaps in mappings
    assert len(mappings) == 9


def test_fifty_participants_ten_thousand_draws():
    people = [Participant(id=i, name=f"P{i}") for i in range(50)]
    rng = random.Random(2026)
    exhausted = 0

    for _ in range(10_000):
        try:
            result = generate(people, rng=rng)
        except DerangementGenerationError:
            exhausted += 1
            continue
        pairs = result.as_pairs()
        assert len(pairs) == 50
        assert all(g != r for g, r in pairs)
        assert len({r for _, r in pairs}) == 50

    assert exhausted == 0
