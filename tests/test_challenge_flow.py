from __future__ import annotations

import threading
from collections import Counter
from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest

from bagtag_core import (
    ChallengeCommit,
    ChallengeRecord,
    InMemoryGateway,
    InMemoryLedger,
    LadderSettings,
    PersistenceError,
    Player,
    StaleTagError,
    SubmissionContext,
    TagChange,
    UntaggedParticipantError,
    ValidationError,
    build_history_entries,
    build_leaderboard,
    find_duplicate_tags,
    leaderboard_by_division,
    preview_challenge,
    submit_challenge,
)

NOW = datetime(2026, 5, 2, 18, 0, tzinfo=timezone.utc)


def _players():
    return [
        Player("ann", "Ann", "Mixed", "Active", 10),
        Player("ben", "Ben", "Mixed", "Active", 2),
        Player("cal", "Cal", "Mixed", "Active", 5),
        Player("dee", "Dee", "Mixed", "Active", 7),
    ]


def _direct(winner, loser, winner_id=None):
    return {
        "challenge_type": "Direct",
        "division": "Mixed",
        "date": "2026-05-02T14:30:00",
        "participants": [{"player_id": winner}, {"player_id": loser}],
        "winner_id": winner_id or winner,
    }


def _group(*ids):
    return {
        "challenge_type": "Group",
        "division": "Mixed",
        "date": "2026-05-02T14:30:00",
        "notes": "Saturday doubles course",
        "participants": [
            {"player_id": pid, "finish_position": i} for i, pid in enumerate(ids, 1)
        ],
    }


def _tags(gateway):
    return {p.player_id: p.tag for p in gateway.players()}


def _submit(gateway, payload, **kwargs):
    kwargs.setdefault("clock", lambda: NOW)
    return submit_challenge(payload, gateway, **kwargs)


@pytest.fixture
def gateway():
    return InMemoryGateway(_players())


def test_group_submission_moves_tags_and_records_history(gateway):
    receipt = _submit(gateway, _group("cal", "ben", "ann"), context=SubmissionContext("admin"))

    assert _tags(gateway) == {"ann": 10, "ben": 5, "cal": 2, "dee": 7}
    assert receipt.attempts == 1
    assert receipt.challenge.recorded_by == "admin"
    assert receipt.challenge.notes == "Saturday doubles course"
    assert [(h.player_id, h.old_tag, h.new_tag) for h in receipt.history] == [
        ("cal", 5, 2),
        ("ben", 2, 5),
    ]
    assert all(h.changed_at == NOW for h in receipt.history)

    rows = gateway.participants_for(receipt.challenge.challenge_id)
    assert [(r.player_id, r.tag_before, r.tag_after) for r in rows] == [
        ("cal", 5, 2),
        ("ben", 2, 5),
        ("ann", 10, 10),
    ]
    assert len(gateway.ledger) == 2


def test_direct_noop_still_records_challenge(gateway):
    receipt = _submit(gateway, _direct("ben", "cal"))
    assert receipt.result.is_noop
    assert receipt.history == ()
    assert _tags(gateway)["ben"] == 2
    assert len(gateway.challenges()) == 1
    assert len(gateway.participants_for(receipt.challenge.challenge_id)) == 2
    assert len(gateway.ledger) == 0


def test_direct_upset_swaps_tags(gateway):
    _submit(gateway, _direct("dee", "ben"))
    assert _tags(gateway)["dee"] == 2
    assert _tags(gateway)["ben"] == 7
    assert [e.delta for e in gateway.ledger.entries()] == [5, -5]


def test_invalid_submission_writes_nothing(gateway):
    with pytest.raises(ValidationError):
        _submit(gateway, _direct("ben", "ben"))
    assert gateway.challenges() == []
    assert _tags(gateway) == {p.player_id: p.tag for p in _players()}


def test_untagged_player_rejected_unless_excluded():
    players = _players() + [Player("eve", "Eve", "Mixed", "Active", None)]
    gw = InMemoryGateway(players)
    with pytest.raises(UntaggedParticipantError):
        _submit(gw, _group("eve", "cal", "ben"))
    assert gw.challenges() == []

    settings = LadderSettings(untagged_policy="exclude")
    receipt = _submit(gw, _group("eve", "cal", "ben"), settings=settings)
    assert _tags(gw)["eve"] is None
    assert _tags(gw)["cal"] == 2
    assert _tags(gw)["ben"] == 5
    assert receipt.participants[0].tag_after is None


class _RacingGateway(InMemoryGateway):
    """Lets another writer move tags right after each read."""

    def __init__(self, players, races):
        super().__init__(players)
        self.races = races

    def load_players(self, player_ids):
        snapshot = super().load_players(player_ids)
        if self.races:
            self.races -= 1
            ben, cal = self._players["ben"], self._players["cal"]
            self._players["ben"] = replace(ben, tag=cal.tag)
            self._players["cal"] = replace(cal, tag=ben.tag)
        return snapshot


def test_stale_tags_are_recomputed_and_resubmitted():
    gw = _RacingGateway(_players(), races=1)
    receipt = _submit(gw, _direct("ann", "ben"))
    assert receipt.attempts == 2
    # Second read sees ben on 5, so ann (10) takes 5
    assert _tags(gw) == {"ann": 5, "ben": 10, "cal": 2, "dee": 7}
    assert find_duplicate_tags(gw.players()) == {}


def test_stale_tags_give_up_after_max_attempts():
    gw = _RacingGateway(_players(), races=10)
    with pytest.raises(StaleTagError):
        _submit(gw, _direct("ann", "ben"), settings=LadderSettings(max_commit_attempts=2))
    assert gw.challenges() == []
    assert len(gw.ledger) == 0


class _BrokenLedger(InMemoryLedger):
    def append_many(self, entries):
        raise OSError("disk full")


def test_failed_history_write_rolls_back_everything():
    gw = InMemoryGateway(_players(), ledger=_BrokenLedger())
    with pytest.raises(PersistenceError):
        _submit(gw, _direct("dee", "ben"))
    assert _tags(gw) == {p.player_id: p.tag for p in _players()}
    assert gw.challenges() == []


def test_duplicate_challenge_id_is_surfaced(gateway):
    _submit(gateway, _direct("ben", "cal"), id_factory=lambda: "c-1")
    with pytest.raises(PersistenceError) as exc:
        _submit(gateway, _direct("cal", "dee"), id_factory=lambda: "c-1")
    assert not isinstance(exc.value, StaleTagError)
    assert _tags(gateway)["cal"] == 5


def test_commit_refuses_to_duplicate_an_active_tag(gateway):
    challenge = ChallengeRecord("c-x", "Direct", "Mixed", NOW)
    commit = ChallengeCommit(
        challenge=challenge,
        participants=(),
        changes=(TagChange("ann", 10, 7),),
        history=(),
        expected_tags={"ann": 10},
    )
    with pytest.raises(PersistenceError):
        gateway.commit(commit)
    assert _tags(gateway)["ann"] == 10


def test_preview_does_not_commit(gateway):
    result = preview_challenge(_group("ann", "dee"), gateway.players())
    assert [(c.player_id, c.new_tag) for c in result.changes] == [("ann", 7), ("dee", 10)]
    assert _tags(gateway)["ann"] == 10
    assert gateway.challenges() == []


def test_ledger_reads_newest_first_with_insertion_ties():
    ledger = InMemoryLedger()
    earlier = NOW - timedelta(days=1)
    ledger.append_many(
        build_history_entries("c1", [TagChange("a", 4, 1), TagChange("b", 1, 4)], earlier)
    )
    ledger.append_many(build_history_entries("c2", [TagChange("c", 9, 3)], NOW))

    assert [e.player_id for e in ledger.entries()] == ["c", "a", "b"]
    assert [e.player_id for e in ledger.entries(limit=2)] == ["c", "a"]
    assert [e.challenge_id for e in ledger.for_player("b")] == ["c1"]
    assert ledger.entries()[0].direction == "improved"
    assert ledger.entries()[2].direction == "worsened"


def test_history_skips_unchanged_rows():
    assert build_history_entries("c1", [TagChange("a", 3, 3)], NOW) == ()


def test_leaderboard_orders_by_tag_and_hides_inactive():
    players = [
        Player("a", "Ann", "Mixed", "Active", 3),
        Player("b", "Ben", "Mixed", "Active", None),
        Player("c", "Cal", "Senior", "Active", 1),
        Player("d", "Dee", "Mixed", "Inactive", 2),
    ]
    assert [p.player_id for p in build_leaderboard(players)] == ["c", "a", "b"]
    assert [p.player_id for p in build_leaderboard(players, "Mixed")] == ["a", "b"]
    grouped = leaderboard_by_division(players)
    assert list(grouped) == ["Mixed", "Senior"]


def test_find_duplicate_tags_ignores_inactive():
    players = [
        Player("a", "Ann", "Mixed", "Active", 3),
        Player("b", "Ben", "Mixed", "Active", 3),
        Player("c", "Cal", "Mixed", "Inactive", 4),
        Player("d", "Dee", "Mixed", "Active", 4),
    ]
    assert find_duplicate_tags(players) == {3: ["a", "b"]}


def test_player_from_row():
    player = Player.from_row(
        {
            "player_id": 12,
            "player_name": "Ann",
            "player_division": "Female",
            "player_status": "Active",
            "bag_tag": 4,
        }
    )
    assert player == Player("12", "Ann", "Female", "Active", 4)
    assert Player.from_row({"player_id": "x", "bag_tag": ""}).tag is None
    assert Player.from_row({"player_id": "x", "player_status": "Inactive"}).is_active is False
    assert Player.from_row(player.to_row()) == player
    with pytest.raises(ValidationError):
        Player.from_row({"player_id": "x", "bag_tag": 0})
    with pytest.raises(ValidationError):
        Player.from_row({"player_name": "nobody"})


def test_challenges_list_with_naive_and_aware_dates(gateway):
    naive = _direct("ben", "cal")
    naive["date"] = "2026-05-02T14:30:00"
    aware = _direct("cal", "dee")
    aware["date"] = "2026-05-03T09:00:00Z"
    first = _submit(gateway, naive)
    second = _submit(gateway, aware)

    listed = gateway.challenges()
    assert [c.challenge_id for c in listed] == [
        second.challenge.challenge_id,
        first.challenge.challenge_id,
    ]
    assert all(c.challenge_date.tzinfo is not None for c in listed)


def test_concurrent_submissions_keep_tags_unique(gateway):
    payloads = [
        _direct("dee", "ben"),
        _direct("ann", "cal"),
        _direct("cal", "dee"),
        _direct("ann", "ben"),
        _group("ben", "dee", "ann", "cal"),
    ]
    settings = LadderSettings(max_commit_attempts=len(payloads) + 1)
    barrier = threading.Barrier(len(payloads))
    receipts = []
    errors = []

    def run(payload):
        barrier.wait()
        try:
            receipts.append(_submit(gateway, payload, settings=settings))
        except Exception as e:
            errors.append(e)

    threads = [threading.Thread(target=run, args=(p,)) for p in payloads]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=10)

    assert errors == []
    assert len(receipts) == len(payloads)
    assert len(gateway.challenges()) == len(payloads)
    assert find_duplicate_tags(gateway.players()) == {}
    assert Counter(_tags(gateway).values()) == Counter(p.tag for p in _players())
