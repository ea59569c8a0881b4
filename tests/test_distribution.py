"""
Tests for distribute_rating
"""
import pytest

from clinicportal.domain.feedback.distribution import distribute_rating, round_half_up


def _by_id(allocations):
    return {a.practitioner_id: a for a in allocations}


def test_lead_and_called_out_split():
    """Lead gets +20%, called-out +10%, then everything is normalized back to the total"""
    allocations = distribute_rating(
        5,
        ["A", "B", "C"],
        lead_practitioner_id="A",
        called_out_practitioner_id="B",
        practitioner_names={"A": "Ann", "B": "Bob", "C": "Cy"},
    )
    result = _by_id(allocations)

    assert result["A"].rating_points == 2.05
    assert result["B"].rating_points == 1.67
    assert result["C"].rating_points == 1.28
    assert [result[k].rating_percentage for k in "ABC"] == [41.0, 33.4, 25.6]

    assert result["A"].is_lead_practitioner and not result["A"].is_called_out
    assert result["B"].is_called_out and not result["B"].is_lead_practitioner
    assert result["A"].bonus_applied == 1.0
    assert result["B"].bonus_applied == 0.5
    assert result["C"].bonus_applied == 0.0
    assert result["A"].practitioner_name == "Ann"


def test_single_practitioner_gets_everything():
    allocations = distribute_rating(4, [7], lead_practitioner_id=7)

    assert len(allocations) == 1
    assert allocations[0].rating_points == 4.0
    assert allocations[0].rating_percentage == 100.0
    assert allocations[0].is_lead_practitioner


def test_no_bonuses_splits_evenly():
    allocations = distribute_rating(3, [1, 2, 3])

    assert [a.rating_points for a in allocations] == [1.0, 1.0, 1.0]
    assert not any(a.is_lead_practitioner or a.is_called_out for a in allocations)


def test_same_person_lead_and_called_out_only_gets_lead_bonus():
    allocations = _by_id(distribute_rating(5, [1, 2], lead_practitioner_id=1, called_out_practitioner_id=1))

    assert allocations[1].is_lead_practitioner
    assert not allocations[1].is_called_out
    assert allocations[1].bonus_applied == 1.0
    # 3.5 / 6 and 2.5 / 6 of the total
    assert allocations[1].rating_points == 2.92
    assert allocations[2].rating_points == 2.08


@pytest.mark.parametrize(
    "total, ids, lead, called_out",
    [
        (5, [1, 2, 3], 1, 2),
        (4.5, [1, 2, 3], 3, None),
        (1, [1, 2, 3, 4, 5, 6, 7], 2, 5),
        (3.7, [10, 20, 30], None, 30),
        (2, [1, 2, 3, 4, 5, 6], 6, 1),
    ],
)
def test_points_and_percentages_add_up_within_a_cent(total, ids, lead, called_out):
    allocations = distribute_rating(total, ids, lead_practitioner_id=lead, called_out_practitioner_id=called_out)

    assert abs(round(sum(a.rating_points for a in allocations) - total, 2)) <= 0.01
    assert abs(round(sum(a.rating_percentage for a in allocations) - 100, 2)) <= 0.01
    assert all(a.rating_points >= 0 for a in allocations)


def test_identical_roles_get_identical_shares():
    """A cent of rounding drift is left alone rather than taken from one practitioner"""
    allocations = distribute_rating(5, [1, 2, 3])

    assert [a.rating_points for a in allocations] == [1.67, 1.67, 1.67]
    # 3 x 33.4 overshoots 100 by 0.2, so the percentages alone get corrected
    assert [a.rating_percentage for a in allocations] == [33.2, 33.4, 33.4]


def test_even_split_percentages_are_plain_rounded():
    allocations = distribute_rating(3, [1, 2, 3])

    assert [a.rating_percentage for a in allocations] == [33.33, 33.33, 33.33]


def test_large_drift_is_moved_onto_one_share():
    """Thirty shares of 0.03 miss a total of 1 by 0.10, beyond the one-cent tolerance"""
    allocations = distribute_rating(1, list(range(1, 31)))

    assert round(sum(a.rating_points for a in allocations), 2) == 1.0
    assert sorted(a.rating_points for a in allocations)[-1] == 0.13
    assert round(sum(a.rating_percentage for a in allocations), 2) == 100.0


def test_duplicate_ids_are_rated_once():
    allocations = distribute_rating(4, [1, 1, 2])

    assert [a.practitioner_id for a in allocations] == [1, 2]
    assert [a.rating_points for a in allocations] == [2.0, 2.0]


def test_unknown_practitioners_are_skipped():
    """Ids without a name are dropped; the remaining shares still add up to the total"""
    allocations = distribute_rating(5, [1, 2, 3], practitioner_names={1: "Ann", 2: "Bob"})

    assert [a.practitioner_id for a in allocations] == [1, 2]
    assert [a.rating_points for a in allocations] == [2.5, 2.5]


def test_lead_not_on_appointment_gets_no_bonus():
    allocations = distribute_rating(4, [1, 2], lead_practitioner_id=99)

    assert [a.rating_points for a in allocations] == [2.0, 2.0]
    assert not any(a.is_lead_practitioner for a in allocations)


def test_empty_practitioner_list_returns_nothing():
    assert distribute_rating(5, []) == []


@pytest.mark.parametrize("total", [0, -1])
def test_non_positive_total_is_rejected(total):
    with pytest.raises(ValueError, match="must be positive"):
        distribute_rating(total, [1, 2])


def test_round_half_up():
    assert round_half_up(2.675) == 2.68
    assert round_half_up(0.125) == 0.13
    assert round_half_up(2.5, 0) == 3.0
