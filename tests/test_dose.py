import pytest
from datetime import date

from ISE.bs_calendar import BSDate
from ISE.dose import UNRESOLVED, Dose, DoseStatus, Schedule


@pytest.fixture
def bcg(converter) -> Dose:
    return Dose.pending("BCG", converter.dual_from_bs("2080-01-01"))


def test_pending_dose_mirrors_dates(bcg):
    assert bcg.scheduled_date_ad == date(2023, 4, 14)
    assert bcg.scheduled_date_bs == BSDate(2080, 1, 1)
    assert bcg.status is DoseStatus.PENDING
    assert bcg.given_date_ad is None and bcg.given_date_bs is None


def test_administered_sets_both_given_dates(bcg, converter):
    given = bcg.administered(converter.dual(date(2023, 4, 20)))
    assert given.is_given
    assert given.given_date_bs == converter.to_bs(date(2023, 4, 20))
    assert given.effective_date_ad == date(2023, 4, 20)
    # original untouched
    assert not bcg.is_given


def test_given_status_requires_given_dates():
    with pytest.raises(ValueError):
        Dose("BCG", date(2023, 4, 14), BSDate(2080, 1, 1), status=DoseStatus.GIVEN)


def test_given_dates_require_given_status():
    with pytest.raises(ValueError):
        Dose("BCG", date(2023, 4, 14), BSDate(2080, 1, 1), date(2023, 4, 14), BSDate(2080, 1, 1))


def test_half_given_date_is_rejected():
    with pytest.raises(ValueError):
        Dose("BCG", date(2023, 4, 14), BSDate(2080, 1, 1), given_date_ad=date(2023, 4, 14))


def test_scheduled_dates_resolve_together():
    with pytest.raises(ValueError):
        Dose("TD2", UNRESOLVED, BSDate(2080, 1, 1))


def test_unresolved_dose():
    dose = Dose.unresolved("TD2")
    assert not dose.is_resolved
    assert str(dose.scheduled_date_bs) == "N/A"
    assert not dose.is_overdue(date(2030, 1, 1))


def test_status_from_label():
    assert DoseStatus.from_label(" missed ") is DoseStatus.MISSED
    with pytest.raises(ValueError):
        DoseStatus.from_label("skipped")


def test_record_round_trip(bcg, converter):
    given = bcg.administered(converter.dual(date(2023, 4, 20)))
    record = given.to_record()
    assert record == {
        "name": "BCG",
        "scheduled_date_ad": "2023-04-14",
        "scheduled_date_bs": "2080-01-01",
        "given_date_ad": "2023-04-20",
        "given_date_bs": "2080-01-07",
        "status": "Given",
    }
    assert Dose.from_record(record, converter) == given

    unresolved = Dose.unresolved("TD1").to_record()
    assert unresolved["scheduled_date_bs"] == "N/A"
    assert Dose.from_record(unresolved, converter) == Dose.unresolved("TD1")


def test_schedule_rejects_duplicate_names(bcg):
    with pytest.raises(ValueError):
        Schedule((bcg, bcg))


def test_schedule_lookup(bcg):
    schedule = Schedule([bcg, Dose.unresolved("TD1")])
    assert schedule.names == ("BCG", "TD1")
    assert "BCG" in schedule
    assert schedule.get("OPV-1") is None
    with pytest.raises(KeyError):
        schedule["OPV-1"]


def test_replace_dose_returns_new_schedule(bcg, converter):
    schedule = Schedule((bcg,))
    updated = schedule.replace_dose(bcg.administered(converter.dual(date(2023, 4, 14))))
    assert updated["BCG"].is_given
    assert not schedule["BCG"].is_given
    with pytest.raises(KeyError):
        schedule.replace_dose(Dose.unresolved("OPV-1"))


def test_as_of_marks_overdue_pending_doses_missed(bcg):
    schedule = Schedule((bcg, Dose.unresolved("TD1")))
    view = schedule.as_of(date(2023, 5, 1))
    assert view["BCG"].status is DoseStatus.MISSED
    assert view["TD1"].status is DoseStatus.PENDING
    # dates never move
    assert view["BCG"].scheduled_date_ad == bcg.scheduled_date_ad
    # and the view can be rolled back
    assert view.as_of(date(2023, 4, 1))["BCG"].status is DoseStatus.PENDING
    # on the scheduled day itself the dose is still due, not missed
    assert schedule.as_of(date(2023, 4, 14))["BCG"].status is DoseStatus.PENDING


def test_all_given(bcg, converter):
    schedule = Schedule((bcg,))
    assert not schedule.all_given(["BCG"])
    done = schedule.replace_dose(bcg.administered(converter.dual(date(2023, 4, 14))))
    assert done.all_given(["BCG"])
    assert not done.all_given(["BCG", "MR-2"])
    assert done.has_given
