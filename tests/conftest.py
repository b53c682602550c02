import pytest
from datetime import date

from ISE.bs_calendar import CalendarConverter, DualDate
from ISE.scheduler import DoseScheduler
from ISE.template import Regimen, child_template, maternal_td_template, rabies_template


@pytest.fixture(scope="session")
def converter() -> CalendarConverter:
    return CalendarConverter()


@pytest.fixture(scope="session")
def scheduler(converter: CalendarConverter) -> DoseScheduler:
    return DoseScheduler(converter)


@pytest.fixture(scope="session")
def anchor(converter: CalendarConverter) -> DualDate:
    """
    BS 2080-01-01, which is AD 2023-04-14.
    """
    return converter.dual_from_bs("2080-01-01")


@pytest.fixture(scope="session")
def today() -> date:
    # well after every dose planned from `anchor`
    return date(2025, 1, 1)


@pytest.fixture(scope="session")
def child():
    return child_template()


@pytest.fixture(scope="session")
def maternal():
    return maternal_td_template()


@pytest.fixture(scope="session")
def rabies_id():
    return rabies_template(Regimen.INTRADERMAL)


@pytest.fixture(scope="session")
def rabies_im():
    return rabies_template(Regimen.INTRAMUSCULAR)
