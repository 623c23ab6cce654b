from datetime import date, timedelta

import pytest

import models
from conftest import local
from errors import InvalidTransitionError, NotFoundError, ValidationError
from vacation import (
    VacationState,
    compute_roster,
    compute_vacation_status,
    last_vacation,
    pending_requests,
    record_past_vacation,
    respond_to_request,
    submit_request,
    vacation_state,
)


# --- Motor de aquisição ---

def test_end_to_end_scenario():
    status = compute_vacation_status(date(2022, 1, 10), local(2024, 2, 1, 12, 0))
    assert status.cycles_completed == 2
    assert status.days_available == 60
    assert status.next_acquisition_date == date(2025, 1, 10)
    assert status.days_until_next_acquisition == 344
    assert status.forfeiture_date == date(2026, 1, 10)
    assert status.days_until_forfeiture == 709
    assert status.state == VacationState.OK
    assert status.status_text == "Dentro do prazo (709 dias restantes)"


def test_first_year_has_no_available_days():
    status = compute_vacation_status(date(2023, 2, 10), local(2024, 2, 1, 11, 0))
    assert status.cycles_completed == 0
    assert status.days_available == 0
    assert status.next_acquisition_date == date(2024, 2, 10)
    assert status.days_until_next_acquisition == 9
    assert status.forfeiture_date == date(2025, 2, 10)


def test_future_hire_date_is_not_negative():
    status = compute_vacation_status(date(2024, 3, 1), local(2024, 2, 1, 11, 0))
    assert status.cycles_completed == 0
    assert status.days_available == 0


def test_missing_hire_date_reports_no_data():
    status = compute_vacation_status(None, local(2024, 2, 1, 11, 0))
    assert status.state == VacationState.NO_DATA
    assert status.status_text == "Sem dados"
    assert status.cycles_completed is None
    assert status.forfeiture_date is None


@pytest.mark.parametrize("days,state,text", [
    (31, VacationState.OK, "Dentro do prazo (31 dias restantes)"),
    (30, VacationState.WARNING, "⚠️ Férias vencem em 30 dias"),
    (0, VacationState.WARNING, "⚠️ Férias vencem em 0 dias"),
    (-1, VacationState.OVERDUE, "⚠️ Férias vencidas há 1 dias"),
])
def test_status_boundaries(days, state, text):
    assert vacation_state(days) == (state, text)


def test_cycles_monotonic_and_multiple_of_thirty():
    hire = date(2019, 6, 15)
    previous = 0
    for offset in range(0, 2000, 7):
        status = compute_vacation_status(hire, local(2019, 6, 15, 10, 0) + timedelta(days=offset))
        assert status.cycles_completed >= previous
        assert status.days_available == status.cycles_completed * 30
        previous = status.cycles_completed
    assert previous == 5


def test_roster_isolates_malformed_records():
    good = models.Employee(id=1, name="Ana", role=models.ROLE_RH, hire_date=date(2022, 1, 10))
    broken = models.Employee(id=2, name="Legado", role=models.ROLE_RH)
    broken.hire_date = "10/01/2022"
    empty = models.Employee(id=3, name="Sem data", role=models.ROLE_RH, hire_date=None)

    roster = compute_roster([good, broken, empty], local(2024, 2, 1, 12, 0))

    states = {employee.id: status.state for employee, status in roster}
    assert states == {1: VacationState.OK, 2: VacationState.INVALID, 3: VacationState.NO_DATA}


# --- Ciclo de vida das solicitações ---

def test_half_vacation_request(db, make_employee):
    employee = make_employee()
    request = submit_request(db, employee.id, "15em15", date(2025, 3, 1))
    assert request.day_count == 15
    assert request.end_date == date(2025, 3, 15)
    assert request.status == "pending"


def test_full_vacation_request(db, make_employee):
    employee = make_employee()
    request = submit_request(db, employee.id, "30", date(2025, 3, 1))
    assert request.day_count == 30
    assert request.end_date == date(2025, 3, 30)


@pytest.mark.parametrize("vacation_type,start", [
    ("30", None),
    ("20", date(2025, 3, 1)),
    (None, date(2025, 3, 1)),
])
def test_invalid_request_writes_nothing(db, make_employee, vacation_type, start):
    employee = make_employee()
    with pytest.raises(ValidationError):
        submit_request(db, employee.id, vacation_type, start)
    assert db.query(models.VacationRequest).count() == 0


def test_unknown_employee(db):
    with pytest.raises(NotFoundError):
        submit_request(db, 999, "30", date(2025, 3, 1))
    assert db.query(models.VacationRequest).count() == 0


def test_duplicate_payloads_create_independent_requests(db, make_employee):
    employee = make_employee()
    first = submit_request(db, employee.id, "30", date(2025, 3, 1))
    second = submit_request(db, employee.id, "30", date(2025, 3, 1))
    assert first.id != second.id
    assert len(pending_requests(db)) == 2


def test_approval_updates_last_vacation_and_is_terminal(db, make_employee):
    employee = make_employee()
    request = submit_request(db, employee.id, "15em15", date(2025, 3, 1))

    approved = respond_to_request(db, request.id, "approve")
    assert approved.status == "approved"
    assert approved.responded_at is not None
    db.refresh(employee)
    assert employee.has_taken_vacation
    assert employee.last_vacation_type == "15em15"
    assert employee.last_vacation_end == date(2025, 3, 15)

    with pytest.raises(InvalidTransitionError):
        respond_to_request(db, request.id, "reject")
    db.refresh(request)
    assert request.status == "approved"


def test_rejection_leaves_employee_untouched(db, make_employee):
    employee = make_employee()
    request = submit_request(db, employee.id, "30", date(2025, 3, 1))
    assert respond_to_request(db, request.id, "reject").status == "rejected"
    db.refresh(employee)
    assert not employee.has_taken_vacation
    assert pending_requests(db) == []


def test_respond_validation(db, make_employee):
    employee = make_employee()
    request = submit_request(db, employee.id, "30", date(2025, 3, 1))
    with pytest.raises(ValidationError):
        respond_to_request(db, request.id, "maybe")
    with pytest.raises(NotFoundError):
        respond_to_request(db, 999, "approve")


def test_respond_after_employee_deleted(db, make_employee):
    employee = make_employee()
    request = submit_request(db, employee.id, "30", date(2025, 3, 1))
    db.delete(employee); db.commit()
    assert respond_to_request(db, request.id, "approve").status == "approved"


def test_retroactive_grant(db, make_employee):
    employee = make_employee()
    request = record_past_vacation(db, employee.id, "30", date(2024, 1, 2))
    assert request.status == "approved"
    assert request.end_date == date(2024, 1, 31)
    db.refresh(employee)
    assert employee.last_vacation_start == date(2024, 1, 2)
    assert last_vacation(db, employee.id).id == request.id
    assert pending_requests(db) == []


def test_retroactive_grant_unknown_employee(db):
    with pytest.raises(NotFoundError):
        record_past_vacation(db, 42, "30", date(2024, 1, 2))
    assert db.query(models.VacationRequest).count() == 0
