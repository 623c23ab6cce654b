import logging
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Dict, Iterable, List, Optional

from sqlalchemy import String, type_coerce
from sqlalchemy.orm import Session

import models
from clock import add_years, day_difference, days_from, local_now
from errors import InvalidTransitionError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)

CYCLE_DAYS = 365
DAYS_PER_CYCLE = 30
WARNING_DAYS = 30
WARNING_MARKER = "⚠️"

# Tipos de férias: um bloco de 30 dias ou duas metades de 15
VACATION_TYPES: Dict[str, int] = {
    "30": 30,
    "15em15": 15,
}

STATUS_PENDING = "pending"
STATUS_APPROVED = "approved"
STATUS_REJECTED = "rejected"
DECISIONS = {"approve": STATUS_APPROVED, "reject": STATUS_REJECTED}


class VacationState(str, Enum):
    OK = "ok"
    WARNING = "warning"
    OVERDUE = "overdue"
    NO_DATA = "no_data"
    INVALID = "invalid"


@dataclass(frozen=True)
class VacationStatus:
    hire_date: Optional[date]
    state: VacationState
    status_text: str
    cycles_completed: Optional[int] = None
    days_available: Optional[int] = None
    next_acquisition_date: Optional[date] = None
    days_until_next_acquisition: Optional[int] = None
    forfeiture_date: Optional[date] = None
    days_until_forfeiture: Optional[int] = None


# --- MOTOR DE AQUISIÇÃO DE FÉRIAS ---

def vacation_state(days_until_forfeiture: int):
    if days_until_forfeiture < 0:
        return VacationState.OVERDUE, f"{WARNING_MARKER} Férias vencidas há {abs(days_until_forfeiture)} dias"
    if days_until_forfeiture <= WARNING_DAYS:
        return VacationState.WARNING, f"{WARNING_MARKER} Férias vencem em {days_until_forfeiture} dias"
    return VacationState.OK, f"Dentro do prazo ({days_until_forfeiture} dias restantes)"


def compute_vacation_status(hire_date: Optional[date], now: datetime) -> VacationStatus:
    if hire_date is None:
        return VacationStatus(hire_date=None, state=VacationState.NO_DATA, status_text="Sem dados")

    tenure_days = day_difference(hire_date, now)
    cycles_completed = max(tenure_days // CYCLE_DAYS, 0)
    next_acquisition = add_years(hire_date, cycles_completed + 1)
    forfeiture = add_years(hire_date, cycles_completed + 2)
    days_until_forfeiture = day_difference(now, forfeiture)
    state, text = vacation_state(days_until_forfeiture)

    return VacationStatus(
        hire_date=hire_date,
        state=state,
        status_text=text,
        cycles_completed=cycles_completed,
        days_available=cycles_completed * DAYS_PER_CYCLE,
        next_acquisition_date=next_acquisition,
        days_until_next_acquisition=day_difference(now, next_acquisition),
        forfeiture_date=forfeiture,
        days_until_forfeiture=days_until_forfeiture,
    )


def _parse_hire_date(value) -> Optional[date]:
    if value is None or isinstance(value, date):
        return value
    return date.fromisoformat(value)


def roster_rows(db: Session) -> list:
    """Cadastros do painel, com a data de admissão ainda como texto.

    A conversão fica para `compute_roster`, funcionário a funcionário.
    """
    return (
        db.query(
            models.Employee.id,
            models.Employee.name,
            models.Employee.role,
            models.Employee.shift,
            type_coerce(models.Employee.hire_date, String).label("hire_date"),
        )
        .order_by(models.Employee.name)
        .all()
    )


def compute_roster(employees: Iterable, now: datetime) -> List[tuple]:
    """Status de férias de cada funcionário, calculados de forma independente.

    Um cadastro inválido é marcado e registrado no log, sem interromper o lote.
    """
    roster = []
    for employee in employees:
        try:
            status = compute_vacation_status(_parse_hire_date(employee.hire_date), now)
        except (TypeError, ValueError, AttributeError) as e:
            logger.warning(f"Status de férias não calculado para funcionário {employee.id}: {e}")
            status = VacationStatus(hire_date=None, state=VacationState.INVALID, status_text=f"{WARNING_MARKER} Dados inválidos")
        roster.append((employee, status))
    return roster


# --- CICLO DE VIDA DAS SOLICITAÇÕES ---

def vacation_period(vacation_type: Optional[str], start_date: Optional[date]):
    if not start_date:
        raise ValidationError("Informe a data de início.")
    if vacation_type not in VACATION_TYPES:
        raise ValidationError(f"Tipo de férias inválido: {vacation_type!r}.")
    day_count = VACATION_TYPES[vacation_type]
    return start_date, days_from(start_date, day_count - 1), day_count


def _get_employee(db: Session, employee_id: int) -> models.Employee:
    employee = db.get(models.Employee, employee_id)
    if employee is None:
        raise NotFoundError("Funcionário não encontrado.")
    return employee


def _apply_last_vacation(employee: models.Employee, request: models.VacationRequest) -> None:
    employee.has_taken_vacation = True
    employee.last_vacation_type = request.vacation_type
    employee.last_vacation_start = request.start_date
    employee.last_vacation_end = request.end_date


def submit_request(db: Session, employee_id: int, vacation_type: Optional[str], start_date: Optional[date]) -> models.VacationRequest:
    start, end, day_count = vacation_period(vacation_type, start_date)
    _get_employee(db, employee_id)
    request = models.VacationRequest(
        employee_id=employee_id,
        vacation_type=vacation_type,
        start_date=start,
        end_date=end,
        day_count=day_count,
        status=STATUS_PENDING,
        created_at=local_now().replace(tzinfo=None),
    )
    db.add(request); db.commit(); db.refresh(request)
    logger.info(f"Solicitação de férias {request.id} criada para funcionário {employee_id} ({start} a {end}).")
    return request


def respond_to_request(db: Session, request_id: int, decision: str) -> models.VacationRequest:
    if decision not in DECISIONS:
        raise ValidationError(f"Decisão inválida: {decision!r}.")
    request = db.get(models.VacationRequest, request_id)
    if request is None:
        raise NotFoundError("Solicitação de férias não encontrada.")
    if request.status != STATUS_PENDING:
        raise InvalidTransitionError(f"Solicitação já respondida ({request.status}).")

    request.status = DECISIONS[decision]
    request.responded_at = local_now().replace(tzinfo=None)
    if request.status == STATUS_APPROVED:
        employee = db.get(models.Employee, request.employee_id)
        if employee is not None:
            _apply_last_vacation(employee, request)
    db.commit(); db.refresh(request)
    logger.info(f"Solicitação de férias {request.id}: {request.status}.")
    return request


def record_past_vacation(db: Session, employee_id: int, vacation_type: Optional[str], start_date: Optional[date]) -> models.VacationRequest:
    """Lançamento retroativo: cria a solicitação já aprovada e atualiza o cadastro."""
    start, end, day_count = vacation_period(vacation_type, start_date)
    employee = _get_employee(db, employee_id)
    now = local_now().replace(tzinfo=None)
    request = models.VacationRequest(
        employee_id=employee_id,
        vacation_type=vacation_type,
        start_date=start,
        end_date=end,
        day_count=day_count,
        status=STATUS_APPROVED,
        created_at=now,
        responded_at=now,
    )
    db.add(request)
    _apply_last_vacation(employee, request)
    db.commit(); db.refresh(request)
    logger.info(f"Férias retroativas registradas para funcionário {employee_id} ({start} a {end}).")
    return request


def last_vacation(db: Session, employee_id: int) -> Optional[models.VacationRequest]:
    return (
        db.query(models.VacationRequest)
        .filter_by(employee_id=employee_id, status=STATUS_APPROVED)
        .order_by(models.VacationRequest.start_date.desc())
        .first()
    )


def pending_requests(db: Session) -> List[models.VacationRequest]:
    return (
        db.query(models.VacationRequest)
        .filter_by(status=STATUS_PENDING)
        .order_by(models.VacationRequest.start_date, models.VacationRequest.id)
        .all()
    )
