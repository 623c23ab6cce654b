"""
Schemas de entrada e saída da API do ponto.

Os campos são declarados em snake_case e trafegam em camelCase
(ex: hire_date <-> hireDate). Datas no formato YYYY-MM-DD.
"""

from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class Token(BaseModel):
    access_token: str
    token_type: str


# --- Funcionários ---

class EmployeeOut(CamelModel):
    id: int
    name: str
    email: str
    role: str
    shift: Optional[str] = None
    hire_date: Optional[date] = None
    has_taken_vacation: bool = False
    last_vacation_type: Optional[str] = None
    last_vacation_start: Optional[date] = None
    last_vacation_end: Optional[date] = None


class EmployeeDetail(EmployeeOut):
    cpf: str = ""
    phone: str = ""


class MeOut(CamelModel):
    employee: EmployeeOut
    access_window: Optional[str] = None
    within_window: bool


class EmployeeCreate(CamelModel):
    name: str
    email: str
    cpf: str
    phone: Optional[str] = None
    role: str
    shift: Optional[str] = None
    hire_date: Optional[date] = None
    initial_vacation_type: Optional[str] = None


class EmployeeCreated(CamelModel):
    employee: EmployeeOut
    generated_password: str


class EmployeeUpdate(CamelModel):
    name: Optional[str] = None
    email: Optional[str] = None
    cpf: Optional[str] = None
    phone: Optional[str] = None
    role: Optional[str] = None
    shift: Optional[str] = None
    hire_date: Optional[date] = None


class RosterEntry(CamelModel):
    employee_id: int
    name: str
    role: str
    shift: Optional[str] = None
    hire_date: Optional[date] = None
    vacation_status: str
    vacation_status_text: str


class ImportResult(CamelModel):
    created: List[dict]
    errors: List[str]


# --- Ponto ---

class PunchDayOut(CamelModel):
    employee_id: int
    work_date: date = Field(alias="date")
    entry_time: Optional[datetime] = None
    exit_time: Optional[datetime] = None
    entry_photo: Optional[str] = None
    exit_photo: Optional[str] = None
    worked_minutes: Optional[int] = None
    balance_minutes: Optional[int] = None
    anomaly: Optional[str] = None


class HoursBankEntry(CamelModel):
    employee_id: int
    name: str
    role: str
    balance_minutes_total: int
    anomalous_days: int = 0


class PunchAnomaly(PunchDayOut):
    employee_name: str


# --- Férias ---

class VacationInfo(CamelModel):
    has_data: bool
    hire_date: Optional[date] = None
    cycles_completed: Optional[int] = None
    days_available: Optional[int] = None
    next_acquisition_date: Optional[date] = None
    days_until_next_acquisition: Optional[int] = None
    forfeiture_date: Optional[date] = None
    days_until_forfeiture: Optional[int] = None
    status: str
    status_text: str


class VacationRequestIn(CamelModel):
    type: Optional[str] = None
    start_date: Optional[date] = None


class VacationRequestOut(CamelModel):
    request_id: int
    employee_id: int
    type: str
    start_date: date
    end_date: date
    day_count: int
    status: str


class PendingVacation(VacationRequestOut):
    name: str
    notice: str


class VacationDecision(CamelModel):
    decision: str  # approve | reject


# --- Troca de turno ---

class SwapCreate(CamelModel):
    partner_email: Optional[str] = None
    swap_date: Optional[date] = None


class SwapOut(CamelModel):
    id: int
    requester_id: int
    requester_name: Optional[str] = None
    partner_id: int
    swap_date: date
    target_shift: str
    status: str


class SwapDecision(CamelModel):
    accept: bool
