from datetime import datetime
from typing import Optional, Tuple

from clock import calendar_exception, day_of_week, now_as_fractional_hour
from models import ROLE_ADMIN, ROLE_RH, ROLE_VENDEDOR, SHIFT_MANHA, SHIFT_TARDE

TOLERANCE_HOURS = 0.25  # 15 min, só antes do início
SPECIAL_DATES = ("12-24", "12-31")
WEEKDAYS = (1, 2, 3, 4, 5)

# --- TABELA DE HORÁRIOS (início, fim) em horas ---
OFFICE_WINDOW = (9, 18)
SUNDAY_WINDOW = (14, 20)
SHIFT_WINDOWS = {
    SHIFT_MANHA: (10, 16),
    SHIFT_TARDE: (16, 22),
}
UNRESTRICTED_ROLES = (ROLE_ADMIN,)


def applicable_window(employee, now: datetime) -> Optional[Tuple[float, float]]:
    """Janela (início, fim) que vale para o funcionário no dia de `now`.

    Retorna None quando não há janela: acesso negado ou papel sem restrição
    (ver `is_within_window`).
    """
    weekday = day_of_week(now)
    if employee.role == ROLE_RH:
        return OFFICE_WINDOW if weekday in WEEKDAYS else None
    if employee.role == ROLE_VENDEDOR:
        if calendar_exception(now, SPECIAL_DATES):
            return OFFICE_WINDOW
        if weekday == 0:
            return SUNDAY_WINDOW
        return SHIFT_WINDOWS.get(employee.shift)
    return None


def is_within_window(employee, now: datetime) -> bool:
    if employee.role in UNRESTRICTED_ROLES:
        return True
    window = applicable_window(employee, now)
    if window is None:
        return False
    start, end = window
    hour = now_as_fractional_hour(now)
    return start - TOLERANCE_HOURS <= hour <= end


def _fmt_hour(value: float) -> str:
    minutes = int(round(value * 60))
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def describe_window(employee, now: datetime) -> Optional[str]:
    if employee.role in UNRESTRICTED_ROLES:
        return "Livre"
    window = applicable_window(employee, now)
    if window is None:
        return None
    return f"{_fmt_hour(window[0])} - {_fmt_hour(window[1])}"
