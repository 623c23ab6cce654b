import logging
from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

import models
from clock import local_date, minutes_of_day, to_local
from errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)

TARGET_MINUTES = 8 * 60
KIND_ENTRY = "entry"
KIND_EXIT = "exit"
KIND_ALIASES = {
    "entry": KIND_ENTRY,
    "entrada": KIND_ENTRY,
    "exit": KIND_EXIT,
    "saida": KIND_EXIT,
    "saída": KIND_EXIT,
}

ANOMALY_MISSING_ENTRY = "missing_entry"
ANOMALY_NEGATIVE_DURATION = "negative_duration"
REMOVED_EMPLOYEE_NAME = "Funcionário removido"


def normalize_kind(kind: Optional[str]) -> str:
    normalized = KIND_ALIASES.get((kind or "").strip().lower())
    if normalized is None:
        raise ValidationError(f"Tipo de batida inválido: {kind!r}. Use 'entry' ou 'exit'.")
    return normalized


def recompute_day(day: models.PunchDay) -> None:
    """Recalcula minutos trabalhados e saldo do dia a partir da entrada e saída."""
    day.worked_minutes = None
    day.balance_minutes = None
    day.anomaly = None
    if day.exit_at is None:
        return
    if day.entry_at is None:
        day.anomaly = ANOMALY_MISSING_ENTRY
        return
    worked = minutes_of_day(day.exit_at) - minutes_of_day(day.entry_at)
    if worked < 0:
        day.anomaly = ANOMALY_NEGATIVE_DURATION
        return
    day.worked_minutes = worked
    day.balance_minutes = worked - TARGET_MINUTES


def _apply_punch(day: models.PunchDay, kind: str, at: datetime, photo_ref: Optional[str]) -> None:
    if kind == KIND_ENTRY:
        day.entry_at = at
        day.entry_photo = photo_ref
    else:
        day.exit_at = at
        day.exit_photo = photo_ref
    recompute_day(day)


def register_punch(db: Session, employee_id: int, kind: str, photo_ref: Optional[str], timestamp: datetime) -> models.PunchDay:
    kind = normalize_kind(kind)
    if db.get(models.Employee, employee_id) is None:
        raise NotFoundError("Funcionário não encontrado.")

    work_date = local_date(timestamp)
    at = to_local(timestamp).replace(tzinfo=None, microsecond=0)

    day = db.query(models.PunchDay).filter_by(employee_id=employee_id, work_date=work_date).first()
    if day is None:
        day = models.PunchDay(employee_id=employee_id, work_date=work_date)
        _apply_punch(day, kind, at, photo_ref)
        db.add(day)
        try:
            db.commit()
        except IntegrityError:
            # Outra requisição criou o dia primeiro: aplica sobre o registro existente
            db.rollback()
            day = db.query(models.PunchDay).filter_by(employee_id=employee_id, work_date=work_date).one()
            _apply_punch(day, kind, at, photo_ref)
            db.commit()
    else:
        _apply_punch(day, kind, at, photo_ref)
        db.commit()
    db.refresh(day)

    if day.anomaly:
        logger.warning(f"Batida inconsistente para funcionário {employee_id} em {work_date}: {day.anomaly}")
    logger.info(f"Ponto de {kind} registrado para funcionário {employee_id} em {at}.")
    return day


def punch_history(db: Session, employee_id: int, limit: int = 31) -> List[models.PunchDay]:
    return (
        db.query(models.PunchDay)
        .filter_by(employee_id=employee_id)
        .order_by(models.PunchDay.work_date.desc())
        .limit(limit)
        .all()
    )


# --- BANCO DE HORAS ---

def hours_bank(db: Session) -> List[Dict]:
    """Saldo acumulado por funcionário, ordenado por nome.

    Dias abertos ou marcados como inconsistentes não entram no saldo.
    """
    totals = dict(
        db.query(models.PunchDay.employee_id, func.coalesce(func.sum(models.PunchDay.balance_minutes), 0))
        .group_by(models.PunchDay.employee_id)
        .all()
    )
    anomalies = dict(
        db.query(models.PunchDay.employee_id, func.count(models.PunchDay.id))
        .filter(models.PunchDay.anomaly.isnot(None))
        .group_by(models.PunchDay.employee_id)
        .all()
    )
    bank = []
    for employee in db.query(models.Employee.id, models.Employee.name, models.Employee.role).order_by(models.Employee.name).all():
        bank.append({
            "employee_id": employee.id,
            "name": employee.name,
            "role": employee.role,
            "balance_minutes_total": int(totals.get(employee.id, 0)),
            "anomalous_days": int(anomalies.get(employee.id, 0)),
        })
    return bank


def list_anomalies(db: Session) -> List[Dict]:
    names = dict(db.query(models.Employee.id, models.Employee.name).all())
    days = (
        db.query(models.PunchDay)
        .filter(models.PunchDay.anomaly.isnot(None))
        .order_by(models.PunchDay.work_date.desc(), models.PunchDay.employee_id)
        .all()
    )
    return [
        {"day": day, "employee_name": names.get(day.employee_id, REMOVED_EMPLOYEE_NAME)}
        for day in days
    ]
