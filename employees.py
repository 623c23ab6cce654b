import logging
from datetime import date
from typing import Any, Dict, List, Optional, Tuple

import pandas as pd
from sqlalchemy.orm import Session

import models
from errors import NotFoundError, ValidationError
from security import decrypt, encrypt, get_password_hash, initial_password

logger = logging.getLogger(__name__)

NO_VACATION = "nenhuma"
IMPORT_COLUMNS = ['name', 'email', 'cpf', 'phone', 'role', 'hire_date']
SPREADSHEET_EXTENSIONS = ('.csv', '.xlsx')
EDITABLE_FIELDS = ('name', 'email', 'role', 'shift', 'hire_date', 'cpf', 'phone')

BASE_EMPLOYEES = [
    {"name": "Ana Souza", "email": "ana.rh@empresa.com", "cpf": "12345678900", "phone": "11999999999",
     "role": models.ROLE_RH, "shift": None, "hire_date": date(2023, 1, 2)},
    {"name": "Bruno Vendedor", "email": "bruno@empresa.com", "cpf": "98765432100", "phone": "11988888888",
     "role": models.ROLE_VENDEDOR, "shift": models.SHIFT_MANHA, "hire_date": date(2023, 2, 10)},
    {"name": "Carla Vendedora", "email": "carla@empresa.com", "cpf": "11122333444", "phone": "11977777777",
     "role": models.ROLE_VENDEDOR, "shift": models.SHIFT_TARDE, "hire_date": date(2023, 3, 15)},
]


def _normalize_role_and_shift(role: Optional[str], shift: Optional[str]) -> Tuple[str, Optional[str]]:
    role = (role or "").strip().upper()
    if role not in models.ROLES:
        raise ValidationError(f"Categoria inválida: {role!r}.")
    if role != models.ROLE_VENDEDOR:
        return role, None
    shift = (shift or "").strip().upper()
    if shift not in models.SHIFTS:
        raise ValidationError("Vendedores precisam de turno MANHA ou TARDE.")
    return role, shift


def create_employee(db: Session, name: str, email: str, cpf: str, phone: Optional[str], role: str,
                    shift: Optional[str], hire_date: Optional[date],
                    initial_vacation_type: Optional[str] = None) -> Tuple[models.Employee, str]:
    """Cadastra o funcionário e devolve a senha gerada (5 primeiros dígitos do CPF)."""
    if not name or not email:
        raise ValidationError("Nome e e-mail são obrigatórios.")
    if not cpf or len(cpf) < 5:
        raise ValidationError("CPF inválido.")
    role, shift = _normalize_role_and_shift(role, shift)
    if db.query(models.Employee).filter_by(email=email).first():
        raise ValidationError("E-mail já cadastrado.")

    password = initial_password(cpf)
    took_vacation = bool(initial_vacation_type) and initial_vacation_type != NO_VACATION
    employee = models.Employee(
        name=name,
        email=email,
        hashed_password=get_password_hash(password),
        cpf_encrypted=encrypt(cpf),
        phone_encrypted=encrypt(phone),
        role=role,
        shift=shift,
        hire_date=hire_date,
        has_taken_vacation=took_vacation,
        last_vacation_type=initial_vacation_type if took_vacation else None,
    )
    db.add(employee); db.commit(); db.refresh(employee)
    logger.info(f"Funcionário {employee.id} ({employee.email}) cadastrado como {role}.")
    return employee, password


def get_employee(db: Session, employee_id: int) -> models.Employee:
    employee = db.get(models.Employee, employee_id)
    if employee is None:
        raise NotFoundError("Funcionário não encontrado.")
    return employee


def update_employee(db: Session, employee_id: int, changes: Dict[str, Any]) -> models.Employee:
    employee = get_employee(db, employee_id)
    changes = {k: v for k, v in changes.items() if k in EDITABLE_FIELDS and v is not None}
    if 'role' in changes or 'shift' in changes:
        role, shift = _normalize_role_and_shift(changes.get('role', employee.role), changes.get('shift', employee.shift))
        changes['role'], changes['shift'] = role, shift
    if 'email' in changes and changes['email'] != employee.email:
        if db.query(models.Employee).filter_by(email=changes['email']).first():
            raise ValidationError("E-mail já cadastrado.")
    if 'cpf' in changes:
        employee.cpf_encrypted = encrypt(changes.pop('cpf'))
    if 'phone' in changes:
        employee.phone_encrypted = encrypt(changes.pop('phone'))
    for key, value in changes.items():
        setattr(employee, key, value)
    db.commit(); db.refresh(employee)
    return employee


def delete_employee(db: Session, employee_id: int) -> None:
    """Remove o cadastro; batidas e férias ficam no histórico."""
    employee = get_employee(db, employee_id)
    db.delete(employee); db.commit()
    logger.info(f"Funcionário {employee_id} removido.")


def contact_info(employee: models.Employee) -> Dict[str, str]:
    return {"cpf": decrypt(employee.cpf_encrypted), "phone": decrypt(employee.phone_encrypted)}


def seed_base_employees(db: Session) -> int:
    if db.query(models.Employee).count():
        return 0
    logger.info("Criando funcionários padrão...")
    for data in BASE_EMPLOYEES:
        create_employee(db, **data)
    return len(BASE_EMPLOYEES)


# --- IMPORTAÇÃO DE PLANILHA ---

def _cell(row, column: str) -> Optional[str]:
    value = row.get(column)
    if value is None or pd.isna(value):
        return None
    return str(value).strip()


def import_employees(db: Session, df: pd.DataFrame) -> Dict[str, Any]:
    """Cadastra os funcionários de uma planilha (uma linha por funcionário)."""
    missing = [col for col in IMPORT_COLUMNS if col not in df.columns]
    if missing:
        raise ValidationError(f"O arquivo deve conter as colunas: {IMPORT_COLUMNS}")

    created: List[Dict[str, str]] = []
    errors: List[str] = []
    for index, row in df.iterrows():
        try:
            hire = _cell(row, 'hire_date')
            employee, password = create_employee(
                db,
                name=_cell(row, 'name'),
                email=_cell(row, 'email'),
                cpf=(_cell(row, 'cpf') or "").split('.')[0].zfill(11),
                phone=_cell(row, 'phone'),
                role=_cell(row, 'role'),
                shift=_cell(row, 'shift'),
                hire_date=pd.to_datetime(hire, dayfirst=False).date() if hire else None,
            )
            created.append({"email": employee.email, "generatedPassword": password})
        except (ValidationError, ValueError) as e:
            db.rollback()
            message = e.message if isinstance(e, ValidationError) else str(e)
            logger.warning(f"Linha {index + 2} da planilha ignorada: {message}")
            errors.append(f"Linha {index + 2}: {message}")
    return {"created": created, "errors": errors}


def read_spreadsheet(filename: str, fileobj) -> pd.DataFrame:
    if filename.endswith('.csv'):
        return pd.read_csv(fileobj, dtype={'cpf': str, 'phone': str})
    return pd.read_excel(fileobj, dtype={'cpf': str, 'phone': str})
