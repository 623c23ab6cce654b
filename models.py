from sqlalchemy import Column, Integer, String, Date, DateTime, Boolean, UniqueConstraint

from database import Base

ROLE_RH = "RH"
ROLE_ADMIN = "ADMIN"
ROLE_VENDEDOR = "VENDEDOR"
ROLES = (ROLE_RH, ROLE_ADMIN, ROLE_VENDEDOR)

SHIFT_MANHA = "MANHA"
SHIFT_TARDE = "TARDE"
SHIFTS = (SHIFT_MANHA, SHIFT_TARDE)


class Employee(Base):
    __tablename__ = 'employees'
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    hashed_password = Column(String, nullable=False)
    cpf_encrypted = Column(String, nullable=True)
    phone_encrypted = Column(String, nullable=True)
    role = Column(String, nullable=False)  # RH | ADMIN | VENDEDOR
    shift = Column(String, nullable=True)  # MANHA | TARDE, só para VENDEDOR
    hire_date = Column(Date, nullable=True)

    # Últimas férias registradas
    has_taken_vacation = Column(Boolean, default=False)
    last_vacation_type = Column(String, nullable=True)
    last_vacation_start = Column(Date, nullable=True)
    last_vacation_end = Column(Date, nullable=True)


class PunchDay(Base):
    __tablename__ = 'punch_days'
    id = Column(Integer, primary_key=True, index=True)
    # Sem ForeignKey: batidas continuam existindo se o funcionário for removido
    employee_id = Column(Integer, index=True, nullable=False)
    work_date = Column(Date, index=True, nullable=False)
    entry_at = Column(DateTime, nullable=True)
    exit_at = Column(DateTime, nullable=True)
    entry_photo = Column(String, nullable=True)
    exit_photo = Column(String, nullable=True)
    worked_minutes = Column(Integer, nullable=True)
    balance_minutes = Column(Integer, nullable=True)
    anomaly = Column(String, nullable=True)  # missing_entry | negative_duration
    __table_args__ = (UniqueConstraint('employee_id', 'work_date', name='_employee_punch_day_uc'),)


class VacationRequest(Base):
    __tablename__ = 'vacation_requests'
    id = Column(Integer, primary_key=True, index=True)
    employee_id = Column(Integer, index=True, nullable=False)
    vacation_type = Column(String, nullable=False)  # '30' | '15em15'
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    day_count = Column(Integer, nullable=False)
    status = Column(String, default='pending', nullable=False)  # pending | approved | rejected
    created_at = Column(DateTime, nullable=False)
    responded_at = Column(DateTime, nullable=True)


class ShiftSwapRequest(Base):
    __tablename__ = 'shift_swaps'
    id = Column(Integer, primary_key=True, index=True)
    requester_id = Column(Integer, index=True, nullable=False)
    partner_id = Column(Integer, index=True, nullable=False)
    swap_date = Column(Date, nullable=False)
    target_shift = Column(String, nullable=False)
    status = Column(String, default='pending', nullable=False)  # pending | accepted | rejected
    created_at = Column(DateTime, nullable=False)
