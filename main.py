import logging
import os
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timedelta
from typing import List, Optional

from fastapi import FastAPI, Depends, HTTPException, Request, status
from fastapi import File, Form, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.orm import Session

import models
import employees as employee_service
import punches as punch_service
import swaps as swap_service
import vacation as vacation_service
from access_window import describe_window, is_within_window
from clock import local_now
from database import SessionLocal, engine, get_db
from errors import (
    InvalidTransitionError,
    NotFoundError,
    OutsideWindowError,
    PermissionDeniedError,
    PontoError,
    ValidationError,
)
from schemas import (
    EmployeeCreate,
    EmployeeCreated,
    EmployeeDetail,
    EmployeeOut,
    EmployeeUpdate,
    HoursBankEntry,
    ImportResult,
    MeOut,
    PendingVacation,
    PunchAnomaly,
    PunchDayOut,
    RosterEntry,
    SwapCreate,
    SwapDecision,
    SwapOut,
    Token,
    VacationDecision,
    VacationInfo,
    VacationRequestIn,
    VacationRequestOut,
)
from security import (
    ACCESS_TOKEN_EXPIRE_MINUTES,
    create_access_token,
    get_current_employee,
    require_manager,
    verify_password,
)

# --- CONFIGURAÇÕES GERAIS ---
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

PHOTO_DIR = os.getenv("PHOTO_DIR", "fotos_ponto")
PHOTO_EXTENSIONS = ('.jpg', '.jpeg', '.png')
SEED_EMPLOYEES = os.getenv("SEED_EMPLOYEES", "1") == "1"

ERROR_STATUS = {
    ValidationError: status.HTTP_400_BAD_REQUEST,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    OutsideWindowError: status.HTTP_403_FORBIDDEN,
    PermissionDeniedError: status.HTTP_403_FORBIDDEN,
    InvalidTransitionError: status.HTTP_409_CONFLICT,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    models.Base.metadata.create_all(bind=engine)
    if SEED_EMPLOYEES:
        db = SessionLocal()
        try: employee_service.seed_base_employees(db)
        finally: db.close()
    yield


app = FastAPI(title="Ponto Digital", lifespan=lifespan)

origins = ["*"]
app.add_middleware(CORSMiddleware, allow_origins=origins, allow_credentials=True, allow_methods=["*"], allow_headers=["*"])


@app.exception_handler(PontoError)
async def ponto_error_handler(request: Request, exc: PontoError):
    code = ERROR_STATUS.get(type(exc), status.HTTP_400_BAD_REQUEST)
    return JSONResponse(status_code=code, content={"detail": exc.message})


def get_now() -> datetime:
    """Relógio da requisição; substituído nos testes."""
    return local_now()


# --- CONVERSÕES PARA A RESPOSTA ---

def _punch_day_out(day: models.PunchDay) -> PunchDayOut:
    return PunchDayOut(
        employee_id=day.employee_id,
        work_date=day.work_date,
        entry_time=day.entry_at,
        exit_time=day.exit_at,
        entry_photo=day.entry_photo,
        exit_photo=day.exit_photo,
        worked_minutes=day.worked_minutes,
        balance_minutes=day.balance_minutes,
        anomaly=day.anomaly,
    )


def _vacation_request_out(request: models.VacationRequest) -> VacationRequestOut:
    return VacationRequestOut(
        request_id=request.id,
        employee_id=request.employee_id,
        type=request.vacation_type,
        start_date=request.start_date,
        end_date=request.end_date,
        day_count=request.day_count,
        status=request.status,
    )


def _vacation_info(result: vacation_service.VacationStatus) -> VacationInfo:
    return VacationInfo(
        has_data=result.state != vacation_service.VacationState.NO_DATA,
        hire_date=result.hire_date,
        cycles_completed=result.cycles_completed,
        days_available=result.days_available,
        next_acquisition_date=result.next_acquisition_date,
        days_until_next_acquisition=result.days_until_next_acquisition,
        forfeiture_date=result.forfeiture_date,
        days_until_forfeiture=result.days_until_forfeiture,
        status=result.state.value,
        status_text=result.status_text,
    )


def _swap_out(swap: models.ShiftSwapRequest, requester_name: Optional[str] = None) -> SwapOut:
    return SwapOut(
        id=swap.id,
        requester_id=swap.requester_id,
        requester_name=requester_name,
        partner_id=swap.partner_id,
        swap_date=swap.swap_date,
        target_shift=swap.target_shift,
        status=swap.status,
    )


def _store_photo(employee_id: int, photo: Optional[UploadFile], now: datetime) -> Optional[str]:
    if photo is None or not photo.filename:
        return None
    extension = os.path.splitext(photo.filename)[1].lower()
    if extension not in PHOTO_EXTENSIONS:
        raise ValidationError("Formato de foto inválido. Envie .jpg, .jpeg ou .png")
    os.makedirs(PHOTO_DIR, exist_ok=True)
    filename = f"{employee_id}_{now.strftime('%Y%m%d%H%M%S')}_{uuid.uuid4().hex[:8]}{extension}"
    path = os.path.join(PHOTO_DIR, filename)
    with open(path, "wb") as f:
        f.write(photo.file.read())
    return path


# --- ENDPOINTS ---
@app.post("/token", response_model=Token)
async def login_for_access_token(form_data: OAuth2PasswordRequestForm = Depends(), db: Session = Depends(get_db), now: datetime = Depends(get_now)):
    employee = db.query(models.Employee).filter(models.Employee.email == form_data.username).first()
    if not employee or not verify_password(form_data.password, employee.hashed_password):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Incorrect username or password", headers={"WWW-Authenticate": "Bearer"})
    if not is_within_window(employee, now):
        logger.warning(f"Login fora do horário negado para {employee.email} em {now:%Y-%m-%d %H:%M}.")
        raise OutsideWindowError("Fora do horário permitido para login.")
    access_token = create_access_token(data={"sub": str(employee.id)}, expires_delta=timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    logger.info(f"Login de {employee.email}.")
    return {"access_token": access_token, "token_type": "bearer"}


@app.get("/me", response_model=MeOut)
def read_me(current: models.Employee = Depends(get_current_employee), now: datetime = Depends(get_now)):
    return MeOut(
        employee=EmployeeOut.model_validate(current),
        access_window=describe_window(current, now),
        within_window=is_within_window(current, now),
    )


@app.post("/punches", response_model=PunchDayOut, status_code=201)
def register_punch(kind: str = Form(...), photo: Optional[UploadFile] = File(None), db: Session = Depends(get_db), current: models.Employee = Depends(get_current_employee), now: datetime = Depends(get_now)):
    if not is_within_window(current, now):
        logger.warning(f"Batida fora do horário negada para funcionário {current.id}.")
        raise OutsideWindowError("Fora do horário permitido para registrar o ponto.")
    punch_service.normalize_kind(kind)
    photo_ref = _store_photo(current.id, photo, now)
    try:
        day = punch_service.register_punch(db, current.id, kind, photo_ref, now)
    except Exception:
        # Batida não gravada: a foto não pode ficar sem registro
        if photo_ref:
            os.remove(photo_ref)
        raise
    return _punch_day_out(day)


@app.get("/punches/me", response_model=List[PunchDayOut])
def my_punches(db: Session = Depends(get_db), current: models.Employee = Depends(get_current_employee)):
    return [_punch_day_out(day) for day in punch_service.punch_history(db, current.id)]


@app.get("/vacation/info", response_model=VacationInfo)
def vacation_info(current: models.Employee = Depends(get_current_employee), now: datetime = Depends(get_now)):
    return _vacation_info(vacation_service.compute_vacation_status(current.hire_date, now))


@app.get("/vacation/last", response_model=Optional[VacationRequestOut])
def vacation_last(db: Session = Depends(get_db), current: models.Employee = Depends(get_current_employee)):
    last = vacation_service.last_vacation(db, current.id)
    return _vacation_request_out(last) if last else None


@app.post("/vacation/requests", response_model=VacationRequestOut, status_code=201)
def vacation_request(payload: VacationRequestIn, db: Session = Depends(get_db), current: models.Employee = Depends(get_current_employee)):
    request = vacation_service.submit_request(db, current.id, payload.type, payload.start_date)
    return _vacation_request_out(request)


# --- TROCA DE TURNO ---
@app.post("/swaps", response_model=SwapOut, status_code=201)
def create_swap(payload: SwapCreate, db: Session = Depends(get_db), current: models.Employee = Depends(get_current_employee)):
    swap = swap_service.request_swap(db, current, payload.partner_email, payload.swap_date)
    return _swap_out(swap, current.name)


@app.get("/swaps/pending", response_model=List[SwapOut])
def pending_swaps(db: Session = Depends(get_db), current: models.Employee = Depends(get_current_employee)):
    result = []
    for swap in swap_service.pending_swaps_for(db, current.id):
        requester = db.get(models.Employee, swap.requester_id)
        result.append(_swap_out(swap, requester.name if requester else None))
    return result


@app.post("/swaps/{swap_id}/respond", response_model=SwapOut)
def respond_swap(swap_id: int, payload: SwapDecision, db: Session = Depends(get_db), current: models.Employee = Depends(get_current_employee)):
    return _swap_out(swap_service.respond_to_swap(db, swap_id, current.id, payload.accept))


# --- ADMIN / RH ---
@app.get("/admin/employees", response_model=List[RosterEntry])
def list_employees(db: Session = Depends(get_db), _: models.Employee = Depends(require_manager), now: datetime = Depends(get_now)):
    roster = vacation_service.compute_roster(vacation_service.roster_rows(db), now)
    return [
        RosterEntry(
            employee_id=employee.id,
            name=employee.name,
            role=employee.role,
            shift=employee.shift,
            hire_date=result.hire_date,
            vacation_status=result.state.value,
            vacation_status_text=result.status_text,
        )
        for employee, result in roster
    ]


@app.get("/admin/employees/{employee_id}", response_model=EmployeeDetail)
def employee_detail(employee_id: int, db: Session = Depends(get_db), _: models.Employee = Depends(require_manager)):
    employee = employee_service.get_employee(db, employee_id)
    return EmployeeDetail(**EmployeeOut.model_validate(employee).model_dump(), **employee_service.contact_info(employee))


@app.post("/admin/employees", response_model=EmployeeCreated, status_code=201)
def create_employee(payload: EmployeeCreate, db: Session = Depends(get_db), _: models.Employee = Depends(require_manager)):
    employee, password = employee_service.create_employee(db, **payload.model_dump())
    return EmployeeCreated(employee=EmployeeOut.model_validate(employee), generated_password=password)


@app.put("/admin/employees/{employee_id}", response_model=EmployeeOut)
def update_employee(employee_id: int, payload: EmployeeUpdate, db: Session = Depends(get_db), _: models.Employee = Depends(require_manager)):
    employee = employee_service.update_employee(db, employee_id, payload.model_dump(exclude_unset=True))
    return EmployeeOut.model_validate(employee)


@app.delete("/admin/employees/{employee_id}")
def delete_employee(employee_id: int, db: Session = Depends(get_db), _: models.Employee = Depends(require_manager)):
    employee_service.delete_employee(db, employee_id)
    return {"status": "success"}


@app.post("/admin/employees/{employee_id}/past-vacation", response_model=VacationRequestOut, status_code=201)
def past_vacation(employee_id: int, payload: VacationRequestIn, db: Session = Depends(get_db), _: models.Employee = Depends(require_manager)):
    request = vacation_service.record_past_vacation(db, employee_id, payload.type, payload.start_date)
    return _vacation_request_out(request)


@app.post("/admin/employees/upload", response_model=ImportResult)
async def upload_employees(db: Session = Depends(get_db), file: UploadFile = File(...), _: models.Employee = Depends(require_manager)):
    if not file.filename.endswith(employee_service.SPREADSHEET_EXTENSIONS):
        raise HTTPException(status_code=400, detail="Formato de arquivo inválido. Por favor, envie um .csv ou .xlsx")
    try:
        df = employee_service.read_spreadsheet(file.filename, file.file)
    except Exception as e:
        logger.error(f"Falha ao ler a planilha de funcionários: {e}", exc_info=True)
        raise HTTPException(status_code=400, detail=f"Não foi possível processar o arquivo. Erro: {e}")
    result = employee_service.import_employees(db, df)
    logger.info(f"Planilha processada: {len(result['created'])} cadastrados, {len(result['errors'])} linhas com erro.")
    return result


@app.get("/admin/hours-bank", response_model=List[HoursBankEntry])
def hours_bank(db: Session = Depends(get_db), _: models.Employee = Depends(require_manager)):
    return punch_service.hours_bank(db)


@app.get("/admin/punch-anomalies", response_model=List[PunchAnomaly])
def punch_anomalies(db: Session = Depends(get_db), _: models.Employee = Depends(require_manager)):
    return [
        PunchAnomaly(**_punch_day_out(item["day"]).model_dump(), employee_name=item["employee_name"])
        for item in punch_service.list_anomalies(db)
    ]


@app.get("/admin/vacation/pending", response_model=List[PendingVacation])
def pending_vacations(db: Session = Depends(get_db), _: models.Employee = Depends(require_manager), now: datetime = Depends(get_now)):
    result = []
    for request in vacation_service.pending_requests(db):
        employee = db.get(models.Employee, request.employee_id)
        if employee is None:
            name, notice = punch_service.REMOVED_EMPLOYEE_NAME, ""
        else:
            name = employee.name
            notice = vacation_service.compute_vacation_status(employee.hire_date, now).status_text
        result.append(PendingVacation(**_vacation_request_out(request).model_dump(), name=name, notice=notice))
    return result


@app.post("/admin/vacation/{request_id}/respond", response_model=VacationRequestOut)
def respond_vacation(request_id: int, payload: VacationDecision, db: Session = Depends(get_db), _: models.Employee = Depends(require_manager)):
    return _vacation_request_out(vacation_service.respond_to_request(db, request_id, payload.decision))


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
