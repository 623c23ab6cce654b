import logging
import os
from datetime import datetime, timedelta, timezone
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy.orm import Session

import models
from database import get_db

logger = logging.getLogger(__name__)

# --- Configuração de Segurança ---
# Em produção, defina SECRET_KEY e ENCRYPT_KEY nas variáveis de ambiente!
SECRET_KEY = os.getenv("SECRET_KEY", "SUA_CHAVE_SECRETA_MUITO_FORTE_E_LONGA")
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", 60 * 8))
# Chave Fernet (base64 de 32 bytes). Gere com Fernet.generate_key().
ENCRYPT_KEY = os.getenv("ENCRYPT_KEY", "ZGV2LWtleS1wb250by1kaWdpdGFsLTMyLWJ5dGVzISE=")

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="token")
fernet = Fernet(ENCRYPT_KEY.encode())

MANAGER_ROLES = (models.ROLE_RH, models.ROLE_ADMIN)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verifica se a senha fornecida corresponde ao hash."""
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def initial_password(cpf: str) -> str:
    """Senha inicial: os 5 primeiros dígitos do CPF."""
    return cpf[:5]


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None):
    """Cria um novo token de acesso (JWT)."""
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=15))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


# --- Criptografia de dados pessoais (CPF, telefone) ---

def encrypt(text: Optional[str]) -> str:
    if not text:
        return ""
    return fernet.encrypt(text.encode("utf-8")).decode("ascii")


def decrypt(token: Optional[str]) -> str:
    if not token:
        return ""
    try:
        return fernet.decrypt(token.encode("ascii")).decode("utf-8")
    except InvalidToken:
        # Registros antigos gravados sem criptografia
        logger.warning("Valor não criptografado encontrado ao descriptografar; retornando como está.")
        return token


# --- Dependências de Autenticação ---

async def get_current_employee(token: str = Depends(oauth2_scheme), db: Session = Depends(get_db)) -> models.Employee:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
        subject = payload.get("sub")
        if subject is None:
            raise credentials_exception
        employee_id = int(subject)
    except (JWTError, ValueError):
        raise credentials_exception
    employee = db.get(models.Employee, employee_id)
    if employee is None:
        raise credentials_exception
    return employee


async def require_manager(employee: models.Employee = Depends(get_current_employee)) -> models.Employee:
    """Somente RH e ADMIN acessam o painel administrativo."""
    if employee.role not in MANAGER_ROLES:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Acesso restrito ao RH/Admin.")
    return employee
