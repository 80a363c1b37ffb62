from fastapi import APIRouter, Depends, HTTPException, status, Request
from sqlalchemy.orm import Session
from passlib.context import CryptContext
from jose import jwt
from jose.exceptions import JWTError
from datetime import timedelta
import logging

from .audit import SqlAuditRecorder, safe_record
from .config import ACCESS_TOKEN_EXPIRE_MINUTES, ADMIN_PASSWORD, ADMIN_USERNAME, ALGORITHM, SECRET_KEY
from .database import get_db, utcnow
from .models import AdminUser
from .schemas import AdminOut, LoginRequest, TokenResponse


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", tags=["auth"])

# PBKDF2-SHA256 avoids bcrypt's 72-byte password limit.
pwd_context = CryptContext(
    schemes=["pbkdf2_sha256"],
    deprecated="auto",
    pbkdf2_sha256__rounds=310000,
)


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, hashed: str) -> bool:
    return pwd_context.verify(password, hashed)


def create_access_token(data: dict, expires_delta: timedelta | None = None):
    to_encode = data.copy()
    expire = utcnow() + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def create_admin(db: Session, username: str, password: str, role: str = "admin", **fields) -> AdminUser:
    admin = AdminUser(username=username, password_hash=hash_password(password), role=role, **fields)
    db.add(admin)
    db.commit()
    db.refresh(admin)
    return admin


def ensure_bootstrap_admin(db: Session):
    if not ADMIN_USERNAME or not ADMIN_PASSWORD:
        return None
    existing = db.query(AdminUser).filter(AdminUser.username == ADMIN_USERNAME).first()
    if existing:
        return existing
    logger.info("Creating bootstrap admin %s", ADMIN_USERNAME)
    return create_admin(db, ADMIN_USERNAME, ADMIN_PASSWORD, role="super_admin")


@router.post("/login", response_model=TokenResponse)
def login(req: LoginRequest, request: Request, db: Session = Depends(get_db)):
    admin = (
        db.query(AdminUser)
        .filter(AdminUser.username == req.username, AdminUser.is_active.is_(True))
        .first()
    )
    if not admin or not verify_password(req.password, admin.password_hash):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")

    admin.last_login = utcnow()
    db.commit()

    token = create_access_token({"sub": admin.username, "role": admin.role})
    safe_record(
        SqlAuditRecorder(db),
        "admin",
        "LOGIN",
        "system",
        {"ip": request.client.host if request.client else None, "user_agent": request.headers.get("user-agent")},
        user_id=admin.id,
    )
    return TokenResponse(access_token=token, admin=AdminOut.model_validate(admin))


def get_current_admin(token: str, db: Session) -> AdminUser:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token", headers={"WWW-Authenticate": "Bearer"}
    )
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
        username: str = payload.get("sub")
        if username is None:
            raise credentials_exception
    except JWTError:
        raise credentials_exception
    admin = db.query(AdminUser).filter(AdminUser.username == username).first()
    if admin is None or not admin.is_active:
        raise credentials_exception
    return admin


def require_admin(request: Request, db: Session = Depends(get_db)) -> AdminUser:
    authorization = request.headers.get("authorization")
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token required")
    token = authorization.split(" ", 1)[1]
    admin = get_current_admin(token, db)
    if admin.role not in {"admin", "super_admin"}:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Role not authorized")
    return admin


@router.get("/me", response_model=AdminOut)
def me(admin: AdminUser = Depends(require_admin)):
    return admin
