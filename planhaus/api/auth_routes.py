from fastapi import APIRouter, HTTPException, Depends, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from passlib.context import CryptContext
from datetime import datetime, timedelta, timezone
from typing import Optional
import jwt
from pymongo.database import Database
from bson import ObjectId
from bson.errors import InvalidId

from planhaus.api.models import UserSignup, UserLogin, UserResponse, Session
from planhaus.api.mongo import get_db
from planhaus.utils.config import Config
from planhaus.utils.logger import get_logger

logger = get_logger(__name__)

# Initialize router
auth_router = APIRouter(prefix="/api/auth", tags=["Authentication"])

# Password hashing
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

# Security scheme; missing credentials are reported as 401 below
security = HTTPBearer(auto_error=False)

UNAUTHORIZED = HTTPException(
    status_code=status.HTTP_401_UNAUTHORIZED,
    detail="Invalid authentication credentials",
    headers={"WWW-Authenticate": "Bearer"},
)


def serialize_user(user: dict) -> dict:
    """Convert MongoDB user doc into JSON-serializable dict for frontend."""
    created_at = user.get("createdAt")
    return {
        "id": str(user["_id"]),
        "email": user["email"],
        "name": user.get("name"),
        "createdAt": created_at.isoformat() if isinstance(created_at, datetime) else str(created_at),
    }


def hash_password(password: str) -> str:
    """Hash a password using bcrypt."""
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash."""
    return pwd_context.verify(plain_password, hashed_password)


def create_session_token(user_id: str, expires_delta: Optional[timedelta] = None) -> str:
    """Create the signed session id handed to clients."""
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=Config.JWT_ACCESS_TOKEN_EXPIRE_MINUTES))
    return jwt.encode({"sub": user_id, "exp": expire}, Config.JWT_SECRET_KEY, algorithm=Config.JWT_ALGORITHM)


def decode_session_token(token: str) -> str:
    """Return the user id of a session token, raising 401 when it is invalid or expired."""
    try:
        payload = jwt.decode(token, Config.JWT_SECRET_KEY, algorithms=[Config.JWT_ALGORITHM])
    except jwt.PyJWTError:
        raise UNAUTHORIZED
    user_id = payload.get("sub")
    if user_id is None:
        raise UNAUTHORIZED
    return user_id


def verify_token(credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)) -> str:
    """Verify the bearer session and return its user id."""
    if credentials is None:
        raise UNAUTHORIZED
    return decode_session_token(credentials.credentials)


async def get_current_user(user_id: str = Depends(verify_token), db: Database = Depends(get_db)):
    """Get current user from database."""
    try:
        user = db.users.find_one({"_id": ObjectId(user_id)})
    except InvalidId:
        user = None
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
        )
    return user


def _session(user: dict) -> dict:
    return {
        "sessionId": create_session_token(str(user["_id"])),
        "tokenType": "bearer",
        "user": serialize_user(user),
    }


@auth_router.post("/demo-login", response_model=Session)
async def demo_login(db: Database = Depends(get_db)):
    """Start a session for the shared demo account, creating it on first use."""
    try:
        user = db.users.find_one({"email": Config.DEMO_USER_EMAIL})
        if user is None:
            user = {
                "email": Config.DEMO_USER_EMAIL,
                "name": Config.DEMO_USER_NAME,
                "password": None,
                "createdAt": datetime.now(timezone.utc),
            }
            user["_id"] = db.users.insert_one(user).inserted_id
            logger.info("Created demo user")
        return _session(user)
    except Exception as e:
        logger.error(f"Demo login failed: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to start demo session"
        )


@auth_router.post("/signup", response_model=Session, status_code=status.HTTP_201_CREATED)
async def signup(user_data: UserSignup, db: Database = Depends(get_db)):
    """Register a new user."""
    try:
        # Check if user already exists
        if db.users.find_one({"email": user_data.email}):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Email already registered"
            )

        user_doc = {
            "email": user_data.email,
            "name": user_data.name,
            "password": hash_password(user_data.password),
            "createdAt": datetime.now(timezone.utc),
        }
        user_doc["_id"] = db.users.insert_one(user_doc).inserted_id
        logger.info(f"Registered user {user_doc['_id']}")
        return _session(user_doc)

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Signup failed: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create user"
        )


@auth_router.post("/login", response_model=Session)
async def login(user_credentials: UserLogin, db: Database = Depends(get_db)):
    """Authenticate user and return a session."""
    user = db.users.find_one({"email": user_credentials.email})

    if not user or not user.get("password") or not verify_password(user_credentials.password, user["password"]):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return _session(user)


@auth_router.get("/me", response_model=UserResponse)
async def get_current_user_info(current_user=Depends(get_current_user)):
    """Get current user information."""
    return serialize_user(current_user)
