"""Authentication service: password hashing, sessions, user management"""
import logging
import secrets
from datetime import datetime, timedelta

from passlib.context import CryptContext
from sqlalchemy.orm import Session

from merchantdesk.models.user import User, UserSession, ROLE_ADMIN
from merchantdesk.config import get_settings

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

MIN_NAME_LENGTH = 2
MIN_PASSWORD_LENGTH = 6


class RegistrationError(ValueError):
    pass


class EmailAlreadyRegistered(RegistrationError):
    pass


def normalize_email(email: str | None) -> str:
    return (email or "").strip().lower()


def hash_password(plain: str) -> str:
    return pwd_context.hash(plain)


def verify_password(plain: str, hashed: str | None) -> bool:
    if not hashed:
        return False
    return pwd_context.verify(plain, hashed)


def get_user_by_email(db: Session, email: str) -> User | None:
    return db.query(User).filter(User.email == normalize_email(email)).first()


def register_user(db: Session, name: str, email: str, password: str) -> User:
    """Create an email/password account."""
    name = (name or "").strip()
    if len(name) < MIN_NAME_LENGTH:
        raise RegistrationError(f"Name must be at least {MIN_NAME_LENGTH} characters")
    if len(password or "") < MIN_PASSWORD_LENGTH:
        raise RegistrationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    if get_user_by_email(db, email):
        raise EmailAlreadyRegistered("User already exists")

    return create_user(db, email, password, name)


def create_user(db: Session, email: str, password: str | None, name: str, role: str | None = None) -> User:
    """Create a new user account."""
    user = User(
        name=name,
        email=normalize_email(email),
        password_hash=hash_password(password) if password else None,
    )
    if role:
        user.role = role
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def authenticate(db: Session, email: str, password: str) -> User | None:
    """Verify credentials and return user, or None."""
    user = (
        db.query(User)
        .filter(User.email == normalize_email(email), User.is_active == True)  # noqa: E712
        .first()
    )
    if not user or not verify_password(password, user.password_hash):
        return None
    user.last_login = datetime.utcnow()
    db.commit()
    return user


def upsert_google_user(db: Session, google_id: str, email: str, name: str | None, picture: str | None) -> User:
    """Find or create the user behind a Google sign-in.

    Lookup order: Google ID, then an existing account with the same email
    (which gets linked), then a brand-new password-less user.
    """
    user = db.query(User).filter(User.google_id == google_id).first()
    if not user:
        user = get_user_by_email(db, email)
        if user:
            user.google_id = google_id
            logger.info(f"Linked Google identity to existing user {user.email}")
        else:
            user = User(
                google_id=google_id,
                name=name or normalize_email(email).split("@")[0],
                email=normalize_email(email),
                google_picture=picture,
            )
            db.add(user)
            logger.info(f"Created user {user.email} from Google sign-in")

    if picture and user.google_picture != picture:
        user.google_picture = picture
    user.last_login = datetime.utcnow()
    db.commit()
    db.refresh(user)
    return user


# ── Sessions ────────────────────────────────────────────────

def create_session(db: Session, user_id: int) -> str:
    """Create a new session token for the user."""
    settings = get_settings()
    token = secrets.token_hex(32)
    session = UserSession(
        user_id=user_id,
        token=token,
        expires_at=datetime.utcnow() + timedelta(hours=settings.session_duration_hours),
    )
    db.add(session)
    db.commit()
    return token


def validate_session(db: Session, token: str) -> User | None:
    """Return the user for a valid, non-expired session token."""
    session = (
        db.query(UserSession)
        .filter(UserSession.token == token, UserSession.expires_at > datetime.utcnow())
        .first()
    )
    if not session:
        return None
    return db.query(User).filter(User.id == session.user_id, User.is_active == True).first()  # noqa: E712


def delete_session(db: Session, token: str) -> None:
    """Remove a session (logout)."""
    db.query(UserSession).filter(UserSession.token == token).delete()
    db.commit()


def cleanup_expired(db: Session) -> int:
    """Delete expired sessions. Returns count removed."""
    count = db.query(UserSession).filter(UserSession.expires_at <= datetime.utcnow()).delete()
    db.commit()
    return count


def seed_initial_user(db: Session) -> None:
    """Create the first admin user from env vars if no users exist."""
    settings = get_settings()
    if not settings.initial_admin_email or not settings.initial_admin_password:
        return
    if db.query(User).first():
        return
    create_user(
        db,
        settings.initial_admin_email,
        settings.initial_admin_password,
        settings.initial_admin_name,
        role=ROLE_ADMIN,
    )
    logger.info(f"Seeded initial admin user: {settings.initial_admin_email}")
