import os
from typing import Optional, Dict, Any

import firebase_admin
import structlog
from firebase_admin import auth, credentials
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..config import get_settings
from ..models.user import User, UserRole

logger = structlog.get_logger(__name__)

settings = get_settings()

_firebase_app = None

def initialize_firebase():
    global _firebase_app
    if _firebase_app is None:
        try:
            if os.path.exists(settings.firebase_service_account_path):
                cred = credentials.Certificate(settings.firebase_service_account_path)
            else:
                # Application default credentials (Cloud Run, GOOGLE_APPLICATION_CREDENTIALS)
                cred = credentials.ApplicationDefault()

            options = {"projectId": settings.firebase_project_id} if settings.firebase_project_id else None
            _firebase_app = firebase_admin.initialize_app(cred, options)
        except Exception as e:
            logger.error("Firebase initialization failed", error=str(e))
            return None
    return _firebase_app

def verify_firebase_token(token: str) -> Optional[Dict[str, Any]]:
    try:
        app = initialize_firebase()
        if not app:
            logger.warning("Firebase app not initialized")
            return None
        return auth.verify_id_token(token, app=app)
    except Exception as e:
        logger.warning("Token verification failed", error=str(e))
        return None

def role_from_claims(claims: Dict[str, Any]) -> str:
    role = claims.get("role")
    if role in {r.value for r in UserRole}:
        return role
    return UserRole.STUDENT.value

async def get_or_create_user(db: Session, firebase_uid: str, email: str, full_name: str, role: str = UserRole.STUDENT.value) -> User:
    user = db.query(User).filter(User.firebase_uid == firebase_uid).first()
    if user:
        if user.role != role:
            # Custom claims are the source of truth for roles
            user.role = role
            db.commit()
        return user

    try:
        user = User(
            user_id=firebase_uid,
            firebase_uid=firebase_uid,
            email=email,
            full_name=full_name,
            role=role
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user
    except SQLAlchemyError as e:
        db.rollback()
        raise Exception(f"Failed to create user: {str(e)}")
