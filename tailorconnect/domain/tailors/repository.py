"""Tailor repository - Database operations for tailor profiles"""

from typing import Optional

from sqlalchemy.orm import Session

from ...models import TailorProfile


class TailorRepository:
    """Repository for tailor profile lookups"""

    @staticmethod
    def get_by_username(db: Session, username: str) -> Optional[TailorProfile]:
        return db.query(TailorProfile).filter(TailorProfile.username == username.lower()).first()

    @staticmethod
    def get_by_user_id(db: Session, user_id: str) -> Optional[TailorProfile]:
        return db.query(TailorProfile).filter(TailorProfile.user_id == user_id).first()

    @staticmethod
    def get_by_id(db: Session, tailor_id: int) -> Optional[TailorProfile]:
        return db.query(TailorProfile).filter(TailorProfile.id == tailor_id).first()

    @staticmethod
    def upsert_profile(db: Session, user_id: str, **fields) -> TailorProfile:
        profile = TailorRepository.get_by_user_id(db, user_id)
        if profile is None:
            profile = TailorProfile(user_id=user_id, **fields)
            db.add(profile)
        else:
            for key, value in fields.items():
                setattr(profile, key, value)
        db.commit()
        db.refresh(profile)
        return profile
