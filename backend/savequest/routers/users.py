from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ..database import get_db
from ..models import User
from ..schemas import UserCreate, UserSchema, UserUpdate
from ..security import RequireAPIAuth

router = APIRouter(prefix="/users", tags=["users"], dependencies=[RequireAPIAuth])


@router.post("/", response_model=UserSchema, status_code=201, summary="Create a user")
def create_user(payload: UserCreate, db: Session = Depends(get_db)):
    if db.get(User, payload.id) is not None:
        raise HTTPException(status_code=409, detail="User already exists.")
    user = User(**payload.model_dump())
    db.add(user)
    db.commit()
    db.refresh(user)
    return UserSchema.model_validate(user)


@router.get("/{user_id}", response_model=UserSchema, summary="Get a user")
def get_user(user_id: str, db: Session = Depends(get_db)):
    return UserSchema.model_validate(_get_or_404(db, user_id))


@router.put("/{user_id}", response_model=UserSchema, summary="Update a user")
def update_user(user_id: str, payload: UserUpdate, db: Session = Depends(get_db)):
    user = _get_or_404(db, user_id)
    for field, val in payload.model_dump(exclude_unset=True).items():
        setattr(user, field, val)
    db.commit()
    db.refresh(user)
    return UserSchema.model_validate(user)


@router.delete("/{user_id}", status_code=204, summary="Delete a user")
def delete_user(user_id: str, db: Session = Depends(get_db)):
    user = _get_or_404(db, user_id)
    db.delete(user)
    db.commit()


# ── Helpers ──────────────────────────────────────────────────────────────────


def _get_or_404(db: Session, user_id: str) -> User:
    user = db.get(User, user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found.")
    return user
