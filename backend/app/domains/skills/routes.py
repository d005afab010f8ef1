from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from ...deps import get_current_user, require_admin
from ...models.skill import Skill
from ...models.user import User
from ...platform.database import get_db
from ...schemas.skill import SkillCreate, SkillResponse

router = APIRouter(prefix="/skills", tags=["Skills"])


@router.get("", response_model=List[SkillResponse])
def list_skills(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return db.query(Skill).order_by(Skill.name.asc()).all()


@router.post("", response_model=SkillResponse, status_code=status.HTTP_201_CREATED)
def create_skill(
    data: SkillCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    if db.query(Skill.id).filter(Skill.slug == data.slug).first():
        raise HTTPException(status_code=400, detail="Skill slug already exists")
    skill = Skill(slug=data.slug, name=data.name.strip())
    try:
        db.add(skill)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(skill)
    return skill
