from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ..database import get_db
from ..models import ChallengeTemplate
from ..schemas import ChallengeListResponse, ChallengeTemplateSchema, SeedResponse
from ..security import RequireAPIAuth
from ..services.seeder import seed_challenges
from ..services.stores import ChallengeCatalog

router = APIRouter(prefix="/challenges", tags=["challenges"], dependencies=[RequireAPIAuth])


def _to_schema(t: ChallengeTemplate) -> ChallengeTemplateSchema:
    return ChallengeTemplateSchema(
        id=t.id,
        title=t.title,
        description=t.description,
        rule_type=t.rule_type,
        duration_days=t.duration_days,
        rule_params=t.rule_params or {},
        difficulty=t.difficulty,
        reward=t.reward,
    )


@router.get("/", response_model=ChallengeListResponse, summary="List challenge templates")
def list_challenges(db: Session = Depends(get_db)):
    return ChallengeListResponse(challenges=[_to_schema(t) for t in ChallengeCatalog(db).list_all()])


@router.post("/seed", response_model=SeedResponse, summary="Upsert the built-in challenge catalog")
def seed_sample_challenges(db: Session = Depends(get_db)):
    return SeedResponse(**seed_challenges(db))


@router.get("/{challenge_id}", response_model=ChallengeTemplateSchema, summary="Get one challenge template")
def get_challenge(challenge_id: str, db: Session = Depends(get_db)):
    template = ChallengeCatalog(db).get(challenge_id)
    if template is None:
        raise HTTPException(status_code=404, detail="Challenge template not found.")
    return _to_schema(template)
