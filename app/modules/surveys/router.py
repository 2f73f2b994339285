from typing import Any
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from app.core.db import get_db
from app.core.exceptions import ConflictError
from app.modules.surveys import schemas, service
from app.modules.surveys.models import ReportSurvey

router = APIRouter()

async def open_survey(token: str, db: AsyncSession = Depends(get_db)) -> ReportSurvey:
    # Resolved before the body is validated: unknown token is 404, answered is 409
    survey = await service.get_by_token(db, token)
    if survey.submitted_at is not None:
        raise ConflictError("Survey already submitted")
    return survey

@router.get("/{token}", response_model=schemas.SurveyRead)
async def read_survey(
    token: str,
    db: AsyncSession = Depends(get_db)
) -> Any:
    """
    Public: the survey a citizen opens from the invitation link.
    """
    return await service.get_survey(db, token)

@router.post("/{token}", response_model=schemas.SurveySubmitted)
async def submit_survey(
    survey_in: schemas.SurveySubmit,
    survey: ReportSurvey = Depends(open_survey),
    db: AsyncSession = Depends(get_db)
) -> Any:
    return await service.submit_survey(db, survey.token, survey_in.rating, survey_in.comment)
