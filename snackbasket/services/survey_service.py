from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from snackbasket.models import Survey
from snackbasket.services.errors import NotFoundError, ValidationFailure
from snackbasket.services.shop_service import PHONE_RE, get_shop
from snackbasket.services.time_utils import now_utc

RATING_FIELDS = ('product_quality', 'pricing', 'delivery_experience', 'packaging', 'overall_satisfaction')
RATING_LABELS = {
    'product_quality': 'Product quality',
    'pricing': 'Pricing',
    'delivery_experience': 'Delivery experience',
    'packaging': 'Packaging',
    'overall_satisfaction': 'Overall satisfaction',
}


def _validate_rating(field: str, value: int) -> int:
    if not isinstance(value, int) or isinstance(value, bool) or not 1 <= value <= 5:
        raise ValidationFailure(f'{RATING_LABELS[field]} rating must be between 1 and 5')
    return value


def create_survey(
    db: Session,
    *,
    respondent_name: str,
    ratings: dict[str, int],
    shop_id: int | None = None,
    respondent_phone: str | None = None,
    feedback: str | None = None,
    concerns: list[str] | None = None,
    created_by_user_id: int | None = None,
) -> Survey:
    if not (respondent_name or '').strip():
        raise ValidationFailure('Respondent name is required')
    phone = (respondent_phone or '').strip() or None
    if phone and not PHONE_RE.match(phone):
        raise ValidationFailure('Invalid phone number format')
    if shop_id is not None:
        get_shop(db, shop_id)

    missing = [field for field in RATING_FIELDS if field not in ratings]
    if missing:
        raise ValidationFailure(f'{RATING_LABELS[missing[0]]} rating is required')
    checked = {field: _validate_rating(field, ratings[field]) for field in RATING_FIELDS}

    survey = Survey(
        shop_id=shop_id,
        respondent_name=respondent_name.strip(),
        respondent_phone=phone,
        feedback=feedback.strip() if feedback and feedback.strip() else None,
        concerns=[concern.strip() for concern in (concerns or []) if concern and concern.strip()],
        created_by_user_id=created_by_user_id,
        created_at=now_utc(),
        **checked,
    )
    db.add(survey)
    db.flush()
    return survey


def get_survey(db: Session, survey_id: int) -> Survey:
    survey = db.execute(select(Survey).where(Survey.id == survey_id)).scalar_one_or_none()
    if not survey:
        raise NotFoundError('Survey not found')
    return survey


def list_surveys(db: Session, *, shop_id: int | None = None) -> list[Survey]:
    query = select(Survey).order_by(Survey.created_at.desc(), Survey.id.desc())
    if shop_id:
        query = query.where(Survey.shop_id == shop_id)
    return db.execute(query).scalars().all()


def survey_averages(surveys: list[Survey]) -> dict[str, Decimal | None]:
    if not surveys:
        return {field: None for field in RATING_FIELDS}
    count = Decimal(len(surveys))
    return {
        field: (Decimal(sum(getattr(survey, field) for survey in surveys)) / count).quantize(
            Decimal('0.01'), rounding=ROUND_HALF_UP
        )
        for field in RATING_FIELDS
    }
