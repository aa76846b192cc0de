from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session

from snackbasket.auth import Principal, admin_access, staff_access
from snackbasket.db import get_db
from snackbasket.dependencies import form_int, form_str, get_client_ip
from snackbasket.security.csrf import verify_csrf
from snackbasket.services.audit_service import log_audit
from snackbasket.services.shop_service import list_shops, shop_names_by_id
from snackbasket.services.survey_service import (
    RATING_FIELDS,
    RATING_LABELS,
    create_survey,
    list_surveys,
    survey_averages,
)

router = APIRouter(prefix='/surveys', tags=['surveys'])

CONCERN_OPTIONS = [
    'Late delivery',
    'Damaged packaging',
    'Short supply',
    'Pricing',
    'Product freshness',
    'Billing issue',
]


def _form_context(db: Session, principal: Principal, **extra) -> dict:
    return {
        'principal': principal,
        'shops': list_shops(db),
        'rating_fields': RATING_FIELDS,
        'rating_labels': RATING_LABELS,
        'concern_options': CONCERN_OPTIONS,
        'error': None,
        **extra,
    }


@router.get('')
def surveys_page(
    request: Request,
    shop_id: int | None = Query(default=None),
    principal: Principal = Depends(admin_access),
    db: Session = Depends(get_db),
):
    surveys = list_surveys(db, shop_id=shop_id)
    return request.app.state.templates.TemplateResponse(
        request,
        'surveys.html',
        {
            'principal': principal,
            'surveys': surveys,
            'averages': survey_averages(surveys),
            'rating_fields': RATING_FIELDS,
            'rating_labels': RATING_LABELS,
            'shop_names': shop_names_by_id(db, {s.shop_id for s in surveys if s.shop_id}),
        },
    )


@router.get('/new')
def new_survey_page(
    request: Request,
    principal: Principal = Depends(staff_access),
    db: Session = Depends(get_db),
):
    return request.app.state.templates.TemplateResponse(request, 'survey_form.html', _form_context(db, principal))


@router.post('/new')
async def new_survey_submit(
    request: Request,
    principal: Principal = Depends(staff_access),
    db: Session = Depends(get_db),
    _: None = Depends(verify_csrf),
):
    form = await request.form()
    concerns = [str(value) for value in form.getlist('concerns')]
    other_concern = form_str(form, 'other_concern')
    if other_concern:
        concerns.append(other_concern)

    try:
        ratings = {field: form_int(form, field) for field in RATING_FIELDS}
        survey = create_survey(
            db,
            respondent_name=form_str(form, 'respondent_name'),
            respondent_phone=form_str(form, 'respondent_phone') or None,
            shop_id=form_int(form, 'shop_id'),
            ratings={field: value for field, value in ratings.items() if value is not None},
            feedback=form_str(form, 'feedback') or None,
            concerns=concerns,
            created_by_user_id=principal.id,
        )
    except ValueError as exc:
        db.rollback()
        return request.app.state.templates.TemplateResponse(
            request,
            'survey_form.html',
            _form_context(db, principal, error=str(exc)),
            status_code=400,
        )

    log_audit(
        db,
        actor_user_id=principal.id,
        action='SURVEY_SUBMITTED',
        ip=get_client_ip(request),
        metadata={'survey_id': survey.id, 'shop_id': survey.shop_id},
    )
    db.commit()
    return RedirectResponse('/home', status_code=303)
