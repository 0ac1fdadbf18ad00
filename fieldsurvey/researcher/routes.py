from flask import Blueprint, request

from .. import domain
from ..auth.routes import current_context, role_required, store_tracking_feed, tracking_feed
from ..context import ROLE_RESEARCHER
from ..errors import NotFoundError, ValidationError
from ..services import analytics, data_access

bp = Blueprint('researcher', __name__, url_prefix='/researcher/api')


def _json() -> dict:
    return request.get_json(silent=True) or {}


def _assigned_campaign(campaign_id: str) -> domain.Campaign:
    """An active campaign the logged-in researcher works on, or 404."""
    campaign = data_access.get_campaign_by_id(campaign_id)
    if campaign is None or not campaign.is_active or current_context().profile_id not in campaign.researcher_ids:
        raise NotFoundError('Campanha não encontrada.')
    return campaign


@bp.get('/campaigns')
@role_required(ROLE_RESEARCHER)
def campaigns():
    items = analytics.researcher_campaigns(
        current_context(),
        data_access.get_full_campaigns(),
        data_access.get_responses(),
        request.args.get('q', ''),
    )
    return {'items': items}


@bp.get('/campaigns/<campaign_id>')
@role_required(ROLE_RESEARCHER)
def campaign_start(campaign_id: str):
    campaign = _assigned_campaign(campaign_id)
    first = campaign.first_question()
    return {
        'id': campaign.id,
        'name': campaign.name,
        'description': campaign.description,
        'lgpdText': campaign.lgpd_text,
        'collectUserInfo': campaign.collect_user_info,
        'finalRedirectUrl': campaign.final_redirect_url,
        'question': first.to_dict() if first else None,
        'finished': first is None,
    }


@bp.post('/campaigns/<campaign_id>/next')
@role_required(ROLE_RESEARCHER)
def campaign_next(campaign_id: str):
    payload = _json()
    campaign = _assigned_campaign(campaign_id)
    question_id = payload.get('questionId')
    if campaign.question_by_id(question_id) is None:
        raise ValidationError('Pergunta desconhecida.', code='unknown_question')
    nxt = campaign.next_question(question_id, payload.get('answer'))
    return {'question': nxt.to_dict() if nxt else None, 'finished': nxt is None}


@bp.post('/campaigns/<campaign_id>/responses')
@role_required(ROLE_RESEARCHER)
def campaign_submit(campaign_id: str):
    payload = _json()
    campaign = _assigned_campaign(campaign_id)

    age = payload.get('userAge')
    if age in (None, ''):
        age = None
    else:
        try:
            age = int(age)
        except (TypeError, ValueError):
            raise ValidationError('Idade inválida.', code='invalid_age')
        if age < 0:
            raise ValidationError('Idade inválida.', code='invalid_age')

    answers = []
    for item in payload.get('answers') or []:
        value = item.get('answer')
        answers.append(domain.Answer(question_id=str(item.get('questionId') or ''),
                                     answer=None if value is None else str(value)))

    response = domain.SurveyResponse(
        id=None,
        campaign_id=campaign.id,
        researcher_id=current_context().profile_id,
        user_name=(payload.get('userName') or '').strip() or None,
        user_phone=(payload.get('userPhone') or '').strip() or None,
        user_age=age,
        answers=answers,
    )
    saved = data_access.add_survey_response(response, campaign)
    return {'response': saved.to_dict(), 'redirectUrl': campaign.final_redirect_url}, 201


# ---------- Location tracking ----------
@bp.post('/tracking/start')
@role_required(ROLE_RESEARCHER)
def tracking_start():
    feed = tracking_feed()
    body = feed.start()
    store_tracking_feed(feed)
    return body


@bp.post('/tracking/stop')
@role_required(ROLE_RESEARCHER)
def tracking_stop():
    feed = tracking_feed()
    feed.stop()
    store_tracking_feed(feed)
    return {'active': False}


@bp.post('/tracking/sample')
@role_required(ROLE_RESEARCHER)
def tracking_sample():
    payload = _json()
    recorded = tracking_feed().record_sample(payload.get('latitude'), payload.get('longitude'))
    return {'recorded': recorded}, 202


@bp.post('/tracking/error')
@role_required(ROLE_RESEARCHER)
def tracking_error():
    payload = _json()
    try:
        code = int(payload.get('code'))
    except (TypeError, ValueError):
        raise ValidationError('Código de erro inválido.', code='invalid_error_code')
    feed = tracking_feed()
    notice = feed.report_error(code, payload.get('message') or '')
    store_tracking_feed(feed)
    return {'active': feed.active, 'notice': notice}
