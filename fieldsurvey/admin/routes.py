import io

from flask import Blueprint, current_app, request, send_file

from .. import domain
from ..auth.routes import current_context, role_required
from ..context import ROLE_ADMIN
from ..errors import NotFoundError, ValidationError
from ..exports.pdf_export import build_admin_report_pdf
from ..services import analytics, data_access, tracking
from ..services.editor import CampaignEditor

bp = Blueprint('admin', __name__, url_prefix='/admin/api')


def _json() -> dict:
    return request.get_json(silent=True) or {}


def _dashboard() -> dict:
    return analytics.admin_dashboard(
        data_access.get_companies(),
        data_access.get_full_campaigns(),
        data_access.get_vouchers(),
        data_access.get_responses(),
        current_app.config.get('TIME_ZONE'),
    )


@bp.get('/dashboard')
@role_required(ROLE_ADMIN)
def dashboard():
    return _dashboard()


@bp.get('/report.pdf')
@role_required(ROLE_ADMIN)
def report_pdf():
    pdf_bytes = build_admin_report_pdf(_dashboard(), current_app.config.get('APP_TITLE'),
                                       current_app.config.get('TIME_ZONE'))
    return send_file(
        io.BytesIO(pdf_bytes),
        mimetype='application/pdf',
        download_name='relatorio_admin.pdf',
        as_attachment=True,
    )


# ---------- Campaigns ----------
@bp.get('/campaigns')
@role_required(ROLE_ADMIN)
def campaigns_list():
    return {'items': [c.to_dict() for c in data_access.get_full_campaigns()]}


@bp.get('/campaigns/<campaign_id>')
@role_required(ROLE_ADMIN)
def campaigns_get(campaign_id: str):
    campaign = data_access.get_campaign_by_id(campaign_id)
    if campaign is None:
        raise NotFoundError('Campanha não encontrada.')
    return campaign.to_dict()


# ---------- Campaign editor ----------
def _editor_response(draft_id: str, editor: CampaignEditor, **extra) -> dict:
    body = {'draftId': draft_id, 'state': editor.to_state()}
    if editor.pending:
        body['confirmation'] = editor.pending.prompt
    body.update(extra)
    return body


def _load_editor(draft_id: str) -> CampaignEditor:
    state = data_access.load_editor_draft(draft_id, current_context().profile_id)
    return CampaignEditor.from_state(state)


def _store_editor(draft_id: str, editor: CampaignEditor) -> None:
    data_access.store_editor_draft(draft_id, current_context().profile_id, editor.to_state())


def _company(company_id: str) -> domain.Company:
    for c in data_access.get_companies():
        if c.id == company_id:
            return c
    raise NotFoundError('Empresa não encontrada.')


@bp.post('/editor')
@role_required(ROLE_ADMIN)
def editor_open():
    campaign_id = _json().get('campaignId')
    if campaign_id:
        editor = CampaignEditor.for_existing(campaign_id)
        if editor is None:
            raise NotFoundError('Campanha não encontrada.')
    else:
        editor = CampaignEditor.for_new(current_app.config['DEFAULT_RESPONSE_GOAL'],
                                        current_app.config['DEFAULT_LGPD_TEXT'])
    draft_id = data_access.create_editor_draft(current_context().profile_id, editor.to_state())
    return _editor_response(draft_id, editor), 201


@bp.get('/editor/<draft_id>')
@role_required(ROLE_ADMIN)
def editor_get(draft_id: str):
    return _editor_response(draft_id, _load_editor(draft_id))


@bp.delete('/editor/<draft_id>')
@role_required(ROLE_ADMIN)
def editor_discard(draft_id: str):
    _load_editor(draft_id)
    data_access.delete_editor_draft(draft_id)
    return {'ok': True}


@bp.post('/editor/<draft_id>/step')
@role_required(ROLE_ADMIN)
def editor_step(draft_id: str):
    payload = _json()
    editor = _load_editor(draft_id)
    action = payload.get('action')
    if action == 'next':
        editor.next_step()
    elif action == 'back':
        editor.previous_step()
    elif action == 'goto':
        try:
            editor.go_to_step(int(payload.get('step')))
        except (TypeError, ValueError):
            raise ValidationError('Etapa inválida.', code='invalid_step')
    else:
        raise ValidationError('Ação inválida.', code='invalid_action')
    _store_editor(draft_id, editor)
    return _editor_response(draft_id, editor)


@bp.patch('/editor/<draft_id>/details')
@role_required(ROLE_ADMIN)
def editor_details(draft_id: str):
    editor = _load_editor(draft_id)
    editor.update_details(_json())
    _store_editor(draft_id, editor)
    return _editor_response(draft_id, editor)


@bp.post('/editor/<draft_id>/times')
@role_required(ROLE_ADMIN)
def editor_times(draft_id: str):
    payload = _json()
    editor = _load_editor(draft_id)
    if 'startTimeEnabled' in payload:
        editor.set_start_time_enabled(bool(payload['startTimeEnabled']))
    if 'endTimeEnabled' in payload:
        editor.set_end_time_enabled(bool(payload['endTimeEnabled']))
    _store_editor(draft_id, editor)
    return _editor_response(draft_id, editor)


@bp.put('/editor/<draft_id>/questions')
@role_required(ROLE_ADMIN)
def editor_questions(draft_id: str):
    items = _json().get('questions')
    if not isinstance(items, list):
        raise ValidationError('Lista de perguntas inválida.', code='invalid_questions')
    editor = _load_editor(draft_id)
    editor.set_questions([domain.Question.from_dict(q) for q in items])
    _store_editor(draft_id, editor)
    return _editor_response(draft_id, editor)


@bp.get('/editor/<draft_id>/participants')
@role_required(ROLE_ADMIN)
def editor_participants(draft_id: str):
    editor = _load_editor(draft_id)
    companies = CampaignEditor.filter_companies(data_access.get_companies(), request.args.get('companySearch', ''))
    researchers = CampaignEditor.filter_researchers(data_access.get_researchers(),
                                                    request.args.get('researcherSearch', ''))
    selected_companies = set(editor.draft.company_ids)
    selected_researchers = set(editor.draft.researcher_ids)
    return {
        'companies': [dict(c.to_dict(), selected=c.id in selected_companies, selectable=c.is_active)
                      for c in companies],
        'researchers': [dict(r.to_dict(), selected=r.id in selected_researchers) for r in researchers],
    }


@bp.post('/editor/<draft_id>/companies/<company_id>/select')
@role_required(ROLE_ADMIN)
def editor_toggle_company(draft_id: str, company_id: str):
    editor = _load_editor(draft_id)
    selected = editor.toggle_company(_company(company_id))
    _store_editor(draft_id, editor)
    return _editor_response(draft_id, editor, selected=selected)


@bp.post('/editor/<draft_id>/researchers/<researcher_id>/select')
@role_required(ROLE_ADMIN)
def editor_toggle_researcher(draft_id: str, researcher_id: str):
    editor = _load_editor(draft_id)
    selected = editor.toggle_researcher(researcher_id)
    _store_editor(draft_id, editor)
    return _editor_response(draft_id, editor, selected=selected)


@bp.post('/editor/<draft_id>/companies/<company_id>/request-toggle')
@role_required(ROLE_ADMIN)
def editor_request_company_toggle(draft_id: str, company_id: str):
    editor = _load_editor(draft_id)
    editor.request_toggle_company_active(_company(company_id))
    _store_editor(draft_id, editor)
    return _editor_response(draft_id, editor)


@bp.post('/editor/<draft_id>/collect-user-info/request-toggle')
@role_required(ROLE_ADMIN)
def editor_request_collect_toggle(draft_id: str):
    editor = _load_editor(draft_id)
    editor.request_toggle_collect_user_info()
    _store_editor(draft_id, editor)
    return _editor_response(draft_id, editor)


@bp.post('/editor/<draft_id>/confirm')
@role_required(ROLE_ADMIN)
def editor_confirm(draft_id: str):
    editor = _load_editor(draft_id)
    company = editor.confirm()
    _store_editor(draft_id, editor)
    extra = {'company': company.to_dict()} if company else {}
    return _editor_response(draft_id, editor, **extra)


@bp.post('/editor/<draft_id>/cancel')
@role_required(ROLE_ADMIN)
def editor_cancel(draft_id: str):
    editor = _load_editor(draft_id)
    editor.cancel()
    _store_editor(draft_id, editor)
    return _editor_response(draft_id, editor)


@bp.post('/editor/<draft_id>/save')
@role_required(ROLE_ADMIN)
def editor_save(draft_id: str):
    editor = _load_editor(draft_id)
    try:
        campaign = editor.save(current_app.config['DEFAULT_RESPONSE_GOAL'])
    except ValidationError:
        _store_editor(draft_id, editor)
        raise
    data_access.delete_editor_draft(draft_id)
    return {'campaign': campaign.to_dict(), 'message': 'Campanha salva com sucesso!'}


# ---------- Companies ----------
@bp.get('/companies')
@role_required(ROLE_ADMIN)
def companies_list():
    return {'items': [c.to_dict() for c in data_access.get_companies()]}


@bp.post('/companies')
@role_required(ROLE_ADMIN)
def companies_create():
    payload = _json()
    company = data_access.create_company(
        name=(payload.get('name') or '').strip(),
        contact_email=(payload.get('contactEmail') or '').strip().lower() or None,
        password=payload.get('password') or None,
        cnpj=payload.get('cnpj'),
        contact_phone=payload.get('contactPhone'),
        contact_person=payload.get('contactPerson'),
        instagram=payload.get('instagram'),
        logo_url=payload.get('logoUrl'),
    )
    return company.to_dict(), 201


@bp.post('/companies/<company_id>/active')
@role_required(ROLE_ADMIN)
def companies_set_active(company_id: str):
    return data_access.set_company_active(company_id, bool(_json().get('isActive'))).to_dict()


# ---------- Researchers ----------
@bp.get('/researchers')
@role_required(ROLE_ADMIN)
def researchers_list():
    return {'items': [r.to_dict() for r in data_access.get_researchers()]}


@bp.post('/researchers')
@role_required(ROLE_ADMIN)
def researchers_create():
    payload = _json()
    researcher = data_access.create_researcher(
        name=(payload.get('name') or '').strip(),
        email=(payload.get('email') or '').strip().lower() or None,
        password=payload.get('password') or None,
        phone=payload.get('phone'),
        gender=payload.get('gender'),
        color=payload.get('color'),
        photo_url=payload.get('photoUrl'),
    )
    return researcher.to_dict(), 201


@bp.get('/researchers/<researcher_id>/route')
@role_required(ROLE_ADMIN)
def researchers_route(researcher_id: str):
    day = request.args.get('date') or ''
    return tracking.get_route(researcher_id, day)


# ---------- Vouchers ----------
@bp.get('/vouchers')
@role_required(ROLE_ADMIN)
def vouchers_list():
    return {'items': [v.to_dict() for v in data_access.get_vouchers()]}
