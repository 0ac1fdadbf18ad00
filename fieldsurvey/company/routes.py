import io

from flask import Blueprint, Response, current_app, request, send_file

from ..auth.routes import current_context, role_required
from ..context import ROLE_COMPANY
from ..errors import ValidationError
from ..exports.csv_export import build_respondents_csv
from ..exports.pdf_export import build_respondents_pdf
from ..exports.qr import make_qr_png
from ..services import analytics, data_access

bp = Blueprint('company', __name__, url_prefix='/company/api')


def _own_responses():
    return analytics.company_responses(current_context(), data_access.get_full_campaigns(),
                                       data_access.get_responses())


@bp.get('/dashboard')
@role_required(ROLE_COMPANY)
def dashboard():
    return analytics.company_dashboard(current_context(), data_access.get_full_campaigns(),
                                       data_access.get_responses())


@bp.get('/respondents.csv')
@role_required(ROLE_COMPANY)
def respondents_csv():
    data = build_respondents_csv(_own_responses())
    return Response(
        data,
        mimetype='text/csv; charset=utf-8',
        headers={'Content-Disposition': 'attachment; filename=dados_respondentes.csv'},
    )


@bp.get('/respondents.pdf')
@role_required(ROLE_COMPANY)
def respondents_pdf():
    ctx = current_context()
    pdf_bytes = build_respondents_pdf(_own_responses(), ctx.name, current_app.config.get('TIME_ZONE'))
    return send_file(
        io.BytesIO(pdf_bytes),
        mimetype='application/pdf',
        download_name='dados_respondentes.pdf',
        as_attachment=True,
    )


# ---------- Vouchers ----------
@bp.get('/vouchers')
@role_required(ROLE_COMPANY)
def vouchers_list():
    return {'items': [v.to_dict() for v in data_access.get_vouchers(current_context().profile_id)]}


@bp.post('/vouchers')
@role_required(ROLE_COMPANY)
def vouchers_create():
    payload = request.get_json(silent=True) or {}
    try:
        total = int(payload.get('totalQuantity'))
    except (TypeError, ValueError):
        raise ValidationError('Quantidade total inválida.', code='invalid_quantity')
    voucher = data_access.create_voucher(
        company_id=current_context().profile_id,
        title=(payload.get('title') or '').strip(),
        qr_code_value=(payload.get('qrCodeValue') or '').strip(),
        total_quantity=total,
        description=payload.get('description') or '',
        logo_url=payload.get('logoUrl') or None,
    )
    return voucher.to_dict(), 201


@bp.get('/vouchers/<voucher_id>/qr.png')
@role_required(ROLE_COMPANY)
def voucher_qr(voucher_id: str):
    company_id = current_context().profile_id
    voucher = next((v for v in data_access.get_vouchers(company_id) if v.id == voucher_id), None)
    if voucher is None:
        return {'error': 'not_found', 'message': 'Voucher não encontrado.'}, 404
    return send_file(io.BytesIO(make_qr_png(voucher.qr_code_value)), mimetype='image/png')


@bp.post('/vouchers/<voucher_id>/redeem')
@role_required(ROLE_COMPANY)
def voucher_redeem(voucher_id: str):
    return data_access.redeem_voucher(voucher_id, current_context().profile_id).to_dict()


@bp.post('/vouchers/<voucher_id>/active')
@role_required(ROLE_COMPANY)
def voucher_set_active(voucher_id: str):
    payload = request.get_json(silent=True) or {}
    voucher = data_access.set_voucher_active(voucher_id, bool(payload.get('isActive')),
                                             current_context().profile_id)
    return voucher.to_dict()
