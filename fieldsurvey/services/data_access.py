"""Storage access: one function per logical fetch or write.

Reads return domain objects built by `fieldsurvey.mapper`. Any failing query
aborts the whole call with `StorageError`; nothing is retried or cached.

Writes that replace a one-to-many child set (questions, options, link rows)
delete every child of the parent and bulk-insert the new set, inside the same
transaction as the parent upsert.
"""
import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from werkzeug.security import generate_password_hash

from .. import domain
from ..errors import NotFoundError, StaleCampaignError, StorageError, ValidationError, VoucherExhaustedError
from ..extensions import db
from ..mapper import (
    campaign_row_values,
    index_by,
    map_admin_from_db,
    map_campaigns_from_db,
    map_company_from_db,
    map_location_point_from_db,
    map_researcher_from_db,
    map_response_from_db,
    map_voucher_from_db,
    option_row_values,
)
from ..models import (
    Administrador,
    Campanha,
    CampanhaEmpresa,
    CampanhaPesquisador,
    Empresa,
    OpcaoPergunta,
    Pergunta,
    Pesquisador,
    PesquisadorLocalizacao,
    RascunhoEditor,
    Resposta,
    RespostaPesquisa,
    Voucher,
    new_id,
)
from ..utils.time import utcnow

logger = logging.getLogger(__name__)


def _fetch_all(model) -> list:
    try:
        return model.query.all()
    except SQLAlchemyError as e:
        logger.exception('query on %s failed', model.__tablename__)
        raise StorageError('Falha ao carregar dados.') from e


# ---------- Simple collections ----------
def get_admins() -> List[domain.Admin]:
    return [map_admin_from_db(r) for r in _fetch_all(Administrador)]


def get_companies() -> List[domain.Company]:
    return [map_company_from_db(r) for r in _fetch_all(Empresa)]


def get_researchers() -> List[domain.Researcher]:
    return [map_researcher_from_db(r) for r in _fetch_all(Pesquisador)]


def get_vouchers(company_id: Optional[str] = None) -> List[domain.Voucher]:
    rows = _fetch_all(Voucher)
    if company_id:
        rows = [r for r in rows if r.id_empresa == company_id]
    return [map_voucher_from_db(r) for r in rows]


# ---------- Composite reads ----------
def get_responses() -> List[domain.SurveyResponse]:
    headers = _fetch_all(RespostaPesquisa)
    answers_by_response = index_by(_fetch_all(Resposta), 'id_resposta_pesquisa')
    return [map_response_from_db(r, answers_by_response) for r in headers]


def get_full_campaigns() -> List[domain.Campaign]:
    return map_campaigns_from_db(
        _fetch_all(Campanha),
        _fetch_all(Pergunta),
        _fetch_all(OpcaoPergunta),
        _fetch_all(CampanhaEmpresa),
        _fetch_all(CampanhaPesquisador),
    )


def get_campaign_by_id(campaign_id: str) -> Optional[domain.Campaign]:
    try:
        row = db.session.get(Campanha, campaign_id)
        if row is None:
            return None
        questions = Pergunta.query.filter_by(id_campanha=campaign_id).order_by(Pergunta.ordem.asc()).all()
        question_ids = [q.id for q in questions]
        options = (
            OpcaoPergunta.query.filter(OpcaoPergunta.id_pergunta.in_(question_ids)).all()
            if question_ids else []
        )
        companies = CampanhaEmpresa.query.filter_by(id_campanha=campaign_id).all()
        researchers = CampanhaPesquisador.query.filter_by(id_campanha=campaign_id).all()
    except SQLAlchemyError as e:
        logger.exception('loading campaign %s failed', campaign_id)
        raise StorageError('Falha ao carregar campanha.') from e
    return map_campaigns_from_db([row], questions, options, companies, researchers)[0]


# ---------- Campaign save ----------
def validate_campaign(campaign: domain.Campaign) -> None:
    if not campaign.name or not campaign.theme:
        raise ValidationError('Por favor, preencha o nome e o tema da campanha.', code='name_theme_required')
    if campaign.end_time and not campaign.start_time:
        raise ValidationError('O horário de término exige um horário de início.', code='end_time_requires_start')


def _replace_questions(campaign_id: str, questions: List[domain.Question]) -> dict:
    """Delete every question/option of the campaign and insert the draft's set.

    Returns the correlation map {pre-save question id: persisted id}. Draft
    questions that already carry a persisted id keep it; temporary ids get a
    fresh one.
    """
    old_ids = [q.id for q in Pergunta.query.with_entities(Pergunta.id).filter_by(id_campanha=campaign_id).all()]
    if old_ids:
        OpcaoPergunta.query.filter(OpcaoPergunta.id_pergunta.in_(old_ids)).delete(synchronize_session='fetch')
    Pergunta.query.filter_by(id_campanha=campaign_id).delete(synchronize_session='fetch')

    # ids still present after the delete belong to other campaigns
    candidates = [q.id for q in questions if not domain.is_temp_id(q.id)]
    taken = set()
    if candidates:
        taken = {r.id for r in Pergunta.query.with_entities(Pergunta.id).filter(Pergunta.id.in_(candidates)).all()}

    persisted_ids = {}
    used = set()
    rows = []
    for order, q in enumerate(questions):
        persisted = q.id
        if domain.is_temp_id(q.id) or q.id in taken or q.id in used or len(q.id) > 36:
            persisted = new_id()
        used.add(persisted)
        persisted_ids.setdefault(q.id, persisted)
        rows.append(Pergunta(id=persisted, id_campanha=campaign_id, texto=q.text, tipo=q.type, ordem=order))
    db.session.add_all(rows)
    db.session.flush()

    options = []
    for q, row in zip(questions, rows):
        for order, opt in enumerate(q.options):
            options.append(OpcaoPergunta(**option_row_values(opt, row.id, order, persisted_ids)))
    if options:
        db.session.add_all(options)
        db.session.flush()
    return persisted_ids


def _replace_links(campaign_id: str, company_ids: List[str], researcher_ids: List[str]) -> None:
    CampanhaEmpresa.query.filter_by(id_campanha=campaign_id).delete(synchronize_session='fetch')
    CampanhaPesquisador.query.filter_by(id_campanha=campaign_id).delete(synchronize_session='fetch')
    db.session.add_all([CampanhaEmpresa(id_campanha=campaign_id, id_empresa=cid)
                        for cid in dict.fromkeys(company_ids)])
    db.session.add_all([CampanhaPesquisador(id_campanha=campaign_id, id_pesquisador=rid)
                        for rid in dict.fromkeys(researcher_ids)])


def save_campaign(campaign: domain.Campaign, expected_version: Optional[int] = None,
                  default_goal: int = 100) -> domain.Campaign:
    """Create or fully replace a campaign with its questions, options and links.

    The parent upsert and every child replacement run in one transaction. When
    updating, `expected_version` must match the stored version; a mismatch
    means someone else saved in between and raises StaleCampaignError.
    """
    validate_campaign(campaign)
    try:
        values = campaign_row_values(campaign, default_goal)
    except (TypeError, ValueError):
        raise ValidationError('Datas, horários ou meta de respostas inválidos.', code='invalid_campaign_fields')
    creating = campaign.id is None
    try:
        if creating:
            row = Campanha(id=new_id(), versao=1, **values)
            db.session.add(row)
            db.session.flush()
        else:
            row = db.session.get(Campanha, campaign.id)
            if row is None:
                raise NotFoundError('Campanha não encontrada.')
            expected = row.versao if expected_version is None else expected_version
            changes = {getattr(Campanha, key): value for key, value in values.items()}
            changes[Campanha.versao] = Campanha.versao + 1
            # matches no row once a concurrent save has bumped the version
            bumped = (Campanha.query
                      .filter(Campanha.id == row.id, Campanha.versao == expected)
                      .update(changes, synchronize_session=False))
            if not bumped:
                raise StaleCampaignError(
                    'A campanha foi alterada por outra pessoa. Recarregue antes de salvar.')
            db.session.expire(row)

        _replace_questions(row.id, campaign.questions)
        _replace_links(row.id, campaign.company_ids, campaign.researcher_ids)
        db.session.commit()
    except (NotFoundError, StaleCampaignError):
        db.session.rollback()
        raise
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.exception('saving campaign %s failed', campaign.id or '<new>')
        raise StorageError('Falha ao criar campanha.' if creating else 'Falha ao salvar campanha.') from e

    logger.info('campaign %s saved (version %s, %d questions)', row.id, row.versao, len(campaign.questions))
    return get_campaign_by_id(row.id)


# ---------- Companies / researchers ----------
def set_company_active(company_id: str, is_active: bool) -> domain.Company:
    """Flip a company's availability. Existing campaign links are left alone."""
    try:
        row = db.session.get(Empresa, company_id)
        if row is None:
            raise NotFoundError('Empresa não encontrada.')
        row.esta_ativa = bool(is_active)
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.exception('toggling company %s failed', company_id)
        raise StorageError('Falha ao atualizar status da empresa.') from e
    return map_company_from_db(row)


def create_company(name: str, contact_email: str, password: Optional[str] = None, **fields) -> domain.Company:
    if not name:
        raise ValidationError('Nome da empresa é obrigatório.', code='name_required')
    row = Empresa(
        nome=name,
        email_contato=contact_email,
        cnpj=fields.get('cnpj'),
        telefone_contato=fields.get('contact_phone'),
        pessoa_contato=fields.get('contact_person'),
        instagram=fields.get('instagram'),
        url_logo=fields.get('logo_url'),
        esta_ativa=True,
        senha_hash=generate_password_hash(password) if password else None,
    )
    try:
        db.session.add(row)
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.exception('creating company failed')
        raise StorageError('Falha ao criar empresa.') from e
    return map_company_from_db(row)


def create_researcher(name: str, email: str, password: Optional[str] = None, **fields) -> domain.Researcher:
    if not name:
        raise ValidationError('Nome do pesquisador é obrigatório.', code='name_required')
    row = Pesquisador(
        nome=name,
        email=email,
        telefone=fields.get('phone'),
        genero=fields.get('gender'),
        cor=fields.get('color'),
        url_foto=fields.get('photo_url'),
        esta_ativo=True,
        senha_hash=generate_password_hash(password) if password else None,
    )
    try:
        db.session.add(row)
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.exception('creating researcher failed')
        raise StorageError('Falha ao criar pesquisador.') from e
    return map_researcher_from_db(row)


# ---------- Vouchers ----------
def create_voucher(company_id: str, title: str, qr_code_value: str, total_quantity: int,
                   description: str = '', logo_url: Optional[str] = None) -> domain.Voucher:
    if not title or not qr_code_value:
        raise ValidationError('Título e código são obrigatórios.', code='voucher_fields_required')
    if total_quantity is None or int(total_quantity) < 0:
        raise ValidationError('Quantidade total inválida.', code='invalid_quantity')
    row = Voucher(
        id_empresa=company_id,
        titulo=title,
        descricao=description,
        valor_qrcode=qr_code_value,
        url_logo=logo_url,
        esta_ativo=True,
        quantidade_total=int(total_quantity),
        quantidade_usada=0,
    )
    try:
        db.session.add(row)
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.exception('creating voucher failed')
        raise StorageError('Falha ao criar voucher.') from e
    return map_voucher_from_db(row)


def _get_voucher_row(voucher_id: str, company_id: Optional[str]) -> Voucher:
    row = db.session.get(Voucher, voucher_id)
    if row is None or (company_id and row.id_empresa != company_id):
        raise NotFoundError('Voucher não encontrado.')
    return row


def redeem_voucher(voucher_id: str, company_id: Optional[str] = None) -> domain.Voucher:
    """Count one use. The used count never goes past the total quantity."""
    try:
        row = _get_voucher_row(voucher_id, company_id)
        if not row.esta_ativo:
            raise ValidationError('Voucher inativo.', code='voucher_inactive')
        updated = (
            Voucher.query
            .filter(Voucher.id == row.id, Voucher.quantidade_usada < Voucher.quantidade_total)
            .update({Voucher.quantidade_usada: Voucher.quantidade_usada + 1}, synchronize_session=False)
        )
        if not updated:
            db.session.rollback()
            raise VoucherExhaustedError('Todos os vouchers já foram utilizados.')
        db.session.commit()
        db.session.refresh(row)
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.exception('redeeming voucher %s failed', voucher_id)
        raise StorageError('Falha ao resgatar voucher.') from e
    return map_voucher_from_db(row)


def set_voucher_active(voucher_id: str, is_active: bool, company_id: Optional[str] = None) -> domain.Voucher:
    try:
        row = _get_voucher_row(voucher_id, company_id)
        row.esta_ativo = bool(is_active)
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.exception('toggling voucher %s failed', voucher_id)
        raise StorageError('Falha ao atualizar voucher.') from e
    return map_voucher_from_db(row)


# ---------- Responses ----------
def add_survey_response(response: domain.SurveyResponse, campaign: domain.Campaign) -> domain.SurveyResponse:
    """Store one respondent's pass through a campaign (header + answers, one transaction).

    Personal data is kept only when the campaign collects it.
    """
    known = {q.id for q in campaign.questions}
    unknown = [a.question_id for a in response.answers if a.question_id not in known]
    if unknown:
        raise ValidationError('Resposta para pergunta desconhecida.', code='unknown_question')

    collect = campaign.collect_user_info
    header = RespostaPesquisa(
        id=new_id(),
        id_campanha=campaign.id,
        id_pesquisador=response.researcher_id,
        nome_usuario=response.user_name if collect else None,
        telefone_usuario=response.user_phone if collect else None,
        idade_usuario=response.user_age if collect else None,
        data_envio=utcnow(),
    )
    try:
        db.session.add(header)
        db.session.add_all([
            Resposta(id_resposta_pesquisa=header.id, id_pergunta=a.question_id,
                     valor=None if a.answer is None else str(a.answer))
            for a in response.answers
        ])
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.exception('saving response for campaign %s failed', campaign.id)
        raise StorageError('Falha ao enviar resposta.') from e

    answers = index_by(Resposta.query.filter_by(id_resposta_pesquisa=header.id).all(), 'id_resposta_pesquisa')
    return map_response_from_db(header, answers)


# ---------- Location ----------
def add_location_update(researcher_id: str, latitude: float, longitude: float,
                        timestamp: Optional[datetime] = None) -> bool:
    """Append one location sample. Failures are logged, never raised."""
    try:
        db.session.add(PesquisadorLocalizacao(
            id_pesquisador=researcher_id,
            latitude=float(latitude),
            longitude=float(longitude),
            timestamp=timestamp or utcnow(),
        ))
        db.session.commit()
        return True
    except (SQLAlchemyError, TypeError, ValueError):
        db.session.rollback()
        logger.error('Failed to add location update for researcher %s', researcher_id, exc_info=True)
        return False


def get_researcher_route(researcher_id: str, start: datetime, end: datetime) -> List[domain.LocationPoint]:
    """Points of one researcher with start <= timestamp <= end, oldest first."""
    try:
        rows = (
            PesquisadorLocalizacao.query
            .filter(PesquisadorLocalizacao.id_pesquisador == researcher_id)
            .filter(PesquisadorLocalizacao.timestamp >= start)
            .filter(PesquisadorLocalizacao.timestamp <= end)
            .order_by(PesquisadorLocalizacao.timestamp.asc())
            .all()
        )
    except SQLAlchemyError as e:
        logger.exception('loading route of researcher %s failed', researcher_id)
        raise StorageError('Falha ao buscar rota.') from e
    return [map_location_point_from_db(r) for r in rows]


# ---------- Editor drafts ----------
def create_editor_draft(admin_id: str, state: dict) -> str:
    row = RascunhoEditor(id_administrador=admin_id, estado=state)
    try:
        db.session.add(row)
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.exception('creating editor draft failed')
        raise StorageError('Falha ao abrir o editor de campanha.') from e
    return row.id


def load_editor_draft(draft_id: str, admin_id: str) -> dict:
    row = db.session.get(RascunhoEditor, draft_id)
    if row is None or row.id_administrador != admin_id:
        raise NotFoundError('Rascunho não encontrado.')
    return dict(row.estado or {})


def store_editor_draft(draft_id: str, admin_id: str, state: dict) -> None:
    try:
        row = db.session.get(RascunhoEditor, draft_id)
        if row is None or row.id_administrador != admin_id:
            raise NotFoundError('Rascunho não encontrado.')
        row.estado = state
        row.atualizado_em = utcnow()
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.exception('storing editor draft %s failed', draft_id)
        raise StorageError('Falha ao salvar rascunho.') from e


def delete_editor_draft(draft_id: str) -> None:
    try:
        row = db.session.get(RascunhoEditor, draft_id)
        if row is not None:
            db.session.delete(row)
            db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.exception('deleting editor draft %s failed', draft_id)
        raise StorageError('Falha ao descartar rascunho.') from e
