"""Row -> domain translation.

Every function here is pure: it reads storage rows (ORM instances of
`fieldsurvey.models`) and builds `fieldsurvey.domain` objects. Nothing is
validated; a missing column value simply passes through as None.

Composite entities (campaigns, questions, responses) are rebuilt from whole
sibling tables. Callers index those tables by foreign key once with
`index_by` and hand the index to the per-row mapper, so mapping N parents
costs O(N + children) rather than N full scans.
"""
from collections import defaultdict
from typing import Dict, Iterable, List, Optional

from . import domain
from .utils.time import fmt_date, fmt_time, iso_utc, parse_date, parse_time


def index_by(rows: Iterable, attr: str) -> Dict[str, list]:
    out = defaultdict(list)
    for r in rows:
        out[getattr(r, attr)].append(r)
    return out


def map_admin_from_db(row) -> domain.Admin:
    return domain.Admin(
        id=row.id,
        name=row.nome,
        email=row.email,
        phone=row.telefone,
        dob=fmt_date(row.data_nascimento),
        photo_url=row.url_foto,
        is_active=row.esta_ativo,
    )


def map_company_from_db(row) -> domain.Company:
    return domain.Company(
        id=row.id,
        name=row.nome,
        logo_url=row.url_logo,
        cnpj=row.cnpj,
        contact_email=row.email_contato,
        contact_phone=row.telefone_contato,
        contact_person=row.pessoa_contato,
        instagram=row.instagram,
        creation_date=iso_utc(row.data_criacao),
        is_active=row.esta_ativa,
    )


def map_researcher_from_db(row) -> domain.Researcher:
    return domain.Researcher(
        id=row.id,
        name=row.nome,
        email=row.email,
        phone=row.telefone,
        gender=row.genero,
        dob=fmt_date(row.data_nascimento),
        photo_url=row.url_foto,
        is_active=row.esta_ativo,
        color=row.cor,
    )


def map_voucher_from_db(row) -> domain.Voucher:
    return domain.Voucher(
        id=row.id,
        company_id=row.id_empresa,
        title=row.titulo,
        description=row.descricao,
        qr_code_value=row.valor_qrcode,
        is_active=row.esta_ativo,
        logo_url=row.url_logo,
        total_quantity=row.quantidade_total or 0,
        used_count=row.quantidade_usada or 0,
    )


def map_question_option_from_db(row) -> domain.QuestionOption:
    if row.pular_para_pergunta:
        jump_to = row.pular_para_pergunta
    elif row.pular_para_final:
        jump_to = domain.END_SURVEY
    else:
        jump_to = None
    return domain.QuestionOption(value=row.valor, jump_to=jump_to)


def map_question_from_db(row, options_by_question: Dict[str, list]) -> domain.Question:
    options = sorted(options_by_question.get(row.id, []), key=lambda o: o.ordem or 0)
    return domain.Question(
        id=row.id,
        text=row.texto,
        type=row.tipo,
        options=[map_question_option_from_db(o) for o in options],
    )


def map_campaign_from_db(row, questions_by_campaign: Dict[str, list], options_by_question: Dict[str, list],
                         companies_by_campaign: Dict[str, list],
                         researchers_by_campaign: Dict[str, list]) -> domain.Campaign:
    questions = sorted(questions_by_campaign.get(row.id, []), key=lambda q: q.ordem or 0)
    return domain.Campaign(
        id=row.id,
        name=row.nome,
        description=row.descricao,
        theme=row.tema,
        lgpd_text=row.texto_lgpd,
        questions=[map_question_from_db(q, options_by_question) for q in questions],
        company_ids=[link.id_empresa for link in companies_by_campaign.get(row.id, [])],
        researcher_ids=[link.id_pesquisador for link in researchers_by_campaign.get(row.id, [])],
        response_goal=row.meta_respostas,
        is_active=row.esta_ativa,
        collect_user_info=row.coletar_info_usuario,
        start_date=fmt_date(row.data_inicio),
        end_date=fmt_date(row.data_fim),
        start_time=fmt_time(row.hora_inicio),
        end_time=fmt_time(row.hora_fim),
        final_redirect_url=row.url_redirecionamento_final,
        version=row.versao,
    )


def map_campaigns_from_db(campaign_rows, question_rows, option_rows, company_links,
                          researcher_links) -> List[domain.Campaign]:
    questions_by_campaign = index_by(question_rows, 'id_campanha')
    options_by_question = index_by(option_rows, 'id_pergunta')
    companies_by_campaign = index_by(company_links, 'id_campanha')
    researchers_by_campaign = index_by(researcher_links, 'id_campanha')
    return [
        map_campaign_from_db(c, questions_by_campaign, options_by_question,
                             companies_by_campaign, researchers_by_campaign)
        for c in campaign_rows
    ]


def map_response_from_db(row, answers_by_response: Dict[str, list]) -> domain.SurveyResponse:
    return domain.SurveyResponse(
        id=row.id,
        campaign_id=row.id_campanha,
        researcher_id=row.id_pesquisador,
        user_name=row.nome_usuario,
        user_phone=row.telefone_usuario,
        user_age=row.idade_usuario,
        timestamp=row.data_envio,
        answers=[
            domain.Answer(question_id=a.id_pergunta, answer=a.valor)
            for a in answers_by_response.get(row.id, [])
        ],
    )


def map_location_point_from_db(row) -> domain.LocationPoint:
    return domain.LocationPoint(
        id=row.id,
        researcher_id=row.id_pesquisador,
        latitude=row.latitude,
        longitude=row.longitude,
        timestamp=row.timestamp,
    )


def campaign_row_values(campaign: domain.Campaign, default_goal: int = 100) -> dict:
    """Column values for the `campanhas` upsert. Empty optional fields become NULL."""
    goal = campaign.response_goal or default_goal
    return {
        'nome': campaign.name,
        'descricao': campaign.description or '',
        'tema': campaign.theme,
        'texto_lgpd': campaign.lgpd_text or '',
        'esta_ativa': bool(campaign.is_active),
        'coletar_info_usuario': bool(campaign.collect_user_info),
        'meta_respostas': max(int(goal), 1),
        'data_inicio': parse_date(campaign.start_date),
        'data_fim': parse_date(campaign.end_date),
        'hora_inicio': parse_time(campaign.start_time),
        'hora_fim': parse_time(campaign.end_time),
        'url_redirecionamento_final': campaign.final_redirect_url or None,
    }


def option_row_values(option: domain.QuestionOption, question_id: str, order: int,
                      persisted_ids: Dict[str, str]) -> dict:
    """Column values for one `opcoes_perguntas` row.

    `persisted_ids` maps every pre-save question id of the draft to the id it
    was stored under. A jump to an id missing from the map is stored as no jump.
    """
    jump_question: Optional[str] = None
    if option.jump_to and option.jump_to != domain.END_SURVEY:
        jump_question = persisted_ids.get(option.jump_to)
    return {
        'id_pergunta': question_id,
        'valor': option.value,
        'pular_para_pergunta': jump_question,
        'pular_para_final': option.jump_to == domain.END_SURVEY,
        'ordem': order,
    }
