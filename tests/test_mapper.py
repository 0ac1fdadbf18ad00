from datetime import date, datetime, time
from types import SimpleNamespace as Row

from fieldsurvey import mapper
from fieldsurvey.domain import END_SURVEY, Campaign, QuestionOption


def _campaign_row(**kw):
    values = dict(
        id='c1', nome='Feira', descricao='', tema='Varejo', texto_lgpd='LGPD',
        esta_ativa=True, coletar_info_usuario=False, meta_respostas=50,
        data_inicio=date(2024, 5, 1), data_fim=None, hora_inicio=time(8, 30), hora_fim=None,
        url_redirecionamento_final=None, versao=3,
    )
    values.update(kw)
    return Row(**values)


def test_option_jump_to_question_wins_over_end_flag():
    row = Row(valor='Sim', pular_para_pergunta='q2', pular_para_final=True, ordem=0)
    assert mapper.map_question_option_from_db(row).jump_to == 'q2'


def test_option_end_flag_maps_to_sentinel():
    row = Row(valor='Não', pular_para_pergunta=None, pular_para_final=True, ordem=0)
    assert mapper.map_question_option_from_db(row).jump_to == END_SURVEY


def test_option_without_jump():
    row = Row(valor='Talvez', pular_para_pergunta=None, pular_para_final=False, ordem=0)
    assert mapper.map_question_option_from_db(row).jump_to is None


def test_campaign_is_assembled_from_sibling_tables():
    questions = [
        Row(id='q2', id_campanha='c1', texto='Segunda', tipo='text', ordem=1),
        Row(id='q1', id_campanha='c1', texto='Primeira', tipo='multiple_choice', ordem=0),
        Row(id='qx', id_campanha='other', texto='Outra', tipo='text', ordem=0),
    ]
    options = [
        Row(id='o2', id_pergunta='q1', valor='B', pular_para_pergunta=None, pular_para_final=True, ordem=1),
        Row(id='o1', id_pergunta='q1', valor='A', pular_para_pergunta='q2', pular_para_final=False, ordem=0),
    ]
    companies = [Row(id_campanha='c1', id_empresa='e1'), Row(id_campanha='other', id_empresa='e2')]
    researchers = [Row(id_campanha='c1', id_pesquisador='p1')]

    [c] = mapper.map_campaigns_from_db([_campaign_row()], questions, options, companies, researchers)

    assert [q.id for q in c.questions] == ['q1', 'q2']
    assert [(o.value, o.jump_to) for o in c.questions[0].options] == [('A', 'q2'), ('B', END_SURVEY)]
    assert c.company_ids == ['e1']
    assert c.researcher_ids == ['p1']
    assert c.start_date == '2024-05-01'
    assert c.start_time == '08:30'
    assert c.end_time is None
    assert c.version == 3


def test_campaign_without_children():
    [c] = mapper.map_campaigns_from_db([_campaign_row()], [], [], [], [])
    assert c.questions == []
    assert c.company_ids == []


def test_response_mapping_keeps_answers_of_its_header_only():
    header = Row(id='r1', id_campanha='c1', id_pesquisador='p1', nome_usuario='Ana',
                 telefone_usuario='11', idade_usuario=30, data_envio=datetime(2024, 5, 1, 12, 0))
    answers = mapper.index_by([
        Row(id_resposta_pesquisa='r1', id_pergunta='q1', valor='5'),
        Row(id_resposta_pesquisa='r2', id_pergunta='q1', valor='1'),
    ], 'id_resposta_pesquisa')
    r = mapper.map_response_from_db(header, answers)
    assert r.answer_for('q1') == '5'
    assert r.to_dict()['timestamp'] == '2024-05-01T12:00:00Z'


def test_campaign_row_values_normalizes_optional_fields():
    c = Campaign(name='X', theme='T', response_goal=0, start_date='2024-05-01', start_time='09:00',
                 final_redirect_url='')
    values = mapper.campaign_row_values(c, default_goal=100)
    assert values['meta_respostas'] == 100
    assert values['data_inicio'] == date(2024, 5, 1)
    assert values['hora_inicio'] == time(9, 0)
    assert values['data_fim'] is None
    assert values['url_redirecionamento_final'] is None


def test_option_row_values_resolves_jumps_through_correlation_map():
    ids = {'q_tmp': 'persisted-1'}
    assert mapper.option_row_values(QuestionOption('A', 'q_tmp'), 'qq', 0, ids)['pular_para_pergunta'] == 'persisted-1'

    dangling = mapper.option_row_values(QuestionOption('B', 'q_missing'), 'qq', 1, ids)
    assert dangling['pular_para_pergunta'] is None
    assert dangling['pular_para_final'] is False

    end = mapper.option_row_values(QuestionOption('C', END_SURVEY), 'qq', 2, ids)
    assert end['pular_para_pergunta'] is None
    assert end['pular_para_final'] is True
