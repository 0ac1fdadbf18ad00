from datetime import datetime

from fieldsurvey.domain import Campaign, SurveyResponse
from fieldsurvey.exports.csv_export import build_respondents_csv
from fieldsurvey.exports.pdf_export import build_admin_report_pdf, build_respondents_pdf, respondent_rows
from fieldsurvey.exports.qr import make_qr_png
from fieldsurvey.services import analytics


def _respondent(name=None, phone=None, age=None):
    return SurveyResponse(id=None, campaign_id='c1', researcher_id=None,
                          user_name=name, user_phone=phone, user_age=age,
                          timestamp=datetime(2024, 5, 1, 12, 0))


def test_csv_quotes_and_missing_age():
    data = build_respondents_csv([_respondent('Ana "A"', '11 9999', None)])
    assert data == '\ufeff"Nome","Idade","Telefone"\n"Ana ""A""",N/A,"11 9999"'.encode('utf-8')


def test_csv_bare_age_and_empty_fields():
    data = build_respondents_csv([_respondent('Bia', None, 31), _respondent()])
    lines = data.decode('utf-8').lstrip('\ufeff').split('\n')
    assert lines[1:] == ['"Bia",31,""', '"",N/A,""']


def test_csv_header_only_without_responses():
    assert build_respondents_csv([]) == '\ufeff"Nome","Idade","Telefone"'.encode('utf-8')


def test_pdf_rows_fall_back_to_not_applicable():
    assert respondent_rows([_respondent()]) == [['N/A', 'N/A', 'N/A']]


def test_respondents_pdf_is_a_pdf():
    many = [_respondent(f'Pessoa {i}', '119', 20 + i % 40) for i in range(120)]
    pdf = build_respondents_pdf(many, 'ACME', 'UTC')
    assert pdf.startswith(b'%PDF')


def test_admin_report_pdf_renders_with_and_without_data():
    empty = analytics.admin_dashboard([], [], [], [], 'UTC')
    assert build_admin_report_pdf(empty, 'Pesquisa', 'UTC').startswith(b'%PDF')

    campaigns = [Campaign(id='c1', name='Feira', theme='Varejo')]
    dashboard = analytics.admin_dashboard([], campaigns, [], [_respondent()], 'UTC')
    assert build_admin_report_pdf(dashboard, 'Pesquisa', 'UTC').startswith(b'%PDF')


def test_qr_png():
    assert make_qr_png('VOUCHER-123').startswith(b'\x89PNG')
