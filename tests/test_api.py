import pytest
from sqlalchemy import inspect

from fieldsurvey import create_app
from fieldsurvey.config import TestConfig
from fieldsurvey.domain import END_SURVEY, Campaign, Question, QuestionOption, SurveyResponse
from fieldsurvey.extensions import db
from fieldsurvey.services import data_access


def _campaign(app, company_id, researcher_id, **kw):
    """Persist an active campaign and return (campaign_id, [question ids])."""
    draft = Campaign(
        name=kw.pop('name', 'Feira'), theme='Varejo', is_active=True,
        company_ids=[company_id], researcher_ids=[researcher_id],
        questions=[
            Question('q_1', 'Gostou?', 'multiple_choice', [QuestionOption('Sim', 'q_3'), QuestionOption('Não', END_SURVEY)]),
            Question('q_2', 'Por quê?', 'text'),
            Question('q_3', 'Nota', 'rating'),
        ],
        **kw,
    )
    with app.app_context():
        saved = data_access.save_campaign(draft)
        return saved.id, [q.id for q in saved.questions]


def test_health(client):
    resp = client.get('/api/health')
    assert resp.status_code == 200
    assert resp.get_json()['status'] == 'ok'


def test_bad_credentials(client, make_admin):
    make_admin()
    resp = client.post('/auth/login', json={'email': 'root@test.local', 'password': 'nope'})
    assert resp.status_code == 401
    assert resp.get_json()['error'] == 'invalid_credentials'


def test_roles_are_enforced(client, make_company, login):
    assert client.get('/admin/api/dashboard').status_code == 401

    make_company()
    login('ACME@test.local', 'company')
    assert client.get('/admin/api/dashboard').status_code == 403
    assert client.get('/company/api/dashboard').status_code == 200


def test_inactive_account_cannot_log_in(client, make_researcher):
    make_researcher(active=False)
    resp = client.post('/auth/login', json={'email': 'rita@test.local', 'password': 'passw0rd-Test!'})
    assert resp.status_code == 401


def test_me_and_logout(client, make_admin, login):
    make_admin()
    login('root@test.local')
    assert client.get('/auth/me').get_json()['user']['role'] == 'admin'
    client.post('/auth/logout')
    assert client.get('/auth/me').status_code == 401


class TestCampaignEditor:
    def open(self, client, **payload):
        resp = client.post('/admin/api/editor', json=payload)
        assert resp.status_code == 201, resp.get_json()
        return resp.get_json()['draftId']

    def test_full_flow(self, client, make_admin, make_company, make_researcher, login):
        make_admin()
        company_id = make_company()
        researcher_id = make_researcher()
        login('root@test.local', 'admin')

        draft = self.open(client)
        state = client.patch(f'/admin/api/editor/{draft}/details',
                             json={'name': 'Feira', 'theme': 'Varejo', 'responseGoal': 10}).get_json()['state']
        assert state['draft']['name'] == 'Feira'

        questions = [
            {'id': 'q_a', 'text': 'Gostou?', 'type': 'multiple_choice',
             'options': [{'value': 'Sim', 'jumpTo': 'q_b'}, {'value': 'Não', 'jumpTo': END_SURVEY}]},
            {'id': 'q_b', 'text': 'Nota', 'type': 'rating', 'options': []},
        ]
        assert client.put(f'/admin/api/editor/{draft}/questions', json={'questions': questions}).status_code == 200
        assert client.post(f'/admin/api/editor/{draft}/step', json={'action': 'next'}).get_json()['state']['step'] == 2

        client.post(f'/admin/api/editor/{draft}/companies/{company_id}/select')
        client.post(f'/admin/api/editor/{draft}/researchers/{researcher_id}/select')
        participants = client.get(f'/admin/api/editor/{draft}/participants?companySearch=acm').get_json()
        assert [c['selected'] for c in participants['companies']] == [True]

        resp = client.post(f'/admin/api/editor/{draft}/save')
        assert resp.status_code == 200, resp.get_json()
        campaign = resp.get_json()['campaign']
        assert campaign['companyIds'] == [company_id]
        assert campaign['researcherIds'] == [researcher_id]
        assert campaign['questions'][0]['options'][0]['jumpTo'] == campaign['questions'][1]['id']
        assert campaign['questions'][0]['options'][1]['jumpTo'] == END_SURVEY

        assert client.get(f'/admin/api/editor/{draft}').status_code == 404
        assert len(client.get('/admin/api/campaigns').get_json()['items']) == 1

    def test_save_without_theme_goes_back_to_details(self, client, make_admin, login):
        make_admin()
        login('root@test.local')
        draft = self.open(client)
        client.patch(f'/admin/api/editor/{draft}/details', json={'name': 'Feira'})
        client.post(f'/admin/api/editor/{draft}/step', json={'action': 'goto', 'step': 3})

        resp = client.post(f'/admin/api/editor/{draft}/save')
        assert resp.status_code == 400
        assert resp.get_json()['error'] == 'name_theme_required'
        assert client.get(f'/admin/api/editor/{draft}').get_json()['state']['step'] == 1

    def test_collect_user_info_confirmation(self, client, make_admin, login):
        make_admin()
        login('root@test.local')
        draft = self.open(client)

        body = client.post(f'/admin/api/editor/{draft}/collect-user-info/request-toggle').get_json()
        assert 'ATIVAR' in body['confirmation']
        body = client.post(f'/admin/api/editor/{draft}/cancel').get_json()
        assert body['state']['draft']['collectUserInfo'] is False

        client.post(f'/admin/api/editor/{draft}/collect-user-info/request-toggle')
        body = client.post(f'/admin/api/editor/{draft}/confirm').get_json()
        assert body['state']['draft']['collectUserInfo'] is True
        assert body['state']['pending'] is None

    def test_company_deactivation_confirmation(self, client, make_admin, make_company, login):
        make_admin()
        company_id = make_company()
        login('root@test.local')
        draft = self.open(client)

        client.post(f'/admin/api/editor/{draft}/companies/{company_id}/request-toggle')
        body = client.post(f'/admin/api/editor/{draft}/confirm').get_json()
        assert body['company']['isActive'] is False

        resp = client.post(f'/admin/api/editor/{draft}/companies/{company_id}/select')
        assert resp.get_json()['selected'] is False

    def test_edit_existing_and_stale_save(self, app, client, make_admin, make_company, make_researcher, login):
        make_admin()
        campaign_id, _ = _campaign(app, make_company(), make_researcher())
        login('root@test.local')

        first = self.open(client, campaignId=campaign_id)
        second = self.open(client, campaignId=campaign_id)
        client.patch(f'/admin/api/editor/{first}/details', json={'name': 'Feira A'})
        client.patch(f'/admin/api/editor/{second}/details', json={'name': 'Feira B'})

        assert client.post(f'/admin/api/editor/{first}/save').status_code == 200
        resp = client.post(f'/admin/api/editor/{second}/save')
        assert resp.status_code == 409
        assert resp.get_json()['error'] == 'stale_campaign'

    def test_unknown_draft(self, client, make_admin, login):
        make_admin()
        login('root@test.local')
        assert client.get('/admin/api/editor/nope').status_code == 404

    @pytest.mark.parametrize('questions', [
        ['Gostou?'],
        [{'id': 'q_a', 'text': 'Nota', 'type': 'slider', 'options': []}],
        [{'id': 'q_a', 'text': 'Gostou?', 'type': 'multiple_choice', 'options': ['Sim']}],
    ])
    def test_malformed_questions_are_rejected(self, client, make_admin, login, questions):
        make_admin()
        login('root@test.local')
        draft = self.open(client)

        resp = client.put(f'/admin/api/editor/{draft}/questions', json={'questions': questions})
        assert resp.status_code == 400
        assert resp.get_json()['error'] == 'invalid_questions'
        assert client.get(f'/admin/api/editor/{draft}').get_json()['state']['draft']['questions'] == []


def test_admin_creates_accounts_and_reads_route(client, make_admin, login):
    make_admin()
    login('root@test.local')
    resp = client.post('/admin/api/companies', json={'name': 'ACME', 'contactEmail': 'ACME@Test.local'})
    assert resp.status_code == 201
    assert resp.get_json()['contactEmail'] == 'acme@test.local'

    researcher = client.post('/admin/api/researchers', json={'name': 'Rita', 'email': 'rita@test.local'}).get_json()
    route = client.get(f"/admin/api/researchers/{researcher['id']}/route?date=2024-05-01").get_json()
    assert route['empty'] is True
    assert client.get(f"/admin/api/researchers/{researcher['id']}/route?date=ontem").status_code == 400


def test_admin_report_pdf(client, make_admin, login):
    make_admin()
    login('root@test.local')
    resp = client.get('/admin/api/report.pdf')
    assert resp.status_code == 200
    assert resp.data.startswith(b'%PDF')


class TestResearcher:
    @pytest.fixture()
    def setup(self, app, make_company, make_researcher, login):
        company_id = make_company()
        researcher_id = make_researcher()
        campaign_id, qids = _campaign(app, company_id, researcher_id, collect_user_info=True)
        body = login('rita@test.local', 'researcher')
        return body, campaign_id, qids

    def test_login_starts_tracking(self, setup):
        body, _, _ = setup
        assert body['tracking']['active'] is True

    def test_home_lists_assigned_campaigns(self, client, setup):
        _, campaign_id, _ = setup
        items = client.get('/researcher/api/campaigns').get_json()['items']
        assert [i['id'] for i in items] == [campaign_id]
        assert client.get('/researcher/api/campaigns?q=zzz').get_json()['items'] == []

    def test_questionnaire_branching(self, client, setup):
        _, campaign_id, qids = setup
        start = client.get(f'/researcher/api/campaigns/{campaign_id}').get_json()
        assert start['question']['id'] == qids[0]
        assert start['collectUserInfo'] is True

        nxt = client.post(f'/researcher/api/campaigns/{campaign_id}/next',
                          json={'questionId': qids[0], 'answer': 'Sim'}).get_json()
        assert nxt['question']['id'] == qids[2]
        done = client.post(f'/researcher/api/campaigns/{campaign_id}/next',
                           json={'questionId': qids[0], 'answer': 'Não'}).get_json()
        assert done['finished'] is True

    def test_submit_response(self, app, client, setup):
        _, campaign_id, qids = setup
        resp = client.post(f'/researcher/api/campaigns/{campaign_id}/responses', json={
            'userName': 'Ana', 'userPhone': '119', 'userAge': '30',
            'answers': [{'questionId': qids[0], 'answer': 'Sim'}, {'questionId': qids[2], 'answer': 5}],
        })
        assert resp.status_code == 201, resp.get_json()
        assert resp.get_json()['response']['userAge'] == 30
        with app.app_context():
            [stored] = data_access.get_responses()
            assert stored.answer_for(qids[2]) == '5'
            assert stored.researcher_id is not None

    @pytest.mark.parametrize('age', [-1, '-30', 'trinta'])
    def test_invalid_age_is_rejected(self, app, client, setup, age):
        _, campaign_id, qids = setup
        resp = client.post(f'/researcher/api/campaigns/{campaign_id}/responses', json={
            'userAge': age, 'answers': [{'questionId': qids[0], 'answer': 'Sim'}],
        })
        assert resp.status_code == 400
        assert resp.get_json()['error'] == 'invalid_age'
        with app.app_context():
            assert data_access.get_responses() == []

    def test_unassigned_campaign_is_hidden(self, app, client, setup, make_company, make_researcher):
        other_id, _ = _campaign(app, make_company('Beta', 'beta@test.local'),
                                make_researcher('Outro', 'outro@test.local'))
        assert client.get(f'/researcher/api/campaigns/{other_id}').status_code == 404

    def test_tracking_endpoints(self, client, setup):
        resp = client.post('/researcher/api/tracking/sample', json={'latitude': -23.5, 'longitude': -46.6})
        assert resp.status_code == 202
        assert resp.get_json()['recorded'] is True

        first = client.post('/researcher/api/tracking/error', json={'code': 1}).get_json()
        assert first['notice'] is not None
        assert first['active'] is False
        second = client.post('/researcher/api/tracking/error', json={'code': 1}).get_json()
        assert second['notice'] is None

        assert client.post('/researcher/api/tracking/sample',
                           json={'latitude': 1, 'longitude': 1}).get_json()['recorded'] is False


class TestCompany:
    @pytest.fixture()
    def company(self, app, make_company, make_researcher, login):
        company_id = make_company()
        researcher_id = make_researcher()
        mine, _ = _campaign(app, company_id, researcher_id, collect_user_info=True)
        theirs, _ = _campaign(app, make_company('Beta', 'beta@test.local'), researcher_id,
                              name='Outra', collect_user_info=True)
        with app.app_context():
            for campaign_id, name in ((mine, 'Ana "A"'), (theirs, 'Zeca')):
                campaign = data_access.get_campaign_by_id(campaign_id)
                data_access.add_survey_response(
                    SurveyResponse(id=None, campaign_id=campaign_id, researcher_id=researcher_id,
                                   user_name=name, user_phone='119'),
                    campaign,
                )
        login('acme@test.local', 'company')
        return company_id

    def test_dashboard_counts_own_campaigns(self, client, company):
        totals = client.get('/company/api/dashboard').get_json()['totals']
        assert totals['responses'] == 1
        assert totals['averageSatisfaction'] == 'N/A'

    def test_csv_export_is_scoped_to_company(self, client, company):
        resp = client.get('/company/api/respondents.csv')
        assert resp.status_code == 200
        assert 'dados_respondentes.csv' in resp.headers['Content-Disposition']
        text = resp.data.decode('utf-8')
        assert '"Ana ""A""",N/A,"119"' in text
        assert 'Zeca' not in text

    def test_pdf_export(self, client, company):
        resp = client.get('/company/api/respondents.pdf')
        assert resp.status_code == 200
        assert resp.data.startswith(b'%PDF')

    def test_voucher_lifecycle(self, client, company):
        resp = client.post('/company/api/vouchers', json={'title': 'Brinde', 'qrCodeValue': 'QR-1', 'totalQuantity': 1})
        assert resp.status_code == 201
        voucher_id = resp.get_json()['id']

        assert client.get(f'/company/api/vouchers/{voucher_id}/qr.png').data.startswith(b'\x89PNG')
        assert client.post(f'/company/api/vouchers/{voucher_id}/redeem').get_json()['usedCount'] == 1
        resp = client.post(f'/company/api/vouchers/{voucher_id}/redeem')
        assert resp.status_code == 409
        assert resp.get_json()['error'] == 'voucher_exhausted'

    def test_bad_voucher_quantity(self, client, company):
        resp = client.post('/company/api/vouchers', json={'title': 'Brinde', 'qrCodeValue': 'QR-1', 'totalQuantity': 'x'})
        assert resp.status_code == 400


@pytest.mark.parametrize('rating', ['nan', 'inf', '-inf'])
def test_non_finite_rating_does_not_break_company_dashboard(app, client, make_company, make_researcher,
                                                            login, rating):
    campaign_id, qids = _campaign(app, make_company(), make_researcher())
    login('rita@test.local', 'researcher')
    resp = client.post(f'/researcher/api/campaigns/{campaign_id}/responses', json={
        'answers': [{'questionId': qids[0], 'answer': 'Sim'}, {'questionId': qids[2], 'answer': rating}],
    })
    assert resp.status_code == 201, resp.get_json()
    client.post('/auth/logout')

    login('acme@test.local', 'company')
    resp = client.get('/company/api/dashboard')
    assert resp.status_code == 200
    assert resp.get_json()['totals']['responses'] == 1
    assert resp.get_json()['totals']['averageSatisfaction'] == 'N/A'


def test_app_factory_leaves_schema_to_migrations():
    app = create_app(TestConfig)
    with app.app_context():
        assert inspect(db.engine).get_table_names() == []


def test_create_admin_command(app, client):
    result = app.test_cli_runner().invoke(args=['create-admin', '--name', 'Chefe'])
    assert 'admin@test.local' in result.output

    resp = client.post('/auth/login', json={'email': 'admin@test.local', 'password': 'secret', 'role': 'admin'})
    assert resp.status_code == 200
    assert resp.get_json()['user']['name'] == 'Chefe'
