"""Three-step campaign editor: Details -> Questions -> Participants/Team.

The editor owns one mutable draft campaign. Moving between steps never
validates; the name/theme check happens at save time and sends the editor
back to the details step. Actions with side effects outside the draft (a
company's active flag) or with privacy impact (collecting respondent data)
are staged as a pending confirmation and only applied on `confirm()`.

The whole editor round-trips through `to_state()`/`from_state()` so the
views can park it in the `rascunhos_editor` table between requests.
"""
from dataclasses import dataclass
from typing import Callable, List, Optional

from .. import domain
from ..errors import ValidationError
from . import data_access

STEP_DETAILS = 1
STEP_QUESTIONS = 2
STEP_PARTICIPANTS = 3
FIRST_STEP = STEP_DETAILS
LAST_STEP = STEP_PARTICIPANTS

DETAIL_FIELDS = {
    'name': 'name',
    'description': 'description',
    'theme': 'theme',
    'lgpdText': 'lgpd_text',
    'responseGoal': 'response_goal',
    'isActive': 'is_active',
    'startDate': 'start_date',
    'endDate': 'end_date',
    'startTime': 'start_time',
    'endTime': 'end_time',
    'finalRedirectUrl': 'final_redirect_url',
}

PENDING_COMPANY_ACTIVE = 'company_active'
PENDING_COLLECT_USER_INFO = 'collect_user_info'


@dataclass
class PendingConfirmation:
    kind: str
    target_id: Optional[str] = None
    new_value: Optional[bool] = None
    label: str = ''

    def to_dict(self) -> dict:
        return {'kind': self.kind, 'targetId': self.target_id, 'newValue': self.new_value, 'label': self.label}

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> Optional['PendingConfirmation']:
        if not data:
            return None
        return cls(kind=data['kind'], target_id=data.get('targetId'),
                   new_value=data.get('newValue'), label=data.get('label') or '')

    @property
    def prompt(self) -> str:
        verb = 'ATIVAR' if self.new_value else 'DESATIVAR'
        if self.kind == PENDING_COMPANY_ACTIVE:
            return f'Tem certeza que deseja {verb} a empresa "{self.label}"?'
        return f'Tem certeza que deseja {verb} a coleta de nome e telefone do participante?'


def new_draft(default_goal: int = 100, lgpd_text: str = '') -> domain.Campaign:
    return domain.Campaign(response_goal=default_goal, lgpd_text=lgpd_text)


def _filter_by_name(items, search: str):
    needle = (search or '').lower()
    return [i for i in items if needle in (i.name or '').lower()]


class CampaignEditor:
    def __init__(self, draft: domain.Campaign, step: int = FIRST_STEP,
                 start_time_enabled: Optional[bool] = None, end_time_enabled: Optional[bool] = None,
                 pending: Optional[PendingConfirmation] = None):
        self.draft = draft
        self.step = min(max(int(step), FIRST_STEP), LAST_STEP)
        self.start_time_enabled = bool(draft.start_time) if start_time_enabled is None else start_time_enabled
        self.end_time_enabled = bool(draft.end_time) if end_time_enabled is None else end_time_enabled
        if not self.start_time_enabled:
            self.end_time_enabled = False
        self.pending = pending

    @classmethod
    def for_new(cls, default_goal: int = 100, lgpd_text: str = '') -> 'CampaignEditor':
        return cls(new_draft(default_goal, lgpd_text))

    @classmethod
    def for_existing(cls, campaign_id: str) -> Optional['CampaignEditor']:
        campaign = data_access.get_campaign_by_id(campaign_id)
        if campaign is None:
            return None
        return cls(campaign)

    @property
    def is_editing(self) -> bool:
        return self.draft.id is not None

    # ---- navigation ----
    def go_to_step(self, step: int) -> int:
        self.step = min(max(int(step), FIRST_STEP), LAST_STEP)
        return self.step

    def next_step(self) -> int:
        return self.go_to_step(self.step + 1)

    def previous_step(self) -> int:
        return self.go_to_step(self.step - 1)

    # ---- step 1: details ----
    def update_details(self, changes: dict) -> None:
        for key, value in changes.items():
            attr = DETAIL_FIELDS.get(key)
            if attr is None:
                continue
            if attr == 'response_goal':
                try:
                    value = int(value)
                except (TypeError, ValueError):
                    raise ValidationError('Meta de respostas inválida.', code='invalid_response_goal')
            elif attr == 'is_active':
                value = bool(value)
            elif attr in ('start_time', 'end_time'):
                enabled = self.start_time_enabled if attr == 'start_time' else self.end_time_enabled
                if not enabled:
                    continue
            setattr(self.draft, attr, value)

    def set_start_time_enabled(self, enabled: bool) -> None:
        self.start_time_enabled = bool(enabled)
        if not enabled:
            self.draft.start_time = None
            self.end_time_enabled = False
            self.draft.end_time = None

    def set_end_time_enabled(self, enabled: bool) -> None:
        if enabled and not self.start_time_enabled:
            return
        self.end_time_enabled = bool(enabled)
        if not enabled:
            self.draft.end_time = None

    # ---- step 2: questions ----
    def set_questions(self, questions: List[domain.Question]) -> None:
        self.draft.questions = list(questions)

    def add_question(self, text: str, qtype: str = domain.QuestionType.MULTIPLE_CHOICE.value,
                     options: Optional[List[str]] = None) -> domain.Question:
        q = domain.Question(
            id=domain.temp_question_id(),
            text=text,
            type=qtype,
            options=[domain.QuestionOption(value=v) for v in (options or [])],
        )
        self.draft.questions.append(q)
        return q

    def remove_question(self, question_id: str) -> None:
        self.draft.questions = [q for q in self.draft.questions if q.id != question_id]

    def move_question(self, question_id: str, new_index: int) -> None:
        q = self.draft.question_by_id(question_id)
        if q is None:
            return
        self.draft.questions.remove(q)
        new_index = min(max(int(new_index), 0), len(self.draft.questions))
        self.draft.questions.insert(new_index, q)

    def add_option(self, question_id: str, value: str) -> None:
        q = self.draft.question_by_id(question_id)
        if q is not None:
            q.options.append(domain.QuestionOption(value=value))

    def set_option_jump(self, question_id: str, option_index: int, jump_to: Optional[str]) -> None:
        q = self.draft.question_by_id(question_id)
        if q is None or not 0 <= option_index < len(q.options):
            return
        q.options[option_index].jump_to = jump_to or None

    # ---- step 3: participants ----
    def toggle_company(self, company: domain.Company) -> bool:
        """Select or unselect a company. Inactive companies cannot be newly selected."""
        ids = self.draft.company_ids
        if company.id in ids:
            ids.remove(company.id)
            return False
        if not company.is_active:
            return False
        ids.append(company.id)
        return True

    def toggle_researcher(self, researcher_id: str) -> bool:
        ids = self.draft.researcher_ids
        if researcher_id in ids:
            ids.remove(researcher_id)
            return False
        ids.append(researcher_id)
        return True

    @staticmethod
    def filter_companies(companies: List[domain.Company], search: str) -> List[domain.Company]:
        return _filter_by_name(companies, search)

    @staticmethod
    def filter_researchers(researchers: List[domain.Researcher], search: str) -> List[domain.Researcher]:
        return _filter_by_name(researchers, search)

    # ---- confirmations ----
    def request_toggle_company_active(self, company: domain.Company) -> PendingConfirmation:
        self.pending = PendingConfirmation(
            kind=PENDING_COMPANY_ACTIVE, target_id=company.id,
            new_value=not company.is_active, label=company.name,
        )
        return self.pending

    def request_toggle_collect_user_info(self) -> PendingConfirmation:
        self.pending = PendingConfirmation(
            kind=PENDING_COLLECT_USER_INFO, new_value=not self.draft.collect_user_info,
        )
        return self.pending

    def confirm(self, set_company_active: Callable = None):
        """Apply the staged action. Returns the updated company for company toggles."""
        pending, self.pending = self.pending, None
        if pending is None:
            return None
        if pending.kind == PENDING_COLLECT_USER_INFO:
            self.draft.collect_user_info = bool(pending.new_value)
            return None
        setter = set_company_active or data_access.set_company_active
        return setter(pending.target_id, bool(pending.new_value))

    def cancel(self) -> None:
        self.pending = None

    # ---- save ----
    def save(self, default_goal: int = 100) -> domain.Campaign:
        if not self.draft.name or not self.draft.theme:
            self.step = STEP_DETAILS
            raise ValidationError('Por favor, preencha o nome e o tema da campanha.', code='name_theme_required')
        if not self.start_time_enabled:
            self.draft.start_time = None
        if not self.end_time_enabled:
            self.draft.end_time = None
        saved = data_access.save_campaign(self.draft, expected_version=self.draft.version,
                                          default_goal=default_goal)
        self.draft = saved
        return saved

    # ---- serialization ----
    def to_state(self) -> dict:
        return {
            'draft': self.draft.to_dict(),
            'step': self.step,
            'startTimeEnabled': self.start_time_enabled,
            'endTimeEnabled': self.end_time_enabled,
            'pending': self.pending.to_dict() if self.pending else None,
        }

    @classmethod
    def from_state(cls, state: dict) -> 'CampaignEditor':
        return cls(
            domain.Campaign.from_dict(state.get('draft') or {}),
            step=state.get('step') or FIRST_STEP,
            start_time_enabled=state.get('startTimeEnabled'),
            end_time_enabled=state.get('endTimeEnabled'),
            pending=PendingConfirmation.from_dict(state.get('pending')),
        )
