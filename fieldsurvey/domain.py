"""Domain objects handed around by the services and serialized by the views.

Attributes are snake_case; `to_dict` produces the camelCase JSON shape the
front end works with and `from_dict` reads it back.
"""
from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional

from .errors import ValidationError
from .utils.time import iso_utc

END_SURVEY = 'END_SURVEY'
TEMP_ID_PREFIX = 'q_'


class QuestionType(str, Enum):
    MULTIPLE_CHOICE = 'multiple_choice'
    RATING = 'rating'
    TEXT = 'text'


QUESTION_TYPES = {t.value for t in QuestionType}


def temp_question_id() -> str:
    return f'{TEMP_ID_PREFIX}{uuid.uuid4().hex[:12]}'


def is_temp_id(question_id: Optional[str]) -> bool:
    return bool(question_id) and str(question_id).startswith(TEMP_ID_PREFIX)


@dataclass
class QuestionOption:
    value: str
    # None: next question in sequence; END_SURVEY: finish; otherwise a question id
    jump_to: Optional[str] = None

    def to_dict(self) -> dict:
        return {'value': self.value, 'jumpTo': self.jump_to}

    @classmethod
    def from_dict(cls, data: dict) -> 'QuestionOption':
        if not isinstance(data, dict):
            raise ValidationError('Opção de resposta inválida.', code='invalid_questions')
        return cls(value=str(data.get('value') or ''), jump_to=data.get('jumpTo') or None)


@dataclass
class Question:
    id: str
    text: str
    type: str
    options: List[QuestionOption] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'text': self.text,
            'type': self.type,
            'options': [o.to_dict() for o in self.options],
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'Question':
        if not isinstance(data, dict):
            raise ValidationError('Pergunta inválida.', code='invalid_questions')
        qtype = str(data.get('type') or QuestionType.MULTIPLE_CHOICE.value)
        if qtype not in QUESTION_TYPES:
            raise ValidationError(f'Tipo de pergunta desconhecido: {qtype}.', code='invalid_questions')
        options = data.get('options') or []
        if not isinstance(options, list):
            raise ValidationError('Lista de opções inválida.', code='invalid_questions')
        return cls(
            id=str(data.get('id') or temp_question_id()),
            text=str(data.get('text') or ''),
            type=qtype,
            options=[QuestionOption.from_dict(o) for o in options],
        )

    def option_for(self, answer) -> Optional[QuestionOption]:
        for opt in self.options:
            if opt.value == str(answer):
                return opt
        return None


@dataclass
class Campaign:
    id: Optional[str] = None
    name: str = ''
    description: str = ''
    theme: str = ''
    lgpd_text: str = ''
    questions: List[Question] = field(default_factory=list)
    company_ids: List[str] = field(default_factory=list)
    researcher_ids: List[str] = field(default_factory=list)
    response_goal: int = 100
    is_active: bool = False
    collect_user_info: bool = False
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    final_redirect_url: Optional[str] = None
    version: Optional[int] = None

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'name': self.name,
            'description': self.description,
            'theme': self.theme,
            'lgpdText': self.lgpd_text,
            'questions': [q.to_dict() for q in self.questions],
            'companyIds': list(self.company_ids),
            'researcherIds': list(self.researcher_ids),
            'responseGoal': self.response_goal,
            'isActive': self.is_active,
            'collectUserInfo': self.collect_user_info,
            'startDate': self.start_date,
            'endDate': self.end_date,
            'startTime': self.start_time,
            'endTime': self.end_time,
            'finalRedirectUrl': self.final_redirect_url,
            'version': self.version,
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'Campaign':
        goal = data.get('responseGoal')
        return cls(
            id=data.get('id') or None,
            name=str(data.get('name') or ''),
            description=str(data.get('description') or ''),
            theme=str(data.get('theme') or ''),
            lgpd_text=str(data.get('lgpdText') or ''),
            questions=[Question.from_dict(q) for q in (data.get('questions') or [])],
            company_ids=[str(x) for x in (data.get('companyIds') or [])],
            researcher_ids=[str(x) for x in (data.get('researcherIds') or [])],
            response_goal=int(goal) if goal not in (None, '') else 100,
            is_active=bool(data.get('isActive')),
            collect_user_info=bool(data.get('collectUserInfo')),
            start_date=data.get('startDate') or None,
            end_date=data.get('endDate') or None,
            start_time=data.get('startTime') or None,
            end_time=data.get('endTime') or None,
            final_redirect_url=data.get('finalRedirectUrl') or None,
            version=data.get('version'),
        )

    # ---- survey runtime ----
    def question_by_id(self, question_id: Optional[str]) -> Optional[Question]:
        for q in self.questions:
            if q.id == question_id:
                return q
        return None

    def first_question(self) -> Optional[Question]:
        return self.questions[0] if self.questions else None

    def next_question(self, question_id: str, answer=None) -> Optional[Question]:
        """Question to show after `question_id` was answered with `answer`.

        Returns None when the questionnaire is over.
        """
        current = self.question_by_id(question_id)
        if current is None:
            return None
        opt = current.option_for(answer) if answer is not None else None
        if opt and opt.jump_to == END_SURVEY:
            return None
        if opt and opt.jump_to:
            target = self.question_by_id(opt.jump_to)
            if target is not None:
                return target
        idx = self.questions.index(current)
        if idx + 1 < len(self.questions):
            return self.questions[idx + 1]
        return None


@dataclass
class Admin:
    id: str
    name: str
    email: str
    phone: Optional[str] = None
    dob: Optional[str] = None
    photo_url: Optional[str] = None
    is_active: bool = True

    def to_dict(self) -> dict:
        return {
            'id': self.id, 'name': self.name, 'email': self.email, 'phone': self.phone,
            'dob': self.dob, 'photoUrl': self.photo_url, 'isActive': self.is_active,
        }


@dataclass
class Company:
    id: str
    name: str
    logo_url: Optional[str] = None
    cnpj: Optional[str] = None
    contact_email: Optional[str] = None
    contact_phone: Optional[str] = None
    contact_person: Optional[str] = None
    instagram: Optional[str] = None
    creation_date: Optional[str] = None
    is_active: bool = True

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'name': self.name,
            'logoUrl': self.logo_url,
            'cnpj': self.cnpj,
            'contactEmail': self.contact_email,
            'contactPhone': self.contact_phone,
            'contactPerson': self.contact_person,
            'instagram': self.instagram,
            'creationDate': self.creation_date,
            'isActive': self.is_active,
        }


@dataclass
class Researcher:
    id: str
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    gender: Optional[str] = None
    dob: Optional[str] = None
    photo_url: Optional[str] = None
    is_active: bool = True
    color: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'name': self.name,
            'email': self.email,
            'phone': self.phone,
            'gender': self.gender,
            'dob': self.dob,
            'photoUrl': self.photo_url,
            'isActive': self.is_active,
            'color': self.color,
        }


@dataclass
class Voucher:
    id: str
    company_id: str
    title: str
    description: Optional[str]
    qr_code_value: str
    is_active: bool
    logo_url: Optional[str]
    total_quantity: int
    used_count: int

    @property
    def remaining(self) -> int:
        return max(self.total_quantity - self.used_count, 0)

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'companyId': self.company_id,
            'title': self.title,
            'description': self.description,
            'qrCodeValue': self.qr_code_value,
            'isActive': self.is_active,
            'logoUrl': self.logo_url,
            'totalQuantity': self.total_quantity,
            'usedCount': self.used_count,
            'remaining': self.remaining,
        }


@dataclass
class Answer:
    question_id: str
    answer: Optional[str]

    def to_dict(self) -> dict:
        return {'questionId': self.question_id, 'answer': self.answer}


@dataclass
class SurveyResponse:
    id: Optional[str]
    campaign_id: str
    researcher_id: Optional[str]
    user_name: Optional[str] = None
    user_phone: Optional[str] = None
    user_age: Optional[int] = None
    timestamp: Optional[datetime] = None
    answers: List[Answer] = field(default_factory=list)

    def answer_for(self, question_id: str):
        for a in self.answers:
            if a.question_id == question_id:
                return a.answer
        return None

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'campaignId': self.campaign_id,
            'researcherId': self.researcher_id,
            'userName': self.user_name,
            'userPhone': self.user_phone,
            'userAge': self.user_age,
            'timestamp': iso_utc(self.timestamp),
            'answers': [a.to_dict() for a in self.answers],
        }


@dataclass
class LocationPoint:
    id: str
    researcher_id: str
    latitude: float
    longitude: float
    timestamp: datetime

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'researcherId': self.researcher_id,
            'latitude': self.latitude,
            'longitude': self.longitude,
            'timestamp': iso_utc(self.timestamp),
        }
