from typing import Iterable

from ..domain import SurveyResponse

BOM = '\ufeff'
HEADER = '"Nome","Idade","Telefone"'


def _quoted(value) -> str:
    return '"' + str(value or '').replace('"', '""') + '"'


def build_respondents_csv(responses: Iterable[SurveyResponse]) -> bytes:
    """Respondent contact sheet: UTF-8 with BOM, quoted text columns, bare age."""
    lines = [HEADER]
    for r in responses:
        age = r.user_age if r.user_age else 'N/A'
        lines.append(','.join([_quoted(r.user_name), str(age), _quoted(r.user_phone)]))
    return (BOM + '\n'.join(lines)).encode('utf-8')
