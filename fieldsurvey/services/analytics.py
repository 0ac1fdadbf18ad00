import math
from collections import defaultdict
from typing import List, Optional

from ..context import SessionContext
from ..domain import Campaign, QuestionType, SurveyResponse
from ..utils.time import local_date

NOT_APPLICABLE = 'N/A'
AGE_BANDS = [
    ('0-17', 17),
    ('18-24', 24),
    ('25-34', 34),
    ('35-44', 44),
    ('45-54', 54),
    ('55+', None),
]


def _percentage(part: int, total: int) -> int:
    return round(part / total * 100) if total else 0


def _count_by_campaign(responses: List[SurveyResponse]) -> dict:
    counts = defaultdict(int)
    for r in responses:
        counts[r.campaign_id] += 1
    return counts


def campaign_performance(campaigns: List[Campaign], responses: List[SurveyResponse]) -> List[dict]:
    """Responses collected vs. goal per campaign, most answered first."""
    counts = _count_by_campaign(responses)
    rows = [
        {'id': c.id, 'name': c.name, 'responses': counts.get(c.id, 0), 'goal': c.response_goal}
        for c in campaigns
    ]
    return sorted(rows, key=lambda x: x['responses'], reverse=True)


def theme_distribution(campaigns: List[Campaign]) -> List[dict]:
    counts = defaultdict(int)
    for c in campaigns:
        counts[c.theme] += 1
    total = sum(counts.values())
    return [
        {'name': theme, 'value': n, 'percentage': _percentage(n, total)}
        for theme, n in counts.items()
    ]


def responses_per_day(responses: List[SurveyResponse], tz_name: Optional[str] = None) -> List[dict]:
    """Daily response counts on real calendar dates (year included), oldest first."""
    by_day = defaultdict(int)
    for r in responses:
        if r.timestamp is None:
            continue
        by_day[local_date(r.timestamp, tz_name)] += 1
    return [
        {'date': day.isoformat(), 'label': day.strftime('%d/%m'), 'count': n}
        for day, n in sorted(by_day.items())
    ]


def _score(answer) -> Optional[int]:
    try:
        value = float(answer)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(value) or value != int(value) or not 1 <= value <= 5:
        return None
    return int(value)


def satisfaction_distribution(campaigns: List[Campaign], responses: List[SurveyResponse]) -> dict:
    """Star buckets 1..5 for the first rating question of each campaign, plus the average.

    Scores outside 1..5 (or not numeric) are ignored. The average is rounded to
    one decimal, or "N/A" when no score counted.
    """
    rating_question = {}
    for c in campaigns:
        q = next((q for q in c.questions if q.type == QuestionType.RATING.value), None)
        if q is not None:
            rating_question[c.id] = q.id

    counts = {s: 0 for s in range(1, 6)}
    total = 0
    for r in responses:
        qid = rating_question.get(r.campaign_id)
        if qid is None:
            continue
        score = _score(r.answer_for(qid))
        if score is None:
            continue
        counts[score] += 1
        total += score

    n = sum(counts.values())
    return {
        'buckets': [
            {'score': s, 'label': f"{s} {'Estrelas' if s > 1 else 'Estrela'}", 'count': counts[s]}
            for s in range(1, 6)
        ],
        'count': n,
        'average': f'{total / n:.1f}' if n else NOT_APPLICABLE,
    }


def age_band(age: int) -> str:
    for label, upper in AGE_BANDS:
        if upper is None or age <= upper:
            return label
    return AGE_BANDS[-1][0]


def age_distribution(responses: List[SurveyResponse]) -> List[dict]:
    """Respondents per age band; responses without an age are left out, empty bands dropped."""
    counts = {label: 0 for label, _ in AGE_BANDS}
    for r in responses:
        if not r.user_age:
            continue
        counts[age_band(int(r.user_age))] += 1
    total = sum(counts.values())
    return [
        {'name': label, 'value': n, 'percentage': _percentage(n, total)}
        for label, n in counts.items() if n > 0
    ]


# ---------- dashboards ----------
def admin_dashboard(companies, campaigns, vouchers, responses, tz_name: Optional[str] = None) -> dict:
    return {
        'totals': {
            'activeCompanies': sum(1 for c in companies if c.is_active),
            'campaigns': len(campaigns),
            'activeCampaigns': sum(1 for c in campaigns if c.is_active),
            'vouchers': len(vouchers),
            'responses': len(responses),
        },
        'campaignPerformance': campaign_performance(campaigns, responses),
        'themes': theme_distribution(campaigns),
        'responsesPerDay': responses_per_day(responses, tz_name),
    }


def company_campaigns(context: SessionContext, campaigns: List[Campaign]) -> List[Campaign]:
    return [c for c in campaigns if context.profile_id in c.company_ids]


def company_responses(context: SessionContext, campaigns: List[Campaign],
                      responses: List[SurveyResponse]) -> List[SurveyResponse]:
    ids = {c.id for c in company_campaigns(context, campaigns)}
    return [r for r in responses if r.campaign_id in ids]


def company_dashboard(context: SessionContext, campaigns: List[Campaign], responses: List[SurveyResponse]) -> dict:
    own_campaigns = company_campaigns(context, campaigns)
    own_responses = company_responses(context, campaigns, responses)
    satisfaction = satisfaction_distribution(own_campaigns, own_responses)
    return {
        'totals': {
            'responses': len(own_responses),
            'campaigns': len(own_campaigns),
            'averageSatisfaction': satisfaction['average'],
        },
        'satisfaction': satisfaction,
        'ages': age_distribution(own_responses),
    }


def researcher_campaigns(context: SessionContext, campaigns: List[Campaign], responses: List[SurveyResponse],
                         search: str = '') -> List[dict]:
    """Active campaigns assigned to the researcher, with progress toward the goal."""
    counts = _count_by_campaign(responses)
    needle = (search or '').lower()
    out = []
    for c in campaigns:
        if not c.is_active or context.profile_id not in c.researcher_ids:
            continue
        if needle not in (c.name or '').lower():
            continue
        n = counts.get(c.id, 0)
        goal = c.response_goal or 0
        out.append({
            'id': c.id,
            'name': c.name,
            'description': c.description,
            'theme': c.theme,
            'responses': n,
            'goal': goal,
            'goalMet': goal > 0 and n >= goal,
            'progress': min(n / goal * 100, 100) if goal > 0 else 0,
        })
    return out
