from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from .resources import (
    Catalog,
    Comment,
    Poll,
    PollAnswer,
    PollQuestion,
    ResourceRef,
)
from .sanitize import sanitize_text

VOTE_PADDING = 1


class OpenEndedQuestionRequired(ValueError):
    pass


@dataclass(frozen=True)
class NormalizedComment:
    id: int | str
    body: str
    user_id: int | None
    cached_votes_up: int
    cached_votes_down: int
    cached_votes_total: int


def collect_comments(catalog: Catalog, ref: ResourceRef) -> list[NormalizedComment]:
    collector = _COLLECTORS[ref.resource_type]
    return collector(catalog, ref)


def require_open_question(question: PollQuestion) -> None:
    if not question.open_ended:
        raise OpenEndedQuestionRequired(
            f"Poll::Question #{question.id} is '{question.kind}': direct analysis is "
            "only supported for open-ended Poll::Question"
        )


def _padded(
    comment_id: int | str, body: str, user_id: int | None, votes_up: int
) -> NormalizedComment:
    padded = int(votes_up or 0) + VOTE_PADDING
    return NormalizedComment(
        id=comment_id,
        body=body,
        user_id=user_id,
        cached_votes_up=padded,
        cached_votes_down=0,
        cached_votes_total=padded,
    )


def _vote_only_body(title: str, description: str) -> str:
    parts = [sanitize_text(title), sanitize_text(description)]
    return "\n\n".join(part for part in parts if part)


def _from_thread(comments: list[Comment]) -> list[NormalizedComment]:
    return [
        NormalizedComment(
            id=comment.id,
            body=comment.body,
            user_id=comment.user_id,
            cached_votes_up=comment.cached_votes_up,
            cached_votes_down=comment.cached_votes_down,
            cached_votes_total=comment.cached_votes_total,
        )
        for comment in comments
        if not comment.hidden
    ]


def _threaded(catalog: Catalog, ref: ResourceRef) -> list[NormalizedComment]:
    catalog.find(ref)
    return _from_thread(catalog.comments_for(ref.resource_type, ref.resource_id))


def _proposals(catalog: Catalog, ref: ResourceRef) -> list[NormalizedComment]:
    if ref.is_aggregate:
        proposals = catalog.active_proposals()
    else:
        proposals = [catalog.find(ref)]
    return [
        _padded(p.id, _vote_only_body(p.title, p.description), p.author_id, p.cached_votes_up)
        for p in proposals
    ]


def _investments(investments) -> list[NormalizedComment]:
    return [
        _padded(
            investment.id,
            _vote_only_body(investment.title, investment.description),
            investment.author_id,
            investment.cached_votes_up,
        )
        for investment in investments
    ]


def _budget(catalog: Catalog, ref: ResourceRef) -> list[NormalizedComment]:
    budget = catalog.find(ref)
    return _investments(catalog.budget_investments(budget.id))


def _budget_group(catalog: Catalog, ref: ResourceRef) -> list[NormalizedComment]:
    group = catalog.find(ref)
    return _investments(catalog.group_investments(group.id))


def _budget_investment(catalog: Catalog, ref: ResourceRef) -> list[NormalizedComment]:
    return _investments([catalog.find(ref)])


def _poll(catalog: Catalog, ref: ResourceRef) -> list[NormalizedComment]:
    poll = catalog.find(ref)
    questions = catalog.poll_questions(poll.id)
    if not any(question.open_ended for question in questions):
        return _from_thread(catalog.comments_for("Poll", poll.id))
    return _combined_poll_answers(catalog, poll, questions)


def _combined_poll_answers(
    catalog: Catalog, poll: Poll, questions: list[PollQuestion]
) -> list[NormalizedComment]:
    answers_by_question: dict[int, list[PollAnswer]] = {
        question.id: catalog.poll_answers(question.id) for question in questions
    }
    all_answers = sorted(
        (answer for answers in answers_by_question.values() for answer in answers),
        key=lambda answer: answer.id,
    )
    respondents: list[int] = []
    for answer in all_answers:
        if answer.author_id not in respondents:
            respondents.append(answer.author_id)

    comments: list[NormalizedComment] = []
    for author_id in respondents:
        segments = []
        for number, question in enumerate(questions, start=1):
            own = [a for a in answers_by_question[question.id] if a.author_id == author_id]
            text = _answer_text(catalog, question, own)
            if text:
                segments.append(f"Q{number}: {text}")
        if segments:
            comments.append(_padded(f"p_{poll.id}_u_{author_id}", " | ".join(segments), author_id, 0))
    return comments


def _answer_text(catalog: Catalog, question: PollQuestion, answers: list[PollAnswer]) -> str:
    values: list[str] = []
    for answer in answers:
        option = catalog.get("poll_options", answer.option_id)
        if option is not None and not question.open_ended:
            value = option.title
        else:
            value = (answer.answer or "").strip()
        if value:
            values.append(value)
    return ", ".join(values)


def _poll_question(catalog: Catalog, ref: ResourceRef) -> list[NormalizedComment]:
    question = catalog.find(ref)
    require_open_question(question)
    return [
        _padded(f"a_{answer.id}", answer.answer or "", answer.author_id, 0)
        for answer in catalog.poll_answers(question.id)
    ]


_COLLECTORS: dict[str, Callable[[Catalog, ResourceRef], list[NormalizedComment]]] = {
    "Debate": _threaded,
    "Topic": _threaded,
    "Legislation::Proposal": _threaded,
    "Legislation::Question": _threaded,
    "Legislation::QuestionOption": _threaded,
    "Proposal": _proposals,
    "Poll": _poll,
    "Poll::Question": _poll_question,
    "Budget": _budget,
    "Budget::Group": _budget_group,
    "Budget::Investment": _budget_investment,
}
