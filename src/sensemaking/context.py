from __future__ import annotations

from typing import Callable

from .comments import collect_comments, require_open_question
from .config import DEFAULT_CONFIG, ProposalsConfig
from .resources import Catalog, PollQuestion, ResourceRef
from .sanitize import sanitize_text

_LABELS = {
    "Debate": "Debate",
    "Proposal": "Proposal",
    "Poll": "Poll",
    "Poll::Question": "Poll question",
    "Topic": "Topic",
    "Legislation::Proposal": "Legislation proposal",
    "Legislation::Question": "Legislation debate",
    "Legislation::QuestionOption": "Legislation debate response",
    "Budget": "Budget",
    "Budget::Group": "Budget group",
    "Budget::Investment": "Budget investment",
}

_QUESTION_KINDS = {
    "unique": "Single choice",
    "multiple": "Multiple choice",
    "open": "Open ended",
}

# (title, lines before the comment count, lines after it)
_Sections = tuple[str, list[str], list[str]]


def compile_context(
    catalog: Catalog,
    ref: ResourceRef,
    proposals: ProposalsConfig | None = None,
    additional_context: str | None = None,
) -> str:
    proposals = proposals or ProposalsConfig(**DEFAULT_CONFIG["proposals"])
    builder = _BUILDERS[ref.resource_type]
    title, narrative, trailing = builder(catalog, ref, proposals)
    comment_count = len(collect_comments(catalog, ref))

    lines = [f"## {_LABELS[ref.resource_type]}: {title}", ""]
    lines.extend(narrative)
    lines.append(f"- Comments: {comment_count}")
    if trailing:
        lines.append("")
        lines.extend(trailing)
    if additional_context and additional_context.strip():
        lines.extend(["", "### Additional Context", additional_context.strip()])
    return "\n".join(lines).strip() + "\n"


def _text_lines(**fields: str) -> list[str]:
    lines = []
    for name, raw in fields.items():
        text = sanitize_text(raw)
        if text:
            lines.append(f"{name.capitalize()}: {text}")
    return lines


def _debate(catalog: Catalog, ref: ResourceRef, proposals: ProposalsConfig) -> _Sections:
    debate = catalog.find(ref)
    narrative = [
        f"This debate has {debate.cached_votes_up} votes for and "
        f"{debate.cached_votes_down} votes against."
    ]
    narrative.extend(_text_lines(description=debate.description))
    return debate.title, narrative, []


def _proposal(catalog: Catalog, ref: ResourceRef, proposals: ProposalsConfig) -> _Sections:
    needed = proposals.votes_needed_for_success
    if ref.is_aggregate:
        count = len(catalog.active_proposals())
        narrative = [
            f"This analysis covers {count} proposals, each treated as a comment. "
            f"Votes needed for success: {needed}."
        ]
        return "All proposals", narrative, []
    proposal = catalog.find(ref)
    narrative = [
        f"This proposal has {proposal.cached_votes_up} votes out of {needed} required."
    ]
    narrative.extend(_text_lines(summary=proposal.summary, description=proposal.description))
    return proposal.title, narrative, []


def _legislation_proposal(
    catalog: Catalog, ref: ResourceRef, proposals: ProposalsConfig
) -> _Sections:
    proposal = catalog.find(ref)
    process = catalog.get("legislation_processes", proposal.process_id)
    narrative = [
        f'This proposal is part of the legislation process, "{_process_title(process)}".'
    ]
    narrative.extend(_text_lines(summary=proposal.summary, description=proposal.description))
    return proposal.title, narrative, []


def _legislation_question(
    catalog: Catalog, ref: ResourceRef, proposals: ProposalsConfig
) -> _Sections:
    question = catalog.find(ref)
    process = catalog.get("legislation_processes", question.process_id)
    narrative = [
        f'This debate is part of the legislation process, "{_process_title(process)}".'
    ]
    narrative.extend(_text_lines(description=question.description))
    trailing: list[str] = []
    options = catalog.legislation_options(question.id)
    if options:
        trailing.append("### Debate Responses")
        for option in options:
            count = catalog.legislation_answers_count(option.id)
            trailing.append(f"- {option.value} ({count} responses)")
    return question.title, narrative, trailing


def _legislation_option(
    catalog: Catalog, ref: ResourceRef, proposals: ProposalsConfig
) -> _Sections:
    option = catalog.find(ref)
    question = catalog.get("legislation_questions", option.question_id)
    question_title = question.title if question else ""
    narrative = [
        f'This is the response "{option.value}" to the legislation debate "{question_title}".',
        f"- Responses: {catalog.legislation_answers_count(option.id)}",
    ]
    return option.value, narrative, []


def _budget(catalog: Catalog, ref: ResourceRef, proposals: ProposalsConfig) -> _Sections:
    budget = catalog.find(ref)
    count = len(catalog.budget_investments(budget.id))
    narrative = [f"This budget has {count} investment projects, each treated as a comment."]
    narrative.extend(_text_lines(description=budget.description))
    return budget.name, narrative, []


def _budget_group(catalog: Catalog, ref: ResourceRef, proposals: ProposalsConfig) -> _Sections:
    group = catalog.find(ref)
    budget = catalog.get("budgets", group.budget_id)
    budget_name = budget.name if budget else ""
    count = len(catalog.group_investments(group.id))
    narrative = [
        f'This group of the budget "{budget_name}" has {count} investment projects, '
        "each treated as a comment."
    ]
    return group.name, narrative, []


def _budget_investment(
    catalog: Catalog, ref: ResourceRef, proposals: ProposalsConfig
) -> _Sections:
    investment = catalog.find(ref)
    narrative = [f"This investment project has {investment.cached_votes_up} supports."]
    narrative.extend(_text_lines(description=investment.description))
    return investment.title, narrative, []


def _poll(catalog: Catalog, ref: ResourceRef, proposals: ProposalsConfig) -> _Sections:
    poll = catalog.find(ref)
    questions = catalog.poll_questions(poll.id)
    narrative = _text_lines(summary=poll.summary, description=poll.description)
    narrative.extend(_question_listing(questions))
    trailing = ["### Questions and Responses"]
    for question in questions:
        trailing.append(f"#### Q: {question.title}")
        trailing.extend(f"- {title}" for title in _selected_options(catalog, question))
    return poll.name, narrative, trailing


def _poll_question(catalog: Catalog, ref: ResourceRef, proposals: ProposalsConfig) -> _Sections:
    question = catalog.find(ref)
    require_open_question(question)
    poll = catalog.get("polls", question.poll_id)
    narrative = []
    if poll is not None:
        narrative.append(f'This question belongs to the poll "{poll.name}".')
    narrative.extend(_question_listing([question]))
    return question.title, narrative, []


def _question_listing(questions: list[PollQuestion]) -> list[str]:
    lines = [
        f"This Poll is composed of {len(questions)} question(s). "
        "The questions are as follows:"
    ]
    for number, question in enumerate(questions, start=1):
        kind = _QUESTION_KINDS.get(question.kind, question.kind)
        lines.append(f"Q{number} ({kind}): {question.title}")
    return lines


def _selected_options(catalog: Catalog, question: PollQuestion) -> list[str]:
    if question.open_ended:
        return []
    chosen = {answer.option_id for answer in catalog.poll_answers(question.id)}
    return [option.title for option in catalog.poll_options(question.id) if option.id in chosen]


def _topic(catalog: Catalog, ref: ResourceRef, proposals: ProposalsConfig) -> _Sections:
    topic = catalog.find(ref)
    narrative = [f"This topic has {len(collect_comments(catalog, ref))} comments."]
    narrative.extend(_text_lines(description=topic.description))
    return topic.title, narrative, []


def _process_title(process) -> str:
    return process.title if process is not None else ""


_BUILDERS: dict[str, Callable[[Catalog, ResourceRef, ProposalsConfig], _Sections]] = {
    "Debate": _debate,
    "Proposal": _proposal,
    "Poll": _poll,
    "Poll::Question": _poll_question,
    "Topic": _topic,
    "Legislation::Proposal": _legislation_proposal,
    "Legislation::Question": _legislation_question,
    "Legislation::QuestionOption": _legislation_option,
    "Budget": _budget,
    "Budget::Group": _budget_group,
    "Budget::Investment": _budget_investment,
}
