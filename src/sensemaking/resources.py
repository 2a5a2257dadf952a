"""Read-only view over the domain entities a sensemaking job can analyse.

The records mirror the shapes the platform exposes (debates, proposals, polls,
legislation items, budgets and their comments). A ``Catalog`` is filled either
programmatically or from a YAML export via ``load_catalog``.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from typing import Any, Iterable

import jsonschema
import yaml


class CatalogError(ValueError):
    pass


class UnsupportedResourceError(ValueError):
    pass


class ResourceNotFoundError(LookupError):
    pass


@dataclass(frozen=True)
class Comment:
    id: int
    commentable_type: str
    commentable_id: int
    body: str
    user_id: int | None = None
    cached_votes_up: int = 0
    cached_votes_down: int = 0
    cached_votes_total: int = 0
    hidden: bool = False


@dataclass(frozen=True)
class Debate:
    id: int
    title: str
    description: str = ""
    cached_votes_up: int = 0
    cached_votes_down: int = 0


@dataclass(frozen=True)
class Proposal:
    id: int
    title: str
    summary: str = ""
    description: str = ""
    cached_votes_up: int = 0
    author_id: int | None = None
    hidden: bool = False
    retired: bool = False


@dataclass(frozen=True)
class Poll:
    id: int
    name: str
    summary: str = ""
    description: str = ""


@dataclass(frozen=True)
class PollQuestion:
    id: int
    poll_id: int
    title: str
    kind: str = "unique"
    position: int = 0

    @property
    def open_ended(self) -> bool:
        return self.kind == "open"


@dataclass(frozen=True)
class PollOption:
    id: int
    question_id: int
    title: str


@dataclass(frozen=True)
class PollAnswer:
    id: int
    question_id: int
    author_id: int
    option_id: int | None = None
    answer: str | None = None


@dataclass(frozen=True)
class LegislationProcess:
    id: int
    title: str
    summary: str = ""
    description: str = ""


@dataclass(frozen=True)
class LegislationProposal:
    id: int
    process_id: int
    title: str
    summary: str = ""
    description: str = ""
    cached_votes_up: int = 0
    cached_votes_down: int = 0


@dataclass(frozen=True)
class LegislationQuestion:
    id: int
    process_id: int
    title: str
    description: str = ""


@dataclass(frozen=True)
class LegislationQuestionOption:
    id: int
    question_id: int
    value: str


@dataclass(frozen=True)
class LegislationAnswer:
    id: int
    question_id: int
    question_option_id: int
    user_id: int | None = None


@dataclass(frozen=True)
class Budget:
    id: int
    name: str
    description: str = ""


@dataclass(frozen=True)
class BudgetGroup:
    id: int
    budget_id: int
    name: str


@dataclass(frozen=True)
class BudgetHeading:
    id: int
    group_id: int
    name: str


@dataclass(frozen=True)
class BudgetInvestment:
    id: int
    title: str
    budget_id: int | None = None
    heading_id: int | None = None
    description: str = ""
    cached_votes_up: int = 0
    author_id: int | None = None
    hidden: bool = False


@dataclass(frozen=True)
class Topic:
    id: int
    title: str
    description: str = ""


SECTIONS: dict[str, type] = {
    "comments": Comment,
    "debates": Debate,
    "proposals": Proposal,
    "polls": Poll,
    "poll_questions": PollQuestion,
    "poll_options": PollOption,
    "poll_answers": PollAnswer,
    "legislation_processes": LegislationProcess,
    "legislation_proposals": LegislationProposal,
    "legislation_questions": LegislationQuestion,
    "legislation_question_options": LegislationQuestionOption,
    "legislation_answers": LegislationAnswer,
    "budgets": Budget,
    "budget_groups": BudgetGroup,
    "budget_headings": BudgetHeading,
    "budget_investments": BudgetInvestment,
    "topics": Topic,
}

RESOURCE_SECTIONS: dict[str, str] = {
    "Debate": "debates",
    "Proposal": "proposals",
    "Poll": "polls",
    "Poll::Question": "poll_questions",
    "Topic": "topics",
    "Legislation::Proposal": "legislation_proposals",
    "Legislation::Question": "legislation_questions",
    "Legislation::QuestionOption": "legislation_question_options",
    "Budget": "budgets",
    "Budget::Group": "budget_groups",
    "Budget::Investment": "budget_investments",
}

ANALYSABLE_TYPES: tuple[str, ...] = tuple(RESOURCE_SECTIONS)

AGGREGATE_TYPE = "Proposal"

_SECTION_BY_CLASS = {cls: name for name, cls in SECTIONS.items()}

CATALOG_SCHEMA: dict[str, Any] = {
    "type": "object",
    "additionalProperties": False,
    "properties": {
        name: {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["id"],
                "properties": {"id": {"type": "integer"}},
            },
        }
        for name in SECTIONS
    },
}


@dataclass(frozen=True)
class ResourceRef:
    resource_type: str
    resource_id: int | None

    def __post_init__(self) -> None:
        if self.resource_type not in RESOURCE_SECTIONS:
            raise UnsupportedResourceError(f"Unrecognized resource type: {self.resource_type}")
        if self.resource_id is None and self.resource_type != AGGREGATE_TYPE:
            raise ValueError(f"resource id is required for {self.resource_type}")

    @property
    def is_aggregate(self) -> bool:
        return self.resource_type == AGGREGATE_TYPE and self.resource_id is None

    def __str__(self) -> str:
        if self.resource_id is None:
            return self.resource_type
        return f"{self.resource_type}#{self.resource_id}"


class Catalog:
    def __init__(self, records: Iterable[Any] = ()) -> None:
        self._sections: dict[str, dict[int, Any]] = {name: {} for name in SECTIONS}
        self.add(*records)

    def add(self, *records: Any) -> None:
        for record in records:
            section = _SECTION_BY_CLASS.get(type(record))
            if section is None:
                raise CatalogError(f"unsupported record type: {type(record).__name__}")
            self._sections[section][record.id] = record

    def all(self, section: str) -> list[Any]:
        return sorted(self._sections[section].values(), key=lambda record: record.id)

    def get(self, section: str, record_id: int | None) -> Any | None:
        if record_id is None:
            return None
        return self._sections[section].get(record_id)

    def find(self, ref: ResourceRef) -> Any:
        record = self.get(RESOURCE_SECTIONS[ref.resource_type], ref.resource_id)
        if record is None:
            raise ResourceNotFoundError(f"{ref} not found")
        return record

    def comments_for(self, commentable_type: str, commentable_id: int) -> list[Comment]:
        return [
            comment
            for comment in self.all("comments")
            if comment.commentable_type == commentable_type
            and comment.commentable_id == commentable_id
        ]

    def poll_questions(self, poll_id: int) -> list[PollQuestion]:
        questions = [q for q in self._sections["poll_questions"].values() if q.poll_id == poll_id]
        return sorted(questions, key=lambda q: (q.position, q.id))

    def poll_options(self, question_id: int) -> list[PollOption]:
        return [o for o in self.all("poll_options") if o.question_id == question_id]

    def poll_answers(self, question_id: int) -> list[PollAnswer]:
        return [a for a in self.all("poll_answers") if a.question_id == question_id]

    def legislation_options(self, question_id: int) -> list[LegislationQuestionOption]:
        return [
            option
            for option in self.all("legislation_question_options")
            if option.question_id == question_id
        ]

    def legislation_answers_count(self, option_id: int) -> int:
        return sum(
            1
            for answer in self._sections["legislation_answers"].values()
            if answer.question_option_id == option_id
        )

    def process_item_refs(self, process_id: int) -> list[ResourceRef]:
        refs = [
            ResourceRef("Legislation::Question", question.id)
            for question in self.all("legislation_questions")
            if question.process_id == process_id
        ]
        refs.extend(
            ResourceRef("Legislation::Proposal", proposal.id)
            for proposal in self.all("legislation_proposals")
            if proposal.process_id == process_id
        )
        return refs

    def budget_groups(self, budget_id: int) -> list[BudgetGroup]:
        return [group for group in self.all("budget_groups") if group.budget_id == budget_id]

    def investment_budget_id(self, investment: BudgetInvestment) -> int | None:
        if investment.budget_id is not None:
            return investment.budget_id
        group_id = self.investment_group_id(investment)
        group = self.get("budget_groups", group_id)
        return group.budget_id if group else None

    def investment_group_id(self, investment: BudgetInvestment) -> int | None:
        heading = self.get("budget_headings", investment.heading_id)
        return heading.group_id if heading else None

    def budget_investments(self, budget_id: int) -> list[BudgetInvestment]:
        return [
            investment
            for investment in self.all("budget_investments")
            if not investment.hidden and self.investment_budget_id(investment) == budget_id
        ]

    def group_investments(self, group_id: int) -> list[BudgetInvestment]:
        return [
            investment
            for investment in self.all("budget_investments")
            if not investment.hidden and self.investment_group_id(investment) == group_id
        ]

    def active_proposals(self) -> list[Proposal]:
        return [
            proposal
            for proposal in self.all("proposals")
            if not proposal.hidden and not proposal.retired
        ]


def load_catalog(path: str) -> Catalog:
    try:
        with open(path, "r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
    except OSError as exc:
        raise CatalogError(f"Unable to read catalog {path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise CatalogError(f"Invalid YAML in {path}: {exc}") from exc
    return build_catalog(data)


def build_catalog(data: dict[str, Any]) -> Catalog:
    try:
        jsonschema.validate(data, CATALOG_SCHEMA)
    except jsonschema.ValidationError as exc:
        raise CatalogError(f"Invalid catalog: {exc.message}") from exc
    catalog = Catalog()
    for section, items in data.items():
        cls = SECTIONS[section]
        field_names = {field.name for field in dataclasses.fields(cls)}
        for item in items:
            unknown = sorted(set(item) - field_names)
            if unknown:
                raise CatalogError(f"{section}[id={item['id']}] has unknown fields: {', '.join(unknown)}")
            try:
                catalog.add(cls(**item))
            except TypeError as exc:
                raise CatalogError(f"{section}[id={item['id']}]: {exc}") from exc
    return catalog
