from __future__ import annotations

import pytest

from sensemaking.config import PathsConfig
from sensemaking.resources import (
    Budget,
    BudgetGroup,
    BudgetHeading,
    BudgetInvestment,
    Catalog,
    Comment,
    Debate,
    LegislationAnswer,
    LegislationProcess,
    LegislationProposal,
    LegislationQuestion,
    LegislationQuestionOption,
    Poll,
    PollAnswer,
    PollOption,
    PollQuestion,
    Proposal,
    Topic,
)


@pytest.fixture
def paths(tmp_path) -> PathsConfig:
    return PathsConfig(
        app_root=str(tmp_path),
        data_dir="data",
        state_db=str(tmp_path / "state.sqlite3"),
    )


@pytest.fixture
def catalog() -> Catalog:
    return Catalog(
        [
            Debate(
                id=1,
                title="Park renovation",
                description="<p>Should we renovate the park?</p>",
                cached_votes_up=10,
                cached_votes_down=2,
            ),
            Comment(
                id=1,
                commentable_type="Debate",
                commentable_id=1,
                body="Yes please",
                user_id=5,
                cached_votes_up=3,
                cached_votes_down=1,
                cached_votes_total=5,
            ),
            Comment(id=2, commentable_type="Debate", commentable_id=1, body="Spam", hidden=True),
            Comment(id=3, commentable_type="Debate", commentable_id=1, body="No votes yet"),
            Proposal(
                id=1,
                title="More trees",
                summary="Plant trees",
                description="<p>Plant <b>trees</b> in every street</p>",
                cached_votes_up=4,
                author_id=7,
            ),
            Proposal(id=2, title="Old idea", retired=True),
            Proposal(id=3, title="Moderated", hidden=True),
            Poll(id=1, name="City survey", summary="Yearly survey"),
            PollQuestion(id=1, poll_id=1, title="Favourite colour", kind="unique", position=1),
            PollQuestion(id=2, poll_id=1, title="What would you improve?", kind="open", position=2),
            PollQuestion(id=3, poll_id=1, title="Which services?", kind="multiple", position=3),
            PollOption(id=1, question_id=1, title="Red"),
            PollOption(id=2, question_id=1, title="Blue"),
            PollOption(id=3, question_id=3, title="Buses"),
            PollOption(id=4, question_id=3, title="Trains"),
            PollAnswer(id=1, question_id=1, author_id=10, option_id=1),
            PollAnswer(id=2, question_id=2, author_id=10, answer="More parks"),
            PollAnswer(id=3, question_id=3, author_id=10, option_id=3),
            PollAnswer(id=4, question_id=3, author_id=10, option_id=4),
            PollAnswer(id=5, question_id=1, author_id=11, option_id=2),
            PollAnswer(id=6, question_id=2, author_id=11, answer="Cleaner streets"),
            Poll(id=2, name="Quick vote"),
            PollQuestion(id=4, poll_id=2, title="Yes or no?", kind="unique"),
            Comment(
                id=4,
                commentable_type="Poll",
                commentable_id=2,
                body="Nice poll",
                user_id=3,
                cached_votes_up=2,
                cached_votes_total=2,
            ),
            LegislationProcess(id=1, title="Urban plan"),
            LegislationQuestion(id=1, process_id=1, title="Should we densify?"),
            LegislationQuestionOption(id=1, question_id=1, value="Yes"),
            LegislationQuestionOption(id=2, question_id=1, value="No"),
            LegislationAnswer(id=1, question_id=1, question_option_id=1, user_id=1),
            LegislationAnswer(id=2, question_id=1, question_option_id=1, user_id=2),
            LegislationAnswer(id=3, question_id=1, question_option_id=2, user_id=3),
            LegislationProposal(id=1, process_id=1, title="Bike lanes"),
            Budget(id=1, name="Participatory 2024"),
            BudgetGroup(id=1, budget_id=1, name="Districts"),
            BudgetHeading(id=1, group_id=1, name="North"),
            BudgetInvestment(
                id=1,
                title="Library",
                heading_id=1,
                description="New library",
                cached_votes_up=9,
                author_id=4,
            ),
            BudgetInvestment(id=2, title="Pool", budget_id=1),
            BudgetInvestment(id=3, title="Withdrawn", budget_id=1, hidden=True),
            Topic(id=1, title="Noise", description="Too loud at night"),
        ]
    )
