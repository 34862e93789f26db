"""Poll card: create a poll, vote, close / reopen / reset.

A poll is addressed by a 6-hex-char id derived from question + options, so the
same question asked twice opens the same poll, and ``#do/poll <id>`` reopens it.
Vote tallies live in card state; concurrent votes on one poll are
last-write-wins like every other card.
"""
from __future__ import annotations

import hashlib
import html
from typing import Any, Dict, List, Mapping, Optional

from card_engines.cards.models import (
    ActionContext,
    ActionDefinition,
    ActionResult,
    CardDefinition,
    FunctionTemplate,
    GetDataContext,
    GetDataResult,
    InputDefinition,
)

COLORS = ["#6366f1", "#f59e0b", "#10b981", "#ef4444", "#8b5cf6", "#ec4899", "#14b8a6", "#f97316"]


def derive_poll_id(question: str, options: str) -> str:
    return hashlib.sha256(f"{question}|{options}".encode("utf-8")).hexdigest()[:6]


def split_options(raw: Optional[str]) -> List[str]:
    return [o.strip() for o in (raw or "").split(",") if o.strip()]


def poll_state_key(inputs: Mapping[str, Any], user_id: Optional[str]) -> Optional[str]:
    poll_id = inputs.get("id")
    if poll_id:
        return f"id:{poll_id}"
    question = inputs.get("question")
    options = inputs.get("options")
    if question and options:
        return f"id:{derive_poll_id(question, options)}"
    return None


async def get_poll_data(ctx: GetDataContext) -> GetDataResult:
    inputs, state = ctx.inputs, ctx.state
    input_id = inputs.get("id")
    input_question = inputs.get("question")
    input_options = inputs.get("options")

    poll_id = input_id or state.get("pollId")
    if not poll_id and input_question and input_options:
        poll_id = derive_poll_id(input_question, input_options)
    if not poll_id:
        raise ValueError("Cannot determine poll ID. Provide an id, or both question and options.")

    # Opening by id: stored values win over (possibly default) inputs.
    if input_id:
        question = state.get("pollQuestion") or input_question
        options_raw = state.get("pollOptions") or input_options
    else:
        question = input_question or state.get("pollQuestion")
        options_raw = input_options or state.get("pollOptions")

    if not question or not options_raw:
        if input_id:
            raise ValueError(f'Poll "{input_id}" not found. It may have expired or never existed.')
        raise ValueError('A new poll requires both "question" and "options" inputs.')

    option_names = split_options(options_raw)
    if len(option_names) < 2:
        raise ValueError("A poll needs at least 2 options (comma-separated).")

    votes: Dict[str, int] = dict(state.get("votes") or {})
    for name in option_names:
        votes.setdefault(name, 0)
    total = sum(votes.values())
    closed = bool(state.get("closed", False))
    voter_count = int(state.get("voterCount", 0))

    option_rows = []
    for i, name in enumerate(option_names):
        count = votes.get(name, 0)
        pct = round(count / total * 100) if total else 0
        option_rows.append({"name": name, "count": count, "pct": pct, "color": COLORS[i % len(COLORS)]})

    lines = [f"## Poll: {question}", f"**Poll ID:** `{poll_id}`", ""]
    if closed:
        lines += ["**This poll is closed.**", ""]
    lines.append(
        f"**{total}** vote{'s' if total != 1 else ''} from **{voter_count}** voter{'s' if voter_count != 1 else ''}"
    )
    lines.append("")
    for opt in option_rows:
        bar = "█" * round(opt["pct"] / 5) or "░"
        lines.append(f"- **{opt['name']}** {bar} {opt['pct']}% ({opt['count']})")
    lines.append("")
    lines.append(f"To vote: use the **vote** action with this poll's id (`{poll_id}`).")
    lines.append(f"To reopen later: `#do/poll {poll_id}`")

    return GetDataResult(
        view_model={
            "pollId": poll_id,
            "question": question,
            "options": option_rows,
            "totalVotes": total,
            "voterCount": voter_count,
            "closed": closed,
            "allowMultiple": bool(inputs.get("allowMultiple", False)),
            "apiBaseUrl": ctx.env.base_url,
        },
        state={
            "pollId": poll_id,
            "pollQuestion": question,
            "pollOptions": options_raw,
            "votes": votes,
            "closed": closed,
            "voterCount": voter_count,
        },
        text_output="\n".join(lines),
    )


async def vote(ctx: ActionContext) -> ActionResult:
    state = ctx.state
    if state.get("closed"):
        return ActionResult(message="This poll is closed. No more votes can be cast.")

    choice = str(ctx.action_inputs["choice"]).strip()
    option_names = split_options(state.get("pollOptions"))
    if choice not in option_names:
        return ActionResult(message=f'"{choice}" is not a valid option. Choose from: {", ".join(option_names)}')

    votes: Dict[str, int] = dict(state.get("votes") or {})
    votes[choice] = votes.get(choice, 0) + 1
    voter_count = int(state.get("voterCount", 0)) + 1
    total = sum(votes.values())
    pct = round(votes[choice] / total * 100)
    return ActionResult(
        state={"votes": votes, "voterCount": voter_count},
        message=f'Vote recorded for "{choice}". It now has {votes[choice]} vote{"s" if votes[choice] != 1 else ""} ({pct}%).',
    )


async def close_poll(ctx: ActionContext) -> ActionResult:
    if ctx.state.get("closed"):
        return ActionResult(message="Poll is already closed.")
    return ActionResult(state={"closed": True}, message="Poll has been closed. No further votes will be accepted.")


async def reopen_poll(ctx: ActionContext) -> ActionResult:
    if not ctx.state.get("closed"):
        return ActionResult(message="Poll is already open.")
    return ActionResult(state={"closed": False}, message="Poll has been reopened. Votes are being accepted again.")


async def reset_votes(ctx: ActionContext) -> ActionResult:
    votes = {name: 0 for name in split_options(ctx.state.get("pollOptions"))}
    return ActionResult(state={"votes": votes, "voterCount": 0}, message="All votes have been reset to zero.")


def render_poll(vm: Dict[str, Any]) -> str:
    esc = html.escape
    rows = "".join(
        f'<div class="poll-option" data-name="{esc(opt["name"], quote=True)}" style="border-color:{opt["color"]}33">'
        f'<div class="poll-bar" style="width:{opt["pct"]}%;background:{opt["color"]}11"></div>'
        f'<span class="poll-name">{esc(opt["name"])}</span>'
        f'<span class="poll-pct" style="color:{opt["color"]}">{opt["pct"]}% ({opt["count"]})</span>'
        "</div>"
        for opt in vm["options"]
    )
    status = "Poll Closed" if vm["closed"] else "Live Poll"
    total = vm["totalVotes"]
    return (
        f'<div class="poll-card" data-closed="{str(vm["closed"]).lower()}" '
        f'data-poll-id="{esc(vm["pollId"], quote=True)}" data-api="{esc(vm["apiBaseUrl"], quote=True)}">'
        f'<div class="poll-header"><span class="poll-status">{status}</span>'
        f'<span class="poll-id">{esc(vm["pollId"])}</span>'
        f'<div class="poll-question">{esc(vm["question"])}</div></div>'
        f'<div class="poll-options">{rows}</div>'
        f'<div class="poll-footer"><span>{total} vote{"s" if total != 1 else ""}</span>'
        f'<span class="poll-voters">{vm["voterCount"]} voters</span></div>'
        "</div>"
    )


poll_card = CardDefinition(
    name="do-poll",
    description=(
        'Create or open an interactive poll. "#do/poll" with question + options creates a new poll. '
        '"#do/poll <id>" (e.g. "#do/poll 71a1bc") opens an existing poll by its 6-character hex ID: '
        "pass the ID as the id parameter and do not pass question or options."
    ),
    inputs={
        "id": InputDefinition(
            type="string",
            description="Poll ID (6-character hex string). Omit only when creating a brand-new poll.",
        ),
        "question": InputDefinition(
            type="string",
            default="What is your favorite option?",
            description="The poll question (required when creating a new poll)",
        ),
        "options": InputDefinition(
            type="string",
            default="Option A, Option B, Option C",
            description='Comma-separated list of options (e.g. "TypeScript, Python, Rust")',
        ),
        "allowMultiple": InputDefinition(
            type="boolean",
            default=False,
            description="Allow voters to select multiple options",
        ),
    },
    get_data=get_poll_data,
    state_key=poll_state_key,
    shareable=True,
    actions={
        "vote": ActionDefinition(
            label="Vote",
            description="Cast a vote for one option. Use the exact option name.",
            inputs={
                "choice": InputDefinition(
                    type="string",
                    required=True,
                    description="The option name to vote for (must match an existing option exactly)",
                ),
            },
            handler=vote,
        ),
        "close": ActionDefinition(
            label="Close Poll",
            description="Close the poll so no more votes can be cast",
            permission="confirm",
            handler=close_poll,
        ),
        "reopen": ActionDefinition(
            label="Reopen Poll",
            description="Reopen a closed poll to accept votes again",
            handler=reopen_poll,
        ),
        "reset": ActionDefinition(
            label="Reset Votes",
            description="Clear all votes and start fresh",
            permission="confirm",
            handler=reset_votes,
        ),
    },
    template=FunctionTemplate(render_poll),
)
