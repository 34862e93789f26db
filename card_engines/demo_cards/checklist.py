"""Checklist card: a fresh, independently stateful list per invocation."""
from __future__ import annotations

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


def checklist_state_key(inputs: Mapping[str, Any], user_id: Optional[str]) -> Optional[str]:
    list_id = inputs.get("id")
    return f"id:{list_id}" if list_id else None


def _seed_items(raw: Optional[str]) -> List[Dict[str, Any]]:
    return [{"text": t.strip(), "done": False} for t in (raw or "").split(",") if t.strip()]


def _items(state: Mapping[str, Any], inputs: Mapping[str, Any]) -> List[Dict[str, Any]]:
    if "items" in state:
        return [dict(item) for item in state["items"]]
    return _seed_items(inputs.get("items"))


async def get_checklist_data(ctx: GetDataContext) -> GetDataResult:
    items = _items(ctx.state, ctx.inputs)
    title = ctx.inputs.get("title") or "Checklist"
    done = sum(1 for item in items if item["done"])

    lines = [f"## {title}", f"**List ID:** `{ctx.inputs.get('id')}`", f"{done}/{len(items)} done", ""]
    lines += [f"- [{'x' if item['done'] else ' '}] {item['text']}" for item in items]

    return GetDataResult(
        view_model={"listId": ctx.inputs.get("id"), "title": title, "items": items, "done": done},
        state={"items": items},
        text_output="\n".join(lines),
    )


async def add_item(ctx: ActionContext) -> ActionResult:
    text = str(ctx.action_inputs["text"]).strip()
    if not text:
        return ActionResult(message="Nothing to add.")
    items = _items(ctx.state, ctx.card_inputs)
    items.append({"text": text, "done": False})
    return ActionResult(state={"items": items}, message=f'Added "{text}" ({len(items)} items).')


async def toggle_item(ctx: ActionContext) -> ActionResult:
    items = _items(ctx.state, ctx.card_inputs)
    index = int(ctx.action_inputs["index"])
    if not 0 <= index < len(items):
        return ActionResult(message=f"No item at position {index}.")
    items[index]["done"] = not items[index]["done"]
    mark = "done" if items[index]["done"] else "not done"
    return ActionResult(state={"items": items}, message=f'Marked "{items[index]["text"]}" as {mark}.')


def render_checklist(vm: Dict[str, Any]) -> str:
    rows = "".join(
        f'<li class="checklist-item{" done" if item["done"] else ""}" data-index="{i}">'
        f'<input type="checkbox"{" checked" if item["done"] else ""} disabled> {html.escape(item["text"])}</li>'
        for i, item in enumerate(vm["items"])
    )
    return (
        f'<div class="checklist-card" data-list-id="{html.escape(str(vm["listId"]), quote=True)}">'
        f'<div class="checklist-title">{html.escape(vm["title"])}</div>'
        f'<ul class="checklist-items">{rows}</ul>'
        f'<div class="checklist-progress">{vm["done"]}/{len(vm["items"])}</div>'
        "</div>"
    )


checklist_card = CardDefinition(
    name="do-checklist",
    description="Start a new checklist. Every call creates a separate list; pass its id to reopen it.",
    inputs={
        "id": InputDefinition(type="string", description="Checklist ID. Omit to start a new list."),
        "title": InputDefinition(type="string", default="Checklist", description="Title shown above the list"),
        "items": InputDefinition(type="string", description="Comma-separated initial items"),
    },
    get_data=get_checklist_data,
    state_key=checklist_state_key,
    unique_instance=True,
    actions={
        "add": ActionDefinition(
            label="Add Item",
            description="Append an item to the checklist",
            inputs={"text": InputDefinition(type="string", required=True, description="Item text")},
            handler=add_item,
        ),
        "toggle": ActionDefinition(
            label="Toggle Item",
            description="Mark an item done or not done by its zero-based position",
            inputs={"index": InputDefinition(type="number", required=True, description="Zero-based item index")},
            handler=toggle_item,
        ),
    },
    template=FunctionTemplate(render_checklist),
)
