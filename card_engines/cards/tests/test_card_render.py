import asyncio

import pytest

from card_engines.cards.errors import CardTemplateError
from card_engines.cards.instance import compute_instance_id
from card_engines.cards.models import (
    CardDefinition,
    CardEnvironment,
    FileTemplate,
    FunctionTemplate,
    GetDataResult,
)
from card_engines.cards.render import merge_state, render_card


def _card(get_data, template=None, **kwargs) -> CardDefinition:
    return CardDefinition(
        name=kwargs.pop("name", "demo"),
        description="demo card",
        get_data=get_data,
        template=template or FunctionTemplate(lambda vm: f"<p>{vm.get('msg', '')}</p>"),
        **kwargs,
    )


def test_merge_state_is_shallow_and_partial_wins():
    assert merge_state({"a": 1}, {"b": 2}) == {"a": 1, "b": 2}
    assert merge_state({"a": 1, "n": {"x": 1}}, {"a": 3, "n": {"y": 2}}) == {"a": 3, "n": {"y": 2}}
    assert merge_state({"a": 1}, None) == {"a": 1}


def test_render_merges_state_and_wraps_markup():
    async def get_data(ctx):
        return GetDataResult(view_model={"msg": "hi"}, state={"b": 2}, text_output="## hi")

    result = asyncio.run(render_card(_card(get_data), {}, {"a": 1}))
    assert result.new_state == {"a": 1, "b": 2}
    assert result.text_summary == "## hi"
    assert result.raw_data == {"msg": "hi"}
    assert result.is_error is False
    assert result.markup.startswith('<div class="card-container" data-card="demo">')
    assert "<p>hi</p>" in result.markup


def test_get_data_receives_inputs_state_env_and_raw_inputs():
    seen = {}

    async def get_data(ctx):
        seen.update(inputs=ctx.inputs, state=ctx.state, env=ctx.env, raw=ctx.raw_inputs)
        return GetDataResult(view_model={})

    env = CardEnvironment(base_url="https://cards.example")
    asyncio.run(render_card(_card(get_data), {"units": "celsius"}, {"n": 1}, env=env, raw_inputs={}))
    assert seen == {"inputs": {"units": "celsius"}, "state": {"n": 1}, "env": env, "raw": {}}


def test_data_fetch_failure_becomes_error_card():
    async def get_data(ctx):
        raise Exception("boom")

    result = asyncio.run(render_card(_card(get_data), {}, {"count": 3}))
    assert result.is_error is True
    assert result.text_summary == "Error: boom"
    assert result.new_state == {"count": 3}
    assert "card-error" in result.markup
    assert "boom" in result.markup


def test_error_message_is_escaped_in_markup():
    async def get_data(ctx):
        raise ValueError("<script>")

    result = asyncio.run(render_card(_card(get_data), {}, {}))
    assert "<script>" not in result.markup
    assert "&lt;script&gt;" in result.markup


def test_wrong_get_data_return_type_is_a_data_fetch_failure():
    async def get_data(ctx):
        return {"msg": "not a result"}

    result = asyncio.run(render_card(_card(get_data), {}, {}))
    assert result.is_error is True
    assert result.text_summary.startswith("Error: get_data returned dict")


def test_template_failure_propagates():
    async def get_data(ctx):
        return GetDataResult(view_model={})

    def broken(vm):
        raise KeyError("missing")

    with pytest.raises(CardTemplateError) as excinfo:
        asyncio.run(render_card(_card(get_data, FunctionTemplate(broken)), {}, {}))
    assert excinfo.value.card_name == "demo"


def test_template_must_return_text():
    async def get_data(ctx):
        return GetDataResult(view_model={})

    with pytest.raises(CardTemplateError):
        asyncio.run(render_card(_card(get_data, FunctionTemplate(lambda vm: 42)), {}, {}))


def test_file_template_renders_with_autoescape(tmp_path):
    (tmp_path / "hello.html.j2").write_text("<p>Hello {{ name }}</p>", encoding="utf-8")

    async def get_data(ctx):
        return GetDataResult(view_model={"name": "<b>Ada</b>"})

    card = _card(get_data, FileTemplate("hello.html.j2"), card_dir=tmp_path)
    result = asyncio.run(render_card(card, {}, {}))
    assert "<p>Hello &lt;b&gt;Ada&lt;/b&gt;</p>" in result.markup


def test_missing_file_template_is_a_template_error(tmp_path):
    async def get_data(ctx):
        return GetDataResult(view_model={})

    card = _card(get_data, FileTemplate("nope.html.j2"), card_dir=tmp_path)
    with pytest.raises(CardTemplateError):
        asyncio.run(render_card(card, {}, {}))


def test_shareable_card_gets_share_link():
    async def get_data(ctx):
        return GetDataResult(view_model={"msg": "hi"})

    card = _card(get_data, shareable=True)
    env = CardEnvironment(base_url="https://cards.example/")
    result = asyncio.run(render_card(card, {"q": "x"}, {}, env=env, instance_id_length=6))

    token = compute_instance_id(card, {"q": "x"}, 6)
    assert result.share_token == token
    assert f'href="https://cards.example/s/demo/{token}"' in result.markup
    assert f'data-share-token="{token}"' in result.markup


def test_resolved_instance_id_is_used_as_share_token():
    async def get_data(ctx):
        return GetDataResult(view_model={"msg": "hi"})

    def state_key(inputs, user_id):
        raise AssertionError("instance id already resolved")

    card = _card(get_data, shareable=True, state_key=state_key)
    result = asyncio.run(render_card(card, {"q": "x"}, {}, instance_id="a1b2c3"))
    assert result.share_token == "a1b2c3"


def test_non_shareable_card_has_no_share_link():
    async def get_data(ctx):
        return GetDataResult(view_model={})

    result = asyncio.run(render_card(_card(get_data), {}, {}))
    assert result.share_token is None
    assert "card-share" not in result.markup
