"""Tests for rendering pages, views and partials."""
from unittest.mock import MagicMock

import pytest
from markupsafe import Markup

from view_engine.error.exceptions import RecursionLimitExceeded, RenderError
from view_engine.rendering.component import (
    ComponentRenderingService,
    PageRenderer,
    create_component_rendering_service,
)
from view_engine.rendering.context import RenderContext
from view_engine.rendering.engine import MemoryCache, TemplateEngine
from view_engine.rendering.models import Assets, Page, Partial, RenderableKind, View


@pytest.fixture
def page_templates(write_template):
    """Layout with header, content and footer slots."""
    write_template(
        "layout/main",
        "<title>{{ title }}</title>"
        "@foreach(css_links as href)<link href=\"{{ href }}\">@endforeach"
        "<header>@partial('header')</header>"
        "<main>@partial('content')</main>"
        "<footer>@partial('footer')</footer>"
    )
    write_template("partial/header", "{{ title }}@partial('navigation')")
    write_template("partial/navigation", "<nav>@foreach(links as link){{ link }};@endforeach</nav>")
    write_template("partial/footer", "{{ copyright }}")
    write_template("home", "Hi {{ name }} ({{ site }})")


def test_layout_example(kernel, write_template):
    write_template("layout", "<div>@yield('content')</div>")
    write_template("child", "@extends('layout')\n@section('content') Hello @endsection")
    assert kernel.render_template("child") == "<div>Hello</div>"


def test_escaped_and_raw_output(kernel, write_template):
    write_template("out", "{{ v }}|{!! v !!}")
    assert kernel.render_template("out", {"v": "<b>x</b>"}) == "&lt;b&gt;x&lt;/b&gt;|<b>x</b>"


def test_builtin_filters(kernel, write_template):
    write_template("filters", "{{ data | tojson }}|{{ name | upper }}")
    assert kernel.render_template("filters", {"data": {"a": 1}, "name": "ada"}) == '{"a": 1}|ADA'


def test_yield_inside_echo_renders_literally(kernel, write_template):
    write_template("layout", "{{ \"@yield('content')\" }}|@@yield('content')|@yield('content')")
    write_template("child", "@extends('layout')\n@section('content') C @endsection\n")
    assert kernel.render_template("child") == "@yield(&#39;content&#39;)|@yield('content')|C"


def test_undefined_variable_is_render_error(kernel, write_template):
    write_template("strict", "Hello {{ missing }}")
    with pytest.raises(RenderError) as exc_info:
        kernel.render_template("strict")
    assert exc_info.value.template == "strict"


def test_fallback_for_undefined_variable(kernel, write_template):
    write_template("fallback", "{{ missing ?? 'd' }}|{{ present ?? 'd' }}")
    assert kernel.render_template("fallback", {"present": "p"}) == "d|p"


def test_exception_in_expression_is_render_error(kernel, write_template):
    def explode():
        raise ValueError("boom")

    write_template("explode", "{{ f() }}")
    with pytest.raises(RenderError) as exc_info:
        kernel.render_template("explode", {"f": explode})
    assert "boom" in str(exc_info.value)


def test_control_flow(kernel, write_template):
    write_template(
        "flow",
        "@foreach(items as i)<{{ i }}>@endforeach|"
        "@forelse(empty as e){{ e }} @empty none @endforelse|"
        "@foreach(prices as k => v){{ k }}={{ v }} @endforeach|"
        "@isset(user)user @endisset|@unless(flag)off @endunless|"
        "@if(n > 1) many @elseif(n == 1) one @else zero @endif|@@literal"
    )
    html = kernel.render_template("flow", {
        "items": [1, 2],
        "empty": [],
        "prices": {"a": 1},
        "user": None,
        "flag": False,
        "n": 1,
    })
    assert html == "<1><2>| none |a=1 ||off | one |@literal"


def test_include_data_does_not_leak(kernel, write_template):
    write_template("partial/value", "[{{ x }}]")
    write_template("outer", "@include('partial/value', {'x': 'inner'})|{{ x }}|@include('partial/value')")
    assert kernel.render_template("outer", {"x": "outer"}) == "[inner]|outer|[outer]"


def test_runtime_include(kernel, write_template):
    write_template("partial/value", "<i>{{ x }}</i>")
    write_template("outer", "{{ view.include('partial/value', {'x': y}) }}|{{ x ?? 'unset' }}")
    assert kernel.render_template("outer", {"y": "<y>"}) == "<i>&lt;y&gt;</i>|unset"


def test_runtime_include_recursion_is_bounded(kernel, write_template):
    write_template("loop", "{{ view.include('loop') }}")
    with pytest.raises(RecursionLimitExceeded) as exc_info:
        kernel.render_template("loop")
    assert exc_info.value.chain[0] == "loop"
    assert len(exc_info.value.chain) == 9


def test_render_page(kernel, page_templates):
    page = Page(
        template="layout/main",
        view=View(template="home", data={"name": "Ada"}, title="Home"),
        header=Partial(
            template="partial/header",
            partials={"navigation": Partial(template="partial/navigation", data={"links": ["a", "b"]})},
        ),
        footer=Partial(template="partial/footer", data={"copyright": "(c) Example"}),
        assets=Assets(css=["/resources/css/site.css"]),
        data={"site": "Example", "name": "page level"},
    )
    html = kernel.render(page)
    assert html == (
        "<title>Home</title>"
        "<link href=\"/resources/css/site.css\">"
        "<header>Home<nav>a;b;</nav></header>"
        "<main>Hi Ada (Example)</main>"
        "<footer>(c) Example</footer>"
    )


def test_page_without_header_and_footer(kernel, page_templates):
    page = Page(template="layout/main", view=View(template="home", data={"name": "Ada", "site": "S"}))
    assert kernel.render(page) == "<title></title><header></header><main>Hi Ada (S)</main><footer></footer>"


def test_render_view_and_partial(kernel, write_template):
    write_template("view", "{{ title }}:@partial('box')")
    write_template("box", "<{{ partial.template }}:{{ size }}>")
    view = View(template="view", title="T", partials={"box": Partial(template="box", data={"size": 2})})
    assert kernel.render(view) == "T:<box:2>"


def test_nested_partials(kernel, write_template):
    write_template("node", "[@partial('child')]")
    write_template("leaf", "L")
    partial = Partial(template="leaf")
    for _ in range(3):
        partial = Partial(template="node", partials={"child": partial})
    assert kernel.render(partial) == "[[[L]]]"


def test_self_referencing_partial_hits_depth_limit(kernel, write_template):
    write_template("node", "[@partial('child')]")
    partial = Partial(template="node", partials={"child": Partial(template="node")})
    with pytest.raises(RecursionLimitExceeded) as exc_info:
        kernel.render(partial)
    assert exc_info.value.limit == 8


def test_missing_partial_renders_empty(kernel, write_template):
    write_template("view", "a @partial('nothing') b")
    assert kernel.render(View(template="view")) == "a  b"


def test_render_unknown_value(kernel):
    with pytest.raises(RenderError):
        kernel.renderer.render(object())


def test_dispatch_table_is_used(processor, engine):
    renderer = MagicMock()
    renderer.kind = RenderableKind.VIEW
    renderer.render.return_value = "custom"
    service = ComponentRenderingService({RenderableKind.VIEW: renderer}, engine, processor)
    view = View(template="anything")

    assert service.render(view) == "custom"
    renderer.render.assert_called_once_with(view, service, None)


def test_factory_registers_every_kind(processor, engine):
    service = create_component_rendering_service(engine, processor, max_depth=4)
    assert set(service.renderers) == set(RenderableKind)
    assert isinstance(service.renderers[RenderableKind.PAGE], PageRenderer)
    assert service.max_depth == 4


def test_renderables_are_immutable():
    view = View(template="home", data={"a": 1})
    with pytest.raises(Exception):
        view.template = "other"
    with pytest.raises(Exception):
        View(template="  ")
    assert Page.kind is RenderableKind.PAGE
    assert Partial.kind is RenderableKind.PARTIAL


class TestRenderContext:
    """Tests for layered contexts."""

    def test_lookup_falls_through_to_parent(self):
        parent = RenderContext({"a": 1, "b": 2}, template="outer")
        child = parent.child({"b": 3}, template="inner")
        assert child["a"] == 1
        assert child["b"] == 3
        assert parent["b"] == 2
        assert dict(child) == {"a": 1, "b": 3}
        assert "a" in child and "z" not in child
        assert len(child) == 2

    def test_context_is_read_only(self):
        data = {"a": 1}
        context = RenderContext(data)
        data["a"] = 2
        assert context["a"] == 1
        with pytest.raises(TypeError):
            context["a"] = 5
        with pytest.raises(TypeError):
            context.data["a"] = 5

    def test_depth_and_chain(self):
        root = RenderContext(template="page")
        leaf = root.child(template="view").child().child(template="box")
        assert root.depth == 1
        assert leaf.depth == 4
        assert leaf.template_chain() == ["page", "view", "box"]

    def test_find_partial_searches_outwards(self):
        root = RenderContext(partials={"nav": "root-nav", "foot": "root-foot"})
        child = root.child(partials={"nav": "child-nav"})
        assert child.find_partial("nav") == "child-nav"
        assert child.find_partial("foot") == "root-foot"
        assert child.find_partial("none") is None

    def test_missing_key(self):
        with pytest.raises(KeyError):
            RenderContext()["nope"]


class TestTemplateEngine:
    """Tests for compiled template execution."""

    def test_parsed_templates_are_reused(self):
        engine = TemplateEngine(memory_cache_size=2)
        context = RenderContext({"x": 1})
        assert engine.execute("{{ x }}", context) == "1"
        assert engine.execute("{{ x }}", context) == "1"
        assert len(engine.templates) == 1
        assert engine.clear() == 1

    def test_extra_variables_win(self):
        engine = TemplateEngine()
        assert engine.execute("{{ x }}", RenderContext({"x": 1}), extra={"x": 2}) == "2"

    def test_markup_is_not_escaped_twice(self):
        engine = TemplateEngine()
        assert engine.execute("{{ m }}", RenderContext({"m": Markup("<b>")})) == "<b>"

    def test_memory_cache_evicts_least_recently_used(self):
        cache = MemoryCache(max_size=2)
        cache.set("a", 1)
        cache.set("b", 2)
        cache.get("a")
        cache.set("c", 3)
        assert cache.get("a") == 1
        assert cache.get("b") is None
        assert cache.invalidate("^c$") == 1
        assert len(cache) == 1
