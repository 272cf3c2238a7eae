"""Tests for module generation: datasets, naming, relationships and output."""

from __future__ import annotations

import ast
import datetime
import logging
import sys
import types
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import pytest

import genstruct
from genstruct import (
    Config,
    EmptySequenceError,
    Generator,
    MixedElementKindError,
    NotASequenceError,
    UnsupportedElementKindError,
    enhance_config,
    ref,
)
from genstruct.config import DEFAULT_IDENTIFIER_FIELDS, module_name_for
from genstruct.datasets import Dataset
from genstruct.generator import dependencies, order_datasets
from genstruct.render import HEADER


@dataclass
class Tag:
    id: str
    name: str
    slug: str


@dataclass
class Post:
    id: str
    title: str
    tag_slugs: list[str]
    tags: list[Tag] = ref("tag_slugs", default_factory=list)


@dataclass
class Author:
    id: str
    name: str
    post_ids: list[str]
    posts: list[Article] = ref("post_ids", default_factory=list)


@dataclass
class Article:
    id: str
    title: str
    author_id: str
    author: Author | None = ref("author_id", default=None)


@dataclass
class Point:
    x: int
    y: int


@dataclass(frozen=True)
class Node:
    id: str
    parent_id: str
    parent: Node | None = ref("parent_id", default=None)


@dataclass
class Section:
    heading: str
    tag_slugs: list[str]
    tags: list[Tag] = ref("tag_slugs", default_factory=list)


@dataclass
class Page:
    id: str
    sections: list[Section]


@dataclass
class Widget:
    id: str
    size: int = ref("id", default=3)


@dataclass
class Event:
    id: str
    when: datetime.datetime
    labels: set[str] = field(default_factory=set)


@pytest.fixture
def load_module(monkeypatch):
    """Execute generated source as a registered module and return its namespace."""

    def load(source: str, module_name: str) -> dict[str, Any]:
        module = types.ModuleType(module_name)
        monkeypatch.setitem(sys.modules, module_name, module)
        exec(compile(source, module_name, "exec"), module.__dict__)
        return module.__dict__

    return load


def make_tags() -> list[Tag]:
    return [
        Tag(id="t1", name="Go", slug="go"),
        Tag(id="t2", name="Python", slug="python"),
    ]


def top_level_names(source: str) -> list[str]:
    names = []
    for stmt in ast.parse(source).body:
        if isinstance(stmt, ast.AnnAssign) and isinstance(stmt.target, ast.Name):
            names.append(stmt.target.id)
        elif isinstance(stmt, ast.Assign):
            names.extend(t.id for t in stmt.targets if isinstance(t, ast.Name))
    return names


# --- Scenarios ---


class TestScenarios:
    """End-to-end generation of related datasets."""

    def test_shared_reference(self, load_module):
        """A post's tags refer to the declared tag, not a copy."""
        tags = [Tag(id="t1", name="Go", slug="go")]
        posts = [Post(id="p1", title="Hello", tag_slugs=["go"])]
        source = Generator(Config(output_file="blog_generated.py"), posts, tags).render()

        assert "TagT1: Tag = Tag(" in source
        assert "tags=[TagT1]" in source
        assert source.index("TagT1: Tag") < source.index("PostP1: Post")

        ns = load_module(source, "blog_generated")
        assert ns["PostP1"].tags[0] is ns["TagT1"]
        assert ns["PostP1"].tags == tags
        assert ns["TagT1ID"] == "t1"
        assert ns["PostP1ID"] == "p1"
        assert ns["AllPosts"] == [ns["PostP1"]]
        assert ns["AllTags"] == [ns["TagT1"]]

    def test_unmatched_reference(self, load_module):
        tags = [Tag(id="t1", name="Go", slug="go")]
        posts = [Post(id="p1", title="Hello", tag_slugs=["nonexistent"])]
        source = Generator(Config(output_file="blog_generated.py"), posts, tags).render()

        assert "tags=[]" in source
        ns = load_module(source, "blog_generated")
        assert ns["PostP1"].tags == []

    def test_partially_matched_references(self, load_module):
        posts = [Post(id="p1", title="Hello", tag_slugs=["python", "rust", "go"])]
        source = Generator(Config(output_file="blog_generated.py"), posts, make_tags()).render()

        assert "tags=[TagT2, TagT1]" in source
        ns = load_module(source, "blog_generated")
        assert [t.slug for t in ns["PostP1"].tags] == ["python", "go"]

    def test_records_without_strings_get_synthetic_names(self, load_module):
        points = [Point(x=1, y=2), Point(x=3, y=4)]
        source = Generator(Config(output_file="points_generated.py"), points).render()

        assert "PointPoint1: Point = Point(" in source
        assert "PointPoint2: Point = Point(" in source
        ns = load_module(source, "points_generated")
        assert ns["AllPoints"] == points

    def test_mutual_references(self, load_module):
        """Both sides of a cycle end up linked to the very same objects."""
        authors = [Author(id="u1", name="Ada", post_ids=["a1", "a2"])]
        articles = [
            Article(id="a1", title="First", author_id="u1"),
            Article(id="a2", title="Second", author_id="u1"),
        ]
        source = Generator(Config(output_file="authors_generated.py"), authors, articles).render()

        assert "posts=[ArticleA1, ArticleA2]" in source
        assert "ArticleA1.author = AuthorU1" in source
        assert "ArticleA2.author = AuthorU1" in source

        ns = load_module(source, "authors_generated")
        author = ns["AuthorU1"]
        assert author.posts[0] is ns["ArticleA1"]
        assert author.posts[1] is ns["ArticleA2"]
        assert ns["ArticleA1"].author is author
        assert ns["ArticleA2"].author is author

    def test_forward_reference_in_frozen_records(self, load_module):
        nodes = [
            Node(id="child", parent_id="root"),
            Node(id="root", parent_id=""),
        ]
        source = Generator(Config(output_file="nodes_generated.py"), nodes).render()

        assert "object.__setattr__(NodeChild, 'parent', NodeRoot)" in source
        ns = load_module(source, "nodes_generated")
        assert ns["NodeChild"].parent is ns["NodeRoot"]
        assert ns["NodeRoot"].parent is None

    def test_self_reference(self, load_module):
        nodes = [Node(id="loop", parent_id="loop")]
        source = Generator(Config(output_file="nodes_generated.py"), nodes).render()

        ns = load_module(source, "nodes_generated")
        assert ns["NodeLoop"].parent is ns["NodeLoop"]

    def test_reference_inside_nested_record(self, load_module):
        pages = [Page(id="home", sections=[Section(heading="Intro", tag_slugs=["go"])])]
        source = Generator(Config(output_file="pages_generated.py"), pages, make_tags()).render()

        assert "PageHome.sections[0].tags = [TagT1]" in source
        ns = load_module(source, "pages_generated")
        assert ns["PageHome"].sections[0].tags[0] is ns["TagT1"]

    def test_unsupported_relationship_is_left_unset(self, load_module):
        widgets = [Widget(id="w1", size=10)]
        source = Generator(Config(output_file="widgets_generated.py"), widgets).render()

        assert "size=" not in source
        ns = load_module(source, "widgets_generated")
        assert ns["WidgetW1"].size == 3


# --- Validation ---


class TestValidation:
    """Invalid datasets are rejected before anything is written."""

    @pytest.mark.parametrize("data", ["text", {"a": 1}, 42, None])
    def test_not_a_sequence(self, data):
        with pytest.raises(NotASequenceError) as exc_info:
            Generator(Config(), data)
        assert "data must be a list or tuple" in str(exc_info.value)

    def test_empty(self):
        with pytest.raises(EmptySequenceError):
            Generator(Config(), [])

    def test_not_records(self):
        with pytest.raises(UnsupportedElementKindError) as exc_info:
            Generator(Config(), [1, 2])
        assert exc_info.value.kind == "int"

    def test_mixed_kinds(self):
        data = [make_tags()[0], Point(x=1, y=2)]
        with pytest.raises(MixedElementKindError) as exc_info:
            Generator(Config(), data)
        assert isinstance(exc_info.value, UnsupportedElementKindError)
        assert exc_info.value.expected == "Tag"

    def test_invalid_reference_dataset(self):
        posts = [Post(id="p1", title="Hello", tag_slugs=[])]
        with pytest.raises(EmptySequenceError) as exc_info:
            Generator(Config(), posts, [])
        assert exc_info.value.dataset == "refs[0]"

    def test_nothing_written_on_error(self, tmp_path):
        output = tmp_path / "out" / "bad.py"
        with pytest.raises(NotASequenceError):
            Generator(Config(output_file=str(output)), "text").generate()
        assert not output.exists()
        assert not output.parent.exists()

    def test_tuple_dataset(self, load_module):
        source = Generator(Config(output_file="tags_generated.py"), tuple(make_tags())).render()
        ns = load_module(source, "tags_generated")
        assert len(ns["AllTags"]) == 2


# --- Configuration ---


class TestConfig:
    """Inference and overrides of generation settings."""

    def test_inference(self):
        config = Config()
        enhanced = enhance_config(config, make_tags())

        assert enhanced.type_name == "Tag"
        assert enhanced.constant_ident == "Tag"
        assert enhanced.var_prefix == "Tag"
        assert enhanced.output_file == "tag_generated.py"
        assert enhanced.module_name == "tag_generated"
        assert enhanced.identifier_fields == list(DEFAULT_IDENTIFIER_FIELDS)
        assert not enhanced.is_export_mode
        # The caller's config is left alone
        assert config.type_name == ""
        assert config.output_file == ""

    def test_explicit_values_are_kept(self):
        config = Config(
            type_name="Label",
            var_prefix="L",
            constant_ident="K",
            output_file="out/labels.py",
            identifier_fields=["slug"],
        )
        enhanced = config.infer(make_tags())
        assert enhanced.var_prefix == "L"
        assert enhanced.constant_ident == "K"
        assert enhanced.module_name == "out.labels"
        assert enhanced.identifier_fields == ["slug"]
        assert enhanced.is_export_mode

    def test_type_name_override(self, load_module):
        source = Generator(Config(type_name="Label"), make_tags()).render()
        assert "LabelT1: Tag = Tag(" in source
        assert "LabelT1ID: Final[str] = 't1'" in source
        assert "AllLabels: list[Tag] = [" in source
        assert "contains auto-generated Label data" in source
        ns = load_module(source, "label_generated")
        assert ns["AllLabels"] == make_tags()

    @pytest.mark.parametrize(
        "path,expected",
        [
            ("blog.py", "blog"),
            ("./out/blog_data.py", "out.blog_data"),
            ("pkg/sub/data.py", "pkg.sub.data"),
            ("/tmp/build/data.py", "data"),
            ("my-data.py", "generated"),
        ],
    )
    def test_module_name_for(self, path, expected):
        assert module_name_for(path) == expected

    def test_identifier_fields(self):
        source = Generator(Config(identifier_fields=["slug"]), make_tags()).render()
        assert "TagGo: Tag = Tag(" in source
        assert "TagPython: Tag = Tag(" in source

    def test_custom_name_function(self):
        config = Config(custom_var_name_fn=lambda tag: f"{tag.name} tag")
        source = Generator(config, make_tags()).render()
        assert "TagGoTag: Tag = Tag(" in source
        assert "TagGoTagID: Final[str] = 't1'" in source


# --- Qualification ---


class TestQualification:
    """How types are referenced from the generated module."""

    def test_imported_by_name(self):
        source = Generator(Config(output_file="blog_generated.py"), [Post("p1", "Hi", [])], make_tags()).render()
        assert "from test_generator import Post, Tag" in source
        assert "from typing import Final" in source

    def test_export_mode_qualifies(self, tmp_path, load_module):
        output = tmp_path / "pkg" / "blog.py"
        posts = [Post(id="p1", title="Hello", tag_slugs=["go"])]
        path = Generator(Config(output_file=str(output)), posts, make_tags()).generate()

        assert path == output
        source = output.read_text()
        assert "import test_generator" in source
        assert "PostP1: test_generator.Post = test_generator.Post(" in source
        ns = load_module(source, "blog")
        assert ns["PostP1"].tags[0] is ns["TagT1"]

    def test_export_mode_can_be_disabled(self):
        config = Config(output_file="pkg/blog.py", export_mode=False)
        source = Generator(config, make_tags()).render()
        assert "from test_generator import Tag" in source
        assert "test_generator.Tag" not in source

    def test_local_kinds_are_exported(self, load_module):
        @dataclass
        class Color:
            name: str
            hex: str

        colors = [Color(name="red", hex="#f00"), Color(name="green", hex="#0f0")]
        source = Generator(Config(output_file="colors.py"), colors).render()

        assert "import dataclasses" in source
        assert "@dataclasses.dataclass\nclass Color:" in source
        assert source.index("class Color:") < source.index("ColorRed: Color")

        ns = load_module(source, "colors")
        assert type(ns["ColorRed"]) is ns["Color"]
        assert ns["ColorGreen"].hex == "#0f0"

    def test_local_kinds_keep_their_relationships(self, load_module):
        """Function-local kinds naming each other still link and keep their types."""

        @dataclass
        class LTag:
            id: str
            slug: str

        @dataclass
        class LPost:
            id: str
            tag_slugs: list[str]
            tags: list[LTag] = ref("tag_slugs", default_factory=list)

        posts = [LPost(id="p1", tag_slugs=["go"])]
        tags = [LTag(id="t1", slug="go")]
        source = Generator(Config(output_file="local_blog.py"), posts, tags).render()

        assert "id: str" in source
        assert "tags: list[LTag] = dataclasses.field(" in source
        assert "tags=[LTagT1]" in source
        ns = load_module(source, "local_blog")
        assert ns["LPostP1"].tags[0] is ns["LTagT1"]

    def test_declarations_do_not_shadow_local_classes(self, load_module):
        class OrderStatus(Enum):
            OPEN = "open"
            CLOSED = "closed"

        @dataclass
        class Order:
            id: str
            status: OrderStatus

        orders = [
            Order(id="status", status=OrderStatus.OPEN),
            Order(id="o2", status=OrderStatus.CLOSED),
        ]
        source = Generator(Config(output_file="orders.py"), orders).render()

        assert "class OrderStatus(Enum):" in source
        assert "status: OrderStatus" in source
        assert "OrderStatus2: Order = Order(" in source
        assert "OrderStatus" not in top_level_names(source)

        ns = load_module(source, "orders")
        assert ns["OrderStatus2"].status is ns["OrderStatus"].OPEN
        assert ns["OrderO2"].status is ns["OrderStatus"].CLOSED

    def test_canonical_types(self, load_module):
        when = datetime.datetime(2024, 5, 1, 12, 0, tzinfo=datetime.timezone.utc)
        events = [Event(id="launch", when=when, labels={"b", "a"})]
        source = Generator(Config(output_file="events_generated.py"), events).render()

        assert "import datetime" in source
        assert "when=datetime.datetime(2024, 5, 1, 12, 0, 0, 0, tzinfo=datetime.timezone.utc)" in source
        assert "labels={'a', 'b'}" in source
        ns = load_module(source, "events_generated")
        assert ns["EventLaunch"] == events[0]


# --- Output ---


class TestOutput:
    """Layout and naming of the generated module."""

    def test_layout(self):
        source = Generator(Config(output_file="tags_generated.py"), make_tags()).render()
        lines = source.splitlines()

        assert lines[0] == HEADER
        assert lines[1] == '"""Module tags_generated contains auto-generated Tag data."""'
        assert "from __future__ import annotations" in lines
        assert source.endswith("]\n")
        ast.parse(source)

    def test_declarations_are_multiline(self):
        source = Generator(Config(output_file="tags_generated.py"), make_tags()).render()
        assert "TagT1: Tag = Tag(\n    id='t1',\n    name='Go',\n    slug='go',\n)" in source
        assert "AllTags: list[Tag] = [\n    TagT1,\n    TagT2,\n]" in source

    def test_names_are_unique(self, load_module):
        tags = [
            Tag(id="go", name="Go", slug="go"),
            Tag(id="go", name="Go again", slug="go-again"),
            Tag(id="", name="Rust", slug="rust"),
        ]
        source = Generator(Config(output_file="tags_generated.py"), tags).render()

        names = top_level_names(source)
        assert len(names) == len(set(names))
        assert {"TagGo", "TagGo2", "TagGoID", "TagGoID2", "TagRust", "TagRustID"} <= set(names)

        ns = load_module(source, "tags_generated")
        assert ns["TagRustID"] == "tag-3"
        assert ns["AllTags"] == tags

    def test_no_constants_without_id_field(self):
        source = Generator(Config(output_file="points_generated.py"), [Point(1, 2)]).render()
        assert "Final" not in source
        assert "identifiers" not in source

    def test_rendering_is_deterministic(self):
        posts = [Post(id="p1", title="Hello", tag_slugs=["go", "python"])]
        first = Generator(Config(), posts, make_tags()).render()
        second = Generator(Config(), posts, make_tags()).render()
        assert first == second

    def test_generate_creates_directories(self, tmp_path):
        output = tmp_path / "a" / "b" / "tags.py"
        path = Generator(Config(output_file=str(output)), make_tags()).generate()
        assert path == output
        assert output.read_text().startswith(HEADER)

    def test_generate_function(self, tmp_path):
        output = tmp_path / "tags_generated.py"
        path = genstruct.generate(make_tags(), output_file=str(output), export_mode=False)
        assert path.exists()
        assert "from test_generator import Tag" in path.read_text()


# --- Datasets ---


class TestDatasets:
    """Reference datasets and their emission order."""

    def test_refs_by_kind(self):
        tags = make_tags()
        generator = Generator(Config(), [Post("p1", "Hi", [])], tags)
        assert generator.refs == {"Tag": tags}

    def test_duplicate_kind_is_ignored(self, caplog):
        with caplog.at_level(logging.WARNING, logger="genstruct"):
            generator = Generator(Config(), make_tags(), make_tags())
        assert generator.refs == {}
        assert "Ignoring refs[0]" in caplog.text

    def test_dependencies(self):
        assert dependencies(Dataset.load([Post("p1", "Hi", [])])) == ["Tag"]
        assert dependencies(Dataset.load(make_tags())) == []

    def test_order_targets_first(self):
        posts = Dataset.load([Post("p1", "Hi", [])])
        tags = Dataset.load(make_tags())
        points = Dataset.load([Point(1, 2)])
        ordered = order_datasets([posts, points, tags])
        assert [d.kind for d in ordered] == ["Tag", "Post", "Point"]

    def test_cycles_follow_input_order(self):
        authors = Dataset.load([Author("u1", "Ada", [])])
        articles = Dataset.load([Article("a1", "First", "u1")])
        assert [d.kind for d in order_datasets([authors, articles])] == ["Article", "Author"]
        assert [d.kind for d in order_datasets([articles, authors])] == ["Author", "Article"]
