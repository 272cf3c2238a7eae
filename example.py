"""Example usage of the genstruct library."""

from __future__ import annotations

from dataclasses import dataclass, field

from genstruct import Config, Generator, ref


@dataclass
class Tag:
    id: str
    name: str
    slug: str


@dataclass
class Author:
    id: str
    name: str
    post_ids: list[str] = field(default_factory=list)
    posts: list[Post] = ref("post_ids", default_factory=list)


@dataclass
class Post:
    id: str
    title: str
    author_id: str
    tag_slugs: list[str] = field(default_factory=list)
    author: Author | None = ref("author_id", default=None)
    tags: list[Tag] = ref("tag_slugs", default_factory=list)


tags = [
    Tag(id="t1", name="Go", slug="go"),
    Tag(id="t2", name="Python", slug="python"),
]

authors = [
    Author(id="ada", name="Ada Lovelace", post_ids=["hello-python", "notes"]),
]

posts = [
    Post(id="hello-python", title="Hello, Python", author_id="ada", tag_slugs=["python"]),
    Post(id="notes", title="Notes on the Engine", author_id="ada", tag_slugs=["go", "python"]),
]

# Posts are the primary dataset; authors and tags are what they link to.
# Classes defined in __main__ are written into the generated module.
generator = Generator(Config(output_file="blog_generated.py"), posts, authors, tags)
print(generator.render())

# Write it to disk
path = generator.generate()
print(f"Wrote {path}")
