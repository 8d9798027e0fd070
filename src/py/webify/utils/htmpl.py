from typing import Callable, Iterable, Iterator, Optional, Union, cast
from mypy_extensions import KwArg, VarArg

# --
# HTMPL is a minimal HTML builder, used to render directory listings without
# a template engine. Text content is always escaped, attribute values are
# always quoted.

HTML_EMPTY: frozenset[str] = frozenset(
    "area base br col embed hr img input link meta source track wbr".split()
)
HTML_ESCAPED = str.maketrans(
    {"&": "&amp;", "<": "&lt;", ">": "&gt;", '"': "&quot;", "'": "&#x27;"}
)
HTML_QUOTED = str.maketrans({"&": "&amp;", '"': "&quot;", "<": "&lt;"})


def escape(text: str) -> str:
    return text.translate(HTML_ESCAPED)


def quoted(text: Optional[str]) -> str:
    return text.translate(HTML_QUOTED) if text else ""


TNodeContent = Union["Node", str, int, float]
TAttributeContent = str | bool | int | float | None


class Node:
    __slots__ = ["name", "attributes", "children"]

    def __init__(
        self,
        name: str,
        children: Optional[Iterable[TNodeContent]] = None,
        attributes: Optional[dict[str, TAttributeContent]] = None,
    ):
        self.name: str = name
        self.attributes: dict[str, TAttributeContent] = attributes or {}
        self.children: list[TNodeContent] = list(children) if children else []

    def iterHTML(self) -> Iterator[str]:
        yield f"<{self.name}"
        for k, v in self.attributes.items():
            if v is True:
                yield f" {k}"
            elif v is not None and v is not False:
                yield f' {k}="{quoted(str(v))}"'
        yield ">"
        if self.name in HTML_EMPTY:
            return
        for child in self.children:
            if isinstance(child, Node):
                yield from child.iterHTML()
            else:
                yield escape(str(child))
        yield f"</{self.name}>"

    def __str__(self) -> str:
        return "".join(self.iterHTML())


class Raw(Node):
    """A node that outputs its content verbatim, used for inline styles."""

    __slots__ = ["content"]

    def __init__(self, content: str):
        super().__init__("#raw")
        self.content: str = content

    def iterHTML(self) -> Iterator[str]:
        yield self.content


NodeFactory = Callable[[VarArg(TNodeContent), KwArg(TAttributeContent)], Node]


def nodeFactory(name: str) -> NodeFactory:
    def f(*children: TNodeContent, **attributes: TAttributeContent) -> Node:
        content: list[TNodeContent] = []
        for _ in children:
            if isinstance(_, (list, tuple)):
                content += list(_)
            else:
                content.append(_)
        # `_` stands for `class`, which is a reserved word
        attrs = {("class" if k == "_" else k): v for k, v in attributes.items()}
        return Node(name, content, attrs)

    f.__name__ = name
    return cast(NodeFactory, f)


class Markup:
    """Exposes node factories as attributes, like `H.ul(H.li("item"))`."""

    __slots__ = ["_factories"]

    def __init__(self, tags: Iterable[str]):
        self._factories: dict[str, NodeFactory] = {_: nodeFactory(_) for _ in tags}

    def __getattr__(self, name: str) -> NodeFactory:
        try:
            return self._factories[name]
        except KeyError:
            raise AttributeError(f"No tag {name}") from None


H: Markup = Markup(
    """\
a body code div footer h1 h2 head header html li link main meta nav p pre
section small span style table tbody td th thead title tr ul\
""".split()
)


def html(*nodes: Node, doctype: str | None = "html") -> str:
    """Renders the given nodes as an HTML document."""
    prefix = f"<!DOCTYPE {doctype}>\n" if doctype else ""
    return prefix + "".join("".join(_.iterHTML()) for _ in nodes)


# EOF
