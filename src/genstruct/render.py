"""Assembly and layout of generated module source."""

from __future__ import annotations

import ast

from genstruct.errors import RenderError

HEADER = "# Code generated by genstruct. DO NOT EDIT."
INDENT = "    "
LINE_WIDTH = 88


def _breakable(node: ast.expr) -> bool:
    if isinstance(node, ast.Call):
        return bool(node.args or node.keywords)
    if isinstance(node, (ast.List, ast.Tuple, ast.Set)):
        return bool(node.elts)
    if isinstance(node, ast.Dict):
        return bool(node.keys)
    return False


def format_expr(node: ast.expr, level: int = 0, force: bool = False) -> str:
    """Render an expression, one element per line when it does not fit.

    Args:
        node: Expression to render.
        level: Indentation level of the line the expression starts on.
        force: Break the outermost display or call even if it fits.
    """
    flat = ast.unparse(node)
    if not _breakable(node) or (not force and len(INDENT * level) + len(flat) <= LINE_WIDTH):
        return flat

    pad = INDENT * (level + 1)
    items: list[str] = []
    if isinstance(node, ast.Call):
        opener, closer = ast.unparse(node.func) + "(", ")"
        for arg in node.args:
            prefix = "*" if isinstance(arg, ast.Starred) else ""
            value = arg.value if isinstance(arg, ast.Starred) else arg
            items.append(prefix + format_expr(value, level + 1))
        for kw in node.keywords:
            prefix = f"{kw.arg}=" if kw.arg else "**"
            items.append(prefix + format_expr(kw.value, level + 1))
    elif isinstance(node, ast.Dict):
        opener, closer = "{", "}"
        for key, value in zip(node.keys, node.values):
            if key is None:
                items.append("**" + format_expr(value, level + 1))
            else:
                items.append(f"{format_expr(key, level + 1)}: {format_expr(value, level + 1)}")
    else:
        opener, closer = {
            ast.List: ("[", "]"),
            ast.Tuple: ("(", ")"),
            ast.Set: ("{", "}"),
        }[type(node)]
        items = [format_expr(elt, level + 1) for elt in node.elts]

    body = "".join(f"{pad}{item},\n" for item in items)
    return f"{opener}\n{body}{INDENT * level}{closer}"


def format_statement(stmt: ast.stmt, expand: bool = False) -> str:
    """Render a module-level statement.

    Assignments lay out their value with :func:`format_expr`; ``expand``
    forces the value onto multiple lines.
    """
    ast.fix_missing_locations(stmt)
    if isinstance(stmt, ast.AnnAssign) and stmt.value is not None:
        target = ast.unparse(stmt.target)
        annotation = ast.unparse(stmt.annotation)
        return f"{target}: {annotation} = {format_expr(stmt.value, force=expand)}"
    if isinstance(stmt, ast.Assign) and len(stmt.targets) == 1:
        target = ast.unparse(stmt.targets[0])
        return f"{target} = {format_expr(stmt.value, force=expand)}"
    return ast.unparse(stmt)


class SourceFile:
    """A generated module, built from sections of statements and comments.

    Sections are separated by a blank line; class definitions by two.
    """

    def __init__(self, docstring: str) -> None:
        self.docstring = docstring
        self.imports: list[ast.stmt] = []
        self.classes: list[ast.stmt] = []
        self._sections: list[list[str]] = []

    def section(self, comment: str | None = None) -> None:
        """Start a new section, optionally headed by a comment."""
        self._sections.append([f"# {comment}"] if comment else [])

    def add(self, stmt: ast.stmt, expand: bool = False) -> None:
        if not self._sections:
            self.section()
        self._sections[-1].append(format_statement(stmt, expand=expand))

    def render(self) -> str:
        """Render the module text and check that it parses.

        Raises:
            RenderError: If the text is not valid Python.
        """
        docstring = ast.unparse(ast.Module(body=[ast.Expr(value=ast.Constant(value=self.docstring))], type_ignores=[]))
        blocks = [
            f"{HEADER}\n{docstring}",
            "from __future__ import annotations",
        ]
        if self.imports:
            blocks.append("\n".join(format_statement(s) for s in self.imports))

        text = "\n\n".join(blocks)
        for cls in self.classes:
            text += "\n\n\n" + format_statement(cls)
        sections = ["\n".join(lines) for lines in self._sections if lines]
        if sections:
            text += "\n\n\n" + "\n\n".join(sections)
        text += "\n"

        try:
            ast.parse(text)
        except SyntaxError as e:
            raise RenderError(f"Generated source is not valid Python: {e}", text) from e
        return text
