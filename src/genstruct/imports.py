"""Import collection and cross-module qualification for generated modules."""

from __future__ import annotations

import ast
from typing import Callable


def _chain(root: str, attrs: list[str]) -> ast.expr:
    node: ast.expr = ast.Name(id=root, ctx=ast.Load())
    for attr in attrs:
        node = ast.Attribute(value=node, attr=attr, ctx=ast.Load())
    return node


class ImportTracker:
    """Collects the imports a generated module needs.

    Decides, per type, whether it is referenced by a bare name or a
    module-qualified name:

    * types defined in the target module itself (or in ``__main__``, or
      inside a function) are *local*: bare name, no import, and their class
      definition is exported into the generated module;
    * in export mode, other types are qualified (``pkg.Post`` with
      ``from examples import pkg``);
    * otherwise they are imported by name (``from examples.pkg import Post``).
    """

    def __init__(
        self,
        module_name: str,
        export_mode: bool,
        is_reserved: Callable[[str], bool] | None = None,
    ) -> None:
        self.module_name = module_name
        self.export_mode = export_mode
        self._is_reserved = is_reserved or (lambda name: False)
        self._bound: dict[str, tuple[str, str | None]] = {}
        self._module_aliases: dict[str, str] = {}
        self._name_aliases: dict[tuple[str, str], str] = {}

    def is_local(self, module: str, qualname: str = "") -> bool:
        """Check if a type from ``module`` must be defined in the generated module."""
        return (
            module == self.module_name
            or module == "__main__"
            or "<locals>" in qualname
        )

    def _bind(self, preferred: str, target: tuple[str, str | None]) -> str:
        alias = preferred
        n = 2
        while (alias in self._bound and self._bound[alias] != target) or (
            alias not in self._bound and self._is_reserved(alias)
        ):
            alias = f"{preferred}{n}"
            n += 1
        self._bound[alias] = target
        return alias

    def module(self, module: str) -> str:
        """Import a module and return the local name bound to it."""
        alias = self._module_aliases.get(module)
        if alias is None:
            leaf = module.rpartition(".")[2]
            alias = self._bind(leaf, (module, None))
            self._module_aliases[module] = alias
        return alias

    def qualified(self, module: str, qualname: str) -> ast.expr:
        """Reference ``module.qualname`` through a module import."""
        alias = self.module(module)
        return _chain(alias, qualname.split("."))

    def bare(self, module: str, qualname: str) -> ast.expr:
        """Reference ``qualname`` through a ``from module import`` of its head."""
        head, *rest = qualname.split(".")
        key = (module, head)
        alias = self._name_aliases.get(key)
        if alias is None:
            alias = self._bind(head, key)
            self._name_aliases[key] = alias
        return _chain(alias, rest)

    def reference(self, module: str, qualname: str) -> ast.expr:
        """Expression naming ``module.qualname`` according to the qualification policy."""
        if self.is_local(module, qualname):
            if "<locals>" in qualname:
                qualname = qualname.rpartition(".")[2]
            head, rest = _split(qualname)
            self._bound.setdefault(head, (self.module_name, head))
            return _chain(head, rest)
        if module == "builtins":
            return _chain(*_split(qualname))
        if self.export_mode:
            return self.qualified(module, qualname)
        return self.bare(module, qualname)

    def reference_type(self, cls: type) -> ast.expr:
        """Expression naming a class according to the qualification policy."""
        return self.reference(cls.__module__, cls.__qualname__)

    def is_bound(self, name: str) -> bool:
        return name in self._bound

    def statements(self) -> list[ast.stmt]:
        """Import statements, plain imports first, each group sorted."""
        plain: list[ast.stmt] = []
        from_imports: dict[str, list[ast.alias]] = {}

        for module, alias in sorted(self._module_aliases.items()):
            parent, _, leaf = module.rpartition(".")
            as_name = None if alias == leaf else alias
            if parent:
                from_imports.setdefault(parent, []).append(ast.alias(name=leaf, asname=as_name))
            else:
                plain.append(ast.Import(names=[ast.alias(name=module, asname=as_name)]))

        for (module, name), alias in sorted(self._name_aliases.items()):
            as_name = None if alias == name else alias
            from_imports.setdefault(module, []).append(ast.alias(name=name, asname=as_name))

        result = plain
        for module in sorted(from_imports):
            names = sorted(from_imports[module], key=lambda a: (a.name, a.asname or ""))
            result.append(ast.ImportFrom(module=module, names=names, level=0))
        return result


def _split(qualname: str) -> tuple[str, list[str]]:
    head, *rest = qualname.split(".")
    return head, rest
