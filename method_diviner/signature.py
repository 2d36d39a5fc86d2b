"""
Method identity across revisions.

A method has no stable ID between two revisions of a file, so it is identified
by the file path plus a normalized declaration string. The declaration keeps
the qualified name, parameter names/kinds/annotations and the return
annotation, and drops decorators, ``async`` and default values, so that edits
to those do not change identity.

Known collision: two declarations that differ only in what is dropped (for
example ``typing.overload`` stubs with identical parameters) share one
signature, and the last one in the file wins.
"""

import ast
from dataclasses import dataclass, field


@dataclass(frozen=True)
class MethodSignature:
    """Identity of a method within a file revision"""
    path: str
    declaration: str

    @property
    def key(self) -> str:
        return f'{self.path}#{self.declaration}'

    @classmethod
    def from_key(cls, key: str) -> 'MethodSignature':
        """Inverse of `key`; paths never contain '#', declarations may"""
        path, declaration = key.split('#', 1)
        return cls(path, declaration)


@dataclass(frozen=True)
class MethodDeclaration:
    """A parsed method with its declared line range (1-based, inclusive)"""
    signature: MethodSignature
    start_line: int
    end_line: int
    text: str
    node: ast.AST = field(default=None, compare=False, repr=False)


def source_lines(source: str) -> list[str]:
    """
    Split source into lines numbered the way ``ast`` numbers them.

    Only ``\\n``, ``\\r\\n`` and ``\\r`` end a line; ``str.splitlines`` also
    breaks at form feeds and other separators the tokenizer treats as text.
    """
    lines = source.replace('\r\n', '\n').replace('\r', '\n').split('\n')
    if lines[-1] == '':
        lines.pop()
    return lines


def _annotated(arg: ast.arg, prefix: str = '') -> str:
    if arg.annotation is None:
        return prefix + arg.arg
    return f'{prefix}{arg.arg}: {ast.unparse(arg.annotation)}'


def declaration_string(node: ast.FunctionDef | ast.AsyncFunctionDef, qualname: str) -> str:
    """Build the normalized declaration string for a function node"""
    args = node.args
    params = [_annotated(a) for a in args.posonlyargs]
    if args.posonlyargs:
        params.append('/')
    params.extend(_annotated(a) for a in args.args)
    if args.vararg:
        params.append(_annotated(args.vararg, '*'))
    elif args.kwonlyargs:
        params.append('*')
    params.extend(_annotated(a) for a in args.kwonlyargs)
    if args.kwarg:
        params.append(_annotated(args.kwarg, '**'))

    declaration = f"{qualname}({', '.join(params)})"
    if node.returns is not None:
        declaration += f' -> {ast.unparse(node.returns)}'
    return declaration


def _walk(node: ast.AST, scope: list[str]):
    """Yield (qualname, node) for every function below node, depth first"""
    for child in ast.iter_child_nodes(node):
        if isinstance(child, (ast.FunctionDef, ast.AsyncFunctionDef)):
            qualname = '.'.join(scope + [child.name])
            yield qualname, child
            yield from _walk(child, scope + [child.name, '<locals>'])
        elif isinstance(child, ast.ClassDef):
            yield from _walk(child, scope + [child.name])
        else:
            yield from _walk(child, scope)


def parse_methods(source: str, path: str) -> list[MethodDeclaration]:
    """
    Parse source and return every method declaration in it.

    Raises SyntaxError (or ValueError for null bytes) when the source does
    not parse.
    """
    tree = ast.parse(source)
    methods = []
    for qualname, node in _walk(tree, []):
        start = min([node.lineno] + [d.lineno for d in node.decorator_list])
        methods.append(MethodDeclaration(
            signature=MethodSignature(path, declaration_string(node, qualname)),
            start_line=start,
            end_line=node.end_lineno,
            text=ast.unparse(node),
            node=node,
        ))
    return methods


def method_map(source: str, path: str) -> dict[MethodSignature, MethodDeclaration]:
    """Map each signature in source to its declaration (later duplicates win)"""
    return {m.signature: m for m in parse_methods(source, path)}
