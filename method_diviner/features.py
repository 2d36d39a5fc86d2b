"""
Per-method feature records and the default structural metrics extractor.
"""

import ast
import textwrap
import tokenize
from dataclasses import dataclass, asdict

from radon.complexity import cc_visit
from radon.metrics import mi_visit
from radon.raw import analyze

from .config import LONG_METHOD_LOC, MANY_EXCEPTS
from .signature import parse_methods, source_lines

NESTING_NODES = (
    ast.If, ast.For, ast.AsyncFor, ast.While, ast.With, ast.AsyncWith, ast.Try,
    ast.Match,
)
TRY_NODES = (ast.Try, getattr(ast, 'TryStar', ast.Try))
ASSIGN_NODES = (ast.Assign, ast.AugAssign, ast.AnnAssign, ast.NamedExpr)


@dataclass
class MethodFeatures:
    """Features of one method in one release snapshot"""

    # Size
    loc: int = 0
    sloc: int = 0
    comments: int = 0

    # Complexity
    cyclomatic: int = 1
    parameter_count: int = 0
    nesting_depth: int = 0
    return_count: int = 0
    try_count: int = 0
    except_count: int = 0
    many_excepts: int = 0           # 1 if more than MANY_EXCEPTS handlers
    assignment_count: int = 0
    invocation_count: int = 0
    long_method: int = 0            # 1 if loc > LONG_METHOD_LOC
    maintainability_index: float = 0.0  # of the whole file

    # Evolutionary features, filled in from the bug-fix history
    method_histories: int = 0
    churn: int = 0

    def to_dict(self) -> dict:
        """Convert to dictionary"""
        return asdict(self)


def get_max_nesting_depth(node: ast.AST) -> int:
    """Deepest nesting of control-flow blocks below node"""
    return _calc_depth(node)


def _calc_depth(node, current=0) -> int:
    """Recursively calculate nesting depth"""
    max_depth = current
    for child in ast.iter_child_nodes(node):
        if isinstance(child, NESTING_NODES):
            max_depth = max(max_depth, _calc_depth(child, current + 1))
        else:
            max_depth = max(max_depth, _calc_depth(child, current))
    return max_depth


def _complexity_by_line(blocks) -> dict[int, int]:
    """Map the `def` line of every radon block (closures included) to its complexity"""
    result = {}
    for block in blocks:
        result[block.lineno] = block.complexity
        result.update(_complexity_by_line(getattr(block, 'closures', [])))
    return result


def _raw_metrics(segment: str, node: ast.AST):
    try:
        return analyze(textwrap.dedent(segment))
    except (SyntaxError, tokenize.TokenError):
        # indentation inside multi-line strings can defeat dedent
        return analyze(ast.unparse(node))


def extract_method_features(source: str, rel_path: str) -> dict[str, MethodFeatures]:
    """
    Compute structural features for every method of a source file.

    Returns a mapping from `rel_path#declaration` to the method's record.
    Raises SyntaxError/ValueError when the file does not parse.
    """
    methods = parse_methods(source, rel_path)
    if not methods:
        return {}

    complexity = _complexity_by_line(cc_visit(source))
    maintainability = round(mi_visit(source, True), 2)
    lines = source_lines(source)

    result = {}
    for method in methods:
        node = method.node
        raw = _raw_metrics('\n'.join(lines[method.start_line - 1:method.end_line]), node)
        args = node.args
        excepts = sum(1 for n in ast.walk(node) if isinstance(n, ast.ExceptHandler))

        result[method.signature.key] = MethodFeatures(
            loc=raw.loc,
            sloc=raw.sloc,
            comments=raw.comments,
            cyclomatic=complexity.get(node.lineno, 1),
            parameter_count=(
                len(args.posonlyargs) + len(args.args) + len(args.kwonlyargs)
                + (1 if args.vararg else 0) + (1 if args.kwarg else 0)
            ),
            nesting_depth=get_max_nesting_depth(node),
            return_count=sum(1 for n in ast.walk(node) if isinstance(n, ast.Return)),
            try_count=sum(1 for n in ast.walk(node) if isinstance(n, TRY_NODES)),
            except_count=excepts,
            many_excepts=1 if excepts > MANY_EXCEPTS else 0,
            assignment_count=sum(1 for n in ast.walk(node) if isinstance(n, ASSIGN_NODES)),
            invocation_count=sum(1 for n in ast.walk(node) if isinstance(n, ast.Call)),
            long_method=1 if raw.loc > LONG_METHOD_LOC else 0,
            maintainability_index=maintainability,
        )
    return result

