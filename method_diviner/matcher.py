"""
Detect which methods of a file were modified between two revisions.
"""

from .diffs import FileRevisionPair
from .signature import MethodSignature, method_map


def changed_methods(before: str, after: str, path: str) -> list[MethodSignature]:
    """
    Signatures present on both sides whose declaration text differs.

    Methods only in `before` are deletions and methods only in `after` are
    additions; neither is reported. Raises SyntaxError/ValueError if either
    side does not parse.
    """
    before_methods = method_map(before, path)
    after_methods = method_map(after, path)
    return [
        sig for sig, decl in before_methods.items()
        if sig in after_methods and after_methods[sig].text != decl.text
    ]


class MethodChangeMatcher:
    """
    Apply changed_methods to file pairs, skipping files that fail to parse.

    `match` returns None for a skipped pair so callers can drop it entirely.
    """

    def __init__(self):
        self.parse_failures = 0
        self.warnings = []

    def match(self, pair: FileRevisionPair) -> list[MethodSignature] | None:
        try:
            return changed_methods(pair.before, pair.after, pair.path)
        except (SyntaxError, ValueError) as e:
            self.parse_failures += 1
            message = f"cannot parse {pair.path}: {e}"
            print(f"  WARNING: {message}", flush=True)
            self.warnings.append(message)
            return None
