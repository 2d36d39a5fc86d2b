"""
Release snapshots: structural features of every method in a release's source
tree, with bug-fix history and churn merged in.
"""

from pathlib import Path

from .config import EXCLUDED_PATH_PARTS, SOURCE_EXTENSION, TEST_FILE_PATTERN
from .features import extract_method_features
from .signature import MethodSignature


def is_excluded(rel_path: str, excludes=EXCLUDED_PATH_PARTS) -> bool:
    """Check whether a relative path is a test, generated or infrastructure file"""
    padded = '/' + rel_path
    if TEST_FILE_PATTERN.match(padded.rsplit('/', 1)[-1]):
        return True
    return any(part in padded for part in excludes)


def iter_source_files(root: Path, extension: str = SOURCE_EXTENSION, excludes=EXCLUDED_PATH_PARTS):
    """Yield (path, relative posix path) for every eligible source file below root"""
    for path in sorted(root.rglob(f'*{extension}')):
        if not path.is_file():
            continue
        rel = path.relative_to(root).as_posix()
        if '#' in rel:
            # '#' separates path and declaration in method keys
            print(f"  WARNING: skipping {rel}: '#' in path", flush=True)
            continue
        if is_excluded(rel, excludes):
            continue
        yield path, rel


def _inject(record, name: str, value: int):
    if isinstance(record, dict):
        record[name] = value
    else:
        setattr(record, name, value)


class ReleaseSnapshotAssembler:
    """
    Build one release's method feature map.

    `extractor(source, rel_path)` returns `{rel_path#declaration: record}`;
    records may be objects or dicts. History and churn are looked up by the
    bare declaration, so they are the same for a method in every release.
    """

    def __init__(self, histories, churn, extractor=extract_method_features, excludes=EXCLUDED_PATH_PARTS):
        self.histories = histories
        self.churn = churn
        self.extractor = extractor
        self.excludes = excludes
        self.parse_failures = 0
        self.warnings = []

    def assemble(self, release: str, root: Path) -> dict:
        snapshot = {}
        for path, rel in iter_source_files(Path(root), excludes=self.excludes):
            try:
                source = path.read_text(encoding='utf-8')
                snapshot.update(self.extractor(source, rel))
            except (SyntaxError, ValueError, UnicodeDecodeError) as e:
                self.parse_failures += 1
                message = f"{release}: cannot extract {rel}: {e}"
                print(f"  WARNING: {message}", flush=True)
                self.warnings.append(message)

        for key, record in snapshot.items():
            declaration = MethodSignature.from_key(key).declaration
            _inject(record, 'method_histories', self.histories.get(declaration, 0))
            _inject(record, 'churn', self.churn.get(declaration, 0))

        print(f"  {release}: {len(snapshot)} methods", flush=True)
        return snapshot
