#!/usr/bin/env python3
"""
Attribution and end-to-end pipeline tests.

The integration tests build throwaway git repositories with GitPython.

Usage:
    python -m pytest tests/test_pipeline.py -v
"""

import sys
from pathlib import Path

import pytest

# Add parent to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))


class FakeCommit:
    def __init__(self, hash, parents=('p0',)):
        self.hash = hash
        self.parents = list(parents)


class FakeResolver:
    """Serves prepared file pairs per commit hash"""

    def __init__(self, pairs_by_commit):
        self.pairs_by_commit = pairs_by_commit
        self.resolved = []
        self.warnings = []

    def resolve(self, commit):
        self.resolved.append(commit.hash)
        return self.pairs_by_commit.get(commit.hash, [])


BEFORE = (
    "def m(a):\n"
    "    x = a\n"
    "    y = x\n"
    "    return y\n"
    "\n"
    "\n"
    "def n(b):\n"
    "    return b\n"
)

AFTER = (
    "def m(a):\n"
    "    x = a + 1\n"
    "    y = x * 2\n"
    "    y = y - 3\n"
    "    return y\n"
    "\n"
    "\n"
    "def n(b):\n"
    "    return b\n"
)


# =============================================================================
# ATTRIBUTION TESTS
# =============================================================================

def test_attribution_history_and_churn():
    """One fix replacing two lines of m with three"""
    from method_diviner.attribution import BugAttributionAggregator
    from method_diviner.diffs import FileRevisionPair
    from method_diviner.signature import MethodSignature

    resolver = FakeResolver({'c1': [FileRevisionPair('pkg/a.py', BEFORE, AFTER)]})
    result = BugAttributionAggregator(resolver).run([FakeCommit('c1')])

    assert result.changed == {'c1': [MethodSignature('pkg/a.py', 'm(a)')]}
    assert result.histories.get('m(a)') == 1
    assert result.churn.get('m(a)') == 5
    assert result.churn.get('n(b)') == 0
    assert result.histories.get('n(b)') == 0
    assert result.buggy_signatures == {MethodSignature('pkg/a.py', 'm(a)')}


def test_history_counts_distinct_commits():
    """Two fixes count twice; two files in one fix count once"""
    from method_diviner.attribution import BugAttributionAggregator
    from method_diviner.diffs import FileRevisionPair

    resolver = FakeResolver({
        'c1': [FileRevisionPair('a.py', BEFORE, AFTER), FileRevisionPair('b.py', BEFORE, AFTER)],
        'c2': [FileRevisionPair('a.py', AFTER, BEFORE)],
    })
    aggregator = BugAttributionAggregator(resolver)

    result = aggregator.run([FakeCommit('c1')])
    assert len(result.changed['c1']) == 2
    assert result.histories.get('m(a)') == 1

    result = aggregator.run([FakeCommit('c1'), FakeCommit('c2')])
    assert result.histories.get('m(a)') == 2
    assert aggregator.history([FakeCommit('c1'), FakeCommit('c2')]) == {'m(a)': 2}


def test_root_commit_is_skipped():
    """A commit without parents is never diffed"""
    from method_diviner.attribution import BugAttributionAggregator

    resolver = FakeResolver({})
    result = BugAttributionAggregator(resolver).run([FakeCommit('r0', parents=())])

    assert result.root_commits == 1
    assert result.changed == {}
    assert resolver.resolved == []


def test_unparsable_file_does_not_stop_attribution():
    """A broken file is warned about while other files still count"""
    from method_diviner.attribution import BugAttributionAggregator
    from method_diviner.diffs import FileRevisionPair

    resolver = FakeResolver({'c1': [
        FileRevisionPair('broken.py', BEFORE, "def m(a:\n    return\n"),
        FileRevisionPair('ok.py', BEFORE, AFTER),
    ]})
    result = BugAttributionAggregator(resolver).run([FakeCommit('c1')])

    assert [sig.path for sig in result.changed['c1']] == ['ok.py']
    assert result.churn.get('m(a)') == 5
    assert any('broken.py' in w for w in result.warnings)
    assert len(result.warnings) == 1


def test_unparsable_pre_image_adds_no_churn():
    """A pair skipped by the matcher contributes nothing at all"""
    from method_diviner.attribution import BugAttributionAggregator
    from method_diviner.diffs import FileRevisionPair

    before = "def m(a):\n    x = (a\n    return x\n"
    after = "def m(a):\n    x = (a)\n    return x\n"
    resolver = FakeResolver({'c1': [FileRevisionPair('m.py', before, after)]})
    result = BugAttributionAggregator(resolver).run([FakeCommit('c1')])

    assert result.changed == {'c1': []}
    assert result.churn.to_dict() == {}
    assert result.histories.to_dict() == {}
    assert len(result.warnings) == 1


def test_churn_after_form_feed_lines():
    """Page breaks before a method do not shift its churn"""
    from method_diviner.attribution import BugAttributionAggregator
    from method_diviner.diffs import FileRevisionPair

    before = (
        "def a():\n"
        "    return 1\n"
        "\x0c\n"
        "\x0c\n"
        "\x0c\n"
        "def b(x):\n"
        "    y = x\n"
        "    return y\n"
    )
    after = before.replace("return y\n", "return y + 1\n")
    resolver = FakeResolver({'c1': [FileRevisionPair('ff.py', before, after)]})
    result = BugAttributionAggregator(resolver).run([FakeCommit('c1')])

    assert [sig.declaration for sig in result.changed['c1']] == ['b(x)']
    assert result.histories.get('b(x)') == 1
    assert result.churn.get('b(x)') == 2
    assert result.churn.get('a()') == 0


def test_nested_function_churn_credits_both():
    """An edit inside a nested function charges it and its enclosing function"""
    from method_diviner.attribution import BugAttributionAggregator
    from method_diviner.diffs import FileRevisionPair

    before = (
        "def outer(a):\n"
        "    def inner(b):\n"
        "        return b\n"
        "    return inner(a)\n"
    )
    after = before.replace("return b\n", "return b + 1\n")
    resolver = FakeResolver({'c1': [FileRevisionPair('n.py', before, after)]})
    result = BugAttributionAggregator(resolver).run([FakeCommit('c1')])

    assert {sig.declaration for sig in result.changed['c1']} == {'outer(a)', 'outer.<locals>.inner(b)'}
    assert result.churn.to_dict() == {'outer(a)': 2, 'outer.<locals>.inner(b)': 2}


# =============================================================================
# SNAPSHOT TESTS
# =============================================================================

def test_snapshot_injects_history_and_churn(tmp_path):
    """Evolution metrics are looked up by declaration in any file"""
    from method_diviner.snapshot import ReleaseSnapshotAssembler

    (tmp_path / 'pkg').mkdir()
    (tmp_path / 'pkg' / 'a.py').write_text("def m(a):\n    return a\n")
    (tmp_path / 'pkg' / 'broken.py').write_text("def m(a:\n")
    (tmp_path / 'tests').mkdir()
    (tmp_path / 'tests' / 'test_a.py').write_text("def test_m():\n    pass\n")

    assembler = ReleaseSnapshotAssembler({'m(a)': 3}, {'m(a)': 7})
    snapshot = assembler.assemble('v1', tmp_path)

    assert list(snapshot) == ['pkg/a.py#m(a)']
    record = snapshot['pkg/a.py#m(a)']
    assert record.method_histories == 3
    assert record.churn == 7
    assert assembler.parse_failures == 1


def test_snapshot_skips_paths_with_key_separator(tmp_path):
    """A '#' in a file name would make method keys ambiguous"""
    from method_diviner.signature import MethodSignature
    from method_diviner.snapshot import ReleaseSnapshotAssembler, iter_source_files

    (tmp_path / 'pkg').mkdir()
    (tmp_path / 'pkg' / 'a#b.py').write_text("def m(a):\n    return a\n")
    (tmp_path / 'pkg' / 'c.py').write_text("def h(x: 'a#b'):\n    return x\n")

    assert [rel for _, rel in iter_source_files(tmp_path)] == ['pkg/c.py']

    snapshot = ReleaseSnapshotAssembler({"h(x: 'a#b')": 2}, {}).assemble('v1', tmp_path)
    key = "pkg/c.py#h(x: 'a#b')"
    assert list(snapshot) == [key]
    assert snapshot[key].method_histories == 2
    assert MethodSignature.from_key(key) == MethodSignature('pkg/c.py', "h(x: 'a#b')")


def test_snapshot_accepts_dict_records(tmp_path):
    """Extractors may return plain dict records"""
    from method_diviner.snapshot import ReleaseSnapshotAssembler

    (tmp_path / 'a.py').write_text("def f():\n    pass\n")

    def extractor(source, rel_path):
        return {f'{rel_path}#f()': {'loc': 2}}

    snapshot = ReleaseSnapshotAssembler({}, {}, extractor=extractor).assemble('v1', tmp_path)
    assert snapshot == {'a.py#f()': {'loc': 2, 'method_histories': 0, 'churn': 0}}


# =============================================================================
# GIT INTEGRATION TESTS
# =============================================================================

def _init_repo(path):
    from git import Repo

    repo = Repo.init(path)
    with repo.config_writer() as cw:
        cw.set_value('user', 'name', 'Dev')
        cw.set_value('user', 'email', 'dev@example.com')
        cw.set_value('commit', 'gpgsign', 'false')
    return repo


def _write(root, rel, text):
    path = Path(root) / rel
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text)


def _commit(repo, message):
    repo.git.add(A=True)
    repo.git.commit('-m', message)
    return repo.head.commit.hexsha


UTIL = (
    "def m(x):\n"
    "    return x + 1\n"
)

CORE_V1 = (
    "def n(y):\n"
    "    return y * 2\n"
)

CORE_V2 = (
    "def n(y):\n"
    "    z = y * 3\n"
    "    return z\n"
)


def test_resolver_returns_modified_source_files_only(tmp_path):
    """Renames, additions and non-source files carry no method diff"""
    from pydriller import Git
    from method_diviner.diffs import RevisionDiffResolver

    repo = _init_repo(tmp_path)
    _write(tmp_path, 'a.py', CORE_V1)
    _write(tmp_path, 'b.py', "def keep():\n    return 1\n")
    _write(tmp_path, 'README.md', "hello\n")
    _commit(repo, "initial")

    _write(tmp_path, 'a.py', CORE_V2)
    repo.git.mv('b.py', 'c.py')
    _write(tmp_path, 'd.py', "def new():\n    return 2\n")
    _write(tmp_path, 'README.md', "hello again\n")
    sha = _commit(repo, "mixed change")

    resolver = RevisionDiffResolver(tmp_path)
    pairs = resolver.resolve(Git(str(tmp_path)).get_commit(sha))

    assert [p.path for p in pairs] == ['a.py']
    assert pairs[0].before == CORE_V1
    assert pairs[0].after == CORE_V2
    assert pairs[0].hunks


def test_resolver_skips_root_commit(tmp_path):
    from pydriller import Git
    from method_diviner.diffs import RevisionDiffResolver

    repo = _init_repo(tmp_path)
    _write(tmp_path, 'a.py', CORE_V1)
    sha = _commit(repo, "PROJ-1 initial import")

    resolver = RevisionDiffResolver(tmp_path)
    assert resolver.resolve(Git(str(tmp_path)).get_commit(sha)) == []
    assert resolver.get_stats()['root_commits'] == 1


@pytest.fixture
def tagged_repo(tmp_path):
    """Two releases with a PROJ-7 fix of n() between them"""
    root = tmp_path / 'proj'
    repo = _init_repo(root)
    _write(root, 'pkg/util.py', UTIL)
    _write(root, 'pkg/core.py', CORE_V1)
    _write(root, 'tests/test_core.py', "def test_n():\n    assert True\n")
    _write(root, 'README.md', "proj\n")
    _commit(repo, "Initial import")
    repo.create_tag('v1.0')

    _write(root, 'pkg/core.py', CORE_V2)
    _commit(repo, "PROJ-7: n() must triple")
    _write(root, 'README.md', "proj docs\n")
    _commit(repo, "PROJ-70 docs only")
    repo.create_tag('v1.1')
    return root


def _tickets():
    from method_diviner.jira import JiraTicket

    return [
        JiraTicket('PROJ-7', 'Bug', 'Closed', 'Fixed'),
        JiraTicket('PROJ-8', 'Improvement', 'Closed', 'Fixed'),
    ]


def test_find_bug_fix_commits(tagged_repo):
    """Only messages naming a fixed bug key match, on word boundaries"""
    from method_diviner.extraction import find_bug_fix_commits
    from method_diviner.jira import build_bug_pattern

    fixes = find_bug_fix_commits(tagged_repo, build_bug_pattern(_tickets()))
    assert [c.msg for c in fixes] == ["PROJ-7: n() must triple"]
    assert find_bug_fix_commits(tagged_repo, None) == []


def test_list_git_tags_and_export(tagged_repo):
    """Tagged trees are exported and cleaned up afterwards"""
    from method_diviner.releases import SourceTreeProvider, list_git_tags

    assert list_git_tags(tagged_repo) == ['v1.0', 'v1.1']

    provider = SourceTreeProvider(tagged_repo)
    with provider.materialize('v1.0') as root:
        exported = root
        assert (root / 'pkg' / 'core.py').read_text() == CORE_V1
    assert not exported.exists()

    with provider.materialize('HEAD') as root:
        assert root == tagged_repo


def test_build_dataset_end_to_end(tagged_repo):
    """Labels, evolution metrics and deduplication over two releases"""
    from method_diviner.config import DATASET_COLS
    from method_diviner.extraction import build_dataset

    result = build_dataset(tagged_repo, _tickets(), ['v1.0', 'v1.1'], ratio=1.0)

    assert result.kept_releases == ['v1.0', 'v1.1']
    raw, clean = result.raw, result.clean
    assert list(raw.columns) == DATASET_COLS
    assert len(raw) == 4
    # m() is unchanged between the releases, n() is not
    assert len(clean) == 3

    n_rows = raw[raw['method'] == 'n(y)']
    assert list(n_rows['buggy']) == ['yes', 'yes']
    assert list(n_rows['method_histories']) == [1, 1]
    assert list(n_rows['churn']) == [3, 3]
    assert list(n_rows['file']) == ['pkg/core.py', 'pkg/core.py']

    m_rows = clean[clean['method'] == 'm(x)']
    assert len(m_rows) == 1
    m = m_rows.iloc[0]
    assert m['release'] == 'v1.0'
    assert m['buggy'] == 'no'
    assert m['method_histories'] == 0
    assert m['churn'] == 0


def test_build_dataset_selects_oldest_releases(tagged_repo):
    """Later releases still label, but only the oldest are emitted"""
    from method_diviner.extraction import build_dataset

    result = build_dataset(tagged_repo, _tickets(), ['v1.0', 'v1.1'])

    assert result.releases == ['v1.0', 'v1.1']
    assert result.kept_releases == ['v1.0']
    assert set(result.raw['release']) == {'v1.0'}
    assert len(result.raw) == 2
    assert result.raw.loc[result.raw['method'] == 'n(y)', 'buggy'].item() == 'yes'


def test_build_dataset_root_commit_fix_is_ignored(tmp_path):
    """A fix in the very first commit has no parent to diff against"""
    from method_diviner.extraction import build_dataset

    repo = _init_repo(tmp_path)
    _write(tmp_path, 'util.py', UTIL)
    _write(tmp_path, 'core.py', CORE_V1)
    _commit(repo, "PROJ-7 initial import")

    result = build_dataset(tmp_path, _tickets())

    assert result.releases == ['HEAD']
    assert result.attribution.root_commits == 1
    assert set(result.raw['buggy']) == {'no'}
    assert len(result.raw) == 2


def test_build_dataset_without_fixed_bugs(tagged_repo):
    """No confirmed bugs means every method is clean"""
    from method_diviner.extraction import build_dataset
    from method_diviner.jira import JiraTicket

    tickets = [JiraTicket('PROJ-7', 'Bug', 'Open')]
    result = build_dataset(tagged_repo, tickets, ['v1.0', 'v1.1'], ratio=1.0)

    assert set(result.raw['buggy']) == {'no'}
    assert result.attribution.changed == {}
    # v1.1 only adds the changed n()
    assert len(result.clean) == 3


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
