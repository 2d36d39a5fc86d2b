"""
Configuration and constants for Method Diviner.
"""

import os
import re

# =============================================================================
# SOURCE SETTINGS
# =============================================================================

SOURCE_EXTENSION = '.py'

# Path substrings that keep a file out of a release snapshot.
# Matched against '/' + the path relative to the release root.
EXCLUDED_PATH_PARTS = (
    '/test/', '/tests/', '/testing/',
    '/generated/', '/build/', '/dist/',
    '/docs/', '/examples/',
    '/.git/', '/.venv/', '/venv/', '/.tox/', '/site-packages/',
)

TEST_FILE_PATTERN = re.compile(r'^(test_.*|.*_test|conftest)\.py$')

# =============================================================================
# RELEASE SETTINGS
# =============================================================================

HEAD_RELEASE = 'HEAD'

# Tag prefixes stripped before comparing versions: v4.2.0, release-4.2.0
RELEASE_PREFIX = re.compile(r'^(?:v|release-)')

# Fraction of the oldest releases kept in the final dataset
SELECTION_RATIO = float(os.environ.get('SELECTION_RATIO', '0.33'))

# =============================================================================
# ISSUE TRACKER SETTINGS
# =============================================================================

JIRA_BASE_URL = os.environ.get('JIRA_BASE_URL', 'https://issues.apache.org/jira')
JIRA_USER = os.environ.get('JIRA_USER', '')
JIRA_TOKEN = os.environ.get('JIRA_TOKEN', '')
JIRA_PAGE_SIZE = 1000

BUG_ISSUE_TYPE = 'bug'
FIXED_STATUSES = {'closed', 'resolved'}
FIXED_RESOLUTION = 'fixed'

# =============================================================================
# GITHUB API SETTINGS
# =============================================================================

GITHUB_TOKEN = os.environ.get('GITHUB_TOKEN', '')
GITHUB_API_BASE = 'https://api.github.com'

# =============================================================================
# FEATURE COLUMNS
# =============================================================================

LONG_METHOD_LOC = 100
MANY_EXCEPTS = 2

RELEASE_COL = 'release'
FILE_COL = 'file'
METHOD_COL = 'method'
LABEL_COL = 'buggy'

# Structural metrics computed per method by the default extractor
STRUCTURAL_FEATURE_COLS = [
    'loc', 'sloc', 'comments', 'cyclomatic', 'parameter_count', 'nesting_depth',
    'return_count', 'try_count', 'except_count', 'many_excepts',
    'assignment_count', 'invocation_count', 'long_method', 'maintainability_index',
]

# Evolutionary features accumulated over every bug-fix commit
HISTORY_FEATURE_COLS = ['method_histories', 'churn']

FEATURE_COLS = STRUCTURAL_FEATURE_COLS + HISTORY_FEATURE_COLS

DATASET_COLS = [RELEASE_COL, FILE_COL, METHOD_COL] + FEATURE_COLS + [LABEL_COL]
