"""
Jira integration: confirmed bug tickets and the commit-message pattern built
from them.
"""

import json
import re
from dataclasses import dataclass, asdict
from pathlib import Path

import requests

from .config import (
    JIRA_BASE_URL,
    JIRA_USER,
    JIRA_TOKEN,
    JIRA_PAGE_SIZE,
    BUG_ISSUE_TYPE,
    FIXED_STATUSES,
    FIXED_RESOLUTION,
)


@dataclass
class JiraTicket:
    """One issue-tracker ticket"""
    key: str
    issue_type: str
    status: str
    resolution: str | None = None
    created: str | None = None
    resolved: str | None = None

    def is_fixed_bug(self) -> bool:
        """Bug that is closed or resolved with resolution Fixed"""
        return (
            (self.issue_type or '').lower() == BUG_ISSUE_TYPE
            and (self.status or '').lower() in FIXED_STATUSES
            and (self.resolution or '').lower() == FIXED_RESOLUTION
        )

    @classmethod
    def from_issue(cls, issue: dict) -> 'JiraTicket':
        """Build a ticket from a Jira REST search result entry"""
        fields = issue.get('fields', {})
        return cls(
            key=issue['key'],
            issue_type=(fields.get('issuetype') or {}).get('name', ''),
            status=(fields.get('status') or {}).get('name', ''),
            resolution=(fields.get('resolution') or {}).get('name'),
            created=fields.get('created'),
            resolved=fields.get('resolutiondate'),
        )


def build_bug_pattern(tickets) -> re.Pattern | None:
    """
    Case-insensitive pattern matching any fixed bug key in a commit message.

    Keys are matched as whole words so PROJ-1 does not match PROJ-12.
    Returns None when there is no fixed bug.
    """
    keys = sorted({t.key for t in tickets if t.is_fixed_bug()}, key=len, reverse=True)
    if not keys:
        return None
    alternation = '|'.join(re.escape(k) for k in keys)
    return re.compile(rf'\b(?:{alternation})\b', re.IGNORECASE)


def load_tickets(path: str | Path) -> list[JiraTicket]:
    with open(path, encoding='utf-8') as f:
        return [JiraTicket(**item) for item in json.load(f)]


def save_tickets(tickets, path: str | Path):
    with open(path, 'w', encoding='utf-8') as f:
        json.dump([asdict(t) for t in tickets], f, indent=2)


class JiraClient:
    """Fetch fixed bugs and project versions from a Jira instance"""

    def __init__(self, project_key: str, base_url: str = JIRA_BASE_URL, session: requests.Session = None):
        self.project_key = project_key
        self.base_url = base_url.rstrip('/')
        self.api_calls = 0
        self.session = session or requests.Session()
        self.session.headers['Accept'] = 'application/json'
        if JIRA_USER and JIRA_TOKEN:
            self.session.auth = (JIRA_USER, JIRA_TOKEN)

    def _get(self, path: str, params: dict = None) -> dict | list:
        resp = self.session.get(f'{self.base_url}{path}', params=params, timeout=60)
        self.api_calls += 1
        resp.raise_for_status()
        return resp.json()

    def fetch_fixed_bugs(self) -> list[JiraTicket]:
        """All Bug tickets of the project that are Closed/Resolved as Fixed"""
        jql = (
            f'project = "{self.project_key}" AND issuetype = Bug '
            f'AND (status = Closed OR status = Resolved) AND resolution = Fixed'
        )
        tickets = []
        start_at = 0
        while True:
            data = self._get('/rest/api/2/search', {
                'jql': jql,
                'fields': 'issuetype,status,resolution,created,resolutiondate',
                'startAt': start_at,
                'maxResults': JIRA_PAGE_SIZE,
            })
            issues = data.get('issues', [])
            tickets.extend(JiraTicket.from_issue(i) for i in issues)
            start_at += len(issues)
            if not issues or start_at >= data.get('total', 0):
                break
        print(f"  Jira: {len(tickets)} fixed bug tickets for {self.project_key}", flush=True)
        return tickets

    def fetch_versions(self) -> list[str]:
        """Names of the project's versions"""
        data = self._get(f'/rest/api/2/project/{self.project_key}/versions')
        return [v['name'] for v in data]

    def get_stats(self) -> dict:
        """Return API usage statistics"""
        return {'api_calls': self.api_calls}


def load_or_fetch_tickets(client: JiraClient, cache_path: str | Path) -> list[JiraTicket]:
    """Read tickets from the cache file, or fetch them and write the cache"""
    cache_path = Path(cache_path)
    if cache_path.exists():
        tickets = load_tickets(cache_path)
        print(f"  Loaded {len(tickets)} tickets from {cache_path}", flush=True)
        return tickets
    tickets = client.fetch_fixed_bugs()
    save_tickets(tickets, cache_path)
    return tickets
