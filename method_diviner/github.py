"""
GitHub API integration for release tags and source archives.
"""

import io
from pathlib import Path

import requests

from .config import GITHUB_TOKEN, GITHUB_API_BASE
from .releases import extract_zip, find_single_subdir, sort_releases


def parse_repo_url(url: str) -> tuple[str, str]:
    """Extract owner and repo name from GitHub URL"""
    # Handle: https://github.com/owner/repo or github.com/owner/repo
    parts = url.rstrip('/').removesuffix('.git').split('/')
    return parts[-2], parts[-1]


def make_session() -> requests.Session:
    session = requests.Session()
    if GITHUB_TOKEN:
        session.headers['Authorization'] = f'token {GITHUB_TOKEN}'
    session.headers['Accept'] = 'application/vnd.github.v3+json'
    session.headers['User-Agent'] = 'Method-Diviner'
    return session


class GitHubReleaseSource:
    """List tags and download tagged source archives from GitHub"""

    def __init__(self, owner: str, repo: str, session: requests.Session = None):
        self.owner = owner
        self.repo = repo
        self.api_calls = 0
        self.session = session or make_session()

    def check_rate_limit(self):
        """Report the GitHub API rate limit"""
        resp = self.session.get(f'{GITHUB_API_BASE}/rate_limit', timeout=10)
        if resp.status_code == 200:
            core = resp.json()['resources']['core']
            print(f"  GitHub API: {core['remaining']}/{core['limit']} requests remaining", flush=True)
            if core['remaining'] < 100:
                print(f"  WARNING: Low API quota. Set GITHUB_TOKEN env var for 5000/hr limit.", flush=True)

    def fetch_tags(self) -> list[str]:
        """All tag names of the repository, oldest version first"""
        tags = []
        page = 1
        while True:
            url = f'{GITHUB_API_BASE}/repos/{self.owner}/{self.repo}/tags'
            resp = self.session.get(url, params={'per_page': 100, 'page': page}, timeout=30)
            self.api_calls += 1
            resp.raise_for_status()
            batch = resp.json()
            tags.extend(t['name'] for t in batch)
            if len(batch) < 100:
                break
            page += 1
        return sort_releases(tags)

    def download_zipball(self, tag: str, dest: Path) -> Path:
        """Download and unpack a tag's zipball into dest; return the source root"""
        url = f'{GITHUB_API_BASE}/repos/{self.owner}/{self.repo}/zipball/{tag}'
        resp = self.session.get(url, timeout=300)
        self.api_calls += 1
        resp.raise_for_status()
        extract_zip(io.BytesIO(resp.content), dest)
        return find_single_subdir(Path(dest))

    def get_stats(self) -> dict:
        """Return API usage statistics"""
        return {'api_calls': self.api_calls}
