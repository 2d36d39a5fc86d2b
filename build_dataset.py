#!/usr/bin/env python3
"""
Build a method-level defect dataset for one repository.

Usage:
    python build_dataset.py --repo-dir ./bookkeeper --jira-project BOOKKEEPER
    python build_dataset.py --repo-dir ./proj --tickets tickets.json --releases v1.0 v1.1 v2.0
    python build_dataset.py --remote https://github.com/apache/bookkeeper --repo-dir ./bookkeeper \
        --jira-project BOOKKEEPER --github-archives
"""

import argparse
import sys
import tarfile
from pathlib import Path

import requests
from git import GitCommandError, Repo

from method_diviner import (
    GitHubReleaseSource,
    JiraClient,
    build_dataset,
    diagnose_dataset,
    list_git_tags,
    match_tags_to_versions,
    parse_repo_url,
    sort_releases,
    write_dataset,
)
from method_diviner.config import SELECTION_RATIO
from method_diviner.jira import load_or_fetch_tickets, load_tickets


def open_repo(repo_dir: Path, remote: str | None) -> Path:
    """Use an existing clone, or clone the remote into repo_dir"""
    if repo_dir.exists():
        return repo_dir
    if not remote:
        raise FileNotFoundError(f"Repository not found: {repo_dir} (pass --remote to clone it)")
    print(f"  Cloning {remote} into {repo_dir}...", flush=True)
    Repo.clone_from(remote, repo_dir)
    return repo_dir


def resolve_releases(args, repo_dir: Path, jira: JiraClient | None,
                     github: GitHubReleaseSource | None) -> list[str]:
    """Explicit --releases, else tags that match tracker versions, else HEAD"""
    if args.releases:
        return sort_releases(args.releases)
    tags = github.fetch_tags() if github else list_git_tags(repo_dir)
    print(f"  Tags found: {len(tags)}", flush=True)
    versions = jira.fetch_versions() if jira else tags
    return match_tags_to_versions(tags, versions)


def main():
    parser = argparse.ArgumentParser(description='Build a method-level defect dataset')
    parser.add_argument('--repo-dir', type=Path, required=True, help='Local clone of the repository')
    parser.add_argument('--remote', type=str, help='Clone URL used when --repo-dir does not exist')
    parser.add_argument('--jira-project', type=str, help='Jira project key for bug tickets and versions')
    parser.add_argument('--tickets', type=Path, help='Ticket cache JSON (read if present, written after fetching)')
    parser.add_argument('--releases', nargs='*', help='Release tags to use instead of tag/version matching')
    parser.add_argument('--ratio', type=float, default=SELECTION_RATIO,
                        help=f'Fraction of oldest releases kept (default {SELECTION_RATIO})')
    parser.add_argument('--github-archives', action='store_true',
                        help='List tags and download release sources from GitHub (needs --remote)')
    parser.add_argument('--out-raw', type=Path, default=Path('dataset_raw.csv'))
    parser.add_argument('--out-clean', type=Path, default=Path('dataset_clean.csv'))
    args = parser.parse_args()

    if not args.jira_project and not (args.tickets and args.tickets.exists()):
        parser.error('either --jira-project or an existing --tickets file is required')
    if args.github_archives and not args.remote:
        parser.error('--github-archives needs --remote')

    try:
        repo_dir = open_repo(args.repo_dir, args.remote)

        jira = JiraClient(args.jira_project) if args.jira_project else None
        if jira and args.tickets:
            tickets = load_or_fetch_tickets(jira, args.tickets)
        elif jira:
            tickets = jira.fetch_fixed_bugs()
        else:
            tickets = load_tickets(args.tickets)

        github = None
        if args.github_archives:
            owner, repo = parse_repo_url(args.remote)
            github = GitHubReleaseSource(owner, repo)
            github.check_rate_limit()

        releases = resolve_releases(args, repo_dir, jira, github)
        print(f"  Releases: {releases}", flush=True)

        result = build_dataset(repo_dir, tickets, releases, ratio=args.ratio, github=github)
    except (requests.RequestException, GitCommandError, tarfile.TarError, OSError, ValueError) as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1

    write_dataset(result.raw, args.out_raw)
    write_dataset(result.clean, args.out_clean)
    print(f"\nSaved raw dataset to: {args.out_raw}")
    print(f"Saved clean dataset to: {args.out_clean}")

    diagnose_dataset(result.raw, result.clean)
    return 0


if __name__ == "__main__":
    sys.exit(main())
