"""
Jira REST API integration: project versions and fixed bug reports.
"""

from typing import Iterator

import requests

from .config import JIRA_BASE_URL, JIRA_BUG_QUERY, JIRA_PAGE_SIZE
from .exceptions import DataSourceError


class JiraClient:
    """Fetch versions and fixed bugs of one Jira project"""

    def __init__(self, project_key: str, base_url: str = JIRA_BASE_URL,
                 session: requests.Session = None):
        self.project_key = project_key.upper()
        self.base_url = base_url.rstrip('/')
        self.api_calls = 0
        self.issues_fetched = 0

        if session:
            self.session = session
        else:
            self.session = requests.Session()
            self.session.headers['Accept'] = 'application/json'
            self.session.headers['User-Agent'] = 'Defect-Almanac'

    def _get(self, path: str, params: dict = None):
        url = f'{self.base_url}/rest/api/2/{path}'
        try:
            resp = self.session.get(url, params=params, timeout=30)
            self.api_calls += 1
            resp.raise_for_status()
            return resp.json()
        except requests.RequestException as e:
            raise DataSourceError('Jira request failed', {'url': url, 'error': str(e)}) from e
        except ValueError as e:
            raise DataSourceError('Jira returned malformed JSON', {'url': url}) from e

    def get_versions(self) -> list[dict]:
        """All versions of the project, as returned by the tracker"""
        versions = self._get(f'project/{self.project_key}/versions')
        if not isinstance(versions, list):
            raise DataSourceError('Unexpected versions payload', {'project': self.project_key})
        return versions

    def iter_issues(self, page_size: int = JIRA_PAGE_SIZE) -> Iterator[dict]:
        """Fixed, closed or resolved bugs, one page at a time"""
        start = 0
        total = 1
        while start < total:
            page = self._get('search', params={
                'jql': JIRA_BUG_QUERY.format(key=self.project_key),
                'fields': 'key,versions,fixVersions,created',
                'startAt': start,
                'maxResults': page_size,
            })
            try:
                issues = page['issues']
                total = int(page['total'])
            except (KeyError, TypeError, ValueError) as e:
                raise DataSourceError('Unexpected search payload', {'startAt': str(start)}) from e
            if not issues:
                break

            for issue in issues:
                self.issues_fetched += 1
                yield issue
            start += len(issues)

    def get_stats(self) -> dict:
        """Return API usage statistics"""
        return {
            'api_calls': self.api_calls,
            'issues_fetched': self.issues_fetched,
        }
