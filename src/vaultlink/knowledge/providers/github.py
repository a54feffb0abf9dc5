"""GitHub repositories and users.

Accepts a GitHub URL, an ``owner/repo`` name, or free-text search terms.
An optional token raises the API rate limit.
"""

from __future__ import annotations

import re

import httpx

from ...models import KnowledgeEntry, LookupOptions
from ._http import HttpKnowledgeProvider, ProviderRequestError

GITHUB_API = "https://api.github.com"

_REPO_URL = re.compile(r"github\.com/([^/\s]+/[^/\s]+?)(?:\.git)?/?$")
_USER_URL = re.compile(r"github\.com/([^/\s]+)/?$")


def _compact_count(count: int) -> str:
    return f"{count / 1000:.1f}k" if count >= 1000 else str(count)


class GitHubProvider(HttpKnowledgeProvider):
    name = "github"
    display_name = "GitHub"
    health_url = f"{GITHUB_API}/rate_limit"

    def __init__(self, token: str | None = None, client: httpx.AsyncClient | None = None) -> None:
        super().__init__(client)
        self._token = token

    def configure(self, token: str | None) -> None:
        self._token = token or None

    def _headers(self) -> dict[str, str]:
        headers = super()._headers()
        headers["Accept"] = "application/vnd.github.v3+json"
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    async def _search(self, query: str, options: LookupOptions) -> list[KnowledgeEntry]:
        query = query.strip()

        repo_match = _REPO_URL.search(query)
        if repo_match:
            entry = await self._repo(repo_match.group(1))
            return [entry] if entry else []

        user_match = _USER_URL.search(query)
        if user_match:
            entry = await self._user(user_match.group(1))
            return [entry] if entry else []

        if "/" in query and " " not in query:
            entry = await self._repo(query)
            if entry:
                return [entry]

        data = await self._get_json(
            f"{GITHUB_API}/search/repositories",
            params={"q": query, "sort": "stars", "order": "desc", "per_page": str(options.max_results)},
        )
        return [self._repo_entry(repo) for repo in data.get("items", [])]

    async def _repo(self, full_name: str) -> KnowledgeEntry | None:
        response = await self._get(f"{GITHUB_API}/repos/{full_name}")
        if response.status_code == 404:
            return None
        if response.status_code != 200:
            raise ProviderRequestError(f"Repo lookup failed: {response.status_code}")
        return self._repo_entry(response.json())

    async def _user(self, login: str) -> KnowledgeEntry | None:
        response = await self._get(f"{GITHUB_API}/users/{login}")
        if response.status_code == 404:
            return None
        if response.status_code != 200:
            raise ProviderRequestError(f"User lookup failed: {response.status_code}")

        user = response.json()
        lines = []
        if user.get("bio"):
            lines.append(user["bio"])
        lines.append(f"Repos: {user.get('public_repos', 0)} | Followers: {user.get('followers', 0)}")
        if user.get("company"):
            lines.append(f"Company: {user['company']}")
        if user.get("location"):
            lines.append(f"Location: {user['location']}")

        return KnowledgeEntry(
            title=user.get("name") or user["login"],
            summary="\n".join(lines),
            url=user.get("html_url"),
            source=self.name,
            metadata={
                "type": "user",
                "login": user["login"],
                "publicRepos": user.get("public_repos"),
                "followers": user.get("followers"),
                "company": user.get("company"),
                "location": user.get("location"),
            },
        )

    def _repo_entry(self, repo: dict) -> KnowledgeEntry:
        stars = repo.get("stargazers_count", 0)
        forks = repo.get("forks_count", 0)
        topics = repo.get("topics") or []

        lines = []
        if repo.get("description"):
            lines.append(repo["description"])
        lines.append(f"Stars: {_compact_count(stars)} | Forks: {_compact_count(forks)}")
        if repo.get("language"):
            lines.append(f"Language: {repo['language']}")
        if topics:
            lines.append(f"Topics: {', '.join(topics[:5])}")

        license_info = repo.get("license") or {}
        return KnowledgeEntry(
            title=repo["full_name"],
            summary="\n".join(lines),
            url=repo.get("html_url"),
            source=self.name,
            metadata={
                "type": "repo",
                "owner": repo.get("owner", {}).get("login"),
                "stars": stars,
                "forks": forks,
                "language": repo.get("language"),
                "topics": topics,
                "license": license_info.get("spdx_id"),
            },
        )
