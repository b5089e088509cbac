"""GitHub App authentication and the PR calls made while reviewing."""

import asyncio
import logging
import os
import time
from typing import Callable, List, Optional

import httpx
import jwt
from github import Auth, Github

from common.review_models import ChangedFile

logger = logging.getLogger(__name__)

DEFAULT_GITHUB_API_URL = "https://api.github.com"

# GitHub rejects app JWTs that live longer than 10 minutes
JWT_CLOCK_SKEW_SECONDS = 60
JWT_LIFETIME_SECONDS = 9 * 60


class GitHubAuthError(Exception):
    """GitHub App credentials are missing or unusable."""


class GitHubAppAuth:
    """
    Issues app JWTs and exchanges them for installation access tokens.

    Configuration comes from GITHUB_APP_ID and GITHUB_PRIVATE_KEY_PATH. The
    private key is read on first use so the service starts (and keeps
    acknowledging webhooks) even when the app is not configured yet.
    """

    def __init__(
        self,
        app_id: Optional[str] = None,
        private_key_path: Optional[str] = None,
        private_key: Optional[str] = None,
        api_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.app_id = app_id if app_id is not None else os.getenv("GITHUB_APP_ID")
        self.private_key_path = private_key_path or os.getenv("GITHUB_PRIVATE_KEY_PATH")
        self._private_key = private_key
        self.api_url = (api_url or os.getenv("GITHUB_API_URL") or DEFAULT_GITHUB_API_URL).rstrip("/")
        self._transport = transport

    @property
    def private_key(self) -> str:
        if self._private_key is None:
            if not self.private_key_path:
                raise GitHubAuthError("GitHub private key path not provided")
            try:
                with open(self.private_key_path, "r") as f:
                    self._private_key = f.read()
            except OSError as e:
                raise GitHubAuthError(
                    f"Cannot read GitHub private key at {self.private_key_path}: {e}"
                ) from e
        return self._private_key

    def generate_app_jwt(self, now: Optional[int] = None) -> str:
        """Short-lived RS256 assertion identifying the app itself."""
        if not self.app_id:
            raise GitHubAuthError("GitHub App ID not provided")

        now = int(time.time()) if now is None else now
        payload = {
            "iat": now - JWT_CLOCK_SKEW_SECONDS,
            "exp": now + JWT_LIFETIME_SECONDS,
            "iss": str(self.app_id),
        }
        return jwt.encode(payload, self.private_key, algorithm="RS256")

    async def get_installation_token(self, installation_id: int) -> str:
        """
        Exchange the app JWT for an installation token.

        HTTP and network errors propagate unchanged; nothing is retried here.
        """
        app_jwt = self.generate_app_jwt()
        async with httpx.AsyncClient(base_url=self.api_url, transport=self._transport) as client:
            response = await client.post(
                f"/app/installations/{installation_id}/access_tokens",
                json={},
                headers={
                    "Authorization": f"Bearer {app_jwt}",
                    "Accept": "application/vnd.github+json",
                },
            )
            response.raise_for_status()
            return response.json()["token"]


class GitHubService:
    """
    Pull request calls authenticated with an installation token via PyGithub.

    PyGithub is synchronous, so every call runs in a worker thread.
    """

    def __init__(
        self,
        api_url: Optional[str] = None,
        github_factory: Optional[Callable[[str], Github]] = None,
    ):
        self.api_url = (api_url or os.getenv("GITHUB_API_URL") or DEFAULT_GITHUB_API_URL).rstrip("/")
        self._github_factory = github_factory or self._default_github

    def _default_github(self, token: str) -> Github:
        return Github(auth=Auth.Token(token), base_url=self.api_url)

    def _get_pull(self, token: str, owner: str, repo: str, pr_number: int):
        github = self._github_factory(token)
        return github.get_repo(f"{owner}/{repo}").get_pull(pr_number)

    async def fetch_pull_request_files(
        self, token: str, owner: str, repo: str, pr_number: int
    ) -> List[ChangedFile]:
        def _fetch() -> List[ChangedFile]:
            pull = self._get_pull(token, owner, repo, pr_number)
            return [
                ChangedFile(
                    filename=f.filename,
                    patch=f.patch,
                    changes=f.changes or 0,
                    status=f.status,
                    additions=f.additions or 0,
                    deletions=f.deletions or 0,
                )
                for f in pull.get_files()
            ]

        files = await asyncio.to_thread(_fetch)
        logger.info(f"Fetched {len(files)} changed file(s) for {owner}/{repo}#{pr_number}")
        return files

    async def post_review_comment(
        self, token: str, owner: str, repo: str, pr_number: int, body: str
    ) -> None:
        """Always creates a new COMMENT review so every agent's review stands alone."""

        def _post() -> None:
            pull = self._get_pull(token, owner, repo, pr_number)
            pull.create_review(body=body, event="COMMENT")

        await asyncio.to_thread(_post)
        logger.info(f"Posted review comment on {owner}/{repo}#{pr_number}")
