"""Tests for the repository name helpers and the existence check."""

from unittest.mock import patch

import httpx
import pytest

from gitroles.core.github import is_valid_repo_part, repository_exists

_RealAsyncClient = httpx.AsyncClient


def _mock_github(handler):
    def factory(*args, **kwargs):
        return _RealAsyncClient(*args, transport=httpx.MockTransport(handler), **kwargs)

    return patch("gitroles.core.github.httpx.AsyncClient", side_effect=factory)


@pytest.mark.parametrize("value", ["octocat", "Hello-World", "repo.js", "a_b"])
def test_valid_repo_parts(value):
    assert is_valid_repo_part(value)


@pytest.mark.parametrize("value", ["", "has space", "a/b", "semi;colon"])
def test_invalid_repo_parts(value):
    assert not is_valid_repo_part(value)


class TestRepositoryExists:
    async def test_found(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"full_name": "octocat/hello"})

        with _mock_github(handler):
            assert await repository_exists("octocat", "hello", token="tok") is True
        assert seen[0].url.path == "/repos/octocat/hello"
        assert seen[0].headers["Authorization"] == "token tok"

    @pytest.mark.parametrize("status", [403, 404])
    async def test_missing_or_private(self, status, monkeypatch):
        monkeypatch.delenv("GITHUB_TOKEN", raising=False)
        with _mock_github(lambda request: httpx.Response(status)):
            assert await repository_exists("octocat", "gone") is False

    async def test_server_error_propagates(self):
        with _mock_github(lambda request: httpx.Response(502)):
            with pytest.raises(httpx.HTTPStatusError):
                await repository_exists("octocat", "hello", token="tok")
