from __future__ import annotations

import pytest

from domain.models import ProfileQuery
from phantom import utils


def test_search_keywords_quote_organisation():
    assert utils.build_search_keywords("CTO", "Retail", "Acme Corp") == 'CTO Retail "Acme Corp"'
    assert utils.build_search_keywords(" CTO ", None, "Acme") == 'CTO "Acme"'
    assert utils.build_search_keywords("CTO", "  ", None) == "CTO"


def test_search_url_is_percent_encoded():
    q = ProfileQuery(role="Data Engineer", industry="Banking", organisation="B&Co")
    url = utils.build_search_url(q)
    assert url.startswith("https://www.linkedin.com/search/results/people/?keywords=")
    assert url.endswith("Data%20Engineer%20Banking%20%22B%26Co%22")
    assert " " not in url


def test_launch_arguments_carry_url_and_count():
    q = ProfileQuery(role="CTO", organisation="Acme", profiles_requested=25)
    args = utils.build_launch_arguments(q, base="https://li.test/people/")
    assert args == {
        "linkedinSearchUrl": "https://li.test/people/?keywords=CTO%20%22Acme%22",
        "numberOfProfiles": 25,
    }


def test_try_json():
    assert utils.try_json('{"a": 1}') == {"a": 1}
    assert utils.try_json("[1, 2]") == [1, 2]
    assert utils.try_json("not json") is None
    assert utils.try_json("") is None
    assert utils.try_json(None) is None


def test_dumps_compact():
    assert utils.dumps_compact({"a": [1, "é"]}) == '{"a":[1,"é"]}'


@pytest.mark.asyncio
async def test_retryable_retries_then_reraises():
    calls = {"n": 0}

    @utils.retryable(ConnectionError, attempts=2)
    async def flaky():
        calls["n"] += 1
        raise ConnectionError("down")

    with pytest.raises(ConnectionError):
        await flaky()
    assert calls["n"] == 2


@pytest.mark.asyncio
async def test_retryable_does_not_retry_other_errors():
    calls = {"n": 0}

    @utils.retryable(ConnectionError, attempts=3)
    async def broken():
        calls["n"] += 1
        raise ValueError("bad input")

    with pytest.raises(ValueError):
        await broken()
    assert calls["n"] == 1


def test_retryable_backoff_settings():
    @utils.retryable(ConnectionError, attempts=3)
    async def call():
        return None

    wait = call.retry.wait
    assert wait.multiplier == 0.4
    assert wait.max == 6
