"""poll_mentions: только actionable упоминания попадают в verification; dedup; курсор since_id."""
from unittest.mock import MagicMock, patch

import pytest

from lockpost.services.social.client import Mention, MentionBatch
from lockpost.services.social.errors import TransientSocialError
from lockpost.workers.tasks.mentions import SINCE_ID_KEY, poll_mentions


def _mention(post_id, text):
    return Mention(post_id=post_id, author_id="u1", handle="alice", text=text, created_at="2026-01-01T00:00:00Z")


@pytest.fixture
def env():
    r = MagicMock()
    r.get.return_value = "100"
    r.exists.return_value = 0
    with patch("lockpost.workers.tasks.mentions._redis", return_value=r), patch(
        "lockpost.workers.tasks.mentions.XClient"
    ) as client_cls, patch("lockpost.workers.tasks.mentions.submit", return_value="job") as submit:
        yield r, client_cls.return_value, submit


def test_actionable_mentions_are_enqueued(env):
    r, client, submit = env
    client.fetch_mentions.return_value = MentionBatch(
        mentions=[
            _mention("101", "@sublessnetwork lock:0.5 id:R proof:T"),
            _mention("102", "@sublessnetwork lock:0.5 id:R"),
        ],
        newest_id="102",
    )

    result = poll_mentions()

    client.fetch_mentions.assert_called_once_with(since_id="100")
    assert result["enqueued"] == 1
    submit.assert_called_once()
    kwargs = submit.call_args.kwargs
    assert (kwargs["resource_id"], kwargs["proof"], kwargs["price"]) == ("R", "T", "0.5")
    assert kwargs["post_id"] == "101"
    # Both events are marked handled, including the non-actionable one
    marked = [c.args[0] for c in r.set.call_args_list]
    assert "lockpost:mentions:handled:101" in marked
    assert "lockpost:mentions:handled:102" in marked
    r.set.assert_any_call(SINCE_ID_KEY, "102")


def test_handled_mentions_are_skipped(env):
    r, client, submit = env
    r.exists.return_value = 1
    client.fetch_mentions.return_value = MentionBatch(mentions=[_mention("101", "id:R proof:T")], newest_id="101")
    result = poll_mentions()
    assert result["skipped"] == 1
    submit.assert_not_called()


def test_fetch_failure_waits_for_next_tick(env):
    _, client, submit = env
    client.fetch_mentions.side_effect = TransientSocialError("503")
    assert poll_mentions() == {"ok": False, "error": "fetch_failed"}
    submit.assert_not_called()
