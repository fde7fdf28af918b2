"""OAuthSessionStore: подписанный verifier в Redis, одноразовое чтение."""
from unittest.mock import MagicMock

from lockpost.services.oauth_sessions import OAuthSessionStore


def _store():
    client = MagicMock()
    data = {}
    client.setex.side_effect = lambda key, ttl, value: data.__setitem__(key, value)
    client.getdel.side_effect = lambda key: data.pop(key, None)
    return OAuthSessionStore(client=client), client, data


def test_create_and_pop():
    store, client, _ = _store()
    session_id = store.create("v" * 64)
    assert client.setex.call_args[0][1] == 300
    assert store.pop(session_id) == {"verifier": "v" * 64}
    assert store.pop(session_id) is None


def test_tampered_value_rejected():
    store, _, data = _store()
    session_id = store.create("v" * 64)
    key = f"lockpost:oauth:{session_id}"
    data[key] = data[key][:-2] + "xx"
    assert store.pop(session_id) is None


def test_unknown_session():
    store, _, _ = _store()
    assert store.pop("nope") is None


def test_pop_is_single_redis_call():
    store, client, _ = _store()
    session_id = store.create("v" * 64)
    store.pop(session_id)
    client.getdel.assert_called_once_with(f"lockpost:oauth:{session_id}")
    client.get.assert_not_called()
    client.delete.assert_not_called()
