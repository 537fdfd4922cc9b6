from loguru import logger

from stampcard import create_app


def _warnings_for(tmp_path, max_age):
    messages = []
    sink = logger.add(messages.append, level='WARNING', format='{message}')
    try:
        create_app({
            'TESTING': True,
            'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / f'app_{max_age}.db'}",
            'TOKEN_MAX_AGE_SECONDS': max_age,
            'USE_REDIS': False,
        })
    finally:
        logger.remove(sink)
    return messages


def test_startup_warns_when_scan_tokens_never_expire(tmp_path):
    assert any('never expire' in m for m in _warnings_for(tmp_path, 0))


def test_no_expiry_warning_with_replay_window(tmp_path):
    assert not any('never expire' in m for m in _warnings_for(tmp_path, 86400))
