"""Basic smoke tests."""

import walkman_player
import walkman_player.version


def test_version_defined() -> None:
    assert isinstance(walkman_player.__version__, str)
    assert isinstance(walkman_player.version.__version__, str)


def test_help_epilog_mentions_version() -> None:
    epilog = walkman_player.version.build_help_epilog()
    assert walkman_player.version.__version__ in epilog
