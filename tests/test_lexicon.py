from pathlib import Path

import pytest

from feedrelay.moderation.lexicon import DEFAULT_LEXICON_PATH, Lexicon, load_lexicon


def test_bundled_lexicon_loads():
    lexicon = load_lexicon()

    assert DEFAULT_LEXICON_PATH.exists()
    assert lexicon.version == 1
    assert set(lexicon.categories) == {"primary", "consumption", "strains", "compounds", "industry"}
    assert "cannabis" in lexicon.categories["primary"]
    assert "blue dream" in lexicon.categories["strains"]
    assert "#dealer" in lexicon.disallowed.blocked_hashtags
    assert "whatsapp" in lexicon.disallowed.spam_indicators
    assert lexicon.disallowed.max_hashtags == 15


def test_lexicon_override_file(tmp_path: Path):
    path = tmp_path / "lexicon.yml"
    path.write_text(
        "version: 7\ncategories:\n  fruit:\n    - Apple\n    - pear\n",
        encoding="utf-8",
    )

    lexicon = load_lexicon(path)

    assert lexicon.version == 7
    assert lexicon.categories == {"fruit": ("apple", "pear")}
    assert lexicon.disallowed.blocked_hashtags == ()
    assert lexicon.term_count == 2


@pytest.mark.parametrize("data", [{}, {"categories": {}}, {"categories": {"a": "not-a-list"}}])
def test_invalid_lexicon_is_rejected(data):
    with pytest.raises(ValueError):
        Lexicon.from_dict(data)


def test_non_mapping_document_is_rejected(tmp_path: Path):
    path = tmp_path / "lexicon.yml"
    path.write_text("- just\n- a list\n", encoding="utf-8")

    with pytest.raises(ValueError):
        load_lexicon(path)
