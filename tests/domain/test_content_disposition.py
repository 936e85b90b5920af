from __future__ import annotations

import pytest

from objstore.domain.content_disposition import (
    content_disposition_with,
    sanitize_filename,
)


def test_attachment_with_plain_filename():
    assert (
        content_disposition_with("report.pdf", "attachment")
        == "attachment; filename=\"report.pdf\"; filename*=UTF-8''report.pdf"
    )


def test_defaults_to_inline():
    assert content_disposition_with("a.txt").startswith("inline; ")


@pytest.mark.parametrize("disposition", ["sideways", "", None, "ATTACHMENT "])
def test_disposition_type_is_normalized(disposition):
    result = content_disposition_with("a.txt", disposition)
    expected = "attachment" if disposition == "ATTACHMENT " else "inline"
    assert result.split(";")[0] == expected


def test_without_filename():
    assert content_disposition_with(None, "attachment") == "attachment"


def test_non_ascii_filename():
    result = content_disposition_with("résumé.pdf", "inline")

    assert result == (
        "inline; filename=\"resume.pdf\"; filename*=UTF-8''r%C3%A9sum%C3%A9.pdf"
    )


def test_escapes_quotes_and_spaces():
    result = content_disposition_with('my "final" file.txt', "attachment")

    assert 'filename="my %22final%22 file.txt"' in result
    assert "filename*=UTF-8''my%20%22final%22%20file.txt" in result


def test_untranslatable_characters_become_question_marks():
    result = content_disposition_with("報告.pdf", "inline")

    assert 'filename="%3F%3F.pdf"' in result
    assert "filename*=UTF-8''%E5%A0%B1%E5%91%8A.pdf" in result


def test_sanitize_filename_strips_paths_and_controls():
    assert sanitize_filename("path/to\\file\n.txt") == "path_to_file.txt"
    assert sanitize_filename("   ") == "file"
