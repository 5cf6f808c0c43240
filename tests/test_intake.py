"""Tests for work-submission intake."""

import pytest

from cleardeal.errors import ValidationError
from cleardeal.intake import MAX_FILE_SIZE_BYTES, file_submission, link_submission


class TestLinkSubmission:
    def test_valid_link(self):
        submission = link_submission(" https://github.com/x/y ", " Finished the API ")
        assert submission.type == "link"
        assert submission.content == "https://github.com/x/y"
        assert submission.description == "Finished the API"

    @pytest.mark.parametrize(
        "url", ["github.com/x/y", "ftp://files.example/work.zip", "https://", "", "javascript:alert(1)"]
    )
    def test_invalid_links(self, url):
        with pytest.raises(ValidationError, match="URL"):
            link_submission(url, "description")

    def test_description_required(self):
        with pytest.raises(ValidationError, match="description"):
            link_submission("https://github.com/x/y", "   ")


class TestFileSubmission:
    def test_valid_file(self):
        submission = file_submission("Report.PDF", 1024, "Quarterly report")
        assert submission.type == "file"
        assert submission.content == "Report.PDF"

    def test_content_defaults_to_stored_location(self):
        submission = file_submission("design.png", 10, "Mockups", content="/uploads/abc/design.png")
        assert submission.content == "/uploads/abc/design.png"

    def test_size_limit(self):
        assert file_submission("a.zip", MAX_FILE_SIZE_BYTES, "At the limit").type == "file"
        with pytest.raises(ValidationError, match="10MB"):
            file_submission("a.zip", MAX_FILE_SIZE_BYTES + 1, "Too big")

    @pytest.mark.parametrize("filename", ["script.exe", "archive.tar.gz", "README"])
    def test_unsupported_extension(self, filename):
        with pytest.raises(ValidationError, match="Unsupported file type"):
            file_submission(filename, 10, "description")

    def test_filename_required(self):
        with pytest.raises(ValidationError, match="select a file"):
            file_submission("", 10, "description")

    def test_negative_size(self):
        with pytest.raises(ValidationError, match="negative"):
            file_submission("a.txt", -1, "description")
