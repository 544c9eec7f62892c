"""Tests for admission checks."""
from maestro.files.schemas import FileDescriptor
from maestro.files.validator import guess_mime_type, is_accepted_mime_type, validate


def _candidate(name: str, mime_type: str) -> FileDescriptor:
    return FileDescriptor(name=name, mime_type=mime_type)


class TestValidate:
    """Test batch and per-file admission."""

    def test_batch_over_limit_is_refused_whole(self):
        """Test that an oversized batch accepts nothing."""
        files = [_candidate(f"f{i}.txt", "text/plain") for i in range(6)]
        result = validate(files)
        assert result.accepted == []
        assert len(result.rejections) == 1
        assert "5" in result.rejections[0]

    def test_batch_at_limit_is_accepted(self):
        """Test that exactly the limit is accepted in order."""
        files = [_candidate(f"f{i}.txt", "text/plain") for i in range(5)]
        result = validate(files)
        assert [f.name for f in result.accepted] == [f.name for f in files]
        assert result.rejections == []

    def test_custom_limit(self):
        """Test the batch message for a configured limit."""
        files = [_candidate(f"f{i}.txt", "text/plain") for i in range(3)]
        result = validate(files, max_files=2)
        assert result.accepted == []
        assert result.rejections == ["Maximum 2 files allowed."]

    def test_mixed_batch_keeps_valid_siblings(self):
        """Test that one bad type does not reject its siblings."""
        result = validate([
            _candidate("a.pdf", "application/pdf"),
            _candidate("b.exe", "application/x-exe"),
        ])
        assert [f.name for f in result.accepted] == ["a.pdf"]
        assert result.rejections == ["b.exe is not a text or PDF file"]

    def test_rejections_follow_selection_order(self):
        """Test that rejection messages keep submission order."""
        result = validate([
            _candidate("x.png", "image/png"),
            _candidate("notes.md", "text/markdown"),
            _candidate("y.zip", "application/zip"),
        ])
        assert [f.name for f in result.accepted] == ["notes.md"]
        assert result.rejections == [
            "x.png is not a text or PDF file",
            "y.zip is not a text or PDF file",
        ]

    def test_empty_selection(self):
        """Test that an empty batch yields nothing."""
        result = validate([])
        assert result.accepted == []
        assert result.rejections == []


class TestMimeTypes:
    """Test MIME type acceptance and guessing."""

    def test_text_family_accepted(self):
        """Test that any text/* type is accepted."""
        assert is_accepted_mime_type("text/plain")
        assert is_accepted_mime_type("text/csv")

    def test_pdf_accepted(self):
        """Test that application/pdf is accepted."""
        assert is_accepted_mime_type("application/pdf")

    def test_other_types_rejected(self):
        """Test that other and empty types are rejected."""
        assert not is_accepted_mime_type("application/json")
        assert not is_accepted_mime_type("")

    def test_guess_for_accepted_extension(self):
        """Test MIME guesses for known extensions."""
        assert guess_mime_type("report.pdf") == "application/pdf"
        assert guess_mime_type("notes.log").startswith("text/")

    def test_guess_for_unknown_extension(self):
        """Test that an unknown extension guesses an unaccepted type."""
        assert not is_accepted_mime_type(guess_mime_type("archive.bin"))
