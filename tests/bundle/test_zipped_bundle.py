"""Tests for indexing and extracting payloads from ZIP bundles."""

import io
import zipfile
import pytest
from flash_bundle import (
    BundleConfig,
    ContainerOpenError,
    ContainerReadError,
    ZippedBundle,
)


SWF_BYTES = b"FWS\x0a" + b"\x00" * 32
ABC_BYTES = b"\x10\x00\x2e\x00" + b"abc-bytecode" * 10
TEXT_BYTES = b"not a payload"


def build_zip(entries, compression=zipfile.ZIP_DEFLATED) -> bytes:
    """Build an in-memory archive from (name, data) pairs."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, 'w', compression=compression) as zf:
        for name, data in entries:
            zf.writestr(name, data)
    return buffer.getvalue()


@pytest.fixture
def sample_zip(tmp_path):
    """Archive with two payloads and one unrelated entry."""
    path = tmp_path / "game.zip"
    path.write_bytes(build_zip([
        ("a.swf", SWF_BYTES),
        ("b.txt", TEXT_BYTES),
        ("c.abc", ABC_BYTES),
    ]))
    return path


class TestIndexing:
    """Test key set construction."""

    def test_whitelist_filters_entries(self, sample_zip):
        """Test that only recognized extensions become keys."""
        with ZippedBundle(path=sample_zip) as bundle:
            assert bundle.get_keys() == {"a.swf", "c.abc"}
            assert bundle.length() == 2
            assert len(bundle) == 2

    def test_extension_match_is_case_insensitive(self, tmp_path):
        """Test that upper/mixed case suffixes are recognized and kept verbatim."""
        path = tmp_path / "mixed.zip"
        path.write_bytes(build_zip([
            ("MAIN.SWF", SWF_BYTES),
            ("Loader.Spl", SWF_BYTES),
            ("ui/menu.GFX", SWF_BYTES),
            ("lib.Abc", ABC_BYTES),
            ("notes.swf.bak", SWF_BYTES),
        ]))

        with ZippedBundle(path=path) as bundle:
            assert bundle.get_keys() == {"MAIN.SWF", "Loader.Spl", "ui/menu.GFX", "lib.Abc"}

    def test_no_matching_entries(self, tmp_path):
        """Test that an archive without payloads gives an empty bundle."""
        path = tmp_path / "docs.zip"
        path.write_bytes(build_zip([("readme.txt", b"hi"), ("docs/", b"")]))

        with ZippedBundle(path=path) as bundle:
            assert bundle.get_keys() == frozenset()
            assert bundle.length() == 0
            assert bundle.get_all() == {}

    def test_empty_archive(self, tmp_path):
        """Test that an archive with no entries at all is accepted."""
        path = tmp_path / "empty.zip"
        path.write_bytes(build_zip([]))

        with ZippedBundle(path=path) as bundle:
            assert bundle.length() == 0

    def test_key_set_is_immutable_snapshot(self, sample_zip):
        """Test that callers cannot alter the bundle's keys."""
        with ZippedBundle(path=sample_zip) as bundle:
            keys = bundle.get_keys()
            assert isinstance(keys, frozenset)
            with pytest.raises(AttributeError):
                keys.add("x.swf")

    def test_custom_extensions(self, sample_zip):
        """Test that the whitelist is configurable."""
        config = BundleConfig(extensions=["TXT"])
        with ZippedBundle(path=sample_zip, config=config) as bundle:
            assert bundle.get_keys() == {"b.txt"}

    def test_membership_and_iteration(self, sample_zip):
        with ZippedBundle(path=sample_zip) as bundle:
            assert "a.swf" in bundle
            assert "b.txt" not in bundle
            assert list(bundle) == ["a.swf", "c.abc"]

    def test_extension(self, sample_zip):
        with ZippedBundle(path=sample_zip) as bundle:
            assert bundle.get_extension() == "zip"


class TestConstructionErrors:
    """Test construction failures."""

    def test_missing_file(self, tmp_path):
        """Test that a missing archive is a fatal construction error."""
        with pytest.raises(ContainerOpenError) as exc_info:
            ZippedBundle(path=tmp_path / "missing.zip")

        assert isinstance(exc_info.value.__cause__, FileNotFoundError)
        assert exc_info.value.context["path"].endswith("missing.zip")

    def test_not_a_zip(self, tmp_path):
        """Test that a malformed container is reported as an open error."""
        path = tmp_path / "broken.zip"
        path.write_bytes(b"this is not a zip archive")

        with pytest.raises(ContainerOpenError) as exc_info:
            ZippedBundle(path=path)

        assert isinstance(exc_info.value.__cause__, zipfile.BadZipFile)

    def test_requires_exactly_one_input(self, sample_zip):
        with pytest.raises(ValueError):
            ZippedBundle()

        with pytest.raises(ValueError):
            ZippedBundle(stream=io.BytesIO(sample_zip.read_bytes()), path=sample_zip)


class TestLookup:
    """Test payload extraction."""

    def test_get_openable_returns_payload(self, sample_zip):
        """Test that each key yields its original uncompressed bytes."""
        with ZippedBundle(path=sample_zip) as bundle:
            assert bundle.get_openable("a.swf").read() == SWF_BYTES
            assert bundle.get_openable("c.abc").read() == ABC_BYTES

    def test_payload_is_random_access(self, sample_zip):
        """Test that extracted payloads support seeking."""
        with ZippedBundle(path=sample_zip) as bundle:
            payload = bundle.get_openable("a.swf")

        payload.seek(3)
        assert payload.read(1) == b"\x0a"
        payload.seek(0)
        assert payload.read(3) == b"FWS"

    def test_unknown_key_is_absent(self, sample_zip):
        """Test that keys outside the key set return None."""
        with ZippedBundle(path=sample_zip) as bundle:
            assert bundle.get_openable("b.txt") is None
            assert bundle.get_openable("missing.swf") is None

    def test_repeated_lookups(self, sample_zip):
        """Test that each lookup rescans and returns a fresh copy."""
        with ZippedBundle(path=sample_zip) as bundle:
            first = bundle.get_openable("a.swf")
            second = bundle.get_openable("a.swf")

        assert first is not second
        assert first.read() == second.read() == SWF_BYTES

    def test_payload_detached_after_close(self, sample_zip):
        """Test that payloads stay readable after the bundle is closed."""
        bundle = ZippedBundle(path=sample_zip)
        payload = bundle.get_openable("c.abc")
        bundle.close()

        assert payload.read() == ABC_BYTES

    def test_stored_entries(self, tmp_path):
        """Test extraction of uncompressed entries."""
        path = tmp_path / "stored.zip"
        path.write_bytes(build_zip([("movie.swf", SWF_BYTES)], compression=zipfile.ZIP_STORED))

        with ZippedBundle(path=path) as bundle:
            assert bundle.get_openable("movie.swf").read() == SWF_BYTES

    def test_duplicate_names_return_first_entry(self, tmp_path):
        """Test that the first of duplicate entries wins."""
        path = tmp_path / "dupes.zip"
        with pytest.warns(UserWarning):
            path.write_bytes(build_zip([("a.swf", b"first"), ("a.swf", b"second")]))

        with ZippedBundle(path=path) as bundle:
            assert bundle.length() == 1
            assert bundle.get_openable("a.swf").read() == b"first"

    def test_lookup_after_close(self, sample_zip):
        """Test that a closed file bundle reports a read error instead of a bare ValueError."""
        bundle = ZippedBundle(path=sample_zip)
        bundle.close()

        with pytest.raises(ContainerReadError) as exc_info:
            bundle.get_openable("a.swf")

        assert exc_info.value.context["path"] == str(sample_zip)

    def test_unsupported_compression_method(self, tmp_path, mark_deflate64):
        """Test that an entry zipfile cannot decompress raises a read error."""
        path = tmp_path / "deflate64.zip"
        data = build_zip([("a.swf", SWF_BYTES), ("c.abc", ABC_BYTES)], compression=zipfile.ZIP_STORED)
        path.write_bytes(mark_deflate64(data, "c.abc"))

        with ZippedBundle(path=path) as bundle:
            assert bundle.get_keys() == {"a.swf", "c.abc"}
            with pytest.raises(ContainerReadError) as exc_info:
                bundle.get_openable("c.abc")

            assert isinstance(exc_info.value.__cause__, NotImplementedError)
            assert exc_info.value.context["key"] == "c.abc"
            assert bundle.get_openable("a.swf").read() == SWF_BYTES

    def test_encrypted_entry(self, tmp_path, mark_encrypted):
        """Test that an encrypted entry raises a read error."""
        path = tmp_path / "encrypted.zip"
        data = build_zip([("a.swf", SWF_BYTES)], compression=zipfile.ZIP_STORED)
        path.write_bytes(mark_encrypted(data, "a.swf"))

        with ZippedBundle(path=path) as bundle:
            with pytest.raises(ContainerReadError) as exc_info:
                bundle.get_openable("a.swf")

        assert isinstance(exc_info.value.__cause__, RuntimeError)


class TestGetAll:
    """Test bulk extraction."""

    def test_get_all_matches_individual_lookups(self, sample_zip):
        """Test that get_all covers every key with the same bytes."""
        with ZippedBundle(path=sample_zip) as bundle:
            payloads = bundle.get_all()

            assert set(payloads) == bundle.get_keys()
            for key, payload in payloads.items():
                assert payload.read() == bundle.get_openable(key).read()


class TestStreamBundles:
    """Test bundles built from caller-supplied streams."""

    def test_stream_bundle(self, sample_zip):
        """Test indexing and lookup over a caller stream."""
        stream = io.BytesIO(sample_zip.read_bytes())
        bundle = ZippedBundle(stream=stream)

        assert bundle.get_keys() == {"a.swf", "c.abc"}
        assert bundle.get_openable("c.abc").read() == ABC_BYTES

    def test_stream_bundle_is_read_only(self, sample_zip):
        """Test that stream bundles refuse replacement."""
        stream = io.BytesIO(sample_zip.read_bytes())
        bundle = ZippedBundle.from_stream(stream)

        assert bundle.is_read_only()
        assert bundle.put_openable("a.swf", b"new") is False
        assert bundle.get_openable("a.swf").read() == SWF_BYTES

    def test_close_leaves_caller_stream_open(self, sample_zip):
        stream = io.BytesIO(sample_zip.read_bytes())
        with ZippedBundle(stream=stream):
            pass

        assert not stream.closed

    def test_indexed_key_missing_on_rescan(self, sample_zip, caplog):
        """Test that a key removed behind the bundle's back reads as absent."""
        stream = io.BytesIO(sample_zip.read_bytes())
        bundle = ZippedBundle(stream=stream)
        assert "a.swf" in bundle.get_keys()

        # Replace the stream contents without a.swf
        stream.seek(0)
        stream.truncate()
        stream.write(build_zip([("c.abc", ABC_BYTES)]))

        assert bundle.get_openable("a.swf") is None
        assert "treating as absent" in caplog.text
        assert set(bundle.get_all()) == {"c.abc"}
