"""Tests for profile archive validation."""
import io
import zipfile

import pytest

from services.exceptions import (
    InvalidArchiveError,
    ManifestInvalidError,
    ManifestMissingError,
    PayloadTooLargeError,
)
from services.manifest_validator import (
    MANIFEST_FILENAME,
    parse_manifest,
    read_bounded_entry,
    validate_profile_archive,
)
from tests.factories import EXAMPLE_MANIFEST, make_manifest, make_profile_zip


# =============================================================================
# Valid archives
# =============================================================================


def test__validate_profile_archive__parses_example_manifest() -> None:
    """The export.r2x example is parsed into the manifest model."""
    data = make_profile_zip(EXAMPLE_MANIFEST)

    result = validate_profile_archive(data)

    assert result.manifest.profile_name == "Default"
    assert result.manifest.community == "repo"
    assert len(result.manifest.mods) == 1
    mod = result.manifest.mods[0]
    assert mod.name == "BepInEx-BepInExPack"
    assert mod.enabled is True
    assert (mod.version.major, mod.version.minor, mod.version.patch) == (5, 4, 2100)
    assert result.archive == data


def test__validate_profile_archive__records_config_files_without_reading_them() -> None:
    """Other entries are listed but stored as opaque payload."""
    data = make_profile_zip(
        EXAMPLE_MANIFEST,
        extra_files={
            "config/BepInEx.cfg": b"[Logging]\nEnabled = true\n",
            "config/not-yaml.bin": b"\x00\xff\x00\xff",
        },
    )

    result = validate_profile_archive(data)

    assert sorted(result.config_files) == ["config/BepInEx.cfg", "config/not-yaml.bin"]


def test__validate_profile_archive__ignores_unknown_manifest_keys() -> None:
    """Fields added by newer clients do not break validation."""
    manifest = EXAMPLE_MANIFEST + "ignoredUpdates: []\nexportedBy: gale-1.2.0\n"

    result = validate_profile_archive(make_profile_zip(manifest))

    assert result.manifest.profile_name == "Default"


def test__validate_profile_archive__community_is_optional() -> None:
    """A manifest without a community is valid."""
    result = validate_profile_archive(make_profile_zip(make_manifest(community=None)))
    assert result.manifest.community is None


def test__validate_profile_archive__empty_mod_list_is_valid() -> None:
    """A profile may contain no mods."""
    result = validate_profile_archive(make_profile_zip(make_manifest(mods=[])))
    assert result.manifest.mods == []


def test__validate_profile_archive__strips_profile_name() -> None:
    """Surrounding whitespace in the name is dropped."""
    result = validate_profile_archive(make_profile_zip(make_manifest(profile_name="'  Modded  '")))
    assert result.manifest.profile_name == "Modded"


# =============================================================================
# Archive-level rejections
# =============================================================================


def test__validate_profile_archive__rejects_non_zip() -> None:
    """Arbitrary bytes are not a profile."""
    with pytest.raises(InvalidArchiveError, match="Invalid ZIP archive"):
        validate_profile_archive(b"this is not a zip file")


def test__validate_profile_archive__rejects_missing_manifest() -> None:
    """An archive without export.r2x is rejected."""
    data = make_profile_zip(manifest=None, extra_files={"config/a.cfg": b"x"})

    with pytest.raises(ManifestMissingError, match="export.r2x file is missing"):
        validate_profile_archive(data)


def test__validate_profile_archive__rejects_duplicate_manifest() -> None:
    """Two export.r2x entries make the manifest ambiguous."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        archive.writestr(MANIFEST_FILENAME, EXAMPLE_MANIFEST)
        with pytest.warns(UserWarning, match="Duplicate name"):
            archive.writestr(MANIFEST_FILENAME, make_manifest(profile_name="Other"))

    with pytest.raises(ManifestInvalidError, match="more than once"):
        validate_profile_archive(buffer.getvalue())


def test__validate_profile_archive__rejects_oversized_upload() -> None:
    """The raw body is checked against the ceiling first."""
    data = make_profile_zip(
        EXAMPLE_MANIFEST,
        extra_files={"big.bin": b"\x01" * 2048},
        compression=zipfile.ZIP_STORED,
    )
    assert len(data) > 1024

    with pytest.raises(PayloadTooLargeError) as exc_info:
        validate_profile_archive(data, max_size=1024)
    assert exc_info.value.status_code == 413


def test__validate_profile_archive__rejects_declared_decompressed_size_over_ceiling() -> None:
    """A highly compressible archive is refused from its headers alone."""
    data = make_profile_zip(EXAMPLE_MANIFEST, extra_files={"zeros.bin": b"\x00" * 200_000})
    assert len(data) < 10_000

    with pytest.raises(PayloadTooLargeError):
        validate_profile_archive(data, max_size=10_000)


def test__validate_profile_archive__manifest_bomb_stops_at_ceiling() -> None:
    """
    A manifest whose header understates its size is never inflated in full.

    The central directory claims a 1-byte entry, so the header check passes.
    zipfile then stops reading at the declared size and the CRC of that single
    byte fails, which surfaces as an invalid archive. The chunk loop in
    read_bounded_entry is the second line of defence, covered by
    test__read_bounded_entry__stops_after_limit.
    """
    limit = 64 * 1024
    padding = "# " + "a" * (limit * 4) + "\n"
    data = bytearray(make_profile_zip(EXAMPLE_MANIFEST + padding))

    # Rewrite the declared uncompressed size in the central directory to 1 byte
    archive = zipfile.ZipFile(io.BytesIO(bytes(data)))
    info = archive.getinfo(MANIFEST_FILENAME)
    central_dir_offset = bytes(data).rfind(b"PK\x01\x02")
    assert central_dir_offset > 0
    size_offset = central_dir_offset + 24
    assert int.from_bytes(data[size_offset:size_offset + 4], "little") == info.file_size
    data[size_offset:size_offset + 4] = (1).to_bytes(4, "little")
    archive.close()

    with pytest.raises(InvalidArchiveError, match="Bad CRC-32"):
        validate_profile_archive(bytes(data), max_size=limit)


def test__read_bounded_entry__stops_after_limit() -> None:
    """Decompression stops as soon as the limit is exceeded."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        archive.writestr("payload", b"\x00" * 1_000_000)

    with zipfile.ZipFile(io.BytesIO(buffer.getvalue())) as archive:
        with pytest.raises(PayloadTooLargeError):
            read_bounded_entry(archive, archive.getinfo("payload"), limit=100_000)


def test__read_bounded_entry__corrupt_entry_is_invalid_archive() -> None:
    """CRC failures are reported as an invalid archive."""
    data = bytearray(make_profile_zip(EXAMPLE_MANIFEST, compression=zipfile.ZIP_STORED))
    # Flip a byte in the stored manifest body (after the 30-byte local header
    # and the file name)
    body_offset = 30 + len(MANIFEST_FILENAME)
    data[body_offset] ^= 0xFF

    with pytest.raises(InvalidArchiveError):
        validate_profile_archive(bytes(data))


# =============================================================================
# Manifest-level rejections
# =============================================================================


def test__parse_manifest__rejects_invalid_yaml() -> None:
    """Unparsable YAML is a manifest error."""
    with pytest.raises(ManifestInvalidError, match="invalid YAML"):
        parse_manifest(b"profileName: [unclosed\n")


def test__parse_manifest__rejects_non_mapping_document() -> None:
    """The manifest must be a YAML mapping."""
    with pytest.raises(ManifestInvalidError, match="expected a mapping"):
        parse_manifest(b"- just\n- a list\n")


def test__parse_manifest__rejects_non_utf8() -> None:
    """The manifest must be UTF-8 text."""
    with pytest.raises(ManifestInvalidError, match="UTF-8"):
        parse_manifest(b"profileName: \xff\xfe\n")


def test__parse_manifest__refuses_python_object_tags() -> None:
    """Tags that would construct Python objects are never honored."""
    with pytest.raises(ManifestInvalidError):
        parse_manifest(b"profileName: !!python/object/apply:os.system ['true']\nmods: []\n")


def test__parse_manifest__reports_missing_fields() -> None:
    """Missing required fields are named in the message."""
    with pytest.raises(ManifestInvalidError) as exc_info:
        parse_manifest(b"community: repo\n")
    assert "profileName" in exc_info.value.message
    assert "mods" in exc_info.value.message


def test__parse_manifest__reports_path_of_bad_mod_field() -> None:
    """Errors inside the mod list point at the offending entry."""
    raw = make_manifest(mods=[("BepInEx-BepInExPack", True, (5, 4, 2100))]).replace(
        "enabled: true", "enabled: maybe",
    )

    with pytest.raises(ManifestInvalidError) as exc_info:
        parse_manifest(raw.encode())
    assert "mods.0.enabled" in exc_info.value.message


@pytest.mark.parametrize(
    "mod_name",
    ["BepInExPack", "Bad Name-Mod", "a-b-c", "-Mod", "Namespace-"],
)
def test__parse_manifest__rejects_malformed_mod_names(mod_name: str) -> None:
    """Mod names must be 'Namespace-Name'."""
    raw = make_manifest(mods=[(f"'{mod_name}'", True, (1, 0, 0))])

    with pytest.raises(ManifestInvalidError, match="Invalid mod name"):
        parse_manifest(raw.encode())


def test__parse_manifest__rejects_negative_version() -> None:
    """Version components are non-negative."""
    raw = make_manifest(mods=[("Author-Mod", True, (1, -1, 0))])

    with pytest.raises(ManifestInvalidError, match=r"mods\.0\.version\.minor"):
        parse_manifest(raw.encode())


def test__parse_manifest__rejects_string_version() -> None:
    """Version components must be integers, not numeric strings."""
    raw = make_manifest(mods=[("Author-Mod", True, (1, 0, 0))]).replace(
        "major: 1", "major: '1'",
    )

    with pytest.raises(ManifestInvalidError, match=r"mods\.0\.version\.major"):
        parse_manifest(raw.encode())


@pytest.mark.parametrize("community", ["Lethal Company", "UPPER", "-leading"])
def test__parse_manifest__rejects_invalid_community(community: str) -> None:
    """Community slugs are lowercase letters, digits and hyphens."""
    raw = make_manifest(community=f"'{community}'")

    with pytest.raises(ManifestInvalidError, match="Invalid community"):
        parse_manifest(raw.encode())


def test__parse_manifest__rejects_blank_profile_name() -> None:
    """A whitespace-only name is empty."""
    with pytest.raises(ManifestInvalidError, match="Profile name cannot be empty"):
        parse_manifest(make_manifest(profile_name="'   '").encode())


def test__parse_manifest__rejects_overlong_profile_name() -> None:
    """Names are capped at 100 characters."""
    with pytest.raises(ManifestInvalidError, match="exceeds 100 characters"):
        parse_manifest(make_manifest(profile_name="x" * 101).encode())
