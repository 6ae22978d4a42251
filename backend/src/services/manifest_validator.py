"""
Validation of uploaded profile archives.

An upload is a ZIP archive holding an export.r2x manifest (YAML) plus any number
of config files. Only the manifest is decompressed and parsed; the other entries
are opaque payloads stored verbatim with the archive. All size checks are made
against decompressed sizes so that a small, highly compressed upload cannot
expand into an arbitrarily large amount of memory.
"""
import io
import logging
import zipfile
import zlib
from dataclasses import dataclass, field

import yaml
from pydantic import ValidationError as PydanticValidationError

from schemas.profile import ProfileManifest
from services.exceptions import (
    InvalidArchiveError,
    ManifestInvalidError,
    ManifestMissingError,
    PayloadTooLargeError,
)

logger = logging.getLogger(__name__)

MANIFEST_FILENAME = "export.r2x"
MAX_PROFILE_SIZE = 2 * 1024 * 1024
READ_CHUNK_SIZE = 64 * 1024

# Errors zipfile can raise while opening or reading a damaged entry
_ZIP_READ_ERRORS = (zipfile.BadZipFile, zlib.error, EOFError, RuntimeError, NotImplementedError)


@dataclass(frozen=True)
class ValidatedProfileArchive:
    """A validated upload: the parsed manifest plus the raw archive to store."""

    manifest: ProfileManifest
    archive: bytes
    config_files: list[str] = field(default_factory=list)


def validate_profile_archive(
    data: bytes,
    max_size: int = MAX_PROFILE_SIZE,
) -> ValidatedProfileArchive:
    """
    Validate an uploaded profile archive.

    Args:
        data: The raw upload body.
        max_size: Ceiling for both the upload and its decompressed content.

    Returns:
        ValidatedProfileArchive with the manifest and the untouched archive bytes.

    Raises:
        PayloadTooLargeError: If the upload or its declared/actual decompressed
            size exceeds max_size.
        InvalidArchiveError: If the upload is not a readable ZIP archive.
        ManifestMissingError: If there is no export.r2x entry.
        ManifestInvalidError: If the manifest is duplicated, unparsable or fails
            schema validation.
    """
    if len(data) > max_size:
        raise PayloadTooLargeError(max_size)

    try:
        archive = zipfile.ZipFile(io.BytesIO(data))
    except (zipfile.BadZipFile, zipfile.LargeZipFile, ValueError) as e:
        raise InvalidArchiveError(f"Invalid ZIP archive: {e}") from e

    with archive:
        entries = archive.infolist()

        # Header sizes are checked first so an honest bomb is refused without
        # decompressing anything. Lying headers are caught by read_bounded_entry.
        declared_size = sum(entry.file_size for entry in entries)
        if declared_size > max_size:
            raise PayloadTooLargeError(max_size)

        manifest_entries = [e for e in entries if e.filename == MANIFEST_FILENAME]
        if not manifest_entries:
            raise ManifestMissingError(MANIFEST_FILENAME)
        if len(manifest_entries) > 1:
            raise ManifestInvalidError(
                f"Invalid ZIP archive: {MANIFEST_FILENAME} appears more than once.",
            )

        raw_manifest = read_bounded_entry(archive, manifest_entries[0], max_size)

    manifest = parse_manifest(raw_manifest)
    config_files = [
        e.filename for e in entries if not e.is_dir() and e.filename != MANIFEST_FILENAME
    ]
    return ValidatedProfileArchive(manifest=manifest, archive=data, config_files=config_files)


def read_bounded_entry(archive: zipfile.ZipFile, entry: zipfile.ZipInfo, limit: int) -> bytes:
    """
    Decompress a single archive entry, stopping as soon as it exceeds limit bytes.

    Raises:
        PayloadTooLargeError: If more than limit bytes are produced.
        InvalidArchiveError: If the entry is encrypted, uses an unsupported
            compression method or is corrupt.
    """
    buffer = bytearray()
    try:
        with archive.open(entry) as stream:
            while chunk := stream.read(READ_CHUNK_SIZE):
                buffer.extend(chunk)
                if len(buffer) > limit:
                    raise PayloadTooLargeError(limit)
    except _ZIP_READ_ERRORS as e:
        raise InvalidArchiveError(f"Invalid ZIP archive: cannot read {entry.filename}: {e}") from e
    return bytes(buffer)


def parse_manifest(raw: bytes) -> ProfileManifest:
    """
    Parse and validate export.r2x content.

    Uses yaml.safe_load, which only builds plain data types and never constructs
    arbitrary Python objects.

    Raises:
        ManifestInvalidError: If the content is not UTF-8 YAML describing a valid
            manifest. The message names each offending field.
    """
    try:
        text = raw.decode("utf-8")
    except UnicodeDecodeError as e:
        raise ManifestInvalidError(f"Error parsing {MANIFEST_FILENAME}: not valid UTF-8") from e

    try:
        document = yaml.safe_load(text)
    except yaml.YAMLError as e:
        logger.info("Rejected unparsable manifest: %s", e)
        raise ManifestInvalidError(f"Error parsing {MANIFEST_FILENAME}: invalid YAML") from e

    if not isinstance(document, dict):
        raise ManifestInvalidError(f"Error parsing {MANIFEST_FILENAME}: expected a mapping")

    try:
        return ProfileManifest.model_validate(document)
    except PydanticValidationError as e:
        raise ManifestInvalidError(
            f"Error parsing {MANIFEST_FILENAME}: {format_validation_errors(e)}",
        ) from e


def format_validation_errors(error: PydanticValidationError) -> str:
    """Render pydantic errors as 'field.path: reason' pairs joined by '; '."""
    messages = []
    for err in error.errors():
        loc = ".".join(str(part) for part in err.get("loc", ())) or "manifest"
        messages.append(f"{loc}: {err.get('msg', 'invalid')}")
    return "; ".join(messages) if messages else "invalid manifest"
