"""Constants shared across the package update modules."""

from __future__ import annotations

REGISTRY_URL_ENV = "PACKAGE_UPDATER_REGISTRY_URL"
LOCAL_REGISTRY_ENV = "PACKAGE_UPDATER_LOCAL_REGISTRY"
PROJECT_DIR_ENV = "PACKAGE_UPDATER_PROJECT_DIR"

LOCAL_REGISTRY_FILENAME = "updates.json"

PACKAGES_DIRNAME = "Packages"
PACKAGE_MANIFEST_NAME = "package.json"
TARBALL_ROOT = "package"
FILE_REFERENCE_PREFIX = "file:"

STAGED_ARCHIVE_PREFIX = "pkg-"
STAGED_ARCHIVE_SUFFIX = ".tgz"

DIALOG_TITLE = "Package Updater"
ERROR_DIALOG_TITLE = "Package Updater Error"
ERROR_DIALOG_PREFIX = "The package updater encountered an error.\n\n"
RECOMPILE_NOTICE = (
    "The host is now recompiling the updated packages.\n\n"
    "You should receive another message when the upgrade is complete."
)
AUTOMATED_SELF_UPDATE_MESSAGE = "Updater failed to update to new version"

MAX_ARCHIVE_TOTAL_BYTES = 500 * 1024 * 1024  # 500 MiB
MAX_ARCHIVE_FILE_SIZE = 250 * 1024 * 1024  # 250 MiB per file
MAX_ARCHIVE_ENTRIES = 20000
