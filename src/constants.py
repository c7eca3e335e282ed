"""Constants used in the project."""

from enum import Enum


class ExitCodes(Enum):
    """Exit codes for the program.

    Args:
        Enum (int): Exit codes for the program.
    """

    SUCCESS = 0
    FILE_ERROR = 1
    CONNECTION_ERROR = 2
    RESOLUTION_ERROR = 3
    CONFIG_ERROR = 4
    INSTALL_ERROR = 5


class Constants:  # pylint: disable=too-few-public-methods
    """General constants used in the project.
    Data holder for configuration constants; not intended to provide behavior.
    """

    LOG_FORMAT = "[%(levelname)s] %(message)s"
    LOG_LEVEL_ENV = "COMPINSTALL_LOG_LEVEL"
    REQUEST_TIMEOUT = 30  # Timeout in seconds for all HTTP requests

    # Descriptor handling
    DESCRIPTOR_FORMAT_VERSION = "1.0"
    DESCRIPTOR_EXTENSION = "component"
    DESCRIPTOR_TYPE = "component"

    # Repository layouts
    MAVEN_METADATA_FILE = "maven-metadata.xml"
    SNAPSHOT_SUFFIX = "-SNAPSHOT"
    LATEST_VERSION = "latest"
    IVY_DEFAULT_PATTERN = (
        "[organisation]/[module]/[revision]/[ext]s/[artifact]-[type](-[classifier])-[revision].[ext]"
    )
    IVY_DESCRIPTOR_PATTERN = "[organisation]/[module]/[revision]/[type]s/ivy-[revision].xml"

    # Installation layout
    CONTENT_MARKER_FILE = ".install"
    DEFAULT_ADMIN_DIR_NAME = ".compinstall"
    DEFAULT_BACKUP_DIR_NAME = "backup"
    DEFAULT_JAR_PATH = "libs"

    # Configuration filters
    PLACEHOLDER_BEGIN = "<@"
    PLACEHOLDER_END = "@>"

    # Environment overrides
    ENV_REPO_USERNAME = "COMPINSTALL_REPO_USERNAME"
    ENV_REPO_PASSWORD = "COMPINSTALL_REPO_PASSWORD"
    ENV_PROXY_HOST = "COMPINSTALL_{scheme}_PROXY_HOST"
    ENV_PROXY_PORT = "COMPINSTALL_{scheme}_PROXY_PORT"
