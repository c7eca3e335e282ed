"""Tests for the pattern layout resolver."""

from unittest.mock import patch

import pytest

from common.errors import InstallIOError, UnsupportedRepository
from constants import Constants
from versioning.models import Dependency, Repository, RepositoryType
from versioning.resolvers.ivy import IvyVersionResolver


@pytest.fixture
def local_repo(tmp_path):
    """Pattern layout repository on disk with three versions of one module."""
    for version in ("1.0", "1.2", "1.10"):
        (tmp_path / "com.example" / "shop" / version).mkdir(parents=True)
    (tmp_path / "com.example" / "shop" / "README").write_text("not a version", encoding="utf-8")
    return Repository(RepositoryType.IVY, tmp_path.as_uri(), pattern=Constants.IVY_DEFAULT_PATTERN)


class TestIvyVersionResolver:
    """Version listings of pattern layouts."""

    def setup_method(self):
        self.resolver = IvyVersionResolver()

    def test_listing_url(self):
        repo = Repository(RepositoryType.IVY, "https://repo.example.com/ivy",
                          pattern=Constants.IVY_DEFAULT_PATTERN)
        url = self.resolver.listing_url(Dependency("com.example", "shop"), repo)
        assert url == "https://repo.example.com/ivy/com.example/shop/"

    def test_listing_url_requires_pattern(self):
        repo = Repository(RepositoryType.IVY, "https://repo.example.com/ivy")
        with pytest.raises(UnsupportedRepository):
            self.resolver.listing_url(Dependency("com.example", "shop"), repo)

    def test_local_latest(self, local_repo):
        location, count, error = self.resolver.resolve(Dependency("com.example", "shop"), local_repo)
        assert error is None
        assert count == 3
        assert location.version == "1.10"
        assert location.dependency.version == "1.10"

    def test_local_exact(self, local_repo):
        location, _, _ = self.resolver.resolve(Dependency("com.example", "shop", "1.2"), local_repo)
        assert location.version == "1.2"

    def test_local_missing_module(self, local_repo):
        with pytest.raises(InstallIOError):
            self.resolver.resolve(Dependency("com.example", "other"), local_repo)

    @patch("versioning.resolvers.ivy.list_directory")
    def test_remote_listing(self, mock_list):
        mock_list.return_value = ["2.0", "2.1", "3.0"]
        repo = Repository(RepositoryType.IVY, "https://repo.example.com/ivy",
                          pattern=Constants.IVY_DEFAULT_PATTERN)
        location, _, _ = self.resolver.resolve(Dependency("com.example", "shop", "2.+"), repo)
        assert location.version == "2.1"
        assert mock_list.call_args[0][0] == "https://repo.example.com/ivy/com.example/shop/"

    @patch("versioning.resolvers.ivy.list_directory")
    def test_empty_listing(self, mock_list):
        mock_list.return_value = []
        repo = Repository(RepositoryType.IVY, "https://repo.example.com/ivy",
                          pattern=Constants.IVY_DEFAULT_PATTERN)
        location, count, error = self.resolver.resolve(Dependency("com.example", "shop"), repo)
        assert location is None
        assert count == 0
        assert error == "No versions available"
