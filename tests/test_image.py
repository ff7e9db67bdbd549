"""Tests for image naming and builds."""

from pathlib import Path

import pytest

from ai_pod.errors import RuntimeCommandFailed
from ai_pod.image import DEFAULT_DOCKERFILE, DOCKERFILE_NAME, ensure_image, image_name, init_project


class TestImageName:
    """Test image_name."""

    def test_format(self):
        """Lowercased directory name plus a short hash."""
        name = image_name(Path("/home/me/MyProject"))
        label, short_hash = name.rsplit("-", 1)
        assert label == "myproject"
        assert len(short_hash) == 6

    def test_sanitised(self):
        """Characters outside the allowed set become dashes."""
        assert image_name(Path("/w/My Cool@App")).startswith("my-cool-app-")

    def test_distinct_for_same_dirname(self):
        """Same directory name in different places gets different images."""
        assert image_name(Path("/a/app")) != image_name(Path("/b/app"))

    def test_root_path(self):
        """A path with no name still yields a usable image name."""
        assert image_name(Path("/")).startswith("project-")


class TestEnsureImage:
    """Test ensure_image."""

    def test_builds_when_missing(self, fake_runtime, tmp_path):
        """Missing image is built."""
        assert ensure_image(fake_runtime, tmp_path / DOCKERFILE_NAME, "img", tmp_path) is True
        assert fake_runtime.ops() == ["build_image"]

    def test_skips_existing(self, fake_runtime, tmp_path):
        """Existing image is reused."""
        fake_runtime.images.add("img")
        assert ensure_image(fake_runtime, tmp_path / DOCKERFILE_NAME, "img", tmp_path) is False
        assert fake_runtime.calls == []

    def test_force_rebuilds(self, fake_runtime, tmp_path):
        """Force builds even when present."""
        fake_runtime.images.add("img")
        assert ensure_image(fake_runtime, tmp_path / DOCKERFILE_NAME, "img", tmp_path, force=True)

    def test_build_failure_propagates(self, fake_runtime, tmp_path):
        """Build failure is fatal."""
        fake_runtime.fail.add("build_image")
        with pytest.raises(RuntimeCommandFailed):
            ensure_image(fake_runtime, tmp_path / DOCKERFILE_NAME, "img", tmp_path)


class TestInitProject:
    """Test init_project."""

    def test_creates_template(self, tmp_path):
        """Writes the default Dockerfile."""
        path, created = init_project(tmp_path)
        assert created is True
        assert path == tmp_path / DOCKERFILE_NAME
        assert path.read_text() == DEFAULT_DOCKERFILE

    def test_keeps_existing(self, tmp_path):
        """Never overwrites an edited Dockerfile."""
        (tmp_path / DOCKERFILE_NAME).write_text("FROM custom\n")
        path, created = init_project(tmp_path)
        assert created is False
        assert path.read_text() == "FROM custom\n"
