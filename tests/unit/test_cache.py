"""Tests for the compiled template cache."""
import os
from unittest.mock import patch

import pytest

from view_engine.error.exceptions import CacheWriteError
from view_engine.templates.cache import TemplateCache


def test_compiled_path_is_deterministic(cache, cache_dir):
    first = cache.compiled_path_for("/srv/views/home.html")
    second = cache.compiled_path_for("/srv/views/./home.html")
    assert first == second
    assert first.startswith(str(cache_dir))
    assert first.endswith(".j2")

    digest = os.path.basename(first)[:-len(".j2")]
    assert len(digest) == 64
    relative = os.path.relpath(first, str(cache_dir)).split(os.sep)
    assert relative == [digest[:2], digest[2:4], digest + ".j2"]


def test_distinct_sources_get_distinct_paths(cache):
    assert cache.compiled_path_for("/a/home.html") != cache.compiled_path_for("/b/home.html")


def test_missing_artifact_is_stale(cache, write_template):
    source = write_template("home", "x")
    assert cache.is_stale(str(source), cache.compiled_path_for(str(source)))


def test_write_then_fresh(cache, write_template):
    source = write_template("home", "x")
    compiled_path = cache.compiled_path_for(str(source))
    cache.write(compiled_path, "compiled")
    assert not cache.is_stale(str(source), compiled_path)
    artifact = cache.read(compiled_path)
    assert artifact.text == "compiled"
    assert artifact.path == compiled_path


def test_touched_source_is_stale(cache, write_template, touch):
    source = write_template("home", "x")
    compiled_path = cache.compiled_path_for(str(source))
    cache.write(compiled_path, "compiled")
    touch(source)
    assert cache.is_stale(str(source), compiled_path)


def test_missing_source_is_stale(cache, tmp_path):
    compiled_path = cache.compiled_path_for(str(tmp_path / "gone.html"))
    cache.write(compiled_path, "compiled")
    assert cache.is_stale(str(tmp_path / "gone.html"), compiled_path)


def test_write_replaces_existing(cache):
    compiled_path = cache.compiled_path_for("/x/home.html")
    cache.write(compiled_path, "one")
    cache.write(compiled_path, "two")
    assert cache.read(compiled_path).text == "two"
    leftovers = [f for f in os.listdir(os.path.dirname(compiled_path)) if f.endswith(".part")]
    assert leftovers == []


def test_write_failure_raises_cache_write_error_and_cleans_up(cache):
    compiled_path = cache.compiled_path_for("/x/home.html")
    with patch("view_engine.templates.cache.os.replace", side_effect=OSError("disk full")):
        with pytest.raises(CacheWriteError) as exc_info:
            cache.write(compiled_path, "content")
    assert exc_info.value.path == compiled_path
    assert not os.path.exists(compiled_path)
    assert [f for f in os.listdir(os.path.dirname(compiled_path)) if f.endswith(".part")] == []


def test_unwritable_cache_dir(tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory")
    cache = TemplateCache(blocker)
    with pytest.raises(CacheWriteError):
        cache.write(cache.compiled_path_for("/x/home.html"), "content")


def test_dependencies_round_trip(cache, write_template, touch):
    source = write_template("home", "x")
    layout = write_template("layout", "y")
    compiled_path = cache.compiled_path_for(str(source))
    cache.write_dependencies(compiled_path, [str(source), str(layout)])
    cache.write(compiled_path, "compiled")

    assert cache.read_dependencies(compiled_path) == [str(source), str(layout)]
    assert not cache.dependencies_stale(compiled_path)

    touch(layout)
    assert cache.dependencies_stale(compiled_path)


def test_missing_manifest_has_no_dependencies(cache):
    assert cache.read_dependencies(cache.compiled_path_for("/x/home.html")) == []


def test_corrupt_manifest_is_stale(cache):
    compiled_path = cache.compiled_path_for("/x/home.html")
    cache.write(compiled_path, "compiled")
    with open(cache.manifest_path_for(compiled_path), "w") as handle:
        handle.write("{not json")
    assert cache.dependencies_stale(compiled_path)


def test_clear(cache, cache_dir):
    for name in ("/x/a.html", "/x/b.html"):
        compiled_path = cache.compiled_path_for(name)
        cache.write_dependencies(compiled_path, [name])
        cache.write(compiled_path, "compiled")
    assert cache.clear() == 2
    assert os.listdir(str(cache_dir)) == []
    assert cache.clear() == 0
