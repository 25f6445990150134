"""Tests for build manifest reading."""

import json

import pytest

from scx_analyzer.errors import MalformedArtifactError, ManifestNotFoundError
from scx_analyzer.manifests import ChunkSizeResolver, read_manifests, split_cache_tags


class TestReadManifests:
    """Test merging of build manifests into routes."""

    def test_routes_with_side_table_sizes(self, write_project):
        root = write_project(
            {},
            build_manifest={"pages": {"/_app": ["static/chunks/main.js"]}, "app": {}},
            app_build_manifest={"pages": {
                "/page": ["static/chunks/app/page.js", "static/chunks/main.js"],
                "/(shop)/products/[id]/page": ["static/chunks/app/product.js"],
            }},
            sizes={
                "static/chunks/main.js": [{"name": "main.js", "size": 1000}],
                "static/chunks/app/page.js": [{"name": "page.js", "size": 200}, {"name": "page.css", "size": 50}],
                "static/chunks/app/product.js": [{"name": "product.js", "size": 300}],
            },
        )
        manifests = read_manifests(root)
        assert [r.route for r in manifests.routes] == ["/", "/_app", "/products/[id]"]
        home = manifests.lookup("/")
        assert home.chunks == ["static/chunks/app/page.js", "static/chunks/main.js"]
        assert home.total_bytes == 1250
        assert manifests.lookup("/products/[id]").total_bytes == 300
        assert manifests.asset_sizes["static/chunks/main.js"] == 1000

    def test_sizes_from_files_without_side_table(self, write_project):
        root = write_project(
            {},
            app_build_manifest={"pages": {"/blog/[slug]/page": ["static/chunks/app/blog/%5Bslug%5D/page.js"]}},
            chunk_files={"static/chunks/app/blog/[slug]/page.js": 321},
        )
        route = read_manifests(root).lookup("/blog/[slug]")
        assert route.total_bytes == 321

    def test_unresolvable_chunks_have_no_total(self, write_project):
        root = write_project({}, app_build_manifest={"pages": {"/page": ["static/chunks/missing.js"]}})
        route = read_manifests(root).lookup("/")
        assert route.chunks == ["static/chunks/missing.js"]
        assert route.total_bytes is None

    def test_app_build_manifest_fallback_location(self, write_project):
        root = write_project({})
        dist = root / ".next"
        (dist / "server" / "app-build-manifest.json").unlink()
        (dist / "app-build-manifest.json").write_text(
            json.dumps({"pages": {"/about/page": ["static/chunks/about.js"]}}), encoding="utf-8"
        )
        assert [r.route for r in read_manifests(root).routes] == ["/about"]

    def test_unbuilt_project(self, write_project):
        root = write_project({"app/page.tsx": "export default () => null;"}, built=False)
        with pytest.raises(ManifestNotFoundError) as info:
            read_manifests(root)
        assert len(info.value.searched_paths) == 3
        assert "not built" in info.value.message

    def test_unbuilt_project_with_stale_side_table(self, write_project):
        """A missing manifest is reported before the size side-table is read."""
        root = write_project({}, built=False)
        dist = root / ".next"
        dist.mkdir(parents=True, exist_ok=True)
        (dist / "build-manifest.json.__scx_sizes__").write_text("{garbage", encoding="utf-8")
        with pytest.raises(ManifestNotFoundError):
            read_manifests(root)

    def test_resolver_is_shared(self, write_project):
        root = write_project(
            {},
            app_build_manifest={"pages": {"/page": ["static/chunks/app/page.js"]}},
            sizes={"static/chunks/app/page.js": [{"name": "page.js", "size": 42}]},
        )
        manifests = read_manifests(root, max_workers=2)
        assert manifests.resolver.max_workers == 2
        assert manifests.resolver.size_of("static/chunks/app/page.js") == 42

        resolver = ChunkSizeResolver(root / ".next", {"static/chunks/app/page.js": 7})
        assert read_manifests(root, resolver=resolver).lookup("/").total_bytes == 7

    def test_corrupt_manifest(self, write_project):
        root = write_project({})
        (root / ".next" / "build-manifest.json").write_text("{not json", encoding="utf-8")
        with pytest.raises(MalformedArtifactError) as info:
            read_manifests(root)
        assert info.value.path.name == "build-manifest.json"

    def test_prerender_cache_info(self, write_project):
        root = write_project(
            {},
            app_build_manifest={"pages": {"/blog/page": ["static/chunks/blog.js"]}},
            prerender={"routes": {"/blog": {
                "initialRevalidateSeconds": 60,
                "initialHeaders": {"x-next-cache-tags": "posts,_N_T_/layout,_N_T_/blog"},
            }}},
        )
        cache = read_manifests(root).lookup("/blog").cache
        assert cache.tags == ["posts"]
        assert cache.revalidate_seconds == [60]


class TestChunkSizeResolver:
    """Test chunk size lookup and memoization."""

    def test_memoized_stat(self, temp_dir):
        chunk = temp_dir / "static" / "a.js"
        chunk.parent.mkdir(parents=True)
        chunk.write_bytes(b"x" * 10)
        resolver = ChunkSizeResolver(temp_dir)
        assert resolver.size_of("static/a.js") == 10
        chunk.unlink()
        assert resolver.size_of("static/a.js") == 10

    def test_side_table_wins(self, temp_dir):
        resolver = ChunkSizeResolver(temp_dir, {"static/a.js": 99})
        assert resolver.total(["static/a.js", "static/a.js", "static/missing.js"]) == 99


def test_split_cache_tags():
    assert split_cache_tags(" b, a ,_N_T_/x,,a") == ["a", "b"]
    assert split_cache_tags(None) == []
