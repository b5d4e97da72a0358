from pathlib import Path

import pytest
from sqlmodel import Session

from conftest import png_bytes
from image_optimizer.services.content_store import (
    PersistenceError,
    RootKind,
    SqlContentStore,
    TraversalError,
    build_locator,
)


def test_ensure_roots_is_idempotent(store):
    store.ensure_roots()
    roots = [store.get_root_folder(kind) for kind in RootKind]
    assert [r.name for r in roots] == ["globalassets", "contentassets"]
    assert store.get_child_folders(roots[0]) == []


def test_missing_root_raises_traversal_error(engine, tmp_path):
    with Session(engine) as session:
        with pytest.raises(TraversalError):
            SqlContentStore(session, tmp_path).get_root_folder(RootKind.GLOBAL_ASSETS)


def test_add_image_detects_mime_type_and_builds_url_path(store):
    products = store.create_folder(store.get_root_folder(RootKind.GLOBAL_ASSETS), "products")
    raw = png_bytes()

    asset = store.add_image(products, "shoe.png", raw)

    assert asset.mime_type == "image/png"
    assert asset.url_path == "globalassets/products/shoe.png"
    assert asset.version == 1
    assert asset.is_published
    assert Path(asset.blob_path).read_bytes() == raw
    assert store.get_child_images(products)[0].guid == asset.guid


def test_add_image_rejects_non_images(store):
    with pytest.raises(ValueError):
        store.add_image(store.get_root_folder(RootKind.GLOBAL_ASSETS), "notes.png", b"plain text")


def test_saving_a_revision_writes_a_new_blob(store):
    asset = store.add_image(store.get_root_folder(RootKind.GLOBAL_ASSETS), "a.png", png_bytes())
    old_blob = Path(asset.blob_path)
    old_bytes = old_blob.read_bytes()

    revision = store.create_writable_revision(asset)
    revision.binary = b"smaller"
    assert store.find_by_guid(asset.guid).version == 1

    store.save(revision)

    saved = store.find_by_guid(asset.guid)
    assert saved.version == 2
    assert saved.size_bytes == len(b"smaller")
    assert store.read_binary(saved) == b"smaller"
    assert Path(saved.blob_path) != old_blob
    assert old_blob.read_bytes() == old_bytes


def test_saving_revision_of_removed_asset_fails(store):
    asset = store.add_image(store.get_root_folder(RootKind.GLOBAL_ASSETS), "a.png", png_bytes())
    revision = store.create_writable_revision(asset)
    store.session.delete(asset)
    store.session.commit()

    with pytest.raises(PersistenceError):
        store.save(revision)


def test_read_binary_of_missing_blob_fails(store):
    asset = store.add_image(store.get_root_folder(RootKind.GLOBAL_ASSETS), "a.png", png_bytes())
    Path(asset.blob_path).unlink()

    with pytest.raises(PersistenceError):
        store.read_binary(asset)


def test_build_locator_quotes_path(store):
    asset = store.add_image(store.get_root_folder(RootKind.GLOBAL_ASSETS), "my shoe.png", png_bytes())
    assert build_locator("http://cms.test/", asset) == "http://cms.test/media/globalassets/my%20shoe.png"
