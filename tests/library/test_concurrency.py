from __future__ import annotations

import threading
from typing import List

from iGallery.config import ALL_ALBUM_ID
from iGallery.errors import NotFoundError
from iGallery.library.album_index import AlbumIndex

WRITER_ROUNDS = 15


def _check_state(library, failures: List[str]) -> None:
    """Take a snapshot plus the stored blob ids as one observation and check it."""

    with library._lock:
        snapshot = library.snapshot()
        blob_ids = set(library._blobs.list_ids())
    album_ids = {album.id for album in snapshot.albums}
    for item in snapshot.items:
        if item.blob_ref not in blob_ids:
            failures.append(f"{item.id} points at missing blob {item.blob_ref}")
        if not item.album_ids or item.album_ids[0] != ALL_ALBUM_ID:
            failures.append(f"{item.id} lost the reserved album")
        dangling = set(item.album_ids) - album_ids
        if dangling:
            failures.append(f"{item.id} references deleted album(s) {sorted(dangling)}")


def _run(threads: List[threading.Thread]) -> None:
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=60)
        assert not thread.is_alive()


def test_concurrent_writers_never_expose_broken_state(library, make_payload) -> None:
    failures: List[str] = []
    errors: List[Exception] = []
    done = threading.Event()
    index = AlbumIndex(library)

    def _guard(target):
        def _wrapped() -> None:
            try:
                target()
            except Exception as exc:
                errors.append(exc)
        return _wrapped

    def _album_churn() -> None:
        for round_no in range(WRITER_ROUNDS):
            members = [item.id for item in library.snapshot().items][:5]
            album = library.create_album(f"Album {round_no}", members).album
            library.add_items([make_payload(f"in-album-{round_no}.jpg")], album.id)
            library.delete_album(album.id)

    def _importer() -> None:
        for round_no in range(WRITER_ROUNDS):
            library.add_items([make_payload(f"import-{round_no}-{n}.jpg") for n in range(3)])

    def _deleter() -> None:
        for _ in range(WRITER_ROUNDS):
            victims = [item.id for item in library.snapshot().items][:2]
            library.delete_items(victims)

    def _reader() -> None:
        while not done.is_set():
            _check_state(library, failures)
            for album in library.list_albums():
                try:
                    for group in index.view(album.id):
                        for item in group.items:
                            if album.id not in item.album_ids:
                                failures.append(f"view of {album.id} shows non-member {item.id}")
                except NotFoundError:
                    pass

    writers = [threading.Thread(target=_guard(job)) for job in (_album_churn, _importer, _deleter)]
    readers = [threading.Thread(target=_guard(_reader)) for _ in range(2)]

    for reader in readers:
        reader.start()
    try:
        _run(writers)
    finally:
        done.set()
        for reader in readers:
            reader.join(timeout=60)

    assert errors == []
    assert failures == []
    _check_state(library, failures)
    assert failures == []
    assert all(album.id == ALL_ALBUM_ID for album in library.list_albums())


def test_concurrent_renames_and_membership_are_serialised(library, make_payload) -> None:
    items = library.add_items([make_payload(f"{n}.jpg") for n in range(4)]).items
    album = library.create_album("Shared").album
    errors: List[Exception] = []

    def _toggle(item_id: str) -> None:
        try:
            for round_no in range(20):
                library.add_item_to_album(item_id, album.id)
                library.rename_item(item_id, f"{item_id}-{round_no}.jpg")
                library.remove_item_from_album(item_id, album.id)
            library.add_item_to_album(item_id, album.id)
        except Exception as exc:
            errors.append(exc)

    _run([threading.Thread(target=_toggle, args=(item.id,)) for item in items])

    assert errors == []
    for item in items:
        current = library.get_item(item.id)
        assert current.album_ids == (ALL_ALBUM_ID, album.id)
        assert current.name == f"{item.id}-19.jpg"
        assert library._metadata.get(item.id)["album_ids"] == [ALL_ALBUM_ID, album.id]
