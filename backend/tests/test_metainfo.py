"""Tests for .torrent normalization and the file manifest."""
import hashlib

import bencodepy
import pytest

from app.services.torrents.errors import InvalidMetainfo
from app.services.torrents.metainfo import canonicalize, decode_info, normalize_metainfo

from conftest import build_torrent_file


class TestPrivacy:
    @pytest.mark.parametrize("declared", [None, 0, 1])
    def test_private_flag_is_always_forced_on(self, declared):
        descriptor = normalize_metainfo(build_torrent_file(private=declared))

        assert descriptor.info[b"private"] == 1
        assert bencodepy.decode(descriptor.info_bytes)[b"private"] == 1

    def test_hash_ignores_declared_private_flag(self):
        hashes = {
            normalize_metainfo(build_torrent_file(private=declared)).info_hash
            for declared in (None, 0, 1)
        }
        assert len(hashes) == 1


class TestInfoHash:
    def test_hash_is_sha1_of_stored_bytes(self):
        descriptor = normalize_metainfo(build_torrent_file())

        assert len(descriptor.info_hash) == 20
        assert descriptor.info_hash == hashlib.sha1(descriptor.info_bytes).digest()
        assert descriptor.info_hash_hex == descriptor.info_hash.hex()

    def test_hash_ignores_fields_outside_info(self):
        a = normalize_metainfo(build_torrent_file(announce=b"http://a.example/announce"))
        b = normalize_metainfo(build_torrent_file(announce=b"http://b.example/announce"))
        assert a.info_hash == b.info_hash

    def test_different_content_gives_different_hash(self):
        a = normalize_metainfo(build_torrent_file(length=1000))
        b = normalize_metainfo(build_torrent_file(length=1001))
        assert a.info_hash != b.info_hash

    def test_normalizing_stored_bytes_is_idempotent(self):
        first = normalize_metainfo(build_torrent_file(private=0))
        again = normalize_metainfo(bencodepy.encode({b"info": first.info}))

        assert again.info_bytes == first.info_bytes
        assert again.info_hash == first.info_hash

    def test_stored_bytes_have_sorted_keys(self):
        descriptor = normalize_metainfo(build_torrent_file(files=[("b.mkv", 1), ("a.srt", 2)]))

        assert descriptor.info_bytes.index(b"5:files") < descriptor.info_bytes.index(b"4:name")
        assert descriptor.info_bytes.index(b"6:length") < descriptor.info_bytes.index(b"4:path")


class TestInfoContents:
    def test_piece_length_is_preserved(self):
        descriptor = normalize_metainfo(build_torrent_file(piece_length=262144))

        assert descriptor.piece_length == 262144
        assert bencodepy.decode(descriptor.info_bytes)[b"piece length"] == 262144

    def test_non_content_keys_do_not_change_hash(self):
        plain = normalize_metainfo(build_torrent_file())
        tagged = normalize_metainfo(build_torrent_file(extra_info={b"source": b"OTHER-TRACKER"}))

        assert tagged.info_hash == plain.info_hash
        assert tagged.info_bytes == plain.info_bytes

    def test_only_content_keys_are_stored(self):
        descriptor = normalize_metainfo(
            build_torrent_file(extra_info={b"source": b"XYZ", b"x-custom": [1, 2]})
        )

        assert set(descriptor.info) == {b"name", b"length", b"piece length", b"pieces", b"private"}
        assert descriptor.info[b"pieces"] == b"\x11" * 20

    def test_file_entries_keep_only_length_and_path(self):
        info = {
            b"name": b"Some.Movie",
            b"piece length": 16384,
            b"pieces": b"\x22" * 20,
            b"files": [
                {b"length": 10, b"path": [b"a.mkv"], b"md5sum": b"0" * 32},
                {b"length": 20, b"path": [b"b.srt"]},
            ],
        }
        with_checksum = normalize_metainfo(bencodepy.encode({b"info": info}))
        info[b"files"][0].pop(b"md5sum")
        without_checksum = normalize_metainfo(bencodepy.encode({b"info": info}))

        assert with_checksum.info[b"files"] == [
            {b"length": 10, b"path": [b"a.mkv"]},
            {b"length": 20, b"path": [b"b.srt"]},
        ]
        assert with_checksum.info_hash == without_checksum.info_hash

    def test_decode_info_reads_back_stored_dict(self):
        descriptor = normalize_metainfo(build_torrent_file())
        assert decode_info(descriptor.info_bytes) == descriptor.info

    def test_canonicalize_sorts_nested_dicts(self):
        value = canonicalize({b"b": 1, b"a": [{b"z": 1, b"y": 2}]})

        assert list(value.keys()) == [b"a", b"b"]
        assert list(value[b"a"][0].keys()) == [b"y", b"z"]


class TestManifest:
    def test_single_file(self):
        manifest = normalize_metainfo(build_torrent_file(name=b"movie.mkv", length=1000)).manifest

        assert manifest.parent_folder == ""
        assert [(f.name, f.size) for f in manifest.files] == [("movie.mkv", 1000)]
        assert manifest.total_size == 1000
        assert manifest.extension_counts == {"mkv": 1}

    def test_single_file_without_extension(self):
        manifest = normalize_metainfo(build_torrent_file(name=b"README", length=10)).manifest

        assert manifest.extension_counts == {}
        assert manifest.total_size == 10

    def test_multi_file(self):
        manifest = normalize_metainfo(build_torrent_file(
            name=b"Some.Movie",
            files=[
                ("Some.Movie.mkv", 5000),
                ("Subs/English.srt", 30),
                ("Subs/French.srt", 40),
                ("Extras/notes", 5),
            ],
        )).manifest

        assert manifest.parent_folder == "Some.Movie"
        assert [f.name for f in manifest.files] == [
            "Some.Movie.mkv", "Subs/English.srt", "Subs/French.srt", "Extras/notes",
        ]
        assert manifest.total_size == 5075
        assert manifest.extension_counts == {"mkv": 1, "srt": 2}

    def test_file_list_json(self):
        manifest = normalize_metainfo(build_torrent_file(name=b"movie.mkv", length=1000)).manifest

        assert manifest.file_list_json() == {
            "parent_folder": "",
            "files": [{"name": "movie.mkv", "size": 1000}],
        }


PIECES = b"\x11" * 20


class TestInvalidInput:
    @pytest.mark.parametrize("data", [
        b"",
        b"not bencode at all",
        b"d8:announce",
        bencodepy.encode([1, 2, 3]),
        bencodepy.encode({b"announce": b"x"}),
        bencodepy.encode({b"info": b"not a dict"}),
        bencodepy.encode({b"info": {b"name": b"a", b"length": 1}}),
        bencodepy.encode({b"info": {b"name": b"a", b"length": 1, b"piece length": 0}}),
        bencodepy.encode({b"info": {b"name": b"a", b"piece length": 16384, b"pieces": PIECES}}),
        bencodepy.encode({b"info": {b"length": 1, b"piece length": 16384, b"pieces": PIECES}}),
        bencodepy.encode({b"info": {b"name": b"a", b"piece length": 16384, b"pieces": PIECES, b"files": []}}),
        bencodepy.encode({b"info": {
            b"name": b"a", b"piece length": 16384, b"pieces": PIECES,
            b"files": [{b"length": 1, b"path": []}],
        }}),
        bencodepy.encode({b"info": {b"name": b"\xff\xfe", b"length": 1, b"piece length": 16384, b"pieces": PIECES}}),
        bencodepy.encode({b"info": {b"name": b"a", b"length": 1, b"piece length": 16384, b"pieces": b""}}),
        bencodepy.encode({b"info": {
            b"name": b"a", b"piece length": 16384, b"pieces": PIECES, b"files": [b"a.mkv"],
        }}),
    ])
    def test_rejected(self, data):
        with pytest.raises(InvalidMetainfo):
            normalize_metainfo(data)

    def test_decode_info_rejects_garbage(self):
        with pytest.raises(InvalidMetainfo):
            decode_info(b"garbage")
