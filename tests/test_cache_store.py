"""
Tests for the JSON-file translation cache.
"""
import asyncio
import json

from skill_translation.translation.cache_store import TranslationCacheStore
from skill_translation.translation.models import (
    TranslationKey,
    TranslationRecord,
    TranslationStatus,
    compute_source_hash,
)


def make_key(text="Merge PDF files", **overrides):
    parts = dict(
        subject_id="c:/skills/pdf-tools",
        field="Description",
        target_lang="zh-CN",
        engine_id="onnx-marian",
        engine_version="1",
        source_hash=compute_source_hash(text),
    )
    parts.update(overrides)
    return TranslationKey(**parts)


def test_source_hash_normalizes_whitespace_and_newlines():
    assert compute_source_hash("  line one\r\nline two \n") == compute_source_hash("line one\nline two")
    assert compute_source_hash("abc") == compute_source_hash("abc").upper()
    assert len(compute_source_hash("abc")) == 64


def test_every_key_component_matters():
    base = make_key()
    variants = [
        make_key(text="Merge PDF documents"),
        make_key(target_lang="ja"),
        make_key(engine_id="google"),
        make_key(engine_version="2"),
        make_key(field="WhenToUse"),
    ]
    assert base == make_key()
    for variant in variants:
        assert variant != base
        assert variant.cache_key != base.cache_key


def test_missing_file_is_an_empty_cache(tmp_path):
    store = TranslationCacheStore(tmp_path / "cache.json")

    async def scenario():
        return await store.try_get(make_key()), await store.count()

    record, count = asyncio.run(scenario())
    assert record is None
    assert count == 0


def test_upsert_persists_across_instances(tmp_path):
    path = tmp_path / "cache.json"
    key = make_key()

    async def write():
        await TranslationCacheStore(path).upsert(TranslationRecord.ready(key, "合并 PDF 文件"))

    async def read():
        return await TranslationCacheStore(path).try_get(key)

    asyncio.run(write())
    record = asyncio.run(read())

    assert record.status == TranslationStatus.READY
    assert record.translated_text == "合并 PDF 文件"
    assert record.key == key

    data = json.loads(path.read_text(encoding="utf-8"))
    assert data["schema_version"] == 1
    assert list(data["records"]) == [key.cache_key]
    assert not (tmp_path / "cache.json.tmp").exists()


def test_upsert_replaces_and_get_batch_omits_absent(tmp_path):
    store = TranslationCacheStore(tmp_path / "cache.json")
    present = make_key()
    absent = make_key(text="Something else entirely")

    async def scenario():
        await store.upsert(TranslationRecord.failed(present, "backend down"))
        await store.upsert(TranslationRecord.ready(present, "合并 PDF 文件"))
        return await store.get_batch([present, absent]), await store.stats()

    batch, stats = asyncio.run(scenario())

    assert list(batch) == [present.cache_key]
    assert batch[present.cache_key].is_ready
    assert stats == {"total": 1, "ready": 1, "failed": 0}


def test_upsert_many(tmp_path):
    store = TranslationCacheStore(tmp_path / "cache.json")
    records = [
        TranslationRecord.ready(make_key(text="first text"), "一"),
        TranslationRecord.failed(make_key(text="second text"), "timeout"),
    ]

    async def scenario():
        await store.upsert_many(records)
        return await store.stats()

    assert asyncio.run(scenario()) == {"total": 2, "ready": 1, "failed": 1}


def test_corrupt_file_is_archived(tmp_path):
    path = tmp_path / "cache.json"
    path.write_text("{not json", encoding="utf-8")
    store = TranslationCacheStore(path)

    async def scenario():
        count = await store.count()
        await store.upsert(TranslationRecord.ready(make_key(), "合并"))
        return count

    count = asyncio.run(scenario())

    assert count == 0
    broken = list(tmp_path.glob("cache.json.broken_*"))
    assert len(broken) == 1
    assert broken[0].read_text(encoding="utf-8") == "{not json"
    assert len(json.loads(path.read_text(encoding="utf-8"))["records"]) == 1


def test_wrong_shape_is_treated_as_corrupt(tmp_path):
    path = tmp_path / "cache.json"
    path.write_text(json.dumps([1, 2, 3]), encoding="utf-8")

    count = asyncio.run(TranslationCacheStore(path).count())

    assert count == 0
    assert list(tmp_path.glob("cache.json.broken_*"))


def test_unwritable_location_keeps_memory_state(tmp_path):
    blocker = tmp_path / "not-a-directory"
    blocker.write_text("", encoding="utf-8")
    store = TranslationCacheStore(blocker / "cache.json")
    key = make_key()

    async def scenario():
        await store.upsert(TranslationRecord.ready(key, "合并"))
        return await store.try_get(key)

    record = asyncio.run(scenario())

    assert record.translated_text == "合并"


def test_newer_schema_and_unknown_fields_are_readable(tmp_path):
    path = tmp_path / "cache.json"
    key = make_key()
    record = TranslationRecord.ready(key, "合并").to_dict()
    record["reviewer"] = "someone"
    path.write_text(json.dumps({"schema_version": 7, "records": {key.cache_key: record}}), encoding="utf-8")

    loaded = asyncio.run(TranslationCacheStore(path).try_get(key))

    assert loaded.translated_text == "合并"
    assert not list(tmp_path.glob("cache.json.broken_*"))


def test_delete_all_removes_file(tmp_path):
    path = tmp_path / "cache.json"
    store = TranslationCacheStore(path)

    async def scenario():
        await store.upsert(TranslationRecord.ready(make_key(), "合并"))
        await store.delete_all()
        await store.delete_all()
        return await store.count()

    assert asyncio.run(scenario()) == 0
    assert not path.exists()


def test_failed_record_invariants():
    record = TranslationRecord.failed(make_key(), "")
    assert record.status == TranslationStatus.FAILED
    assert record.translated_text == ""
    assert record.error
