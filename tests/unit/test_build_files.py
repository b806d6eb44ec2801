"""
Local build file collaborators.
"""

import json

import pytest

from services.build_files import FilePretranslationWriter, LocalBuildFileStore, TextCorpusPreprocessor
from tests.factories.model_factories import make_corpus

pytestmark = pytest.mark.asyncio


@pytest.fixture
def store(tmp_path):
    return LocalBuildFileStore(str(tmp_path))


class TestLocalBuildFileStore:

    async def test_write_read_exists(self, store, tmp_path):
        await store.write_text("builds/b1/train.src.txt", "hello\n")
        assert await store.exists("builds/b1/train.src.txt")
        assert await store.read_text("builds/b1/train.src.txt") == "hello\n"
        assert (tmp_path / "builds" / "b1" / "train.src.txt").is_file()

    async def test_delete_directory_prefix(self, store):
        await store.write_text("builds/b1/a.txt", "a")
        await store.write_text("builds/b1/b.txt", "b")
        await store.write_text("builds/b2/a.txt", "a")

        await store.delete("builds/b1/")

        assert not await store.exists("builds/b1")
        assert await store.exists("builds/b2/a.txt")

    async def test_delete_missing_is_noop(self, store):
        await store.delete("builds/nothing/")

    async def test_paths_cannot_escape_root(self, store):
        with pytest.raises(ValueError, match="escapes"):
            await store.write_text("../outside.txt", "x")
        with pytest.raises(ValueError):
            await store.read_text("builds/../../etc/passwd")


class TestTextCorpusPreprocessor:

    async def test_splits_train_and_pretranslate_rows(self, store):
        await store.write_text("corpora/MAT.src.txt", "one\ntwo\nthree\n")
        await store.write_text("corpora/MAT.trg.txt", "uno\n\ntres\n")
        corpus = make_corpus(corpus_id="c1", text_id="MAT", train_on_all=True, pretranslate_all=True)

        counts = await TextCorpusPreprocessor(store).preprocess("b1", [corpus])

        assert counts == {"corpus_size": 3, "num_train_rows": 2, "num_pretranslate_rows": 1}
        assert await store.read_text("builds/b1/train.src.txt") == "one\nthree\n"
        assert await store.read_text("builds/b1/train.trg.txt") == "uno\ntres\n"
        pretranslations = json.loads(await store.read_text("builds/b1/pretranslate.src.json"))
        assert pretranslations == [
            {"corpus_id": "c1", "text_id": "MAT", "refs": ["MAT:2"], "translation": "two"}
        ]

    async def test_text_id_filters(self, store):
        for text_id in ("MAT", "MRK"):
            await store.write_text(f"corpora/{text_id}.src.txt", "a\nb\n")
            await store.write_text(f"corpora/{text_id}.trg.txt", "A\n")
        corpus = make_corpus(
            text_id="MAT",
            train_on_all=False,
            train_on_text_ids={"MAT"},
            pretranslate_text_ids={"MRK"},
            source_files=[
                {"location": "corpora/MAT.src.txt", "text_id": "MAT"},
                {"location": "corpora/MRK.src.txt", "text_id": "MRK"},
            ],
            target_files=[
                {"location": "corpora/MAT.trg.txt", "text_id": "MAT"},
                {"location": "corpora/MRK.trg.txt", "text_id": "MRK"},
            ],
        )

        counts = await TextCorpusPreprocessor(store).preprocess("b1", [corpus])

        assert counts["num_train_rows"] == 1
        assert counts["num_pretranslate_rows"] == 1
        rows = json.loads(await store.read_text("builds/b1/pretranslate.src.json"))
        assert [r["text_id"] for r in rows] == ["MRK"]

    async def test_empty_corpora_still_write_files(self, store):
        counts = await TextCorpusPreprocessor(store).preprocess("b1", [])
        assert counts == {"corpus_size": 0, "num_train_rows": 0, "num_pretranslate_rows": 0}
        assert await store.read_text("builds/b1/train.src.txt") == ""
        assert json.loads(await store.read_text("builds/b1/pretranslate.src.json")) == []

    async def test_unsupported_format(self, store):
        corpus = make_corpus(source_files=[{"location": "x.usfm", "format": "paratext", "text_id": "MAT"}])
        with pytest.raises(ValueError, match="paratext"):
            await TextCorpusPreprocessor(store).preprocess("b1", [corpus])


class TestFilePretranslationWriter:

    async def test_publishes_trained_pretranslations(self, store):
        rows = [{"corpus_id": "c1", "text_id": "MAT", "refs": ["MAT:2"], "translation": "dos"}]
        await store.write_text("builds/b1/pretranslate.trg.json", json.dumps(rows))

        assert await FilePretranslationWriter(store).write("e1", "b1") == 1
        assert json.loads(await store.read_text("pretranslations/e1.json")) == rows

    async def test_nothing_produced(self, store):
        assert await FilePretranslationWriter(store).write("e1", "b1") == 0
        assert not await store.exists("pretranslations/e1.json")

    async def test_rejects_non_list(self, store):
        await store.write_text("builds/b1/pretranslate.trg.json", '{"not": "a list"}')
        with pytest.raises(ValueError):
            await FilePretranslationWriter(store).write("e1", "b1")
