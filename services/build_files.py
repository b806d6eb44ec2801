"""
Build File Collaborators - Local Disk.

In-process implementations of the stage collaborators that only move
text around:

    LocalBuildFileStore       IBuildFileStore on a local directory
    TextCorpusPreprocessor    ICorpusPreprocessor for plain-text corpora
    FilePretranslationWriter  IPretranslationWriter publishing to the store

Build file layout (relative to the store root):

    builds/{build_id}/train.src.txt          one training segment per line
    builds/{build_id}/train.trg.txt
    builds/{build_id}/pretranslate.src.json  segments to pretranslate
    builds/{build_id}/pretranslate.trg.json  written by training
    pretranslations/{engine_id}.json         published pretranslations

Plain-text corpora: one segment per line; source and target files with
the same text_id are aligned by line number.

Exports:
    LocalBuildFileStore
    TextCorpusPreprocessor
    FilePretranslationWriter
"""

import asyncio
import json
import shutil
from pathlib import Path
from typing import Any, Dict, List, Optional

from core.models import Corpus, CorpusFile
from jobs.collaborators import ICorpusPreprocessor, IBuildFileStore, IPretranslationWriter
from util_logger import LoggerFactory, ComponentType


class LocalBuildFileStore(IBuildFileStore):
    """
    Build files under a root directory. Paths may not escape the root.
    """

    def __init__(self, root: str):
        self.root = Path(root).resolve()
        self.logger = LoggerFactory.create_logger(ComponentType.ADAPTER, "LocalBuildFileStore")

    def _resolve(self, path: str) -> Path:
        full = (self.root / path).resolve()
        if full != self.root and self.root not in full.parents:
            raise ValueError(f"Path escapes the build file root: {path}")
        return full

    async def write_text(self, path: str, content: str) -> None:
        full = self._resolve(path)

        def _write():
            full.parent.mkdir(parents=True, exist_ok=True)
            full.write_text(content, encoding="utf-8")

        await asyncio.to_thread(_write)

    async def read_text(self, path: str) -> str:
        full = self._resolve(path)
        return await asyncio.to_thread(full.read_text, encoding="utf-8")

    async def exists(self, path: str) -> bool:
        return await asyncio.to_thread(self._resolve(path).exists)

    async def delete(self, prefix: str) -> None:
        full = self._resolve(prefix)

        def _delete():
            if full.is_dir():
                shutil.rmtree(full)
            elif full.exists():
                full.unlink()

        await asyncio.to_thread(_delete)
        self.logger.debug(f"Deleted {full}")


class TextCorpusPreprocessor(ICorpusPreprocessor):
    """
    Splits plain-text corpora into training rows and rows to pretranslate.
    """

    def __init__(self, file_store: IBuildFileStore):
        self.file_store = file_store
        self.logger = LoggerFactory.create_logger(ComponentType.SERVICE, "TextCorpusPreprocessor")

    async def _read_texts(self, files: List[CorpusFile]) -> Dict[str, List[str]]:
        texts: Dict[str, List[str]] = {}
        for corpus_file in files:
            if corpus_file.format != "text":
                raise ValueError(f"Unsupported corpus file format '{corpus_file.format}' ({corpus_file.location})")
            content = await self.file_store.read_text(corpus_file.location)
            texts.setdefault(corpus_file.text_id, []).extend(content.splitlines())
        return texts

    async def preprocess(
        self,
        build_id: str,
        corpora: List[Corpus],
        build_options: Optional[Dict[str, Any]] = None
    ) -> Dict[str, int]:
        counts = {"corpus_size": 0, "num_train_rows": 0, "num_pretranslate_rows": 0}
        train_src: List[str] = []
        train_trg: List[str] = []
        pretranslations: List[Dict[str, Any]] = []

        for corpus in corpora:
            source_texts = await self._read_texts(corpus.source_files)
            target_texts = await self._read_texts(corpus.target_files)

            text_ids = list(source_texts) + [t for t in target_texts if t not in source_texts]
            for text_id in text_ids:
                source_lines = source_texts.get(text_id, [])
                target_lines = target_texts.get(text_id, [])
                for index in range(max(len(source_lines), len(target_lines))):
                    source = source_lines[index].strip() if index < len(source_lines) else ""
                    target = target_lines[index].strip() if index < len(target_lines) else ""

                    if corpus.is_train_text(text_id) and source and target:
                        train_src.append(source)
                        train_trg.append(target)
                        counts["num_train_rows"] += 1
                    if corpus.is_pretranslate_text(text_id) and source and not target:
                        pretranslations.append({
                            "corpus_id": corpus.id,
                            "text_id": text_id,
                            "refs": [f"{text_id}:{index + 1}"],
                            "translation": source,
                        })
                        counts["num_pretranslate_rows"] += 1
                    if source or target:
                        counts["corpus_size"] += 1

        await self.file_store.write_text(f"builds/{build_id}/train.src.txt", "".join(f"{s}\n" for s in train_src))
        await self.file_store.write_text(f"builds/{build_id}/train.trg.txt", "".join(f"{t}\n" for t in train_trg))
        await self.file_store.write_text(
            f"builds/{build_id}/pretranslate.src.json",
            json.dumps(pretranslations, indent=2, ensure_ascii=False)
        )
        self.logger.info(f"✅ Build {build_id} files written: {counts}")
        return counts


class FilePretranslationWriter(IPretranslationWriter):
    """
    Publishes builds/{build_id}/pretranslate.trg.json as
    pretranslations/{engine_id}.json, replacing the previous build's.
    """

    def __init__(self, file_store: IBuildFileStore):
        self.file_store = file_store
        self.logger = LoggerFactory.create_logger(ComponentType.SERVICE, "FilePretranslationWriter")

    async def write(self, engine_id: str, build_id: str) -> int:
        source_path = f"builds/{build_id}/pretranslate.trg.json"
        if not await self.file_store.exists(source_path):
            self.logger.info(f"No pretranslations produced by build {build_id}")
            return 0

        pretranslations = json.loads(await self.file_store.read_text(source_path))
        if not isinstance(pretranslations, list):
            raise ValueError(f"{source_path} must contain a JSON list")

        await self.file_store.write_text(
            f"pretranslations/{engine_id}.json",
            json.dumps(pretranslations, indent=2, ensure_ascii=False)
        )
        return len(pretranslations)
